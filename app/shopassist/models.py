"""
Canonical data shapes, shared truth for typing/validation between layers.

Typical contents:
- Message (role, text, timestamp, session_id), frozen once created.
- Intent (kind, confidence, entities) attached to an assistant reply.
- Product / Category / User mirrors of the remote catalog payloads.
- VoiceRecording (data, mime_type), consumed by exactly one upload.
- SessionState: transcript, suggestion set, notices and the send phase.

Testing: Mostly types; the `from_payload` helpers carry the parsing rules.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from .errors import ClientInputError


PRODUCT_SEARCH_INTENTS = frozenset(
    {"product_search", "product_recommendation", "search"}
)


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class Role(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"

    @classmethod
    def from_wire(cls, value: Optional[str]) -> "Role":
        """The backend tags assistant frames as "ai"; anything unknown is assistant."""
        if (value or "").lower() == "user":
            return cls.USER
        return cls.ASSISTANT


class SendPhase(str, Enum):
    IDLE = "idle"
    AWAITING_REPLY = "awaiting-reply"
    AWAITING_SUGGESTIONS = "awaiting-suggestions"


class NoticeKind(str, Enum):
    CHAT = "chat"
    SUGGESTIONS = "suggestions"
    VOICE = "voice"
    REALTIME = "realtime"
    RESUME = "resume"


@dataclass(frozen=True)
class Message:
    role: Role
    text: str
    session_id: str
    timestamp: str = field(default_factory=utc_now_iso)

    @classmethod
    def user(cls, text: str, session_id: str) -> "Message":
        return cls(role=Role.USER, text=text, session_id=session_id)

    @classmethod
    def assistant(cls, text: str, session_id: str) -> "Message":
        return cls(role=Role.ASSISTANT, text=text, session_id=session_id)

    @classmethod
    def from_payload(cls, data: dict, *, session_id: str) -> "Message":
        """Build from a chat-message-shaped frame; raises ValueError if it has no text."""
        text = data.get("message")
        if text is None:
            text = data.get("response")
        if not isinstance(text, str):
            raise ValueError("chat frame carries no message text")
        return cls(
            role=Role.from_wire(data.get("type") or data.get("role")),
            text=text,
            session_id=str(data.get("session_id") or session_id),
            timestamp=str(data.get("timestamp") or utc_now_iso()),
        )


@dataclass(frozen=True)
class Intent:
    kind: str
    confidence: Optional[float] = None
    entities: list = field(default_factory=list)

    @property
    def is_product_search(self) -> bool:
        return self.kind.lower() in PRODUCT_SEARCH_INTENTS

    @classmethod
    def from_payload(cls, raw: Any) -> "Intent":
        """Accepts the plain string form ("product_search") or an object."""
        if isinstance(raw, dict):
            kind = raw.get("kind") or raw.get("intent") or raw.get("type") or ""
            confidence = raw.get("confidence")
            return cls(
                kind=str(kind),
                confidence=float(confidence) if confidence is not None else None,
                entities=list(raw.get("entities") or []),
            )
        return cls(kind=str(raw or ""))


@dataclass(frozen=True)
class PriceRange:
    min: float
    max: float

    def as_payload(self) -> dict:
        return {"min": self.min, "max": self.max}


@dataclass(frozen=True)
class SuggestionCriteria:
    search_query: Optional[str] = None
    category: Optional[int] = None
    price_range: Optional[PriceRange] = None
    user_preferences: list[str] = field(default_factory=list)

    def as_payload(self) -> dict:
        payload: dict[str, Any] = {}
        if self.search_query:
            payload["search_query"] = self.search_query
        if self.category is not None:
            payload["category"] = self.category
        if self.price_range is not None:
            payload["price_range"] = self.price_range.as_payload()
        if self.user_preferences:
            payload["user_preferences"] = list(self.user_preferences)
        return payload


@dataclass(frozen=True)
class ChatReply:
    response: str
    intent: Intent
    suggestions: list[str] = field(default_factory=list)
    preferences: dict = field(default_factory=dict)

    @classmethod
    def from_payload(cls, data: Any) -> "ChatReply":
        if not isinstance(data, dict):
            raise ValueError("chat reply must be a JSON object")
        prefs = data.get("preferences") or data.get("user_preferences") or {}
        return cls(
            response=str(data.get("response") or ""),
            intent=Intent.from_payload(data.get("intent")),
            suggestions=[str(s) for s in (data.get("suggestions") or [])],
            preferences=prefs if isinstance(prefs, dict) else {},
        )

    def suggestion_criteria(self, query: str) -> SuggestionCriteria:
        """Criteria for the follow-up fetch: the user's text plus whatever the reply structured."""
        price_range = None
        raw_range = self.preferences.get("price_range")
        if isinstance(raw_range, dict) and {"min", "max"} <= raw_range.keys():
            price_range = PriceRange(
                min=float(raw_range["min"]), max=float(raw_range["max"])
            )
        try:
            category = int(self.preferences["category"])
        except (KeyError, TypeError, ValueError):
            category = None
        return SuggestionCriteria(
            search_query=query,
            category=category,
            price_range=price_range,
            user_preferences=list(self.suggestions),
        )


@dataclass(frozen=True)
class Product:
    id: int
    name: str
    description: str
    price: float
    condition: str
    seller_id: Optional[int]
    stock: int = 0
    is_featured: bool = False
    is_active: bool = True
    brand: Optional[str] = None
    model: Optional[str] = None
    category_id: Optional[int] = None
    images: tuple[str, ...] = ()
    tags: tuple[str, ...] = ()
    specifications: dict = field(default_factory=dict)

    @classmethod
    def from_payload(cls, data: dict) -> "Product":
        return cls(
            id=int(data["id"]),
            name=str(data.get("name") or ""),
            description=str(data.get("description") or ""),
            price=float(data.get("price") or 0.0),
            condition=str(data.get("condition") or ""),
            seller_id=data.get("seller_id"),
            stock=int(data.get("stock_quantity", data.get("stock")) or 0),
            is_featured=bool(data.get("is_featured", False)),
            is_active=bool(data.get("is_active", True)),
            brand=data.get("brand"),
            model=data.get("model"),
            category_id=data.get("category_id"),
            images=tuple(data.get("images") or ()),
            tags=tuple(data.get("tags") or ()),
            specifications=dict(data.get("specifications") or {}),
        )


@dataclass(frozen=True)
class Category:
    id: int
    name: str
    description: Optional[str] = None


@dataclass(frozen=True)
class User:
    id: int
    email: str
    username: str
    full_name: str
    role: str
    is_active: bool = True
    is_verified: bool = False

    @property
    def is_seller(self) -> bool:
        return self.role == "seller"

    @classmethod
    def from_payload(cls, data: dict) -> "User":
        return cls(
            id=int(data["id"]),
            email=str(data.get("email") or ""),
            username=str(data.get("username") or ""),
            full_name=str(data.get("full_name") or ""),
            role=str(data.get("role") or "buyer"),
            is_active=bool(data.get("is_active", True)),
            is_verified=bool(data.get("is_verified", False)),
        )


@dataclass(frozen=True)
class ImageAnalysis:
    name: str
    description: str
    suggested_price: float
    brand: str
    model: str
    suggested_category: str
    confidence_score: float
    specifications: dict = field(default_factory=dict)


class VoiceRecording:
    """Encoded audio handed to exactly one upload call."""

    def __init__(self, data: bytes, mime_type: str = "audio/wav") -> None:
        self.mime_type = mime_type
        self._data: Optional[bytes] = data
        self.size = len(data)

    @property
    def consumed(self) -> bool:
        return self._data is None

    def consume(self) -> bytes:
        if self._data is None:
            raise ClientInputError("Voice recording was already uploaded.")
        data, self._data = self._data, None
        return data

    @property
    def filename(self) -> str:
        ext = self.mime_type.split("/")[-1] or "bin"
        return f"recording.{ext}"

    def __repr__(self) -> str:
        return f"VoiceRecording(size={self.size}, mime_type={self.mime_type!r}, consumed={self.consumed})"


@dataclass(frozen=True)
class Notice:
    kind: NoticeKind
    text: str
    error: Optional[Exception] = None


@dataclass
class SessionState:
    transcript: list[Message] = field(default_factory=list)
    suggestions: list[Product] = field(default_factory=list)
    notices: list[Notice] = field(default_factory=list)

    phase: SendPhase = SendPhase.IDLE
    send_seq: int = 0
