"""
Purpose: Typed wrapper over the remote assistant endpoints.
Maps wire payloads to models so AssistantSession never handles raw dicts.
"""

from __future__ import annotations
from typing import Any

from ..errors import TransportError
from ..models import ChatReply, Intent, Message, Product, SuggestionCriteria, VoiceRecording, utc_now_iso
from .transport import TransportClient

CHAT_PATH = "/api/v1/agent/chat"
VOICE_PATH = "/api/v1/agent/voice"
SUGGESTIONS_PATH = "/api/v1/agent/suggestions"
INTENT_PATH = "/api/v1/agent/intent"
CONVERSATION_PATH = "/api/v1/agent/conversation/{session_id}"
CONVERSATIONS_PATH = "/api/v1/agent/conversations/{user_id}"
HEALTH_PATH = "/health"


def _reply(data: Any, endpoint: str) -> ChatReply:
    try:
        return ChatReply.from_payload(data)
    except ValueError as e:
        raise TransportError(200, str(e), endpoint=endpoint) from e


def products_from(data: Any) -> list[Product]:
    """Accepts a bare list or a {success, products: [...]} envelope."""
    if isinstance(data, dict):
        data = data.get("products") or []
    return [Product.from_payload(p) for p in (data or []) if isinstance(p, dict)]


class AssistantApi:
    def __init__(self, transport: TransportClient) -> None:
        self.transport = transport

    async def chat(self, message: str, *, session_id: str, timestamp: str | None = None) -> ChatReply:
        data = await self.transport.request(
            CHAT_PATH,
            "POST",
            {
                "message": message,
                "session_id": session_id,
                "timestamp": timestamp or utc_now_iso(),
            },
        )
        return _reply(data, CHAT_PATH)

    async def voice(self, recording: VoiceRecording, *, session_id: str) -> ChatReply:
        audio = recording.consume()
        data = await self.transport.upload(
            VOICE_PATH,
            {"audio_file": (recording.filename, audio, recording.mime_type)},
            {"session_id": session_id},
        )
        return _reply(data, VOICE_PATH)

    async def suggestions(self, criteria: SuggestionCriteria) -> list[Product]:
        data = await self.transport.request(
            SUGGESTIONS_PATH, "POST", criteria.as_payload()
        )
        return products_from(data)

    async def analyze_intent(self, message: str) -> Intent:
        data = await self.transport.request(INTENT_PATH, "POST", {"message": message})
        return Intent.from_payload(data)

    async def conversation(self, session_id: str) -> list[Message]:
        data = await self.transport.request(
            CONVERSATION_PATH.format(session_id=session_id)
        )
        raw_messages = data.get("messages") if isinstance(data, dict) else None
        out = []
        for item in raw_messages or []:
            if not isinstance(item, dict):
                continue
            try:
                out.append(Message.from_payload(item, session_id=session_id))
            except ValueError:
                continue
        return out

    async def conversation_history(self, user_id: int) -> list[dict]:
        data = await self.transport.request(CONVERSATIONS_PATH.format(user_id=user_id))
        return list(data or [])

    async def health(self) -> dict:
        return await self.transport.request(HEALTH_PATH) or {}
