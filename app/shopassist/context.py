"""
Explicit client context: where the API lives and where durable state is kept.
Everything that needs the credential, the cached user or the session id gets
it from here at call time instead of from ambient globals.
"""

from __future__ import annotations
import json
from dataclasses import dataclass, field
from typing import Optional

from .config import AppConfig
from .interfaces import KeyValueStore
from .models import User
from .persistence.kv_store import InMemoryKeyValueStore, JsonFileKeyValueStore
from .persistence.session_store import SessionStore

TOKEN_KEY = "access_token"
USER_KEY = "user"


@dataclass
class ClientContext:
    store: KeyValueStore = field(default_factory=InMemoryKeyValueStore)
    api_base_url: str = "http://localhost:8000"
    request_timeout: float = 30.0

    @classmethod
    def from_config(cls, config: AppConfig, *, store: Optional[KeyValueStore] = None) -> "ClientContext":
        return cls(
            store=store if store is not None else JsonFileKeyValueStore(config.store_path),
            api_base_url=config.api_base_url,
            request_timeout=config.request_timeout,
        )

    @property
    def sessions(self) -> SessionStore:
        return SessionStore(self.store)

    @property
    def ws_base_url(self) -> str:
        """http(s)://host -> ws(s)://host"""
        url = self.api_base_url.rstrip("/")
        return "ws" + url[len("http"):] if url.startswith("http") else url

    def credential(self) -> Optional[str]:
        return self.store.get(TOKEN_KEY) or None

    def auth_headers(self) -> dict[str, str]:
        token = self.credential()
        return {"Authorization": f"Bearer {token}"} if token else {}

    def current_user(self) -> Optional[User]:
        raw = self.store.get(USER_KEY)
        if not raw:
            return None
        try:
            return User.from_payload(json.loads(raw))
        except (ValueError, KeyError, TypeError):
            return None

    def sign_in(self, token: str, user: Optional[dict] = None) -> None:
        self.store.set(TOKEN_KEY, token)
        if user is not None:
            self.store.set(USER_KEY, json.dumps(user))

    def sign_out(self) -> None:
        self.store.remove(TOKEN_KEY)
        self.store.remove(USER_KEY)
