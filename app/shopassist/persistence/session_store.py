"""
Purpose: The durable conversation session id.
Created on first use, persisted, reused across reloads; overwritten only
when resuming a shared/remote session.
"""

from __future__ import annotations
import secrets
import string
import time

from ..errors import ClientInputError
from ..interfaces import KeyValueStore
from ..utils.log import get_logger

SESSION_KEY = "session_id"
_SUFFIX_ALPHABET = string.ascii_lowercase + string.digits

logger = get_logger(__name__)


def new_session_id() -> str:
    """session_<epoch ms>_<9 random chars>"""
    suffix = "".join(secrets.choice(_SUFFIX_ALPHABET) for _ in range(9))
    return f"session_{int(time.time() * 1000)}_{suffix}"


class SessionStore:
    def __init__(self, store: KeyValueStore) -> None:
        self._store = store

    def get_session_id(self) -> str:
        session_id = self._store.get(SESSION_KEY)
        if session_id:
            return session_id
        session_id = new_session_id()
        self._store.set(SESSION_KEY, session_id)
        logger.info("Created session %s", session_id)
        return session_id

    def set_session_id(self, session_id: str) -> None:
        session_id = (session_id or "").strip()
        if not session_id:
            raise ClientInputError("Session id must be non-empty.")
        self._store.set(SESSION_KEY, session_id)
