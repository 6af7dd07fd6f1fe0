"""
Purpose: Guardrails for what the user sends to the assistant.
Content: early, predictable failures before any network call. The text
itself is passed on as typed, apart from stray NUL bytes and outer whitespace.
"""

from __future__ import annotations

from ..errors import ClientInputError

MAX_INPUT_CHARS = 4000


class DefaultSecurity:
    def validate_user_input(self, text: str) -> None:
        if not (text or "").strip():
            raise ClientInputError("Please enter a non-empty message.")
        if len(text) > MAX_INPUT_CHARS:
            raise ClientInputError("Your message is too long.")

    def sanitize(self, text: str) -> str:
        return (text or "").replace("\x00", "").strip()
