"""
Abstractions for pluggable collaborators. Inversion of control: the
orchestrator depends on protocols, not on httpx/websockets/sounddevice.
Protocols define what a collaborator can do, without saying how.

Common protocols:
- KeyValueStore.get/set/remove: the durable local state (session id, token, user).
- AssistantBackend.chat/voice/suggestions/conversation: the remote assistant.
- MessageChannel.connect/send/messages/disconnect: the realtime socket.
- InputGuard.validate_user_input/sanitize: checks before sending.
- AudioInputStream.start/stop/close: one acquired microphone stream.

Testing: Use simple fake implementations to drive AssistantSession,
RealtimeChannel and VoiceCapture without network or devices.
"""

from __future__ import annotations
from typing import AsyncIterator, Callable, Optional, Protocol

from .models import ChatReply, Message, Notice, Product, SuggestionCriteria, VoiceRecording


class KeyValueStore(Protocol):
    def get(self, key: str) -> Optional[str]: ...

    def set(self, key: str, value: str) -> None: ...

    def remove(self, key: str) -> None: ...


class AssistantBackend(Protocol):
    async def chat(self, message: str, *, session_id: str, timestamp: str) -> ChatReply: ...

    async def voice(self, recording: VoiceRecording, *, session_id: str) -> ChatReply: ...

    async def suggestions(self, criteria: SuggestionCriteria) -> list[Product]: ...

    async def conversation(self, session_id: str) -> list[Message]: ...


class MessageChannel(Protocol):
    session_id: str

    @property
    def is_open(self) -> bool: ...

    async def connect(self) -> None: ...

    async def send(self, text: str) -> None: ...

    def messages(self) -> AsyncIterator[Message]: ...

    async def disconnect(self) -> None: ...


class InputGuard(Protocol):
    def validate_user_input(self, text: str) -> None: ...

    def sanitize(self, text: str) -> str: ...


class AudioInputStream(Protocol):
    def start(self) -> None: ...

    def stop(self) -> None: ...

    def close(self) -> None: ...


# (samplerate, channels, dtype, callback) -> an unstarted input stream
AudioStreamFactory = Callable[..., AudioInputStream]

Notifier = Callable[[Notice], None]
