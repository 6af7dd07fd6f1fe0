"""
Purpose: The single orchestration point for an assistant session. Owns the
transcript, the suggestion set and the notices shown to the user.
Prevents the UI from knowing how transport, socket or intent handling work.

Key responsibilities:
- Echo the user's text into the transcript before any network call.
- Send over REST (send_text / send_voice) or the realtime channel.
- Append assistant replies; on a product-search intent fetch suggestions once.
- Last-send-wins: every send takes a sequence number; a suggestions result is
  applied only while its send is still the latest one.
- Turn every remote/device failure into a Notice; committed transcript
  entries are never rolled back and failed fetches never touch suggestions.
- One transcript per session: resume()/reset() start a new epoch, and a
  reply that arrives for an earlier epoch is logged and dropped.
- phase covers REST and realtime sends; a realtime turn waits in
  AWAITING_REPLY until the next inbound assistant message.

Testing: Pure unit tests with a fake AssistantBackend and fake channel.
Drive overlapping sends with asyncio events to check ordering.
"""

from __future__ import annotations
import logging
from typing import Callable, Optional

from .errors import ChannelError, ClientInputError, ShopAssistError
from .interfaces import AssistantBackend, InputGuard, MessageChannel, Notifier
from .models import (
    ChatReply,
    Message,
    Notice,
    NoticeKind,
    Product,
    Role,
    SendPhase,
    SessionState,
    VoiceRecording,
)
from .persistence.session_store import SessionStore
from .services.security import DefaultSecurity
from .utils.log import get_logger, log_event

logger = get_logger(__name__)


class AssistantSession:
    def __init__(
        self,
        api: AssistantBackend,
        sessions: SessionStore,
        *,
        channel: Optional[MessageChannel] = None,
        security: Optional[InputGuard] = None,
        notifier: Optional[Notifier] = None,
        on_message: Optional[Callable[[Message], None]] = None,
    ):
        self.api: AssistantBackend = api
        self.sessions = sessions
        self.channel = channel
        self.security: InputGuard = security or DefaultSecurity()
        self.notifier = notifier
        self.on_message = on_message
        self.state = SessionState()
        self._epoch = 0
        self._realtime_seq: Optional[int] = None

    # ---------------- read-only view ----------------
    @property
    def session_id(self) -> str:
        return self.sessions.get_session_id()

    @property
    def transcript(self) -> tuple[Message, ...]:
        return tuple(self.state.transcript)

    @property
    def suggestions(self) -> tuple[Product, ...]:
        return tuple(self.state.suggestions)

    @property
    def notices(self) -> tuple[Notice, ...]:
        return tuple(self.state.notices)

    @property
    def phase(self) -> SendPhase:
        return self.state.phase

    def drain_notices(self) -> list[Notice]:
        """Return and clear pending notices (the UI shows each once)."""
        out, self.state.notices = self.state.notices, []
        return out

    def reset(self) -> None:
        """Clear transcript, suggestions and notices. The session id is kept."""
        # send_seq keeps counting so pending sends stay superseded
        self.state = SessionState(send_seq=self.state.send_seq + 1)
        self._epoch += 1
        self._realtime_seq = None

    # ---------------- bookkeeping ----------------
    def _begin_send(self) -> int:
        self.state.send_seq += 1
        return self.state.send_seq

    def _is_latest(self, seq: int) -> bool:
        return seq == self.state.send_seq

    def _set_phase(self, seq: int, phase: SendPhase) -> None:
        if self._is_latest(seq):
            self.state.phase = phase

    def _is_current(self, epoch: int, session_id: str, kind: str) -> bool:
        if epoch == self._epoch:
            return True
        log_event(
            logger,
            "reply_discarded",
            {"kind": kind, "session_id": session_id, "current": self.session_id},
        )
        return False

    def _append(self, message: Message) -> Message:
        self.state.transcript.append(message)
        if self.on_message is not None:
            self.on_message(message)
        return message

    def _notify(self, kind: NoticeKind, text: str, error: Optional[Exception] = None) -> Notice:
        notice = Notice(kind=kind, text=text, error=error)
        self.state.notices.append(notice)
        log_event(
            logger,
            "notice",
            {"kind": kind.value, "text": text, "error": repr(error) if error else None},
            level=logging.WARNING,
        )
        if self.notifier is not None:
            self.notifier(notice)
        return notice

    def _prepare_text(self, text: str) -> str:
        self.security.validate_user_input(text)
        return self.security.sanitize(text)

    # ---------------- REST sends ----------------
    async def send_text(self, text: str) -> Optional[Message]:
        """
        One text turn: echo, chat, optional suggestions fetch.
        Returns the assistant Message, or None when the chat call failed.
        Raises ClientInputError (before any network call) for bad input.
        """
        clean = self._prepare_text(text)
        session_id = self.session_id
        epoch = self._epoch
        seq = self._begin_send()
        user_msg = self._append(Message.user(clean, session_id))
        self._set_phase(seq, SendPhase.AWAITING_REPLY)

        try:
            reply = await self.api.chat(
                clean, session_id=session_id, timestamp=user_msg.timestamp
            )
        except ShopAssistError as e:
            self._set_phase(seq, SendPhase.IDLE)
            self._notify(NoticeKind.CHAT, f"The assistant could not be reached: {e}", e)
            return None

        if not self._is_current(epoch, session_id, "chat"):
            return None
        assistant_msg = self._append(Message.assistant(reply.response, session_id))

        if reply.intent.is_product_search:
            await self._refresh_suggestions(seq, clean, reply)
        self._set_phase(seq, SendPhase.IDLE)
        return assistant_msg

    async def _refresh_suggestions(self, seq: int, query: str, reply: ChatReply) -> None:
        if not self._is_latest(seq):
            log_event(logger, "suggestions_skipped", {"seq": seq, "latest": self.state.send_seq})
            return
        self._set_phase(seq, SendPhase.AWAITING_SUGGESTIONS)
        try:
            products = await self.api.suggestions(reply.suggestion_criteria(query))
        except ShopAssistError as e:
            if self._is_latest(seq):
                self._notify(NoticeKind.SUGGESTIONS, f"Could not load suggestions: {e}", e)
            return

        if not self._is_latest(seq):
            log_event(
                logger,
                "suggestions_discarded",
                {"seq": seq, "latest": self.state.send_seq, "count": len(products)},
            )
            return
        self.state.suggestions = list(products)

    async def send_voice(self, recording: VoiceRecording) -> Optional[Message]:
        """
        Upload a recording; the server's reply is appended as an assistant
        message. The spoken words are not echoed locally.
        """
        if recording.consumed:
            raise ClientInputError("Voice recording was already uploaded.")
        if recording.size == 0:
            raise ClientInputError("Voice recording is empty.")
        session_id = self.session_id
        epoch = self._epoch
        seq = self._begin_send()
        self._set_phase(seq, SendPhase.AWAITING_REPLY)
        try:
            reply = await self.api.voice(recording, session_id=session_id)
        except ShopAssistError as e:
            self._set_phase(seq, SendPhase.IDLE)
            self._notify(NoticeKind.VOICE, f"Voice message failed: {e}", e)
            return None
        self._set_phase(seq, SendPhase.IDLE)
        if not self._is_current(epoch, session_id, "voice"):
            return None
        return self._append(Message.assistant(reply.response, session_id))

    # ---------------- realtime ----------------
    def _require_channel(self) -> MessageChannel:
        if self.channel is None:
            raise ClientInputError("No realtime channel is attached to this session.")
        return self.channel

    async def send_realtime(self, text: str) -> bool:
        """Echo then push over the socket. Returns False when the push failed."""
        channel = self._require_channel()
        if not channel.is_open:
            raise ClientInputError("Realtime channel is not connected.")
        clean = self._prepare_text(text)
        seq = self._begin_send()
        self._append(Message.user(clean, self.session_id))
        self._realtime_seq = seq
        self._set_phase(seq, SendPhase.AWAITING_REPLY)
        try:
            await channel.send(clean)
        except ChannelError as e:
            self._realtime_done()
            self._notify(NoticeKind.REALTIME, f"Realtime message failed: {e}", e)
            return False
        return True

    async def follow_realtime(self) -> int:
        """
        Append inbound channel messages in arrival order until it closes.
        Returns how many were appended.
        """
        channel = self._require_channel()
        count = 0
        try:
            async for msg in channel.messages():
                if channel.session_id != self.session_id:
                    log_event(
                        logger,
                        "reply_discarded",
                        {
                            "kind": "realtime",
                            "session_id": channel.session_id,
                            "current": self.session_id,
                        },
                    )
                    continue
                self._append(msg)
                count += 1
                if msg.role is Role.ASSISTANT:
                    self._realtime_done()
        except ChannelError as e:
            self._realtime_done()
            self._notify(NoticeKind.REALTIME, f"Realtime connection lost: {e}", e)
        return count

    def _realtime_done(self) -> None:
        if self._realtime_seq is not None:
            self._set_phase(self._realtime_seq, SendPhase.IDLE)
            self._realtime_seq = None

    # ---------------- session lifecycle ----------------
    async def resume(self, session_id: str) -> int:
        """
        Switch to an existing (shared/remote) session and load its transcript.
        The local transcript is replaced only if the fetch succeeds.
        """
        self.sessions.set_session_id(session_id)
        self._epoch += 1
        self._realtime_seq = None
        self._begin_send()
        self.state.phase = SendPhase.IDLE
        epoch = self._epoch
        try:
            messages = await self.api.conversation(self.session_id)
        except ShopAssistError as e:
            self._notify(NoticeKind.RESUME, f"Could not load conversation: {e}", e)
            return 0
        if not self._is_current(epoch, session_id, "resume"):
            return 0
        self.state.transcript = list(messages)
        self.state.suggestions = []
        return len(messages)
