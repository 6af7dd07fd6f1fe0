"""
Purpose: Optional persistent duplex connection to the assistant, one per session id.

State machine: IDLE -> CONNECTING -> OPEN -> CLOSED
- failed handshake: CONNECTING -> CLOSED (ChannelError)
- peer close, socket error or disconnect(): OPEN -> CLOSED
- CLOSED -> CONNECTING again only through an explicit connect(); no auto-reconnect

Inbound frames are exposed as an async iterator of Message (messages()).
Malformed frames are logged and dropped; they never close the channel.
send() outside OPEN raises ClientInputError rather than dropping the text.
"""

from __future__ import annotations
import asyncio
import logging
from enum import Enum
from typing import AsyncIterator, Callable, Optional

import websockets
from websockets.exceptions import ConnectionClosed, WebSocketException

from ..context import ClientContext
from ..errors import ChannelError, ClientInputError
from ..models import Message, utc_now_iso
from ..utils.frames import encode_frame, require_object
from ..utils.log import get_logger, log_event

logger = get_logger(__name__)

WS_PATH = "/api/v1/agent/ws/{session_id}"


class ChannelState(str, Enum):
    IDLE = "idle"
    CONNECTING = "connecting"
    OPEN = "open"
    CLOSED = "closed"


class RealtimeChannel:
    def __init__(
        self,
        context: ClientContext,
        session_id: str,
        *,
        connector: Callable = websockets.connect,
    ) -> None:
        self.context = context
        self.session_id = session_id
        self._connector = connector
        self._ws = None
        self.state = ChannelState.IDLE

    @property
    def url(self) -> str:
        return self.context.ws_base_url + WS_PATH.format(session_id=self.session_id)

    @property
    def is_open(self) -> bool:
        return self.state is ChannelState.OPEN

    async def connect(self) -> None:
        if self.state in (ChannelState.CONNECTING, ChannelState.OPEN):
            raise ClientInputError("Realtime channel is already connected.")
        self.state = ChannelState.CONNECTING
        try:
            ws = await self._connector(
                self.url,
                additional_headers=self.context.auth_headers(),
                open_timeout=self.context.request_timeout,
            )
        except (OSError, asyncio.TimeoutError, WebSocketException) as e:
            self.state = ChannelState.CLOSED
            log_event(logger, "channel_connect_failed", {"url": self.url, "error": str(e)}, level=logging.WARNING)
            raise ChannelError(f"Could not connect to {self.url}: {e}") from e
        self._ws = ws
        self.state = ChannelState.OPEN
        log_event(logger, "channel_open", {"session_id": self.session_id})

    async def messages(self) -> AsyncIterator[Message]:
        """Inbound messages in arrival order until the channel closes."""
        ws = self._ws
        if self.state is not ChannelState.OPEN or ws is None:
            raise ChannelError("Realtime channel is not open.")
        try:
            async for raw in ws:
                try:
                    frame = require_object(raw)
                    msg = Message.from_payload(frame, session_id=self.session_id)
                except ValueError as e:
                    log_event(
                        logger,
                        "frame_dropped",
                        {"session_id": self.session_id, "reason": str(e)},
                        level=logging.WARNING,
                    )
                    continue
                yield msg
        except ConnectionClosed as e:
            self._mark_closed(ws)
            raise ChannelError(f"Realtime connection dropped: {e}") from e
        self._mark_closed(ws)

    async def listen(
        self,
        on_message: Callable[[Message], None],
        on_error: Optional[Callable[[ChannelError], None]] = None,
    ) -> None:
        """Callback-style delivery over messages(); returns when the channel closes."""
        try:
            async for msg in self.messages():
                on_message(msg)
        except ChannelError as e:
            if on_error is None:
                raise
            on_error(e)

    async def send(self, text: str) -> None:
        if self.state is not ChannelState.OPEN or self._ws is None:
            raise ClientInputError("Realtime channel is not connected.")
        if not (text or "").strip():
            raise ClientInputError("Please enter a non-empty message.")
        frame = encode_frame(
            {"message": text, "session_id": self.session_id, "timestamp": utc_now_iso()}
        )
        ws = self._ws
        try:
            await ws.send(frame)
        except ConnectionClosed as e:
            self._mark_closed(ws)
            raise ChannelError(f"Realtime connection dropped: {e}") from e

    async def disconnect(self) -> None:
        ws, self._ws = self._ws, None
        self.state = ChannelState.CLOSED
        if ws is not None:
            await ws.close()
            log_event(logger, "channel_closed", {"session_id": self.session_id})

    def _mark_closed(self, ws) -> None:
        # ignore a stale socket if connect() has since opened a new one
        if self._ws is ws:
            self._ws = None
            self.state = ChannelState.CLOSED
