"""Fakes shared by the test modules: backend, socket, microphone stream."""

from __future__ import annotations
import asyncio
from typing import Optional

import httpx
import pytest

from shopassist.context import ClientContext
from shopassist.models import ChatReply, Intent, Product
from shopassist.persistence.kv_store import InMemoryKeyValueStore
from shopassist.services.transport import TransportClient

BASE_URL = "http://shop.test"


def product(pid: int, name: str = "", price: float = 50.0) -> Product:
    return Product(
        id=pid,
        name=name or f"Product {pid}",
        description="",
        price=price,
        condition="Good",
        seller_id=7,
        stock=1,
    )


def reply(text: str, intent: str = "general", suggestions=None) -> ChatReply:
    return ChatReply(
        response=text, intent=Intent(kind=intent), suggestions=list(suggestions or [])
    )


@pytest.fixture
def store():
    return InMemoryKeyValueStore()


@pytest.fixture
def context(store):
    return ClientContext(store=store, api_base_url=BASE_URL, request_timeout=5.0)


def mock_transport(context: ClientContext, handler) -> TransportClient:
    return TransportClient(context, transport=httpx.MockTransport(handler))


class FakeBackend:
    """AssistantBackend with canned answers and optional gates to control latency."""

    def __init__(self):
        self.replies: dict = {}
        self.products: dict = {}
        self.chat_gates: dict[str, asyncio.Event] = {}
        self.suggestion_gates: dict[str, asyncio.Event] = {}
        self.chat_calls: list = []
        self.suggestion_calls: list = []
        self.voice_calls: list = []
        self.voice_reply = None
        self.conversation_reply: list = []

    async def chat(self, message, *, session_id, timestamp):
        self.chat_calls.append((message, session_id, timestamp))
        gate = self.chat_gates.get(message)
        if gate is not None:
            await gate.wait()
        result = self.replies[message]
        if isinstance(result, Exception):
            raise result
        return result

    async def suggestions(self, criteria):
        self.suggestion_calls.append(criteria)
        gate = self.suggestion_gates.get(criteria.search_query)
        if gate is not None:
            await gate.wait()
        result = self.products[criteria.search_query]
        if isinstance(result, Exception):
            raise result
        return result

    async def voice(self, recording, *, session_id):
        self.voice_calls.append((recording.consume(), session_id))
        if isinstance(self.voice_reply, Exception):
            raise self.voice_reply
        return self.voice_reply

    async def conversation(self, session_id):
        if isinstance(self.conversation_reply, Exception):
            raise self.conversation_reply
        return self.conversation_reply


@pytest.fixture
def backend():
    return FakeBackend()


class FakeSocket:
    """Stands in for a websockets client connection."""

    def __init__(self, frames=(), error: Optional[Exception] = None):
        self.frames = list(frames)
        self.error = error
        self.sent: list[str] = []
        self.close_calls = 0

    async def send(self, data):
        self.sent.append(data)

    async def close(self):
        self.close_calls += 1

    def __aiter__(self):
        return self._iter()

    async def _iter(self):
        for frame in self.frames:
            yield frame
        if self.error is not None:
            raise self.error


class SocketConnector:
    def __init__(self, *sockets, error: Optional[Exception] = None):
        self.sockets = list(sockets)
        self.error = error
        self.calls: list = []

    async def __call__(self, url, **kwargs):
        self.calls.append((url, kwargs))
        if self.error is not None:
            raise self.error
        return self.sockets.pop(0)


class FakeStream:
    """Stands in for sounddevice.RawInputStream."""

    def __init__(self, callback, start_error: Optional[Exception] = None):
        self.callback = callback
        self.start_error = start_error
        self.started = False
        self.stop_calls = 0
        self.close_calls = 0

    def start(self):
        if self.start_error is not None:
            raise self.start_error
        self.started = True

    def stop(self):
        self.stop_calls += 1

    def close(self):
        self.close_calls += 1

    def feed(self, pcm: bytes):
        self.callback(pcm, len(pcm) // 2, None, None)


class StreamFactory:
    def __init__(self, start_error: Optional[Exception] = None):
        self.start_error = start_error
        self.streams: list[FakeStream] = []
        self.kwargs: list[dict] = []

    def __call__(self, **kwargs):
        self.kwargs.append(kwargs)
        stream = FakeStream(kwargs["callback"], start_error=self.start_error)
        self.streams.append(stream)
        return stream
