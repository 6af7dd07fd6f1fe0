import asyncio
import json

import pytest
from websockets.exceptions import ConnectionClosedError

from shopassist.errors import ChannelError, ClientInputError
from shopassist.models import Role
from shopassist.services.realtime import ChannelState, RealtimeChannel

from conftest import FakeSocket, SocketConnector


def make_channel(context, *sockets, error=None):
    connector = SocketConnector(*sockets, error=error)
    return RealtimeChannel(context, "sess-1", connector=connector), connector


def test_connect_opens_session_url_with_credential(context):
    context.sign_in("tok")
    channel, connector = make_channel(context, FakeSocket())
    assert channel.state is ChannelState.IDLE

    asyncio.run(channel.connect())

    url, kwargs = connector.calls[0]
    assert channel.state is ChannelState.OPEN
    assert url == "ws://shop.test/api/v1/agent/ws/sess-1"
    assert kwargs["additional_headers"] == {"Authorization": "Bearer tok"}


def test_failed_handshake_closes_and_raises(context):
    channel, _ = make_channel(context, error=OSError("refused"))

    with pytest.raises(ChannelError):
        asyncio.run(channel.connect())
    assert channel.state is ChannelState.CLOSED


def test_messages_arrive_in_order_and_malformed_frames_are_dropped(context):
    frames = [
        json.dumps({"message": "first", "type": "ai"}),
        "not json at all",
        json.dumps([1, 2, 3]),
        json.dumps({"unrelated": True}),
        json.dumps({"message": "second", "type": "user", "session_id": "sess-1"}),
        json.dumps({"response": "third"}).encode(),
    ]
    channel, _ = make_channel(context, FakeSocket(frames))

    async def scenario():
        await channel.connect()
        return [m async for m in channel.messages()]

    received = asyncio.run(scenario())

    assert [m.text for m in received] == ["first", "second", "third"]
    assert [m.role for m in received] == [Role.ASSISTANT, Role.USER, Role.ASSISTANT]
    assert all(m.session_id == "sess-1" for m in received)
    # clean end of stream from the peer
    assert channel.state is ChannelState.CLOSED


def test_abnormal_drop_raises_channel_error(context):
    sock = FakeSocket([json.dumps({"message": "hi"})], error=ConnectionClosedError(None, None))
    channel, _ = make_channel(context, sock)
    received = []

    async def scenario():
        await channel.connect()
        async for m in channel.messages():
            received.append(m)

    with pytest.raises(ChannelError):
        asyncio.run(scenario())
    assert [m.text for m in received] == ["hi"]
    assert channel.state is ChannelState.CLOSED


def test_listen_routes_errors_to_callback(context):
    sock = FakeSocket([json.dumps({"message": "hello"})], error=ConnectionClosedError(None, None))
    channel, _ = make_channel(context, sock)
    got, errors = [], []

    async def scenario():
        await channel.connect()
        await channel.listen(got.append, errors.append)

    asyncio.run(scenario())
    assert [m.text for m in got] == ["hello"]
    assert len(errors) == 1 and isinstance(errors[0], ChannelError)


def test_send_requires_open_channel(context):
    channel, _ = make_channel(context, FakeSocket())

    with pytest.raises(ClientInputError):
        asyncio.run(channel.send("hello"))


def test_send_writes_outbound_frame(context):
    sock = FakeSocket()
    channel, _ = make_channel(context, sock)

    async def scenario():
        await channel.connect()
        await channel.send("vintage cameras")

    asyncio.run(scenario())
    frame = json.loads(sock.sent[0])
    assert frame["message"] == "vintage cameras"
    assert frame["session_id"] == "sess-1"
    assert "timestamp" in frame


def test_disconnect_is_idempotent(context):
    sock = FakeSocket()
    channel, _ = make_channel(context, sock)

    async def scenario():
        await channel.connect()
        await channel.disconnect()
        await channel.disconnect()

    asyncio.run(scenario())
    assert channel.state is ChannelState.CLOSED
    assert sock.close_calls == 1


def test_disconnect_before_connect_is_a_no_op(context):
    channel, _ = make_channel(context)
    asyncio.run(channel.disconnect())
    assert channel.state is ChannelState.CLOSED


def test_closed_channel_needs_explicit_reconnect(context):
    first, second = FakeSocket(), FakeSocket()
    channel, connector = make_channel(context, first, second)

    async def scenario():
        await channel.connect()
        await channel.disconnect()
        with pytest.raises(ChannelError):
            async for _ in channel.messages():
                pass
        await channel.connect()

    asyncio.run(scenario())
    assert channel.state is ChannelState.OPEN
    assert len(connector.calls) == 2


def test_connect_twice_is_rejected(context):
    channel, _ = make_channel(context, FakeSocket(), FakeSocket())

    async def scenario():
        await channel.connect()
        await channel.connect()

    with pytest.raises(ClientInputError):
        asyncio.run(scenario())
