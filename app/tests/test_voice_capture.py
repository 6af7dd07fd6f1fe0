import asyncio
import io
import wave

import pytest

from shopassist.errors import ClientInputError, DeviceError
from shopassist.services import voice
from shopassist.services.voice import CaptureState, VoiceCapture

from conftest import StreamFactory


def wav_frames(data: bytes) -> tuple[int, int, bytes]:
    with wave.open(io.BytesIO(data), "rb") as w:
        return w.getframerate(), w.getnchannels(), w.readframes(w.getnframes())


def test_user_stop_returns_wav_and_releases_stream_once():
    factory = StreamFactory()
    capture = VoiceCapture(stream_factory=factory)

    async def scenario():
        await capture.start()
        assert capture.state is CaptureState.RECORDING
        stream = factory.streams[0]
        stream.feed(b"\x01\x00\x02\x00")
        stream.feed(b"\x03\x00")
        return capture.stop()

    recording = asyncio.run(scenario())
    stream = factory.streams[0]

    assert capture.state is CaptureState.IDLE
    assert stream.stop_calls == 1 and stream.close_calls == 1
    assert recording.mime_type == "audio/wav"
    assert wav_frames(recording.consume()) == (16_000, 1, b"\x01\x00\x02\x00\x03\x00")
    assert not capture.timed_out
    assert factory.kwargs[0]["dtype"] == "int16"


def test_timeout_auto_stops_and_releases_exactly_once(monkeypatch):
    monkeypatch.setattr(voice, "MAX_RECORDING_SECONDS", 0.05)
    factory = StreamFactory()
    capture = VoiceCapture(stream_factory=factory)

    async def scenario():
        await capture.start()
        factory.streams[0].feed(b"\x00\x00" * 8)
        recording = await asyncio.wait_for(capture.wait(), timeout=2)
        # nothing left to stop once the timer fired
        with pytest.raises(ClientInputError):
            capture.stop()
        await asyncio.sleep(0.1)
        return recording

    recording = asyncio.run(scenario())
    stream = factory.streams[0]

    assert capture.timed_out
    assert capture.state is CaptureState.IDLE
    assert stream.stop_calls == 1 and stream.close_calls == 1
    assert wav_frames(recording.consume())[2] == b"\x00\x00" * 8


def test_early_stop_cancels_timer(monkeypatch):
    monkeypatch.setattr(voice, "MAX_RECORDING_SECONDS", 0.05)
    factory = StreamFactory()
    capture = VoiceCapture(stream_factory=factory)

    async def scenario():
        await capture.start()
        capture.stop()
        await asyncio.sleep(0.1)

    asyncio.run(scenario())
    assert not capture.timed_out
    assert factory.streams[0].close_calls == 1


def test_second_start_while_recording_is_rejected():
    factory = StreamFactory()
    capture = VoiceCapture(stream_factory=factory)

    async def scenario():
        await capture.start()
        with pytest.raises(ClientInputError):
            await capture.start()
        capture.stop()

    asyncio.run(scenario())
    assert len(factory.streams) == 1


def test_permission_failure_releases_stream_and_returns_to_idle():
    factory = StreamFactory(start_error=OSError("permission denied"))
    capture = VoiceCapture(stream_factory=factory)

    with pytest.raises(DeviceError):
        asyncio.run(capture.start())

    assert capture.state is CaptureState.IDLE
    assert factory.streams[0].close_calls == 1


def test_unsupported_environment_is_a_device_error(monkeypatch):
    monkeypatch.setattr(voice, "sd", None)
    capture = VoiceCapture()

    with pytest.raises(DeviceError):
        asyncio.run(capture.start())
    assert capture.state is CaptureState.IDLE


def test_stop_without_recording_is_rejected():
    with pytest.raises(ClientInputError):
        VoiceCapture(stream_factory=StreamFactory()).stop()


def test_capture_can_run_again_after_stop():
    factory = StreamFactory()
    capture = VoiceCapture(stream_factory=factory)

    async def scenario():
        await capture.start()
        factory.streams[0].feed(b"\x01\x00")
        first = capture.stop()
        await capture.start()
        factory.streams[1].feed(b"\x02\x00")
        second = capture.stop()
        return first, second

    first, second = asyncio.run(scenario())
    assert wav_frames(first.consume())[2] == b"\x01\x00"
    assert wav_frames(second.consume())[2] == b"\x02\x00"
