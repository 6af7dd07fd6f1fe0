"""
Purpose: microphone capture for voice messages.

State machine: IDLE -> REQUESTING -> RECORDING -> IDLE
- the stream is acquired in REQUESTING; any failure there releases what was
  acquired, returns to IDLE and raises DeviceError
- recording ends on stop() or after MAX_RECORDING_SECONDS, whichever first
- ending a recording stops and closes the device stream exactly once and
  wraps the buffered PCM as a WAV VoiceRecording
"""

from __future__ import annotations
import asyncio
import io
import wave
from enum import Enum
from typing import Optional

from ..errors import ClientInputError, DeviceError
from ..interfaces import AudioInputStream, AudioStreamFactory
from ..models import VoiceRecording
from ..utils.log import get_logger, log_event

try:
    import sounddevice as sd
except (ImportError, OSError):
    # OSError: PortAudio shared library missing
    sd = None

logger = get_logger(__name__)

MAX_RECORDING_SECONDS = 10.0
SAMPLE_RATE_HZ = 16_000
CHANNELS = 1
SAMPLE_WIDTH_BYTES = 2  # int16


def default_stream_factory(*, samplerate: int, channels: int, dtype: str, callback) -> AudioInputStream:
    if sd is None:
        raise DeviceError("Audio capture is not supported here (sounddevice/PortAudio unavailable).")
    return sd.RawInputStream(
        samplerate=samplerate, channels=channels, dtype=dtype, callback=callback
    )


def pcm16_to_wav(pcm: bytes, *, sample_rate_hz: int = SAMPLE_RATE_HZ, channels: int = CHANNELS) -> bytes:
    with io.BytesIO() as buf:
        with wave.open(buf, "wb") as w:
            w.setnchannels(channels)
            w.setsampwidth(SAMPLE_WIDTH_BYTES)
            w.setframerate(sample_rate_hz)
            w.writeframes(pcm)
        return buf.getvalue()


class CaptureState(str, Enum):
    IDLE = "idle"
    REQUESTING = "requesting"
    RECORDING = "recording"


class VoiceCapture:
    def __init__(self, *, stream_factory: Optional[AudioStreamFactory] = None) -> None:
        self._stream_factory = stream_factory or default_stream_factory
        self.state = CaptureState.IDLE
        self._stream: Optional[AudioInputStream] = None
        self._chunks: list[bytes] = []
        self._timer: Optional[asyncio.TimerHandle] = None
        self._result: Optional[asyncio.Future] = None
        self.timed_out = False

    @property
    def is_recording(self) -> bool:
        return self.state is CaptureState.RECORDING

    def _on_audio(self, indata, frames, time_info, status) -> None:
        # runs on the PortAudio thread; list.append is atomic under the GIL
        if status:
            logger.debug("capture status: %s", status)
        self._chunks.append(bytes(indata))

    async def start(self) -> None:
        if self.state is not CaptureState.IDLE:
            raise ClientInputError("A voice capture is already in progress.")
        loop = asyncio.get_running_loop()
        self.state = CaptureState.REQUESTING
        self._chunks = []
        self.timed_out = False
        stream = None
        try:
            stream = self._stream_factory(
                samplerate=SAMPLE_RATE_HZ,
                channels=CHANNELS,
                dtype="int16",
                callback=self._on_audio,
            )
            stream.start()
        except Exception as e:
            if stream is not None:
                self._close_stream(stream)
            self.state = CaptureState.IDLE
            log_event(logger, "capture_failed", {"error": str(e)})
            if isinstance(e, DeviceError):
                raise
            raise DeviceError(f"Microphone unavailable: {e}") from e

        self._stream = stream
        self._result = loop.create_future()
        self._timer = loop.call_later(MAX_RECORDING_SECONDS, self._on_timeout)
        self.state = CaptureState.RECORDING
        log_event(logger, "capture_begin", {"max_seconds": MAX_RECORDING_SECONDS})

    def stop(self) -> VoiceRecording:
        """End the recording now and return it."""
        if self.state is not CaptureState.RECORDING:
            raise ClientInputError("No voice capture is in progress.")
        return self._finish()

    async def wait(self) -> VoiceRecording:
        """Resolve with the recording once stop() or the timeout ends it."""
        if self._result is None:
            raise ClientInputError("No voice capture was started.")
        return await self._result

    async def record(self) -> VoiceRecording:
        await self.start()
        return await self.wait()

    def _on_timeout(self) -> None:
        if self.state is CaptureState.RECORDING:
            self.timed_out = True
            self._finish()

    def _finish(self) -> VoiceRecording:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        stream, self._stream = self._stream, None
        self.state = CaptureState.IDLE
        if stream is not None:
            self._close_stream(stream)

        pcm = b"".join(self._chunks)
        self._chunks = []
        recording = VoiceRecording(pcm16_to_wav(pcm), mime_type="audio/wav")
        log_event(
            logger,
            "capture_end",
            {"pcm_bytes": len(pcm), "timed_out": self.timed_out},
        )
        if self._result is not None and not self._result.done():
            self._result.set_result(recording)
        return recording

    @staticmethod
    def _close_stream(stream: AudioInputStream) -> None:
        try:
            stream.stop()
        except Exception as e:
            logger.warning("Stopping the input stream failed: %s", e)
        finally:
            stream.close()
        log_event(logger, "capture_released", {})
