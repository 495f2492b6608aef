"""Shared pytest fixtures for the VoiceMemo test suite.

Provides fake capture/output devices, mock providers, settings isolated from
the environment, and helpers for building finished recordings.
"""

import math
import struct
from unittest.mock import AsyncMock

import pytest

from voicememo.core.config import Settings
from voicememo.core.exceptions import DeviceUnavailableError, PlaybackFailedError
from voicememo.core.models import (
    AudioChunk,
    EnhancementResult,
    RecordingBuffer,
    TranscriptionResult,
)
from voicememo.services.audio.capture import AudioCapture, CaptureHandle
from voicememo.services.audio.codecs import WAV_PCM16
from voicememo.services.audio.local_ref import LocalAudioRef
from voicememo.services.audio.output import AudioOutput
from voicememo.services.audio.processor import AudioProcessor

# ---------------------------------------------------------------------------
# Fake devices
# ---------------------------------------------------------------------------


class FakeHandle(CaptureHandle):
    """Capture handle driven by the test through ``emit()``."""

    def __init__(self, codec=WAV_PCM16, tail: bytes = b"") -> None:
        self.codec = codec
        self.on_chunk = None
        self.interval_ms = None
        self.paused = False
        self.close_calls = 0
        self._open = True
        self._sequence = 0
        self._tail = tail

    @property
    def is_open(self) -> bool:
        return self._open

    def begin(self, on_chunk, interval_ms=1000):
        self.on_chunk = on_chunk
        self.interval_ms = interval_ms
        return self.codec

    def pause(self) -> None:
        self.paused = True

    def resume(self) -> None:
        self.paused = False

    def close(self) -> None:
        self.close_calls += 1
        if not self._open:
            return
        self._open = False
        if self._tail:
            self.emit(self._tail)

    def emit(self, data: bytes) -> AudioChunk:
        """Deliver one chunk to the session, as the audio thread would."""
        chunk = AudioChunk(sequence=self._sequence, data=data)
        self._sequence += 1
        self.on_chunk(chunk)
        return chunk


class FakeCapture(AudioCapture):
    """Hands out ``FakeHandle``s, or fails like a missing microphone."""

    def __init__(self, fail: bool = False, tail: bytes = b"") -> None:
        self.fail = fail
        self.tail = tail
        self.handles: list[FakeHandle] = []

    def open(self, constraints):
        if self.fail:
            raise DeviceUnavailableError("No input devices found")
        handle = FakeHandle(tail=self.tail)
        self.handles.append(handle)
        return handle

    @property
    def last(self) -> FakeHandle:
        return self.handles[-1]


class FakeOutput(AudioOutput):
    """Records calls; metadata is delivered when the test calls ``finish_loading``."""

    def __init__(self, fail_play: bool = False) -> None:
        self.fail_play = fail_play
        self.loaded_path = None
        self.playing = False
        self.close_calls = 0
        self._position = 0.0
        self._on_metadata = None
        self._on_ended = None

    def load(self, path, on_metadata, on_ended) -> None:
        self.loaded_path = path
        self._on_metadata = on_metadata
        self._on_ended = on_ended

    def finish_loading(self, duration: float) -> None:
        self._on_metadata(duration)

    def reach_end(self) -> None:
        self.playing = False
        self._position = 0.0
        self._on_ended()

    def play(self) -> None:
        if self.fail_play:
            raise PlaybackFailedError("Could not load recording: corrupt header")
        self.playing = True

    def pause(self) -> None:
        self.playing = False

    @property
    def position(self) -> float:
        return self._position

    def close(self) -> None:
        self.close_calls += 1
        self.playing = False


@pytest.fixture
def fake_capture():
    return FakeCapture()


@pytest.fixture
def fake_output():
    return FakeOutput()


@pytest.fixture
def failing_capture():
    return FakeCapture(fail=True)


@pytest.fixture
def failing_output():
    return FakeOutput(fail_play=True)


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------


@pytest.fixture
def settings(tmp_path):
    """Settings that ignore the developer's environment and .env file."""
    return Settings(
        _env_file=None,
        recordings_dir=str(tmp_path / "recordings"),
        public_base_url="",
    )


# ---------------------------------------------------------------------------
# Audio fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def sample_pcm_bytes():
    """Generate 1 second of 440Hz sine-wave PCM audio (16kHz, 16-bit, mono)."""
    sample_rate = 16000
    amplitude = 16000  # ~50% of max int16
    samples = [
        struct.pack("<h", int(amplitude * math.sin(2 * math.pi * 440.0 * i / sample_rate)))
        for i in range(sample_rate)
    ]
    return b"".join(samples)


@pytest.fixture
def silent_pcm_bytes():
    """Generate 1 second of silence as PCM audio (16kHz, 16-bit, mono)."""
    return b"\x00\x00" * 16000


@pytest.fixture
def recording(sample_pcm_bytes):
    """A finished WAV recording of two one-second chunks."""
    chunks = (
        AudioChunk(sequence=0, data=sample_pcm_bytes),
        AudioChunk(sequence=1, data=sample_pcm_bytes),
    )
    data = AudioProcessor().encode(sample_pcm_bytes * 2, WAV_PCM16)
    return RecordingBuffer(chunks=chunks, codec=WAV_PCM16, data=data)


@pytest.fixture
def local_ref(recording, tmp_path):
    return LocalAudioRef.create(recording, str(tmp_path))


# ---------------------------------------------------------------------------
# Provider mocks
# ---------------------------------------------------------------------------


@pytest.fixture
def mock_llm():
    """Mock BaseLLM answering with a valid enhancement JSON object."""
    from voicememo.services.llm.base import BaseLLM

    llm = AsyncMock(spec=BaseLLM)
    llm.generate.return_value = (
        '{"corrected_text": "I went to the lake with my father.", "title": "Lake Day"}'
    )
    return llm


@pytest.fixture
def mock_stt():
    """Mock BaseSTT returning a normal transcript."""
    from voicememo.services.transcription.base import BaseSTT

    stt = AsyncMock(spec=BaseSTT)
    stt.transcribe.return_value = TranscriptionResult(
        text="i went to the lake with my father", language="en", duration=2.0
    )
    return stt


@pytest.fixture
def mock_enhancer():
    """Mock BaseEnhancer returning a corrected transcript and title."""
    from voicememo.services.enhancement.base import BaseEnhancer

    enhancer = AsyncMock(spec=BaseEnhancer)
    enhancer.enhance.return_value = EnhancementResult(
        corrected_text="I went to the lake with my father.", title="Lake Day"
    )
    return enhancer


@pytest.fixture
def mock_store():
    """Mock BaseObjectStore returning a permanent URL."""
    from voicememo.services.storage.base import BaseObjectStore

    store = AsyncMock(spec=BaseObjectStore)
    store.put.return_value = "https://storage.example.com/audio/abc123.wav"
    return store
