"""Microphone capture.

``AudioCapture.open()`` acquires the input device and returns a
``CaptureHandle``; the handle owns the device until ``close()``, which is safe
to reach from every exit path (it is also the context-manager exit).

The sounddevice implementation reads 16-bit PCM in whatever block sizes
PortAudio delivers and re-slices it into fixed-cadence ``AudioChunk``s, so
each chunk covers exactly one emission interval (the final chunk may be
shorter).
"""

import logging
import threading
import time
from abc import ABC, abstractmethod
from collections.abc import Callable, Iterable
from typing import Any

import numpy as np

from voicememo.core.exceptions import DeviceUnavailableError
from voicememo.core.models import AudioChunk, CaptureConstraints, CodecCandidate
from voicememo.services.audio.codecs import (
    DEFAULT_PREFERENCE,
    negotiate_codec,
    resolve_candidates,
    soundfile_supports,
)

logger = logging.getLogger(__name__)

ChunkCallback = Callable[[AudioChunk], None]


class CaptureHandle(ABC):
    """An open input device. Must be closed exactly once."""

    @abstractmethod
    def begin(self, on_chunk: ChunkCallback, interval_ms: int = 1000) -> CodecCandidate:
        """Start emitting chunks every ``interval_ms``; returns the frozen codec."""

    @abstractmethod
    def pause(self) -> None:
        """Suspend emission without releasing the device."""

    @abstractmethod
    def resume(self) -> None:
        """Resume emission after ``pause()``."""

    @abstractmethod
    def close(self) -> None:
        """Stop emission and release the device. Later calls are no-ops."""

    @property
    @abstractmethod
    def is_open(self) -> bool:
        """True until ``close()`` has run."""

    def __enter__(self) -> "CaptureHandle":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


class AudioCapture(ABC):
    """Factory for capture handles."""

    @abstractmethod
    def open(self, constraints: CaptureConstraints) -> CaptureHandle:
        """Acquire the microphone.

        Raises:
            DeviceUnavailableError: No device, no permission, or no audio backend.
        """


def load_sounddevice():
    """Import sounddevice lazily; PortAudio may be missing on headless hosts."""
    try:
        import sounddevice as sd
    except (ImportError, OSError) as exc:
        raise DeviceUnavailableError(f"Audio backend unavailable: {exc}") from exc
    return sd


def select_input_device(devices: Iterable[dict[str, Any]], prefer_name: str | None) -> int | None:
    """Pick an input device index, preferring a name match.

    Returns None to let PortAudio use the system default input.

    Raises:
        DeviceUnavailableError: If no input-capable device exists.
    """
    candidates = [d for d in devices if d.get("max_input_channels", 0) > 0]
    if not candidates:
        raise DeviceUnavailableError("No input devices found")
    if prefer_name:
        for device in candidates:
            if prefer_name.lower() in device.get("name", "").lower():
                return device.get("index")
        logger.warning("Input device %r not found; using system default", prefer_name)
    return None


class SoundDeviceCapture(AudioCapture):
    """Capture backed by a PortAudio input stream (sounddevice).

    Args:
        codec_preference: Ranked MIME types probed at ``begin()``.
        is_supported: Codec probe; defaults to asking libsndfile.
    """

    def __init__(
        self,
        codec_preference: list[str] | None = None,
        is_supported: Callable[[CodecCandidate], bool] = soundfile_supports,
    ) -> None:
        self._codec_preference = codec_preference or DEFAULT_PREFERENCE
        self._is_supported = is_supported

    def open(self, constraints: CaptureConstraints) -> "SoundDeviceHandle":
        sd = load_sounddevice()
        handle = SoundDeviceHandle(
            sd,
            constraints,
            resolve_candidates(self._codec_preference),
            self._is_supported,
        )
        try:
            device = select_input_device(sd.query_devices(), constraints.device)
            handle._stream = sd.InputStream(
                samplerate=constraints.sample_rate,
                channels=constraints.channels,
                dtype="int16",
                device=device,
                callback=handle._on_audio,
            )
        except sd.PortAudioError as exc:
            raise DeviceUnavailableError(f"Could not open microphone: {exc}") from exc

        if constraints.echo_cancellation:
            # PortAudio exposes no AEC; capture-only use has no far-end signal.
            logger.debug("Echo cancellation requested; not available from host API")
        logger.info(
            "Microphone opened (device=%s, rate=%s, channels=%s)",
            device if device is not None else "default",
            constraints.sample_rate,
            constraints.channels,
        )
        return handle


class SoundDeviceHandle(CaptureHandle):
    """Open sounddevice input stream plus the chunking state for one session."""

    def __init__(
        self,
        sd,
        constraints: CaptureConstraints,
        candidates: list[CodecCandidate],
        is_supported: Callable[[CodecCandidate], bool],
    ) -> None:
        self._sd = sd
        self._stream: Any = None
        self._constraints = constraints
        self._candidates = candidates
        self._is_supported = is_supported
        self._lock = threading.Lock()
        self._pending = bytearray()
        self._on_chunk: ChunkCallback | None = None
        self._chunk_bytes = 0
        self._sequence = 0
        self._emitting = False
        self._closed = False
        self.codec: CodecCandidate | None = None

    @property
    def is_open(self) -> bool:
        return not self._closed

    def begin(self, on_chunk: ChunkCallback, interval_ms: int = 1000) -> CodecCandidate:
        if self._closed:
            raise DeviceUnavailableError("Capture handle is closed")
        if self.codec is not None:
            return self.codec

        self.codec = negotiate_codec(self._candidates, self._is_supported)
        frame_bytes = 2 * self._constraints.channels
        self._chunk_bytes = int(self._constraints.sample_rate * interval_ms / 1000) * frame_bytes
        with self._lock:
            self._on_chunk = on_chunk
            self._emitting = True
        try:
            self._stream.start()
        except self._sd.PortAudioError as exc:
            with self._lock:
                self._emitting = False
            raise DeviceUnavailableError(f"Could not start microphone: {exc}") from exc
        return self.codec

    def pause(self) -> None:
        with self._lock:
            self._emitting = False
        try:
            self._stream.stop()
        except self._sd.PortAudioError as exc:
            raise DeviceUnavailableError(f"Could not pause microphone: {exc}") from exc

    def resume(self) -> None:
        try:
            self._stream.start()
        except self._sd.PortAudioError as exc:
            raise DeviceUnavailableError(f"Could not resume microphone: {exc}") from exc
        with self._lock:
            self._emitting = True

    def close(self) -> None:
        if self._closed:
            logger.debug("Capture handle already closed")
            return
        self._closed = True
        with self._lock:
            self._emitting = False
        try:
            self._stream.stop()
        except self._sd.PortAudioError as exc:
            raise DeviceUnavailableError(f"Could not stop microphone: {exc}") from exc
        finally:
            self._stream.close()
            logger.info("Microphone released")
        self._flush()

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _on_audio(self, indata: Any, frames: int, time_info: Any, status: Any) -> None:
        if status:
            logger.debug("Input stream status: %s", status)
        ready: list[AudioChunk] = []
        with self._lock:
            on_chunk = self._on_chunk
            if not self._emitting or on_chunk is None:
                return
            self._pending.extend(np.asarray(indata, dtype=np.int16).tobytes())
            while self._chunk_bytes and len(self._pending) >= self._chunk_bytes:
                ready.append(self._next_chunk(bytes(self._pending[: self._chunk_bytes])))
                del self._pending[: self._chunk_bytes]
        # on_chunk must never run with the handle lock held.
        for chunk in ready:
            on_chunk(chunk)

    def _flush(self) -> None:
        """Emit whatever partial interval was captured before close."""
        with self._lock:
            on_chunk = self._on_chunk
            tail = self._next_chunk(bytes(self._pending)) if self._pending else None
            self._pending.clear()
        if tail is not None and on_chunk is not None:
            on_chunk(tail)

    def _next_chunk(self, data: bytes) -> AudioChunk:
        chunk = AudioChunk(sequence=self._sequence, data=data, captured_at=time.monotonic())
        self._sequence += 1
        return chunk
