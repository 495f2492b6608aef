"""Audio output backends for preview playback."""

import logging
import threading
from abc import ABC, abstractmethod
from collections.abc import Callable
from pathlib import Path
from typing import Any

import numpy as np
import soundfile as sf

from voicememo.core.exceptions import PlaybackFailedError

logger = logging.getLogger(__name__)


class AudioOutput(ABC):
    """Plays one local file. Metadata arrives asynchronously via ``on_metadata``."""

    @abstractmethod
    def load(
        self,
        path: Path,
        on_metadata: Callable[[float], None],
        on_ended: Callable[[], None],
    ) -> None:
        """Start loading ``path``; call ``on_metadata(duration)`` when known."""

    @abstractmethod
    def play(self) -> None:
        """Start or continue playback. Raises PlaybackFailedError."""

    @abstractmethod
    def pause(self) -> None:
        """Pause playback, keeping the current position."""

    @property
    @abstractmethod
    def position(self) -> float:
        """Current playback position in seconds."""

    @abstractmethod
    def close(self) -> None:
        """Release the output device and decoded data."""


class SoundDeviceOutput(AudioOutput):
    """Decodes with soundfile in a worker thread and plays through sounddevice."""

    def __init__(self) -> None:
        self._data: np.ndarray | None = None
        self._sample_rate = 0
        self._frame = 0
        self._stream: Any = None
        self._load_thread: threading.Thread | None = None
        self._load_error: Exception | None = None
        self._on_ended: Callable[[], None] | None = None
        self._lock = threading.Lock()

    def load(self, path, on_metadata, on_ended) -> None:
        self._on_ended = on_ended

        def _worker() -> None:
            try:
                data, sample_rate = sf.read(str(path), dtype="float32", always_2d=True)
            except Exception as exc:
                logger.warning("Could not decode %s: %s", path, exc)
                self._load_error = exc
                return
            self._data, self._sample_rate = data, sample_rate
            on_metadata(len(data) / sample_rate if sample_rate else 0.0)

        self._load_thread = threading.Thread(target=_worker, daemon=True)
        self._load_thread.start()

    def play(self) -> None:
        if self._load_thread is not None:
            self._load_thread.join()
        if self._load_error is not None or self._data is None:
            raise PlaybackFailedError(f"Could not load recording: {self._load_error}")

        try:
            import sounddevice as sd
        except (ImportError, OSError) as exc:
            raise PlaybackFailedError(f"Audio backend unavailable: {exc}") from exc

        try:
            if self._stream is None:
                self._stream = sd.OutputStream(
                    samplerate=self._sample_rate,
                    channels=self._data.shape[1],
                    dtype="float32",
                    callback=self._callback,
                    finished_callback=self._finished,
                )
            elif not self._stream.stopped:
                # A stream that ran to completion must be stopped before restarting.
                self._stream.stop()
            self._stream.start()
        except sd.PortAudioError as exc:
            raise PlaybackFailedError(f"Could not start playback: {exc}") from exc

    def pause(self) -> None:
        if self._stream is not None:
            self._stream.stop()

    @property
    def position(self) -> float:
        if not self._sample_rate:
            return 0.0
        return self._frame / self._sample_rate

    def close(self) -> None:
        if self._stream is not None:
            self._stream.stop()
            self._stream.close()
            self._stream = None
        self._data = None

    def _callback(self, outdata, frames, time_info, status) -> None:
        import sounddevice as sd

        with self._lock:
            remaining = len(self._data) - self._frame
            count = min(frames, remaining)
            outdata[:count] = self._data[self._frame : self._frame + count]
            outdata[count:] = 0
            self._frame += count
        if count < frames:
            raise sd.CallbackStop

    def _finished(self) -> None:
        # Also fires after pause(); only treat reaching the end as "ended".
        if self._data is not None and self._frame >= len(self._data):
            self._frame = 0
            if self._on_ended is not None:
                self._on_ended()
