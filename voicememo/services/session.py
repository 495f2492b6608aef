"""Recording session state machine.

``idle → recording ⇄ paused → preview → idle``. The session owns the capture
handle, the accumulated chunks, the elapsed-time counter and, once stopped,
the finished ``RecordingBuffer`` with its preview ``PlaybackController``.
Everything leaves the session together through ``take_for_submission()`` or
is released by ``discard()``.

Chunks arrive on the audio thread and only touch the chunk lock. Transitions
are serialised by a separate lock that is never held by the audio thread, so
stopping the device from a transition cannot wait on a blocked callback.
"""

import logging
import threading
import time
from collections.abc import Callable

from voicememo.core.exceptions import DeviceUnavailableError, RecordingStateError
from voicememo.core.models import (
    AudioChunk,
    CaptureConstraints,
    CodecCandidate,
    RecordingBuffer,
    SessionState,
)
from voicememo.services.audio.capture import AudioCapture, CaptureHandle
from voicememo.services.audio.local_ref import LocalAudioRef
from voicememo.services.audio.output import AudioOutput, SoundDeviceOutput
from voicememo.services.audio.processor import AudioProcessor
from voicememo.services.playback import PlaybackController

logger = logging.getLogger(__name__)

StateCallback = Callable[[SessionState, SessionState], None]
TickCallback = Callable[[int], None]


class ElapsedClock:
    """Elapsed recording time that can be frozen while paused."""

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._accumulated = 0.0
        self._started_at: float | None = None

    def reset(self) -> None:
        self._accumulated = 0.0
        self._started_at = None

    def start(self) -> None:
        if self._started_at is None:
            self._started_at = self._clock()

    def freeze(self) -> None:
        if self._started_at is not None:
            self._accumulated += self._clock() - self._started_at
            self._started_at = None

    @property
    def seconds(self) -> float:
        running = 0.0 if self._started_at is None else self._clock() - self._started_at
        return self._accumulated + running


class _Ticker:
    """Calls ``on_tick`` once per second from a daemon thread until stopped."""

    def __init__(self, on_tick: Callable[[], None], interval: float = 1.0) -> None:
        self._on_tick = on_tick
        self._interval = interval
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None

    def start(self) -> None:
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._run, daemon=True)
        self._thread.start()

    def stop(self) -> None:
        self._stop_event.set()
        thread, self._thread = self._thread, None
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=self._interval * 2)

    def _run(self) -> None:
        while not self._stop_event.wait(self._interval):
            try:
                self._on_tick()
            except Exception:
                logger.exception("Tick callback failed")


class RecordingSession:
    """Finite-state machine governing one capture lifecycle at a time.

    Args:
        capture: Microphone backend.
        constraints: Stream constraints requested at ``start()``.
        interval_ms: Chunk emission cadence.
        output_factory: Builds the playback output for each preview.
        on_state_change: Called with ``(from_state, to_state)``.
        on_tick: Called with whole elapsed seconds once per second while recording.
        ref_dir: Directory for local reference files (system temp by default).
    """

    def __init__(
        self,
        capture: AudioCapture,
        constraints: CaptureConstraints | None = None,
        interval_ms: int = 1000,
        output_factory: Callable[[], AudioOutput] = SoundDeviceOutput,
        on_state_change: StateCallback | None = None,
        on_tick: TickCallback | None = None,
        clock: Callable[[], float] = time.monotonic,
        ref_dir: str | None = None,
    ) -> None:
        self._capture = capture
        self._constraints = constraints or CaptureConstraints()
        self._interval_ms = interval_ms
        self._output_factory = output_factory
        self._on_state_change = on_state_change
        self._on_tick = on_tick
        self._ref_dir = ref_dir
        self._processor = AudioProcessor(
            sample_rate=self._constraints.sample_rate,
            channels=self._constraints.channels,
        )

        # Serialises transitions and is held across device calls. The audio thread
        # never takes it; it only takes _lock, which guards the chunk list.
        self._transition_lock = threading.RLock()
        self._lock = threading.Lock()
        self._accepting = False
        self._state = SessionState.idle
        self._handle: CaptureHandle | None = None
        self._codec: CodecCandidate | None = None
        self._chunks: list[AudioChunk] = []
        self._clock = ElapsedClock(clock)
        self._ticker = _Ticker(self._tick) if on_tick else None
        self._buffer: RecordingBuffer | None = None
        self._playback: PlaybackController | None = None
        self._local_ref: LocalAudioRef | None = None

    # ------------------------------------------------------------------
    # Read-only state
    # ------------------------------------------------------------------

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def elapsed_seconds(self) -> int:
        return int(self._clock.seconds)

    @property
    def codec(self) -> CodecCandidate | None:
        return self._codec

    @property
    def chunk_count(self) -> int:
        return len(self._chunks)

    @property
    def capture_open(self) -> bool:
        return self._handle is not None and self._handle.is_open

    @property
    def buffer(self) -> RecordingBuffer | None:
        return self._buffer

    @property
    def playback(self) -> PlaybackController | None:
        return self._playback

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Idle → Recording.

        Raises:
            DeviceUnavailableError: The microphone could not be opened; the
                session stays idle.
            RecordingStateError: Not idle.
        """
        with self._transition_lock:
            self._require(SessionState.idle, operation="start recording")
            handle = self._capture.open(self._constraints)
            with self._lock:
                self._chunks = []
                self._accepting = True
            self._handle = handle
            try:
                self._codec = handle.begin(self._append_chunk, self._interval_ms)
            except Exception:
                self._set_accepting(False)
                self._close_handle_quietly()
                self._codec = None
                raise
            self._clock.reset()
            self._clock.start()
            self._transition(SessionState.recording)
            self._start_ticker()
            logger.info("Recording started (codec=%s)", self._codec.mime_type)

    def pause(self) -> None:
        """Recording → Paused."""
        with self._transition_lock:
            self._require(SessionState.recording, operation="pause")
            self._stop_ticker()
            self._clock.freeze()
            try:
                self._handle.pause()
            except Exception as exc:
                raise self._device_failed(exc, "pause")
            self._set_accepting(False)
            self._transition(SessionState.paused)

    def resume(self) -> None:
        """Paused → Recording, continuing the same buffer."""
        with self._transition_lock:
            self._require(SessionState.paused, operation="resume")
            self._set_accepting(True)
            try:
                self._handle.resume()
            except Exception as exc:
                raise self._device_failed(exc, "resume")
            self._clock.start()
            self._transition(SessionState.recording)
            self._start_ticker()

    def stop(self) -> RecordingBuffer:
        """Recording|Paused → Preview.

        Closes the microphone, assembles the immutable buffer with the codec
        frozen at ``start()`` and prepares preview playback.

        Raises:
            DeviceUnavailableError: The microphone failed while closing; the
                session is back to idle and the recording is lost.
        """
        with self._transition_lock:
            self._require(SessionState.recording, SessionState.paused, operation="stop")
            self._stop_ticker()
            self._clock.freeze()
            # The handle flushes its last partial interval on close.
            self._set_accepting(True)
            handle, self._handle = self._handle, None
            try:
                handle.close()
            except Exception as exc:
                raise self._device_failed(exc, "stop")
            self._set_accepting(False)

            try:
                buffer = self._assemble()
                ref = LocalAudioRef.create(buffer, self._ref_dir)
            except Exception:
                logger.exception("Failed to assemble recording; returning to idle")
                self._reset()
                self._transition(SessionState.idle)
                raise

            self._buffer = buffer
            self._local_ref = ref
            try:
                self._playback = PlaybackController(ref, self._output_factory())
                self._local_ref = None
            except Exception:
                logger.warning("Preview playback unavailable", exc_info=True)
            self._transition(SessionState.preview)
            logger.info(
                "Recording stopped: %d chunks, %.1fs, %d bytes",
                len(buffer.chunks),
                buffer.duration_seconds,
                len(buffer.data),
            )
            return buffer

    def discard(self) -> None:
        """Any state → Idle, releasing device, buffer and local reference.

        Calling it while idle is a no-op.
        """
        with self._transition_lock:
            if self._state == SessionState.idle:
                return
            self._stop_ticker()
            self._set_accepting(False)
            self._close_handle_quietly()
            self._release_reference()
            self._reset()
            self._transition(SessionState.idle)
            logger.info("Recording discarded")

    def take_for_submission(self) -> tuple[RecordingBuffer, LocalAudioRef]:
        """Preview → Idle, moving the buffer and local reference to the caller.

        Preview playback is stopped first. The session keeps no reference to
        either object afterwards.
        """
        with self._transition_lock:
            self._require(SessionState.preview, operation="submit")
            buffer = self._buffer
            if self._playback is not None:
                ref = self._playback.detach()
            else:
                ref = self._local_ref
            self._playback = None
            self._local_ref = None
            self._reset()
            self._transition(SessionState.idle)
            return buffer, ref

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _append_chunk(self, chunk: AudioChunk) -> None:
        with self._lock:
            if not self._accepting:
                logger.debug("Dropping chunk %d received while %s", chunk.sequence, self._state)
                return
            self._chunks.append(chunk)

    def _set_accepting(self, accepting: bool) -> None:
        with self._lock:
            self._accepting = accepting

    def _assemble(self) -> RecordingBuffer:
        with self._lock:
            chunks = tuple(self._chunks)
        pcm = b"".join(chunk.data for chunk in chunks)
        data = self._processor.encode(
            pcm,
            self._codec,
            noise_suppression=self._constraints.noise_suppression,
            auto_gain=self._constraints.auto_gain_control,
        )
        return RecordingBuffer(
            chunks=chunks,
            codec=self._codec,
            data=data,
            sample_rate=self._constraints.sample_rate,
            channels=self._constraints.channels,
        )

    def _close_handle_quietly(self) -> None:
        handle, self._handle = self._handle, None
        if handle is None:
            return
        try:
            handle.close()
        except Exception:
            logger.warning("Microphone did not close cleanly", exc_info=True)

    def _device_failed(self, exc: Exception, operation: str) -> DeviceUnavailableError:
        """Drop the session back to idle after the microphone failed mid-recording.

        Returns the error for the caller to raise.
        """
        logger.error("Microphone failed during %s: %s", operation, exc)
        self._stop_ticker()
        self._set_accepting(False)
        self._close_handle_quietly()
        self._reset()
        self._transition(SessionState.idle)
        if isinstance(exc, DeviceUnavailableError):
            return exc
        error = DeviceUnavailableError(f"Microphone failed during {operation}: {exc}")
        error.__cause__ = exc
        return error

    def _release_reference(self) -> None:
        playback, self._playback = self._playback, None
        if playback is not None:
            playback.release()
        ref, self._local_ref = self._local_ref, None
        if ref is not None:
            ref.revoke()

    def _reset(self) -> None:
        with self._lock:
            self._chunks = []
        self._buffer = None
        self._codec = None
        self._clock.reset()

    def _require(self, *allowed: SessionState, operation: str) -> None:
        if self._state not in allowed:
            raise RecordingStateError(operation, self._state.value)

    def _start_ticker(self) -> None:
        if self._ticker is not None:
            self._ticker.start()

    def _stop_ticker(self) -> None:
        if self._ticker is not None:
            self._ticker.stop()

    def _tick(self) -> None:
        if self._on_tick is not None:
            self._on_tick(self.elapsed_seconds)

    def _transition(self, to_state: SessionState) -> None:
        from_state = self._state
        if from_state == to_state:
            return
        self._state = to_state
        logger.debug("Session %s -> %s", from_state, to_state)
        if self._on_state_change:
            self._on_state_change(from_state, to_state)
