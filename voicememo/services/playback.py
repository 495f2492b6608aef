"""Preview playback of a finished, not-yet-submitted recording.

A ``PlaybackController`` owns exactly one ``LocalAudioRef``. The reference
leaves the controller exactly once, either revoked by ``release()`` or handed
on by ``detach()``; after that every operation raises
``PlaybackReleasedError`` and a second ``release()`` is a no-op.
"""

import logging
import threading

from voicememo.core.exceptions import PlaybackFailedError, PlaybackReleasedError
from voicememo.services.audio.local_ref import LocalAudioRef
from voicememo.services.audio.output import AudioOutput

logger = logging.getLogger(__name__)


class PlaybackController:
    """Play/pause/progress for one local recording reference.

    Args:
        ref: The local reference to play; ownership moves to the controller.
        output: Output backend; ``load()`` is started immediately so the
            duration becomes known asynchronously.
    """

    def __init__(self, ref: LocalAudioRef, output: AudioOutput) -> None:
        self._ref: LocalAudioRef | None = ref
        self._output = output
        self._lock = threading.RLock()
        self._playing = False
        self._duration = 0.0
        output.load(ref.path, self._on_metadata, self._on_ended)

    @property
    def released(self) -> bool:
        return self._ref is None

    @property
    def is_playing(self) -> bool:
        return self._playing

    @property
    def duration(self) -> float:
        """Total length in seconds; 0.0 until metadata has loaded."""
        return self._duration

    @property
    def position(self) -> float:
        if self._ref is None:
            return 0.0
        return self._output.position

    @property
    def progress(self) -> float:
        """Fraction played, 0.0 when the duration is not yet known."""
        if not self._duration:
            return 0.0
        return min(1.0, self.position / self._duration)

    def play(self) -> None:
        """Start playback; no-op if already playing.

        Raises:
            PlaybackFailedError: The recording could not be decoded or played;
                the controller is left paused.
            PlaybackReleasedError: The reference was already released.
        """
        with self._lock:
            self._require_ref()
            if self._playing:
                return
            try:
                self._output.play()
            except PlaybackFailedError:
                self._playing = False
                logger.warning("Preview playback failed", exc_info=True)
                raise
            except Exception as exc:
                self._playing = False
                logger.warning("Preview playback failed: %s", exc)
                raise PlaybackFailedError(f"Playback failed: {exc}") from exc
            self._playing = True

    def pause(self) -> None:
        with self._lock:
            self._require_ref()
            if not self._playing:
                return
            self._playing = False
            self._output.pause()

    def toggle(self) -> None:
        if self._playing:
            self.pause()
        else:
            self.play()

    def release(self) -> bool:
        """Stop playback and revoke the reference.

        Returns:
            True on the first call, False if it was already released or detached.
        """
        with self._lock:
            ref, self._ref = self._ref, None
            if ref is None:
                return False
            try:
                self._shutdown_output()
            finally:
                ref.revoke()
        return True

    def detach(self) -> LocalAudioRef:
        """Stop playback and hand the (still valid) reference to the caller."""
        with self._lock:
            ref = self._require_ref()
            self._ref = None
            self._shutdown_output()
        return ref

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _require_ref(self) -> LocalAudioRef:
        if self._ref is None:
            raise PlaybackReleasedError()
        return self._ref

    def _shutdown_output(self) -> None:
        self._playing = False
        self._output.close()

    def _on_metadata(self, duration: float) -> None:
        self._duration = duration

    def _on_ended(self) -> None:
        self._playing = False
