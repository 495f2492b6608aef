"""
VoiceRecorder - the recorder facade.

Wires the recording session, preview playback and the submission pipeline
together behind the handful of actions a recorder UI exposes. Submission runs
as an ``asyncio.Task`` so that discarding (or closing) the recorder while a
submission is in flight cancels it; a cancelled submission never delivers.
"""

import asyncio
import logging

from voicememo.core.exceptions import RecordingStateError
from voicememo.core.models import RecordingBuffer, SessionState, SubmissionOutcome
from voicememo.services.pipeline import SubmissionPipeline
from voicememo.services.playback import PlaybackController
from voicememo.services.session import RecordingSession

logger = logging.getLogger(__name__)


class VoiceRecorder:
    """Record, preview, submit or discard one voice memory at a time."""

    def __init__(self, session: RecordingSession, pipeline: SubmissionPipeline) -> None:
        self._session = session
        self._pipeline = pipeline
        self._submission: asyncio.Task | None = None

    @property
    def state(self) -> SessionState:
        return self._session.state

    @property
    def session(self) -> RecordingSession:
        return self._session

    @property
    def elapsed_seconds(self) -> int:
        return self._session.elapsed_seconds

    @property
    def is_submitting(self) -> bool:
        return self._submission is not None and not self._submission.done()

    # -- capture -----------------------------------------------------------

    def start(self) -> None:
        if self.is_submitting:
            raise RecordingStateError("start recording", "submitting")
        self._session.start()

    def pause(self) -> None:
        self._session.pause()

    def resume(self) -> None:
        self._session.resume()

    def stop(self) -> RecordingBuffer:
        return self._session.stop()

    # -- preview -----------------------------------------------------------

    def _preview(self) -> PlaybackController:
        playback = self._session.playback
        if playback is None:
            raise RecordingStateError("play", self._session.state.value)
        return playback

    def play(self) -> None:
        self._preview().play()

    def pause_playback(self) -> None:
        self._preview().pause()

    def toggle_playback(self) -> None:
        self._preview().toggle()

    # -- submission --------------------------------------------------------

    def submit(self) -> "asyncio.Task[SubmissionOutcome]":
        """Hand the previewed buffer to the pipeline and start submitting.

        Must be called from a running event loop. Playback is stopped and
        the buffer leaves the session before the task is created, so the
        session is idle again when this returns.

        Returns:
            The task running the submission; await it for the outcome.
        """
        if self.is_submitting:
            raise RecordingStateError("submit", "submitting")
        buffer, ref = self._session.take_for_submission()
        logger.info(
            "Submitting recording (%s, %.1fs)", buffer.content_type, buffer.duration_seconds
        )
        task = asyncio.get_running_loop().create_task(
            self._pipeline.submit(buffer, ref), name="voicememo-submission"
        )
        # A task cancelled before its first step never reaches the pipeline's cleanup.
        task.add_done_callback(lambda t: ref.revoke() if t.cancelled() else None)
        self._submission = task
        return task

    def cancel_submission(self) -> bool:
        """Cancel the in-flight submission. Returns False if none is running."""
        task, self._submission = self._submission, None
        if task is None or task.done():
            return False
        task.cancel()
        logger.info("Submission cancelled")
        return True

    # -- teardown ----------------------------------------------------------

    def discard(self) -> None:
        """Cancel any submission and return the session to idle."""
        self.cancel_submission()
        self._session.discard()

    def close(self) -> None:
        self.discard()
