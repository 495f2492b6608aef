"""
Submission pipeline: upload -> speech-to-text -> quality gate -> enhancement -> delivery.

Each confirmed recording is driven through the stages strictly in order.
Only transcription is retried (network/timeout-class errors, exponential
backoff, per-attempt timeout); the other stages degrade instead of failing:

- a failed upload falls back to the temporary local reference,
- a failed enhancement falls back to the raw transcript and a default title,
- an unusable transcription falls back to manual text entry (or, in
  ``FallbackMode.offline_stub``, to a canned stub transcript).

The only terminal failures are a cancelled manual entry, an unexpected error
while re-uploading inside the fallback branch, and a sink that refuses
delivery. Cancelling the task running ``submit()`` cancels whatever is being
awaited (network call, timeout scope or backoff sleep) and delivery never
happens afterwards.
"""

import asyncio
import inspect
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Protocol

from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from voicememo.core.config import FallbackMode, Settings, get_settings
from voicememo.core.exceptions import (
    NoSpeechDetectedError,
    SubmissionCancelledError,
    TranscriptionFailedError,
    UploadFailedError,
    VoiceMemoError,
)
from voicememo.core.models import (
    AudioSource,
    MemoryRecord,
    ProgressStage,
    RecordingBuffer,
    StageAttempt,
    SubmissionFailure,
    SubmissionOutcome,
    SubmissionStage,
    SubmissionSuccess,
    TextSource,
)
from voicememo.services.audio.local_ref import LocalAudioRef
from voicememo.services.enhancement.base import BaseEnhancer
from voicememo.services.storage.base import BaseObjectStore
from voicememo.services.transcription.base import BaseSTT

logger = logging.getLogger(__name__)

RETRYABLE_ERRORS = (ConnectionError, TimeoutError)


class ResultSink(Protocol):
    """Receives the finished memory. ``deliver`` may be sync or async."""

    def deliver(self, record: MemoryRecord) -> Awaitable[None] | None: ...


class ManualFallbackChannel(Protocol):
    """Asks the user to type the transcript when automation failed.

    May return ``None``/empty (the pipeline substitutes a canned text) or raise
    ``SubmissionCancelledError`` to abort the submission.
    """

    def request_manual_text(
        self, prompt: str, default: str
    ) -> Awaitable[str | None] | str | None: ...


async def _maybe_await(value):
    if inspect.isawaitable(value):
        return await value
    return value


@dataclass
class SubmissionAttempt:
    """Bookkeeping for one run of the pipeline over one buffer."""

    buffer: RecordingBuffer
    local_ref: LocalAudioRef
    permanent_url: str | None = None
    upload_attempts: int = 0
    transcription_attempts: int = 0
    log: list[StageAttempt] = field(default_factory=list)

    @property
    def audio_source(self) -> AudioSource:
        return AudioSource.permanent if self.permanent_url else AudioSource.temporary

    @property
    def audio_url(self) -> str:
        return self.permanent_url or self.local_ref.url

    def record(
        self, stage: SubmissionStage, attempt: int, outcome: str, detail: str = ""
    ) -> StageAttempt:
        entry = StageAttempt(stage=stage, attempt=attempt, outcome=outcome, detail=detail)
        self.log.append(entry)
        level = logging.INFO if outcome == "ok" else logging.WARNING
        logger.log(level, "stage=%s attempt=%d outcome=%s %s", stage, attempt, outcome, detail)
        return entry


class SubmissionPipeline:
    """Drives one recording at a time from buffer to delivered memory.

    Args:
        object_store: Durable store for the encoded recording.
        stt: Speech-to-text provider.
        enhancer: Transcript correction / title provider.
        sink: Receives the final ``MemoryRecord`` exactly once per success.
        manual_channel: Asked for replacement text when transcription fails.
        settings: Source of timeouts, retry bounds and fallback strings;
            read once here.
        fallback_mode: Overrides ``settings.fallback_mode`` when given.
        on_progress: Called with a ``ProgressStage`` at each transition.
        sleep: Awaitable used for retry backoff (injectable for tests).
    """

    def __init__(
        self,
        object_store: BaseObjectStore,
        stt: BaseSTT,
        enhancer: BaseEnhancer,
        sink: ResultSink,
        manual_channel: ManualFallbackChannel,
        settings: Settings | None = None,
        fallback_mode: FallbackMode | None = None,
        on_progress: Callable[[ProgressStage], None] | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        settings = settings or get_settings()
        self._store = object_store
        self._stt = stt
        self._enhancer = enhancer
        self._sink = sink
        self._manual = manual_channel
        self._on_progress = on_progress
        self._sleep = sleep

        self.fallback_mode = FallbackMode(fallback_mode or settings.fallback_mode)
        self._upload_timeout = settings.upload_timeout_s
        self._transcription_timeout = settings.transcription_timeout_s
        self._max_attempts = settings.transcription_max_attempts
        self._initial_backoff = settings.transcription_initial_backoff_s
        self._max_backoff = settings.transcription_max_backoff_s
        self._enhancement_timeout = settings.enhancement_timeout_s
        self._sentinels = frozenset(s.strip() for s in settings.no_speech_sentinels)
        self._default_title = settings.enhancement_default_title
        self._manual_title = settings.manual_fallback_title
        self._manual_prompt = settings.manual_fallback_prompt
        self._manual_default = settings.manual_fallback_default
        self._manual_text = settings.manual_fallback_text
        self._stub_text = settings.offline_stub_text

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def submit(self, buffer: RecordingBuffer, local_ref: LocalAudioRef) -> SubmissionOutcome:
        """Run every stage for ``buffer`` and return the terminal outcome.

        The pipeline owns ``local_ref`` from here on: it is revoked when the
        run ends unless the delivered record points at it.
        """
        run = SubmissionAttempt(buffer=buffer, local_ref=local_ref)
        outcome: SubmissionOutcome | None = None
        try:
            outcome = await self._run(run)
            return outcome
        finally:
            keeps_ref = (
                isinstance(outcome, SubmissionSuccess)
                and outcome.audio_source == AudioSource.temporary
            )
            if not keeps_ref:
                local_ref.revoke()

    # ------------------------------------------------------------------
    # Stages
    # ------------------------------------------------------------------

    async def _run(self, run: SubmissionAttempt) -> SubmissionOutcome:
        await self._first_upload(run)

        try:
            raw_text = await self._transcribe(run)
            self._check_quality(run, raw_text)
        except (TranscriptionFailedError, NoSpeechDetectedError) as exc:
            if self.fallback_mode == FallbackMode.offline_stub and isinstance(
                exc, TranscriptionFailedError
            ):
                logger.warning("Transcription unavailable, using offline stub: %s", exc.detail)
                text, title, _ = await self._enhance(run, self._stub_text)
                return await self._deliver(run, text, title, TextSource.stub)
            return await self._manual_fallback(run, exc)

        text, title, text_source = await self._enhance(run, raw_text)
        return await self._deliver(run, text, title, text_source)

    async def _upload(self, run: SubmissionAttempt) -> str:
        run.upload_attempts += 1
        self._progress(ProgressStage.uploading)
        try:
            async with asyncio.timeout(self._upload_timeout):
                url = await self._store.put(run.buffer.data, run.buffer.content_type)
        except TimeoutError as exc:
            raise UploadFailedError(
                detail=f"Upload timed out after {self._upload_timeout}s"
            ) from exc
        run.permanent_url = url
        run.record(SubmissionStage.upload, run.upload_attempts, "ok", url)
        return url

    async def _first_upload(self, run: SubmissionAttempt) -> None:
        try:
            await self._upload(run)
        except UploadFailedError as exc:
            run.record(SubmissionStage.upload, run.upload_attempts, "error", exc.detail)
            logger.warning("Upload failed, continuing with local reference: %s", exc.detail)
        except Exception as exc:
            run.record(SubmissionStage.upload, run.upload_attempts, "error", str(exc))
            logger.exception("Unexpected upload error, continuing with local reference")

    async def _transcribe(self, run: SubmissionAttempt) -> str:
        self._progress(ProgressStage.transcribing)
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self._max_attempts),
            wait=wait_exponential(
                multiplier=self._initial_backoff,
                min=self._initial_backoff,
                max=self._max_backoff,
            ),
            retry=retry_if_exception_type(RETRYABLE_ERRORS),
            sleep=self._sleep,
            reraise=True,
        )
        try:
            async for attempt in retrying:
                with attempt:
                    result = await self._transcribe_once(run, attempt.retry_state.attempt_number)
        except RETRYABLE_ERRORS as exc:
            raise TranscriptionFailedError(
                detail=f"Transcription failed after {run.transcription_attempts} attempts: "
                f"{str(exc) or type(exc).__name__}"
            ) from exc
        except VoiceMemoError as exc:
            if isinstance(exc, TranscriptionFailedError):
                raise
            raise TranscriptionFailedError(detail=exc.detail) from exc
        except Exception as exc:
            raise TranscriptionFailedError(detail=f"Transcription failed: {exc}") from exc
        return result.text

    async def _transcribe_once(self, run: SubmissionAttempt, attempt: int):
        run.transcription_attempts = attempt
        try:
            async with asyncio.timeout(self._transcription_timeout):
                result = await self._stt.transcribe(run.buffer.data, run.buffer.content_type)
        except RETRYABLE_ERRORS as exc:
            outcome = "retry" if attempt < self._max_attempts else "error"
            run.record(
                SubmissionStage.transcription, attempt, outcome, str(exc) or type(exc).__name__
            )
            raise
        except Exception as exc:
            run.record(SubmissionStage.transcription, attempt, "error", str(exc))
            raise
        run.record(SubmissionStage.transcription, attempt, "ok", f"{len(result.text)} chars")
        return result

    def _check_quality(self, run: SubmissionAttempt, text: str) -> None:
        stripped = (text or "").strip()
        if not stripped or stripped in self._sentinels:
            run.record(SubmissionStage.quality_gate, 1, "error", repr(text))
            raise NoSpeechDetectedError(transcript=text or "")
        run.record(SubmissionStage.quality_gate, 1, "ok")

    async def _enhance(self, run: SubmissionAttempt, raw_text: str) -> tuple[str, str, TextSource]:
        self._progress(ProgressStage.enhancing)
        try:
            async with asyncio.timeout(self._enhancement_timeout):
                result = await self._enhancer.enhance(raw_text)
        except Exception as exc:
            run.record(SubmissionStage.enhancement, 1, "error", str(exc) or type(exc).__name__)
            logger.warning("Enhancement failed, using raw transcript: %s", exc)
            return raw_text, self._default_title, TextSource.raw
        run.record(SubmissionStage.enhancement, 1, "ok", result.title)
        return result.corrected_text, result.title, TextSource.enhanced

    async def _manual_fallback(
        self, run: SubmissionAttempt, cause: VoiceMemoError
    ) -> SubmissionOutcome:
        logger.warning("Transcription unusable (%s), falling back to manual entry", cause.code)

        if run.permanent_url is None:
            try:
                await self._upload(run)
            except UploadFailedError as exc:
                run.record(SubmissionStage.upload, run.upload_attempts, "error", exc.detail)
                logger.warning("Fallback upload failed, using local reference: %s", exc.detail)
            except Exception as exc:
                run.record(SubmissionStage.upload, run.upload_attempts, "error", str(exc))
                logger.exception("Fallback upload raised unexpectedly")
                return self._failure(run, SubmissionStage.upload, exc)

        self._progress(ProgressStage.awaiting_manual_text)
        try:
            answer = await _maybe_await(
                self._manual.request_manual_text(self._manual_prompt, self._manual_default)
            )
        except SubmissionCancelledError as exc:
            run.record(SubmissionStage.manual_entry, 1, "error", exc.detail)
            return self._failure(run, SubmissionStage.manual_entry, exc)

        text = (answer or "").strip() or self._manual_text
        run.record(SubmissionStage.manual_entry, 1, "ok", f"{len(text)} chars")
        return await self._deliver(run, text, self._manual_title, TextSource.manual)

    async def _deliver(
        self, run: SubmissionAttempt, text: str, title: str, text_source: TextSource
    ) -> SubmissionOutcome:
        self._progress(ProgressStage.delivering)
        record = MemoryRecord(audio_url=run.audio_url, text=text, title=title)
        try:
            await _maybe_await(self._sink.deliver(record))
        except Exception as exc:
            run.record(SubmissionStage.delivery, 1, "error", str(exc))
            logger.exception("Result sink rejected the memory")
            return self._failure(run, SubmissionStage.delivery, exc)
        run.record(SubmissionStage.delivery, 1, "ok", f"{run.audio_source}/{text_source}")
        return SubmissionSuccess(
            record=record,
            audio_source=run.audio_source,
            text_source=text_source,
            attempts=list(run.log),
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _progress(self, stage: ProgressStage) -> None:
        if self._on_progress is None:
            return
        try:
            self._on_progress(stage)
        except Exception:
            logger.exception("Progress callback failed for %s", stage)

    @staticmethod
    def _failure(
        run: SubmissionAttempt, stage: SubmissionStage, exc: Exception
    ) -> SubmissionFailure:
        code = exc.code if isinstance(exc, VoiceMemoError) else type(exc).__name__
        detail = exc.detail if isinstance(exc, VoiceMemoError) else str(exc)
        return SubmissionFailure(stage=stage, error=detail, code=code, attempts=list(run.log))
