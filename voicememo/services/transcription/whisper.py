"""In-process transcription with faster-whisper.

One recording is transcribed per call, from its encoded bytes. Decoding is
left to faster-whisper (PyAV), so OGG/Opus, FLAC and WAV all work without a
conversion step. The model is shared process-wide because loading it takes
seconds and hundreds of megabytes.
"""

import asyncio
import io
import logging

from faster_whisper import WhisperModel

from voicememo.core.config import get_settings
from voicememo.core.exceptions import TranscriptionFailedError
from voicememo.core.models import TranscriptionResult
from voicememo.services.transcription.base import BaseSTT

logger = logging.getLogger(__name__)

_model_cache: WhisperModel | None = None


def _load_model(size: str, device: str, compute_type: str) -> WhisperModel:
    global _model_cache  # noqa: PLW0603
    if _model_cache is None:
        logger.info("Loading faster-whisper '%s' on %s (%s)", size, device, compute_type)
        _model_cache = WhisperModel(size, device=device, compute_type=compute_type)
    return _model_cache


class WhisperSTT(BaseSTT):
    """faster-whisper backend.

    Args:
        model_size: tiny, base, small, medium or large-v3; defaults to
            ``settings.whisper_model``.
        device: "cpu" or "cuda".
        compute_type: CTranslate2 quantisation, "int8" suits CPUs.
        settings: Settings override, mostly for tests.
    """

    def __init__(
        self,
        model_size: str | None = None,
        device: str = "cpu",
        compute_type: str = "int8",
        settings=None,
    ) -> None:
        settings = settings or get_settings()
        self._model_size = model_size or settings.whisper_model
        self._default_language = settings.whisper_language or None
        self._device = device
        self._compute_type = compute_type

    def _get_model(self) -> WhisperModel:
        return _load_model(self._model_size, self._device, self._compute_type)

    def _transcribe_blocking(
        self, audio: bytes, language: str | None, beam_size: int, vad_filter: bool
    ) -> TranscriptionResult:
        segments, info = self._get_model().transcribe(
            io.BytesIO(audio), language=language, beam_size=beam_size, vad_filter=vad_filter
        )
        # The segment generator does the actual decoding; drain it on this thread.
        pieces = [piece for piece in (segment.text.strip() for segment in segments) if piece]
        return TranscriptionResult(
            text=" ".join(pieces),
            language=info.language or "unknown",
            duration=info.duration,
        )

    async def transcribe(self, audio: bytes, codec_hint: str, **kwargs) -> TranscriptionResult:
        """Transcribe ``audio``; ``codec_hint`` is only logged.

        Keyword options: ``language``, ``beam_size`` (5), ``vad_filter`` (True).
        """
        logger.debug("faster-whisper: %d bytes of %s", len(audio), codec_hint)
        try:
            return await asyncio.to_thread(
                self._transcribe_blocking,
                audio,
                kwargs.get("language", self._default_language),
                kwargs.get("beam_size", 5),
                kwargs.get("vad_filter", True),
            )
        except Exception as exc:
            raise TranscriptionFailedError(detail=f"Whisper transcription failed: {exc}") from exc
