"""
Abstract base class for Speech-to-Text providers.

All STT implementations (local faster-whisper, remote HTTP, etc.) must
implement this interface, enabling provider-agnostic transcription in the
submission pipeline.

Error contract: transient transport failures are raised as ``ConnectionError``
or ``TimeoutError`` (the pipeline retries these); anything else is raised as
``TranscriptionFailedError`` and is not retried.
"""

from abc import ABC, abstractmethod

from voicememo.core.models import TranscriptionResult


class BaseSTT(ABC):
    """Interface that every STT provider must implement."""

    @abstractmethod
    async def transcribe(self, audio: bytes, codec_hint: str, **kwargs) -> TranscriptionResult:
        """Transcribe an encoded audio file to text.

        Args:
            audio: Encoded file contents (OGG, FLAC, WAV, ...).
            codec_hint: MIME type of ``audio`` (e.g. "audio/ogg;codecs=opus").
            **kwargs: Provider-specific options (language, beam_size, etc.).

        Returns:
            TranscriptionResult with at least ``text``.
        """
