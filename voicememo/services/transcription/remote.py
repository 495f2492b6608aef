"""Speech-to-text through the VoiceMemo HTTP service (``POST /api/v1/transcribe``)."""

import logging

import httpx

from voicememo.core.config import get_settings
from voicememo.core.exceptions import TranscriptionFailedError
from voicememo.core.models import TranscriptionResult
from voicememo.services.http_client import request_json
from voicememo.services.transcription.base import BaseSTT

logger = logging.getLogger(__name__)

_EXTENSIONS = {"audio/ogg": "ogg", "audio/flac": "flac", "audio/wav": "wav"}


def _filename_for(codec_hint: str) -> str:
    base = codec_hint.split(";", 1)[0].strip()
    return f"recording.{_EXTENSIONS.get(base, 'bin')}"


class HttpSTT(BaseSTT):
    """Uploads the recording as multipart form data and reads ``{"text": ...}``.

    Args:
        base_url: Service root (falls back to settings.api_base_url).
        timeout: Transport timeout in seconds; the pipeline also enforces
            its own per-attempt deadline.
    """

    def __init__(self, base_url: str | None = None, timeout: float | None = None) -> None:
        settings = get_settings()
        self._base_url = (base_url or settings.api_base_url).rstrip("/")
        self._timeout = timeout or settings.transcription_timeout_s
        self._client = httpx.AsyncClient(base_url=self._base_url, timeout=self._timeout)

    async def transcribe(self, audio: bytes, codec_hint: str, **kwargs) -> TranscriptionResult:
        files = {"audio": (_filename_for(codec_hint), audio, codec_hint)}
        data = {"language": kwargs["language"]} if kwargs.get("language") else None
        body = await request_json(
            self._client,
            "post",
            "/api/v1/transcribe",
            service="Transcription service",
            error_cls=TranscriptionFailedError,
            files=files,
            data=data,
        )
        if "text" not in body:
            raise TranscriptionFailedError("Transcription service response has no 'text'")
        return TranscriptionResult.model_validate(body)

    async def aclose(self) -> None:
        await self._client.aclose()
