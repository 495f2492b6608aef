"""Speech-to-text endpoint: multipart audio in, ``TranscriptionResult`` out."""

import logging

from fastapi import APIRouter, File, Form, UploadFile

from voicememo.api.providers import get_stt
from voicememo.core.exceptions import TranscriptionFailedError, VoiceMemoError
from voicememo.core.models import TranscriptionResult

logger = logging.getLogger(__name__)

router = APIRouter(tags=["transcription"])


@router.post("/transcribe", response_model=TranscriptionResult)
async def transcribe_audio(
    audio: UploadFile = File(...),
    language: str | None = Form(None),
):
    """Transcribe one uploaded recording."""
    data = await audio.read()
    if not data:
        raise VoiceMemoError(detail="Audio file is empty", code="EMPTY_AUDIO", status_code=400)

    content_type = audio.content_type or "application/octet-stream"
    logger.info("Transcribing %s (%d bytes, %s)", audio.filename, len(data), content_type)
    kwargs = {"language": language} if language else {}
    try:
        return await get_stt().transcribe(data, content_type, **kwargs)
    except (ConnectionError, TimeoutError) as exc:
        raise TranscriptionFailedError(detail=str(exc)) from exc
