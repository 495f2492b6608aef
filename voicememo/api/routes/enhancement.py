"""Transcript correction and title generation endpoint."""

from fastapi import APIRouter

from voicememo.api.providers import get_enhancer
from voicememo.core.models import CorrectTranscriptRequest, EnhancementResult

router = APIRouter(tags=["enhancement"])


@router.post("/correct-transcript", response_model=EnhancementResult)
async def correct_transcript(body: CorrectTranscriptRequest):
    """Return the corrected transcript and a short generated title."""
    return await get_enhancer().enhance(body.text)
