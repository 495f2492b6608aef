"""
Audio object store endpoints.

``POST /audio`` stores an uploaded recording and returns its permanent URL;
``GET /audio/{key}`` serves it back.
"""

import asyncio
import logging

from fastapi import APIRouter, File, Request, UploadFile
from fastapi.responses import Response

from voicememo.api.providers import get_object_store
from voicememo.core.exceptions import VoiceMemoError
from voicememo.core.models import AudioUploadResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/audio", tags=["audio"])


@router.post("", response_model=AudioUploadResponse, status_code=201)
async def upload_audio(request: Request, audio: UploadFile = File(...)):
    """Store a recording; each call creates a new object."""
    data = await audio.read()
    content_type = audio.content_type or "application/octet-stream"
    store = get_object_store()
    key, url = await store.put_with_key(data, content_type)
    if not store.public_base_url:
        url = str(request.url_for("get_audio", key=key))
    logger.info("Stored %d bytes of %s as %s", len(data), content_type, key)
    return AudioUploadResponse(url=url, key=key, content_type=content_type, size=len(data))


@router.get("/{key}", name="get_audio")
async def get_audio(key: str):
    """Serve a stored recording."""
    stored = await asyncio.to_thread(get_object_store().get, key)
    if stored is None:
        logger.info("Audio %s requested but not stored", key)
        raise VoiceMemoError(detail=f"Audio not found: {key}", code="NOT_FOUND", status_code=404)
    data, content_type = stored
    return Response(content=data, media_type=content_type)
