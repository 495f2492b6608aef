"""Object store client for the VoiceMemo HTTP service (``POST /api/v1/audio``)."""

import httpx

from voicememo.core.config import get_settings
from voicememo.core.exceptions import UploadFailedError
from voicememo.core.models import AudioUploadResponse
from voicememo.services.http_client import request_json
from voicememo.services.storage.base import BaseObjectStore, extension_for


class HttpObjectStore(BaseObjectStore):
    """Uploads recordings as multipart form data; every failure is an upload failure."""

    def __init__(self, base_url: str | None = None, timeout: float | None = None) -> None:
        settings = get_settings()
        self._base_url = (base_url or settings.api_base_url).rstrip("/")
        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            timeout=timeout or settings.upload_timeout_s,
        )

    async def put(self, data: bytes, content_type: str) -> str:
        files = {"audio": (f"recording.{extension_for(content_type)}", data, content_type)}
        try:
            body = await request_json(
                self._client,
                "post",
                "/api/v1/audio",
                service="Object store",
                error_cls=UploadFailedError,
                files=files,
            )
        except (ConnectionError, TimeoutError) as exc:
            raise UploadFailedError(detail=str(exc)) from exc
        try:
            return AudioUploadResponse.model_validate(body).url
        except ValueError as exc:
            raise UploadFailedError(detail=f"Malformed upload response: {exc}") from exc

    async def aclose(self) -> None:
        await self._client.aclose()
