"""Transcript enhancement through the VoiceMemo HTTP service."""

import httpx

from voicememo.core.config import get_settings
from voicememo.core.exceptions import EnhancementFailedError
from voicememo.core.models import EnhancementResult
from voicememo.services.enhancement.base import BaseEnhancer
from voicememo.services.http_client import request_json


class HttpEnhancer(BaseEnhancer):
    """Posts ``{"text": ...}`` to ``/api/v1/correct-transcript``.

    Transport failures are reported as ``EnhancementFailedError`` too:
    enhancement is never retried, the pipeline falls back to the raw text.
    """

    def __init__(self, base_url: str | None = None, timeout: float | None = None) -> None:
        settings = get_settings()
        self._base_url = (base_url or settings.api_base_url).rstrip("/")
        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            timeout=timeout or settings.enhancement_timeout_s,
        )

    async def enhance(self, raw_text: str) -> EnhancementResult:
        try:
            body = await request_json(
                self._client,
                "post",
                "/api/v1/correct-transcript",
                service="Enhancement service",
                error_cls=EnhancementFailedError,
                json={"text": raw_text},
            )
        except (ConnectionError, TimeoutError) as exc:
            raise EnhancementFailedError(detail=str(exc)) from exc
        try:
            return EnhancementResult.model_validate(body)
        except ValueError as exc:
            raise EnhancementFailedError(detail=f"Malformed enhancement response: {exc}") from exc

    async def aclose(self) -> None:
        await self._client.aclose()
