"""Filesystem-backed object store.

Blobs are written under ``Settings.recordings_dir`` with random keys. URLs
point at the HTTP service (``public_base_url``) when one is configured and
are plain ``file://`` URLs otherwise.
"""

import asyncio
import logging
import re
import uuid
from pathlib import Path

from voicememo.core.config import get_settings
from voicememo.core.exceptions import UploadFailedError
from voicememo.services.storage.base import BaseObjectStore, content_type_for, extension_for

logger = logging.getLogger(__name__)

_KEY_PATTERN = re.compile(r"^[0-9a-f]{32}\.[a-z0-9]+$")


class LocalObjectStore(BaseObjectStore):
    """Stores recordings as files in a local directory."""

    def __init__(
        self, recordings_dir: str | None = None, public_base_url: str | None = None
    ) -> None:
        settings = get_settings()
        self._root = Path(recordings_dir or settings.recordings_dir)
        base_url = settings.public_base_url if public_base_url is None else public_base_url
        self._public_base_url = base_url.rstrip("/")

    @property
    def root(self) -> Path:
        return self._root

    @property
    def public_base_url(self) -> str:
        return self._public_base_url

    def url_for(self, key: str) -> str:
        if self._public_base_url:
            return f"{self._public_base_url}/{key}"
        return (self._root / key).resolve().as_uri()

    def _write(self, key: str, data: bytes) -> None:
        self._root.mkdir(parents=True, exist_ok=True)
        (self._root / key).write_bytes(data)

    async def put_with_key(self, data: bytes, content_type: str) -> tuple[str, str]:
        """Store ``data`` and return ``(key, url)``."""
        if not data:
            raise UploadFailedError(detail="Refusing to store an empty recording")
        key = f"{uuid.uuid4().hex}.{extension_for(content_type)}"
        try:
            await asyncio.to_thread(self._write, key, data)
        except OSError as exc:
            logger.error("Failed to write %s to %s: %s", key, self._root, exc)
            raise UploadFailedError(detail=f"Could not store recording: {exc}") from exc
        logger.info("Stored recording %s (%d bytes, %s)", key, len(data), content_type)
        return key, self.url_for(key)

    async def put(self, data: bytes, content_type: str) -> str:
        _, url = await self.put_with_key(data, content_type)
        return url

    def path_for(self, key: str) -> Path | None:
        """Return the path of a stored blob, or None for unknown/invalid keys."""
        if not _KEY_PATTERN.match(key):
            return None
        path = self._root / key
        return path if path.is_file() else None

    def get(self, key: str) -> tuple[bytes, str] | None:
        """Return ``(data, content_type)`` for ``key``, or None if absent."""
        path = self.path_for(key)
        if path is None:
            return None
        return path.read_bytes(), content_type_for(key)
