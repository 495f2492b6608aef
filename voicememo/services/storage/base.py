"""
Abstract base class for durable object stores.

The submission pipeline uploads each finished recording exactly once and
keeps the returned URL as the memory's permanent ``audio_url``.
"""

from abc import ABC, abstractmethod

_EXTENSIONS = {
    "audio/ogg": "ogg",
    "audio/flac": "flac",
    "audio/wav": "wav",
    "audio/webm": "webm",
    "audio/mpeg": "mp3",
}


def extension_for(content_type: str) -> str:
    """Map a (possibly parameterized) MIME type to a file extension."""
    base = content_type.split(";", 1)[0].strip().lower()
    return _EXTENSIONS.get(base, "bin")


def content_type_for(key: str) -> str:
    """Inverse of ``extension_for`` for stored keys."""
    ext = key.rsplit(".", 1)[-1].lower()
    for content_type, candidate in _EXTENSIONS.items():
        if candidate == ext:
            return content_type
    return "application/octet-stream"


class BaseObjectStore(ABC):
    """Interface that every object store must implement."""

    @abstractmethod
    async def put(self, data: bytes, content_type: str) -> str:
        """Store ``data`` durably and return a URL that resolves to it.

        Raises:
            UploadFailedError: The blob could not be stored.
        """
