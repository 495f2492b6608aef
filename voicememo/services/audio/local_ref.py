"""Revocable local reference to a finished recording.

A ``LocalAudioRef`` is a temporary file holding the encoded recording plus its
``file://`` URL. It backs preview playback and serves as the last-resort
``audio_url`` when durable upload fails. ``revoke()`` deletes the file and
only ever succeeds once.
"""

import logging
import os
import tempfile
import threading
from pathlib import Path

from voicememo.core.exceptions import PlaybackReleasedError
from voicememo.core.models import RecordingBuffer

logger = logging.getLogger(__name__)


class LocalAudioRef:
    """Temp-file-backed handle to one recording."""

    def __init__(self, path: Path) -> None:
        self._path = path
        self._lock = threading.Lock()
        self._revoked = False

    @classmethod
    def create(cls, buffer: RecordingBuffer, directory: str | None = None) -> "LocalAudioRef":
        """Write ``buffer.data`` to a fresh temp file and wrap it."""
        fd, name = tempfile.mkstemp(
            prefix="voicememo-", suffix=f".{buffer.codec.extension}", dir=directory
        )
        with os.fdopen(fd, "wb") as handle:
            handle.write(buffer.data)
        logger.debug("Created local reference %s (%d bytes)", name, len(buffer.data))
        return cls(Path(name))

    @property
    def revoked(self) -> bool:
        return self._revoked

    @property
    def path(self) -> Path:
        if self._revoked:
            raise PlaybackReleasedError()
        return self._path

    @property
    def url(self) -> str:
        return self.path.resolve().as_uri()

    def revoke(self) -> bool:
        """Delete the backing file. Returns False if already revoked."""
        with self._lock:
            if self._revoked:
                return False
            self._revoked = True
        self._path.unlink(missing_ok=True)
        logger.debug("Revoked local reference %s", self._path)
        return True
