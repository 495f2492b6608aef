"""
Lazily-built provider singletons used by the HTTP routes.

The service always runs the in-process implementations (faster-whisper,
LLM enhancement, filesystem storage); the "http" providers are clients of
this service and would call back into it.
"""

import logging

from voicememo.core.config import get_settings
from voicememo.services.enhancement import BaseEnhancer, create_enhancer
from voicememo.services.storage.local import LocalObjectStore
from voicememo.services.transcription import BaseSTT, create_stt

logger = logging.getLogger(__name__)

_stt: BaseSTT | None = None
_enhancer: BaseEnhancer | None = None
_store: LocalObjectStore | None = None


def get_stt() -> BaseSTT:
    global _stt  # noqa: PLW0603
    if _stt is None:
        _stt = create_stt("local")
    return _stt


def get_enhancer() -> BaseEnhancer:
    global _enhancer  # noqa: PLW0603
    if _enhancer is None:
        settings = get_settings()
        logger.info("Using %s for transcript enhancement", settings.llm_provider)
        _enhancer = create_enhancer("llm", llm_provider=settings.llm_provider)
    return _enhancer


def get_object_store() -> LocalObjectStore:
    global _store  # noqa: PLW0603
    if _store is None:
        _store = LocalObjectStore()
    return _store


def reset_providers() -> None:
    """Drop cached providers (used by tests and on settings changes)."""
    global _stt, _enhancer, _store  # noqa: PLW0603
    _stt = _enhancer = _store = None
