"""Speech-to-text providers: in-process faster-whisper or the HTTP service."""

from .base import BaseSTT

__all__ = ["BaseSTT", "create_stt"]

LOCAL_PROVIDERS = frozenset({"local", "whisper"})


def create_stt(provider: str, **kwargs) -> BaseSTT:
    """Build the STT backend selected by ``settings.stt_provider``.

    "local" (alias "whisper") runs faster-whisper in this process; "http"
    posts to ``/api/v1/transcribe`` on the VoiceMemo service.
    """
    if provider in LOCAL_PROVIDERS:
        from .whisper import WhisperSTT

        return WhisperSTT(**kwargs)
    if provider == "http":
        from .remote import HttpSTT

        return HttpSTT(**kwargs)
    raise ValueError(f"Unknown STT provider: {provider}")
