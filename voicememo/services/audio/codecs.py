"""Ranked codec negotiation.

The recorder probes an ordered list of container/codec candidates once, at
recording start, and keeps the first one the local encoder supports. Adding a
codec means adding a registry entry and listing its MIME type in
``Settings.codec_preference``.
"""

import logging
from collections.abc import Callable, Iterable

import soundfile as sf

from voicememo.core.models import CodecCandidate

logger = logging.getLogger(__name__)

OGG_OPUS = CodecCandidate("audio/ogg;codecs=opus", "OGG", "OPUS", "ogg")
OGG_VORBIS = CodecCandidate("audio/ogg", "OGG", "VORBIS", "ogg")
FLAC_PCM16 = CodecCandidate("audio/flac", "FLAC", "PCM_16", "flac")
WAV_PCM16 = CodecCandidate("audio/wav", "WAV", "PCM_16", "wav")

CODEC_REGISTRY: dict[str, CodecCandidate] = {
    codec.mime_type: codec for codec in (OGG_OPUS, OGG_VORBIS, FLAC_PCM16, WAV_PCM16)
}

DEFAULT_PREFERENCE = [
    OGG_OPUS.mime_type,
    OGG_VORBIS.mime_type,
    FLAC_PCM16.mime_type,
    WAV_PCM16.mime_type,
]


def soundfile_supports(codec: CodecCandidate) -> bool:
    """Return True if the bundled libsndfile can write ``codec``."""
    return bool(sf.check_format(codec.container, codec.subtype))


def resolve_candidates(preference: Iterable[str]) -> list[CodecCandidate]:
    """Map preferred MIME types to registry entries, skipping unknown ones."""
    candidates = []
    for mime_type in preference:
        codec = CODEC_REGISTRY.get(mime_type)
        if codec is None:
            logger.warning("Ignoring unknown codec in preference list: %s", mime_type)
            continue
        candidates.append(codec)
    return candidates


def negotiate_codec(
    candidates: Iterable[CodecCandidate],
    is_supported: Callable[[CodecCandidate], bool] = soundfile_supports,
) -> CodecCandidate:
    """Return the first supported candidate in rank order.

    Falls back to 16-bit WAV, which libsndfile can always write, when none of
    the candidates is available.
    """
    for codec in candidates:
        if is_supported(codec):
            logger.info("Using audio format: %s", codec.mime_type)
            return codec
        logger.debug("Codec not supported, trying next: %s", codec.mime_type)

    logger.warning("No preferred codec supported; falling back to %s", WAV_PCM16.mime_type)
    return WAV_PCM16
