"""
Application configuration via pydantic-settings.

Loads values from the environment (prefix ``VOICEMEMO_``) or a ``.env`` file
with sensible defaults for local development. Use ``get_settings()`` to obtain
the cached singleton instance; components receive the values they need at
construction time and never re-read settings mid-submission.
"""

from enum import StrEnum
from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class FallbackMode(StrEnum):
    """How the submission pipeline behaves when transcription is unusable."""

    live = "live"  # fall back to the manual-entry channel
    offline_stub = "offline_stub"  # substitute a canned transcript


class Settings(BaseSettings):
    """VoiceMemo settings loaded from environment / .env file.

    Field names map to ``VOICEMEMO_<FIELD>`` env vars (case-insensitive).

    Attributes:
        stt_provider: Speech-to-text backend ("local" faster-whisper, "http").
        enhancer_provider: Text-enhancement backend ("llm", "http").
        storage_provider: Durable object store ("local", "http").
        fallback_mode: Behaviour when transcription fails ("live", "offline_stub").
    """

    model_config = SettingsConfigDict(
        env_prefix="VOICEMEMO_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",  # Silently ignore unrecognized env vars
    )

    # --- Capture ---
    # 16 kHz mono is what Whisper expects; chunks are emitted once per interval
    sample_rate: int = 16000
    channels: int = 1
    chunk_interval_ms: int = 1000
    input_device: str = ""  # Substring of the device name; empty = system default
    # Ranked container/codec preference, probed in order at recording start
    codec_preference: list[str] = [
        "audio/ogg;codecs=opus",
        "audio/ogg",
        "audio/flac",
        "audio/wav",
    ]

    # --- Providers ---
    stt_provider: str = "local"
    enhancer_provider: str = "llm"
    storage_provider: str = "local"
    api_base_url: str = "http://localhost:8000"  # Used by the "http" providers

    # Whisper STT (faster-whisper)
    whisper_model: str = "base"  # Model size: tiny, base, small, medium, large-v3
    whisper_language: str = ""  # Empty = auto-detect; ISO 639-1 code e.g. "en"

    # LLM used for transcript correction + title generation
    llm_provider: str = "ollama"  # "claude" or "ollama"
    claude_api_key: str = ""  # Required when llm_provider="claude"
    claude_model: str = "claude-sonnet-4-20250514"
    ollama_base_url: str = "http://localhost:11434"
    ollama_model: str = "llama3.2"

    # --- Submission pipeline ---
    fallback_mode: FallbackMode = FallbackMode.live
    transcription_timeout_s: float = 120.0  # Per attempt, not cumulative
    transcription_max_attempts: int = 3
    transcription_initial_backoff_s: float = 1.0
    transcription_max_backoff_s: float = 10.0
    enhancement_timeout_s: float = 60.0
    upload_timeout_s: float = 60.0
    # Placeholders the STT service emits when it heard nothing meaningful
    no_speech_sentinels: list[str] = [".", "[SOUND]", ". [SOUND]"]
    enhancement_default_title: str = "New Memory"
    manual_fallback_title: str = "My Memory"
    manual_fallback_prompt: str = (
        "We couldn't transcribe your audio clearly. Please type what you said:"
    )
    manual_fallback_default: str = "I recorded a memory about something important to me."
    manual_fallback_text: str = "I recorded a memory"  # Used when the user enters nothing
    offline_stub_text: str = (
        "This is a test transcription as the server is unavailable. "
        "Please speak clearly and try again."
    )

    # --- Storage ---
    recordings_dir: str = "data/recordings"  # LocalObjectStore root
    public_base_url: str = ""  # e.g. "http://localhost:8000/api/v1/audio"; empty = file:// URLs

    # --- Application ---
    app_host: str = "0.0.0.0"  # Bind address for the FastAPI server
    app_port: int = 8000
    log_level: str = "INFO"  # Python logging level
    log_file: str = ""  # Optional rotating log file path


@lru_cache
def get_settings() -> Settings:
    """Return a cached Settings singleton.

    Uses ``functools.lru_cache`` so the .env file is read only once.
    Subsequent calls return the same ``Settings`` instance.

    Returns:
        Settings: The application-wide configuration object.
    """
    return Settings()
