"""VoiceMemo - capture, review and transcribe spoken memories."""

__version__ = "0.1.0"
