"""
VoiceMemo exception hierarchy.

All application-specific exceptions inherit from VoiceMemoError, enabling
centralized error handling in the pipeline and in the API middleware layer.
"""

from datetime import UTC, datetime


class VoiceMemoError(Exception):
    """Base exception for all VoiceMemo errors."""

    def __init__(
        self,
        detail: str = "An unexpected error occurred",
        code: str = "VOICEMEMO_ERROR",
        status_code: int = 500,
    ) -> None:
        self.detail = detail
        self.code = code
        self.status_code = status_code
        self.timestamp = datetime.now(UTC).isoformat()
        super().__init__(detail)


class DeviceUnavailableError(VoiceMemoError):
    """Raised when the microphone cannot be opened (no device or no permission)."""

    def __init__(self, detail: str = "Could not access microphone") -> None:
        super().__init__(detail=detail, code="DEVICE_UNAVAILABLE", status_code=503)


class RecordingStateError(VoiceMemoError):
    """Raised when a recording operation is not valid in the current state."""

    def __init__(self, operation: str, state: str) -> None:
        super().__init__(
            detail=f"Cannot {operation} while {state}",
            code="INVALID_RECORDING_STATE",
            status_code=409,
        )


class PlaybackFailedError(VoiceMemoError):
    """Raised when the preview cannot be decoded or played."""

    def __init__(self, detail: str = "Playback failed") -> None:
        super().__init__(detail=detail, code="PLAYBACK_FAILED", status_code=500)


class PlaybackReleasedError(VoiceMemoError):
    """Raised when a playback controller is used after its reference was released."""

    def __init__(self) -> None:
        super().__init__(
            detail="Playback reference has already been released",
            code="PLAYBACK_RELEASED",
            status_code=409,
        )


class UploadFailedError(VoiceMemoError):
    """Raised when the durable object store rejects or cannot receive a blob."""

    def __init__(self, detail: str = "Upload failed") -> None:
        super().__init__(detail=detail, code="UPLOAD_FAILED", status_code=502)


class TranscriptionFailedError(VoiceMemoError):
    """Raised when STT processing fails or exhausts its retries."""

    def __init__(self, detail: str = "Transcription failed") -> None:
        super().__init__(detail=detail, code="TRANSCRIPTION_FAILED", status_code=500)


class NoSpeechDetectedError(VoiceMemoError):
    """Raised when a transcript is empty or a known no-speech placeholder."""

    def __init__(self, transcript: str = "") -> None:
        super().__init__(
            detail=f"Transcription didn't detect meaningful speech: {transcript!r}",
            code="NO_SPEECH_DETECTED",
            status_code=422,
        )


class EnhancementFailedError(VoiceMemoError):
    """Raised when transcript correction / title generation fails."""

    def __init__(self, detail: str = "Enhancement failed") -> None:
        super().__init__(detail=detail, code="ENHANCEMENT_FAILED", status_code=500)


class SubmissionCancelledError(VoiceMemoError):
    """Raised when the user cancels a submission (e.g. dismisses manual entry)."""

    def __init__(self, detail: str = "Submission cancelled") -> None:
        super().__init__(detail=detail, code="SUBMISSION_CANCELLED", status_code=499)
