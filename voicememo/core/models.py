"""
Core data models shared by capture, playback, pipeline and API layers.

Capture-side values (chunks, codecs, buffers) are plain dataclasses because
they carry raw bytes and are created on the audio thread; everything that
crosses a service boundary or is serialized is a Pydantic v2 model.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum

from pydantic import BaseModel, Field

# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------


class HealthResponse(BaseModel):
    """GET /health response."""

    status: str = "ok"
    version: str = "0.1.0"
    timestamp: datetime


# ---------------------------------------------------------------------------
# Capture
# ---------------------------------------------------------------------------


class SessionState(StrEnum):
    """States of the recording session state machine."""

    idle = "idle"
    recording = "recording"
    paused = "paused"
    preview = "preview"


@dataclass(frozen=True)
class CaptureConstraints:
    """Requested properties of the live input stream."""

    echo_cancellation: bool = True
    noise_suppression: bool = True
    auto_gain_control: bool = True
    channels: int = 1
    sample_rate: int = 16000
    device: str | None = None


@dataclass(frozen=True)
class CodecCandidate:
    """A container/codec pair the recorder may encode into."""

    mime_type: str
    container: str  # libsndfile major format, e.g. "OGG"
    subtype: str  # libsndfile subtype, e.g. "OPUS"
    extension: str


@dataclass(frozen=True)
class AudioChunk:
    """One fixed-cadence fragment of 16-bit PCM emitted while recording."""

    sequence: int
    data: bytes
    captured_at: float = 0.0


@dataclass(frozen=True)
class RecordingBuffer:
    """Immutable result of one capture session.

    ``chunks`` keeps the emission order; ``data`` is the same audio encoded
    once into ``codec``, which never changes for the life of the buffer.
    """

    chunks: tuple[AudioChunk, ...]
    codec: CodecCandidate
    data: bytes
    sample_rate: int = 16000
    channels: int = 1

    @property
    def pcm(self) -> bytes:
        """Concatenation of every chunk in emission order."""
        return b"".join(chunk.data for chunk in self.chunks)

    @property
    def duration_seconds(self) -> float:
        frame_bytes = 2 * self.channels
        return len(self.pcm) / frame_bytes / self.sample_rate

    @property
    def content_type(self) -> str:
        return self.codec.mime_type

    @property
    def filename(self) -> str:
        return f"recording.{self.codec.extension}"


# ---------------------------------------------------------------------------
# Transcription / enhancement
# ---------------------------------------------------------------------------


class TranscriptionResult(BaseModel):
    """Text returned by a speech-to-text provider."""

    text: str
    language: str = "unknown"
    duration: float = 0.0


class EnhancementResult(BaseModel):
    """Grammar-corrected transcript plus a generated short title."""

    corrected_text: str
    title: str


class CorrectTranscriptRequest(BaseModel):
    """POST /correct-transcript request body."""

    text: str = Field(min_length=1)


class AudioUploadResponse(BaseModel):
    """POST /audio response."""

    url: str
    key: str
    content_type: str
    size: int


# ---------------------------------------------------------------------------
# Submission
# ---------------------------------------------------------------------------


class SubmissionStage(StrEnum):
    """Pipeline stages, used to attribute attempts and failures."""

    upload = "upload"
    transcription = "transcription"
    quality_gate = "quality_gate"
    enhancement = "enhancement"
    manual_entry = "manual_entry"
    delivery = "delivery"


class ProgressStage(StrEnum):
    """User-visible progress reported at each stage transition."""

    uploading = "uploading"
    transcribing = "transcribing"
    enhancing = "enhancing"
    awaiting_manual_text = "awaiting_manual_text"
    delivering = "delivering"


class AudioSource(StrEnum):
    """Where the delivered ``audio_url`` came from."""

    permanent = "permanent"
    temporary = "temporary"


class TextSource(StrEnum):
    """Where the delivered ``text`` came from."""

    enhanced = "enhanced"
    raw = "raw"
    manual = "manual"
    stub = "stub"


class StageAttempt(BaseModel):
    """Diagnostic record of one attempt at one stage."""

    stage: SubmissionStage
    attempt: int = 1
    outcome: str  # "ok", "retry" or "error"
    detail: str = ""


class MemoryRecord(BaseModel):
    """The finished memory handed to the result sink."""

    audio_url: str
    text: str
    title: str


class SubmissionSuccess(BaseModel):
    """Terminal outcome: a usable memory was produced and delivered."""

    record: MemoryRecord
    audio_source: AudioSource
    text_source: TextSource
    attempts: list[StageAttempt] = Field(default_factory=list)

    @property
    def ok(self) -> bool:
        return True


class SubmissionFailure(BaseModel):
    """Terminal outcome: the submission could not produce a memory."""

    stage: SubmissionStage
    error: str
    code: str = ""
    attempts: list[StageAttempt] = Field(default_factory=list)

    @property
    def ok(self) -> bool:
        return False


SubmissionOutcome = SubmissionSuccess | SubmissionFailure
