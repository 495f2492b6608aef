"""
Audio module - capture, codec negotiation, processing and playback output.
"""

from .capture import AudioCapture, CaptureHandle, SoundDeviceCapture
from .codecs import negotiate_codec
from .local_ref import LocalAudioRef
from .output import AudioOutput, SoundDeviceOutput
from .processor import AudioProcessor

__all__ = [
    "AudioCapture",
    "AudioOutput",
    "AudioProcessor",
    "CaptureHandle",
    "LocalAudioRef",
    "SoundDeviceCapture",
    "SoundDeviceOutput",
    "negotiate_codec",
]
