"""Signal conditioning and container encoding for finished recordings.

Capture delivers interleaved 16-bit PCM. Before a recording is handed to
the submission pipeline it is gated, optionally levelled and written into
the container negotiated at recording start.
"""

import io

import numpy as np
import soundfile as sf

from voicememo.core.models import CodecCandidate

INT16_SCALE = 32768.0
BYTES_PER_SAMPLE = 2


class AudioProcessor:
    """Turns raw capture PCM into an encoded recording.

    Args:
        sample_rate: Capture rate in Hz.
        channels: Interleaved channel count of the PCM stream.
    """

    def __init__(self, sample_rate: int = 16000, channels: int = 1) -> None:
        self.sample_rate = sample_rate
        self.channels = channels

    def pcm_to_ndarray(self, pcm_data: bytes) -> np.ndarray:
        """Return ``pcm_data`` as float32 in [-1, 1], shaped (frames, channels).

        Raises:
            ValueError: If the byte count does not cover whole frames.
        """
        frame_bytes = BYTES_PER_SAMPLE * self.channels
        if len(pcm_data) % frame_bytes:
            raise ValueError(
                f"{len(pcm_data)} bytes of PCM is not a whole number of "
                f"{frame_bytes}-byte frames"
            )
        samples = np.frombuffer(pcm_data, dtype=np.int16).astype(np.float32) / INT16_SCALE
        return samples.reshape(-1, self.channels)

    @staticmethod
    def rms(audio: np.ndarray) -> float:
        return float(np.sqrt(np.mean(np.square(audio)))) if audio.size else 0.0

    def is_silent(self, audio: np.ndarray, threshold: float = 0.01) -> bool:
        """True when the RMS level of ``audio`` is under ``threshold``."""
        return self.rms(audio) < threshold

    def noise_gate(
        self, audio: np.ndarray, threshold: float = 0.005, frame_ms: int = 20
    ) -> np.ndarray:
        """Zero out short frames whose RMS energy is below ``threshold``."""
        frame_len = max(1, int(self.sample_rate * frame_ms / 1000))
        gated = audio.copy()
        for start in range(0, len(gated), frame_len):
            frame = gated[start : start + frame_len]
            if self.is_silent(frame, threshold):
                frame[:] = 0.0
        return gated

    def apply_auto_gain(
        self, audio: np.ndarray, target_peak: float = 0.9, max_gain: float = 10.0
    ) -> np.ndarray:
        """Scale the signal so its peak reaches ``target_peak``.

        Gain is capped at ``max_gain`` so near-silent recordings are not
        amplified into pure noise.
        """
        if audio.size == 0:
            return audio
        peak = float(np.max(np.abs(audio)))
        if peak == 0.0:
            return audio
        gain = min(target_peak / peak, max_gain)
        return np.clip(audio * gain, -1.0, 1.0)

    def encode(
        self,
        pcm_data: bytes,
        codec: CodecCandidate,
        noise_suppression: bool = False,
        auto_gain: bool = False,
    ) -> bytes:
        """Encode PCM into the container/codec of ``codec``.

        Args:
            pcm_data: Raw PCM bytes (16-bit, interleaved).
            codec: The codec negotiated at recording start.
            noise_suppression: Apply the RMS noise gate first.
            auto_gain: Normalize the peak level first.

        Returns:
            The encoded file contents.
        """
        audio = self.pcm_to_ndarray(pcm_data)
        if noise_suppression:
            audio = self.noise_gate(audio)
        if auto_gain:
            audio = self.apply_auto_gain(audio)

        out = io.BytesIO()
        sf.write(
            out,
            audio,
            self.sample_rate,
            format=codec.container,
            subtype=codec.subtype,
        )
        return out.getvalue()

    @staticmethod
    def decode(data: bytes) -> tuple[np.ndarray, int]:
        """Decode an encoded recording into float32 frames and its sample rate."""
        audio, sample_rate = sf.read(io.BytesIO(data), dtype="float32", always_2d=True)
        return audio, sample_rate
