"""Unit tests for the RecordingSession state machine."""

import threading
import time
from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import numpy as np
import pytest

from voicememo.core.exceptions import DeviceUnavailableError, RecordingStateError
from voicememo.core.models import SessionState
from voicememo.services.audio.capture import SoundDeviceCapture
from voicememo.services.audio.codecs import WAV_PCM16
from voicememo.services.session import ElapsedClock, RecordingSession

CHUNK = b"\x10\x00" * 1600  # 100 ms of 16 kHz mono PCM


class FakeClock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def transitions():
    return []


@pytest.fixture
def make_session(tmp_path, fake_output, clock, transitions):
    def _make(capture, output_factory=None):
        return RecordingSession(
            capture,
            interval_ms=100,
            output_factory=output_factory or (lambda: fake_output),
            on_state_change=lambda old, new: transitions.append((old, new)),
            clock=clock,
            ref_dir=str(tmp_path),
        )

    return _make


@pytest.fixture
def session(make_session, fake_capture):
    return make_session(fake_capture)


# ---------------------------------------------------------------------------
# Start
# ---------------------------------------------------------------------------


class TestStart:
    """Idle -> Recording."""

    def test_start_opens_device_and_records(self, session, fake_capture, transitions):
        session.start()

        assert session.state == SessionState.recording
        assert session.capture_open
        assert session.codec == WAV_PCM16
        assert fake_capture.last.interval_ms == 100
        assert transitions == [(SessionState.idle, SessionState.recording)]

    def test_device_unavailable_stays_idle(self, make_session, failing_capture, transitions):
        session = make_session(failing_capture)

        with pytest.raises(DeviceUnavailableError):
            session.start()

        assert session.state == SessionState.idle
        assert not session.capture_open
        assert transitions == []

    def test_start_twice_is_rejected(self, session):
        session.start()

        with pytest.raises(RecordingStateError):
            session.start()

    def test_codec_frozen_for_whole_session(self, session, fake_capture):
        session.start()
        session.pause()
        session.resume()
        fake_capture.last.emit(CHUNK)

        buffer = session.stop()

        assert buffer.codec == WAV_PCM16


# ---------------------------------------------------------------------------
# Pause / resume
# ---------------------------------------------------------------------------


class TestPauseResume:
    """Recording <-> Paused keeps one buffer in emission order."""

    def test_chunks_kept_in_order_across_pause(self, session, fake_capture):
        session.start()
        handle = fake_capture.last
        first = handle.emit(b"\x01\x00" * 10)
        session.pause()
        session.resume()
        second = handle.emit(b"\x02\x00" * 10)

        buffer = session.stop()

        assert buffer.chunks == (first, second)
        assert buffer.pcm == b"\x01\x00" * 10 + b"\x02\x00" * 10

    def test_chunks_dropped_while_paused(self, session, fake_capture):
        session.start()
        handle = fake_capture.last
        handle.emit(CHUNK)
        session.pause()
        handle.emit(b"\x7f\x00" * 10)

        assert session.chunk_count == 1
        assert handle.paused

    def test_resume_restarts_handle(self, session, fake_capture):
        session.start()
        session.pause()
        session.resume()

        assert session.state == SessionState.recording
        assert not fake_capture.last.paused

    def test_elapsed_time_frozen_while_paused(self, session, clock):
        session.start()
        clock.now = 3.5
        session.pause()
        clock.now = 60.0

        assert session.elapsed_seconds == 3

        session.resume()
        clock.now = 62.0

        assert session.elapsed_seconds == 5

    @pytest.mark.parametrize(
        "action",
        ["pause", "resume"],
    )
    def test_invalid_from_idle(self, session, action):
        with pytest.raises(RecordingStateError):
            getattr(session, action)()

    def test_resume_while_recording_rejected(self, session):
        session.start()

        with pytest.raises(RecordingStateError):
            session.resume()


# ---------------------------------------------------------------------------
# Stop
# ---------------------------------------------------------------------------


class TestStop:
    """Recording|Paused -> Preview."""

    def test_stop_builds_buffer_and_preview(self, session, fake_capture, fake_output):
        session.start()
        fake_capture.last.emit(CHUNK)

        buffer = session.stop()

        assert session.state == SessionState.preview
        assert buffer.content_type == "audio/wav"
        assert buffer.data[:4] == b"RIFF"
        assert session.buffer is buffer
        assert session.playback is not None
        assert fake_output.loaded_path.exists()

    def test_stop_releases_device(self, session, fake_capture):
        session.start()
        fake_capture.last.emit(CHUNK)

        session.stop()

        assert fake_capture.last.close_calls == 1
        assert not session.capture_open

    def test_stop_from_paused(self, session, fake_capture):
        session.start()
        fake_capture.last.emit(CHUNK)
        session.pause()

        session.stop()

        assert session.state == SessionState.preview

    def test_final_partial_chunk_is_kept(self, session, fake_capture):
        fake_capture.tail = b"\x05\x00" * 40
        session.start()
        fake_capture.last.emit(CHUNK)

        buffer = session.stop()

        assert len(buffer.chunks) == 2
        assert buffer.chunks[-1].data == b"\x05\x00" * 40

    def test_stop_from_idle_rejected(self, session):
        with pytest.raises(RecordingStateError):
            session.stop()

    def test_preview_without_output_device(self, make_session, fake_capture):
        def broken_output():
            raise RuntimeError("no output device")

        session = make_session(fake_capture, output_factory=broken_output)
        session.start()
        fake_capture.last.emit(CHUNK)

        session.stop()

        assert session.state == SessionState.preview
        assert session.playback is None

        buffer, ref = session.take_for_submission()
        assert ref.path.exists()
        assert buffer.chunks


# ---------------------------------------------------------------------------
# Discard
# ---------------------------------------------------------------------------


class TestDiscard:
    """Any state -> Idle, releasing everything."""

    def test_discard_while_recording_closes_device(self, session, fake_capture, transitions):
        session.start()
        fake_capture.last.emit(CHUNK)

        session.discard()

        assert session.state == SessionState.idle
        assert fake_capture.last.close_calls == 1
        assert session.chunk_count == 0
        assert session.elapsed_seconds == 0
        assert transitions[-1] == (SessionState.recording, SessionState.idle)

    def test_discard_is_idempotent(self, session, fake_capture):
        session.start()
        session.discard()
        session.discard()

        assert fake_capture.last.close_calls == 1
        assert session.state == SessionState.idle

    def test_discard_when_idle_is_noop(self, session, transitions):
        session.discard()

        assert session.state == SessionState.idle
        assert transitions == []

    def test_discard_in_preview_revokes_reference(self, session, fake_capture, fake_output):
        session.start()
        fake_capture.last.emit(CHUNK)
        session.stop()
        path = fake_output.loaded_path
        playback = session.playback

        session.discard()

        assert not path.exists()
        assert playback.released
        assert fake_output.close_calls == 1
        assert session.buffer is None
        assert session.playback is None

    def test_new_recording_after_discard(self, session, fake_capture):
        session.start()
        fake_capture.last.emit(CHUNK)
        session.discard()

        session.start()
        fake_capture.last.emit(b"\x03\x00" * 10)
        buffer = session.stop()

        assert len(fake_capture.handles) == 2
        assert buffer.pcm == b"\x03\x00" * 10


# ---------------------------------------------------------------------------
# Handing over to submission
# ---------------------------------------------------------------------------


class TestTakeForSubmission:
    def test_moves_buffer_and_reference_out(self, session, fake_capture, fake_output):
        session.start()
        fake_capture.last.emit(CHUNK)
        stopped = session.stop()
        session.playback.play()

        buffer, ref = session.take_for_submission()

        assert buffer is stopped
        assert not ref.revoked
        assert ref.path.exists()
        assert not fake_output.playing
        assert session.state == SessionState.idle
        assert session.buffer is None
        assert session.playback is None

    def test_discard_after_take_leaves_reference_alone(self, session, fake_capture):
        session.start()
        fake_capture.last.emit(CHUNK)
        session.stop()
        _, ref = session.take_for_submission()

        session.discard()

        assert not ref.revoked

    def test_not_in_preview_rejected(self, session):
        session.start()

        with pytest.raises(RecordingStateError):
            session.take_for_submission()


# ---------------------------------------------------------------------------
# Device failures
# ---------------------------------------------------------------------------


class TestDeviceFailure:
    """A microphone that fails mid-session leaves the session idle."""

    def test_close_failure_on_stop_returns_to_idle(self, session, fake_capture, transitions):
        session.start()
        fake_capture.last.emit(CHUNK)
        fake_capture.last.close = MagicMock(side_effect=RuntimeError("Stream stop failed"))

        with pytest.raises(DeviceUnavailableError, match="Stream stop failed"):
            session.stop()

        assert session.state == SessionState.idle
        assert not session.capture_open
        assert session.chunk_count == 0
        assert transitions[-1] == (SessionState.recording, SessionState.idle)

    def test_pause_after_failed_stop_is_a_state_error(self, session, fake_capture):
        session.start()
        fake_capture.last.close = MagicMock(side_effect=RuntimeError("Stream stop failed"))
        with pytest.raises(DeviceUnavailableError):
            session.stop()

        with pytest.raises(RecordingStateError):
            session.pause()

    def test_pause_failure_releases_device(self, session, fake_capture):
        session.start()
        handle = fake_capture.last
        handle.pause = MagicMock(side_effect=DeviceUnavailableError("Device unplugged"))

        with pytest.raises(DeviceUnavailableError, match="Device unplugged"):
            session.pause()

        assert session.state == SessionState.idle
        assert handle.close_calls == 1

    def test_discard_survives_close_failure(self, session, fake_capture):
        session.start()
        fake_capture.last.close = MagicMock(side_effect=RuntimeError("Stream stop failed"))

        session.discard()

        assert session.state == SessionState.idle


# ---------------------------------------------------------------------------
# Audio thread
# ---------------------------------------------------------------------------


class _HeldBlock:
    """Input block whose conversion stalls until ``release`` is set.

    While stalled, the audio callback is inside the capture handle's lock.
    """

    def __init__(self, frames: int, entered: threading.Event, release: threading.Event):
        self._data = np.full((frames, 1), 100, dtype=np.int16)
        self._entered = entered
        self._release = release

    def __array__(self, dtype=None, copy=None):
        self._entered.set()
        self._release.wait(2)
        return self._data if dtype is None else self._data.astype(dtype)


@pytest.fixture
def sounddevice_stub():
    sd = SimpleNamespace()
    sd.PortAudioError = type("PortAudioError", (Exception,), {})
    sd.query_devices = MagicMock(
        return_value=[{"index": 0, "name": "Built-in Microphone", "max_input_channels": 1}]
    )
    sd.InputStream = MagicMock(return_value=MagicMock())
    return sd


class TestAudioThread:
    """Transitions racing a chunk delivered from the PortAudio callback thread."""

    @pytest.mark.parametrize("operation", ["pause", "stop"])
    def test_transition_while_chunk_is_delivered(
        self, make_session, sounddevice_stub, operation
    ):
        entered, release, callback_returned = (threading.Event() for _ in range(3))
        # Stopping a PortAudio stream waits for the running callback to return.
        stream = sounddevice_stub.InputStream.return_value
        stream.stop.side_effect = lambda: callback_returned.wait(2)

        with patch(
            "voicememo.services.audio.capture.load_sounddevice", return_value=sounddevice_stub
        ):
            session = make_session(SoundDeviceCapture(is_supported=lambda codec: False))
            session.start()
        callback = sounddevice_stub.InputStream.call_args.kwargs["callback"]

        def deliver_one_chunk():
            callback(_HeldBlock(1600, entered, release), 1600, None, None)
            callback_returned.set()

        audio = threading.Thread(target=deliver_one_chunk, daemon=True)
        audio.start()
        assert entered.wait(2)
        control = threading.Thread(target=getattr(session, operation), daemon=True)
        control.start()
        time.sleep(0.05)
        release.set()
        audio.join(3)
        control.join(3)

        assert (audio.is_alive(), control.is_alive()) == (False, False)
        if operation == "pause":
            assert session.state == SessionState.paused
            assert session.chunk_count == 1
        else:
            assert session.state == SessionState.preview
            assert len(session.buffer.chunks) == 1


# ---------------------------------------------------------------------------
# ElapsedClock
# ---------------------------------------------------------------------------


class TestElapsedClock:
    def test_accumulates_across_freezes(self, clock):
        elapsed = ElapsedClock(clock)
        elapsed.start()
        clock.now = 2.0
        elapsed.freeze()
        clock.now = 10.0
        elapsed.start()
        clock.now = 11.5

        assert elapsed.seconds == pytest.approx(3.5)

    def test_reset(self, clock):
        elapsed = ElapsedClock(clock)
        elapsed.start()
        clock.now = 5.0
        elapsed.reset()

        assert elapsed.seconds == 0.0
