"""WhisperSTT against a mocked WhisperModel.

Validates transcription of a complete encoded recording, segment joining,
error translation and lazy model loading with caching, all without a real
Whisper model.
"""

from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import pytest

import voicememo.services.transcription.whisper as whisper_module
from voicememo.core.exceptions import TranscriptionFailedError
from voicememo.core.models import TranscriptionResult
from voicememo.services.transcription import create_stt
from voicememo.services.transcription.whisper import WhisperSTT


def _make_segment(text="Hello world", start=0.0, end=1.0):
    """Stand-in for a faster-whisper Segment."""
    return SimpleNamespace(text=text, start=start, end=end)


def _make_info(language="en", duration=1.0):
    """Stand-in for faster-whisper TranscriptionInfo."""
    return SimpleNamespace(language=language, language_probability=0.95, duration=duration)


@pytest.fixture(autouse=True)
def _clear_model_cache():
    """Each test starts without a loaded model."""
    original = whisper_module._model_cache
    whisper_module._model_cache = None
    yield
    whisper_module._model_cache = original


@pytest.fixture
def mock_whisper_model():
    model = MagicMock()
    model.transcribe.return_value = (iter([_make_segment()]), _make_info())
    return model


@pytest.fixture
def stt(mock_whisper_model, settings):
    instance = WhisperSTT(model_size="base", device="cpu", settings=settings)
    instance._get_model = MagicMock(return_value=mock_whisper_model)
    return instance


class TestTranscribe:
    """Verify an encoded recording becomes a TranscriptionResult."""

    async def test_returns_transcription_result(self, stt, recording):
        result = await stt.transcribe(recording.data, recording.content_type)

        assert isinstance(result, TranscriptionResult)
        assert result.text == "Hello world"
        assert result.language == "en"
        assert result.duration == 1.0

    async def test_segments_joined_and_blank_ones_dropped(self, stt, mock_whisper_model):
        segments = [
            _make_segment(" We went to the lake."),
            _make_segment("   "),
            _make_segment(" It was cold. ", start=1.0, end=2.0),
        ]
        mock_whisper_model.transcribe.return_value = (iter(segments), _make_info(duration=2.0))

        result = await stt.transcribe(b"audio", "audio/ogg;codecs=opus")

        assert result.text == "We went to the lake. It was cold."

    async def test_no_segments_gives_empty_text(self, stt, mock_whisper_model):
        mock_whisper_model.transcribe.return_value = (iter([]), _make_info())

        result = await stt.transcribe(b"audio", "audio/wav")

        assert result.text == ""

    async def test_language_option_forwarded(self, stt, mock_whisper_model):
        await stt.transcribe(b"audio", "audio/wav", language="ko")

        assert mock_whisper_model.transcribe.call_args.kwargs["language"] == "ko"

    async def test_model_error_is_transcription_failure(self, stt, mock_whisper_model):
        mock_whisper_model.transcribe.side_effect = RuntimeError("Invalid data found")

        with pytest.raises(TranscriptionFailedError, match="Invalid data found"):
            await stt.transcribe(b"not audio", "audio/wav")


class TestModelLoading:
    """WhisperModel is created lazily and shared across instances."""

    def test_model_loaded_once(self, settings):
        with patch.object(whisper_module, "WhisperModel") as mock_cls:
            first = WhisperSTT(model_size="tiny", settings=settings)
            second = WhisperSTT(model_size="tiny", settings=settings)

            assert first._get_model() is second._get_model()

        mock_cls.assert_called_once_with("tiny", device="cpu", compute_type="int8")

    def test_model_size_defaults_to_settings(self, settings):
        settings = settings.model_copy(update={"whisper_model": "small"})

        assert WhisperSTT(settings=settings)._model_size == "small"


class TestCreateSTT:
    @pytest.mark.parametrize("provider", ["local", "whisper"])
    def test_local_providers(self, provider):
        assert isinstance(create_stt(provider), WhisperSTT)

    def test_unknown(self):
        with pytest.raises(ValueError, match="Unknown STT provider"):
            create_stt("cloud")
