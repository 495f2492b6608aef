"""Unit tests for LocalObjectStore and the storage helpers."""

import pytest

from voicememo.core.exceptions import UploadFailedError
from voicememo.services.storage import create_object_store
from voicememo.services.storage.base import content_type_for, extension_for
from voicememo.services.storage.local import LocalObjectStore


@pytest.fixture
def store(tmp_path):
    return LocalObjectStore(recordings_dir=str(tmp_path / "store"), public_base_url="")


class TestExtensions:
    @pytest.mark.parametrize(
        ("content_type", "extension"),
        [
            ("audio/ogg;codecs=opus", "ogg"),
            ("audio/flac", "flac"),
            ("AUDIO/WAV", "wav"),
            ("application/x-unknown", "bin"),
        ],
    )
    def test_extension_for(self, content_type, extension):
        assert extension_for(content_type) == extension

    def test_content_type_for(self):
        assert content_type_for("abc.flac") == "audio/flac"
        assert content_type_for("abc.xyz") == "application/octet-stream"


class TestPut:
    async def test_writes_blob_and_returns_file_url(self, store):
        url = await store.put(b"RIFFdata", "audio/wav")

        assert url.startswith("file://")
        assert url.endswith(".wav")
        files = list(store.root.iterdir())
        assert len(files) == 1
        assert files[0].read_bytes() == b"RIFFdata"

    async def test_public_base_url(self, tmp_path):
        store = LocalObjectStore(
            recordings_dir=str(tmp_path), public_base_url="http://localhost:8000/api/v1/audio/"
        )

        key, url = await store.put_with_key(b"data", "audio/ogg;codecs=opus")

        assert key.endswith(".ogg")
        assert url == f"http://localhost:8000/api/v1/audio/{key}"

    async def test_each_put_gets_a_new_key(self, store):
        first, _ = await store.put_with_key(b"one", "audio/wav")
        second, _ = await store.put_with_key(b"two", "audio/wav")

        assert first != second

    async def test_empty_data_rejected(self, store):
        with pytest.raises(UploadFailedError, match="empty"):
            await store.put(b"", "audio/wav")

    async def test_write_failure_is_upload_failure(self, tmp_path):
        blocker = tmp_path / "not-a-dir"
        blocker.write_text("file in the way")
        store = LocalObjectStore(recordings_dir=str(blocker), public_base_url="")

        with pytest.raises(UploadFailedError, match="Could not store"):
            await store.put(b"data", "audio/wav")


class TestGet:
    async def test_round_trip(self, store):
        key, _ = await store.put_with_key(b"fLaC-bytes", "audio/flac")

        assert store.get(key) == (b"fLaC-bytes", "audio/flac")

    @pytest.mark.parametrize(
        "key",
        ["../etc/passwd", "0123456789abcdef0123456789abcdef.wav", "short.wav", ""],
    )
    def test_unknown_or_invalid_keys(self, store, key):
        assert store.get(key) is None


def test_factory(tmp_path):
    store = create_object_store("local", recordings_dir=str(tmp_path))

    assert isinstance(store, LocalObjectStore)
    with pytest.raises(ValueError, match="Unknown storage provider"):
        create_object_store("s3")
