"""Integration test fixtures for VoiceMemo.

Provides an async HTTP client bound to a fresh FastAPI app whose providers
are replaced with mocks (STT, enhancer) and a real LocalObjectStore rooted
in a temporary directory.
"""

import pytest
from httpx import ASGITransport, AsyncClient

from voicememo.api import providers
from voicememo.api.app import create_app
from voicememo.services.storage.local import LocalObjectStore


@pytest.fixture
def app():
    """Create a fresh FastAPI application instance."""
    return create_app()


@pytest.fixture
def object_store(tmp_path):
    return LocalObjectStore(recordings_dir=str(tmp_path / "objects"), public_base_url="")


@pytest.fixture
def injected_providers(mock_stt, mock_enhancer, object_store):
    """Inject test providers into the lazily-built singletons."""
    providers._stt = mock_stt
    providers._enhancer = mock_enhancer
    providers._store = object_store
    yield
    providers.reset_providers()


@pytest.fixture
async def async_client(app, injected_providers):
    """AsyncClient that talks to the app in-process.

    Unhandled exceptions are turned into 500 responses instead of being
    re-raised, so the catch-all error envelope can be asserted on.
    """
    transport = ASGITransport(app=app, raise_app_exceptions=False)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
