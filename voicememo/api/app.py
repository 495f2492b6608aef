"""
FastAPI application factory.

``create_app()`` assembles the application with CORS, error handlers,
routers, and the health endpoint. The module-level ``app`` instance
allows ``uvicorn voicememo.api.app:app --reload``.
"""

from datetime import UTC, datetime

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from voicememo import __version__
from voicememo.api.middleware.error_handler import register_error_handlers
from voicememo.api.routes import audio, enhancement, transcription
from voicememo.core.config import get_settings
from voicememo.core.log_setup import setup_logging
from voicememo.core.models import HealthResponse


def create_app() -> FastAPI:
    """Build and return a fully configured FastAPI application."""
    settings = get_settings()
    setup_logging(settings.log_level, settings.log_file)

    app = FastAPI(
        title="VoiceMemo",
        description="Transcription, transcript correction and audio storage "
        "for recorded voice memories.",
        version=__version__,
    )

    # -- CORS --
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[
            "http://localhost:3000",  # Dev frontend
            "http://localhost:5173",  # Vite dev server
        ],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_error_handlers(app)

    # -- Health check (root-level, not under /api/v1) --
    @app.get("/health", response_model=HealthResponse, tags=["system"])
    async def health() -> HealthResponse:
        return HealthResponse(version=__version__, timestamp=datetime.now(UTC))

    app.include_router(transcription.router, prefix="/api/v1")
    app.include_router(enhancement.router, prefix="/api/v1")
    app.include_router(audio.router, prefix="/api/v1")

    return app


app = create_app()
