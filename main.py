"""
Spotify-connected task service — application entry point.
"""

from __future__ import annotations

import logging
import sys
from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from api.middleware import register_exception_handlers, register_middleware
from api.routes import router as api_router
from config.settings import Settings
from connectors.encryption import TokenCipher
from connectors.routes import router as spotify_router
from connectors.spotify import SpotifyConnector
from database.session import build_engine, build_session_factory, create_tables

logger = logging.getLogger(__name__)


def configure_logging(debug: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format="%(asctime)s  %(levelname)-8s  %(name)s — %(message)s",
        stream=sys.stdout,
    )
    for _noisy in ("httpcore", "httpx", "urllib3", "sqlalchemy.engine", "aiosqlite", "asyncio"):
        logging.getLogger(_noisy).setLevel(logging.WARNING)


def create_app(
    settings: Settings,
    *,
    session_factory: Optional[async_sessionmaker[AsyncSession]] = None,
    spotify: Optional[SpotifyConnector] = None,
) -> FastAPI:
    """
    Build the application around one ``Settings`` instance.

    ``session_factory`` and ``spotify`` default to ones built from
    *settings*; tests pass their own.
    """
    settings.log_missing()

    engine = None
    if session_factory is None and settings.database_url:
        engine = build_engine(settings.database_url)
        session_factory = build_session_factory(engine)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if engine is not None and settings.db_create_tables:
            logger.info("Creating missing tables…")
            await create_tables(engine)
        logger.info("Application ready to accept requests.")
        yield
        if engine is not None:
            await engine.dispose()

    app = FastAPI(
        title="Spotify Task Service",
        version="1.0.0",
        description="Spotify OAuth connection and per-user tasks.",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.session_factory = session_factory
    app.state.spotify = spotify or SpotifyConnector(settings)
    app.state.token_cipher = TokenCipher(settings.token_encryption_key)

    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_middleware(app)
    register_exception_handlers(app)

    # Routes
    app.include_router(api_router)
    app.include_router(spotify_router)

    return app


def build_app() -> FastAPI:
    """Process entry point: ``uvicorn main:build_app --factory``."""
    settings = Settings()
    configure_logging(settings.debug)
    return create_app(settings)


if __name__ == "__main__":
    _settings = Settings()
    uvicorn.run(
        "main:build_app",
        factory=True,
        host=_settings.host,
        port=_settings.port,
        reload=_settings.debug,
        log_level="debug" if _settings.debug else "info",
    )
