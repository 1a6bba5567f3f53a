from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from magstream import __version__
from magstream.api.stream import build_router
from magstream.core import Settings, settings as default_settings
from magstream.core.exceptions import StreamServiceError
from magstream.runtime.sessions import ActiveSessions
from magstream.services.reaper import StorageReaper
from magstream.sources import ContentSource, build_content_source

logger = logging.getLogger(__name__)


def create_app(
    settings: Optional[Settings] = None,
    content_source: Optional[ContentSource] = None,
) -> FastAPI:
    """
    Build the streaming app.

    The content source is created here unless one is passed in, so nothing
    heavy (like a torrent session) starts just by importing this module.
    """
    settings = settings or default_settings
    Path(settings.STORAGE_DIR).mkdir(parents=True, exist_ok=True)

    sessions = ActiveSessions()
    source = content_source if content_source is not None else build_content_source(settings)
    reaper = StorageReaper(
        settings.STORAGE_DIR,
        sessions,
        source,
        interval_seconds=settings.REAP_INTERVAL_SECONDS,
        respect_active_sessions=settings.REAPER_RESPECT_ACTIVE_SESSIONS,
    )

    app = FastAPI(title="magstream", version=__version__)
    app.state.settings = settings
    app.state.content_source = source
    app.state.sessions = sessions
    app.state.stream_limiter = None
    app.state.reaper = reaper
    app.include_router(build_router())

    @app.exception_handler(StreamServiceError)
    async def stream_error_handler(request: Request, exc: StreamServiceError):
        if exc.status_code >= 500:
            logger.error("%s on %s: %s", type(exc).__name__, request.url.path, exc.message)
        else:
            logger.warning("%s on %s: %s", type(exc).__name__, request.url.path, exc.message)
        return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})

    @app.on_event("startup")
    async def startup_event():
        """Start the storage reaper."""
        await reaper.start()
        logger.info("Serving bundles from %s", Path(settings.STORAGE_DIR).resolve())

    @app.on_event("shutdown")
    async def shutdown_event():
        await reaper.stop()
        await source.close()

    return app
