"""
App factory for the marketplace API.

Creates a pre-configured FastAPI application with:
- CORS middleware
- Health check endpoint
- Session start/close in the lifespan
- Logging filter to suppress noisy healthcheck logs
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from . import __version__
from .api.router import router, set_session
from .runtime.session import Session


class HealthcheckLogFilter(logging.Filter):
    """Filter out noisy healthcheck logs."""

    FILTERED_PATHS = ("/health",)

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        for path in self.FILTERED_PATHS:
            if f'"{path}' in message or f" {path} " in message:
                return False
        return True


def _setup_logging_filter():
    """Add filter to uvicorn access logger to suppress healthcheck logs."""
    uvicorn_access = logging.getLogger("uvicorn.access")
    uvicorn_access.addFilter(HealthcheckLogFilter())


def create_marketplace_app(session: Session) -> FastAPI:
    """
    Create the marketplace FastAPI app around ``session``.

    The session is started on startup and closed on shutdown.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        _setup_logging_filter()
        await session.start()
        yield
        await session.close()

    set_session(session)

    app = FastAPI(
        title="Confidential Data Marketplace",
        version=__version__,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/health")
    async def health_check():
        return {"status": "ok", "mode": session.mode.value}

    app.include_router(router)
    return app
