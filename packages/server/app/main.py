"""
TaskHub API Server

Entry point for the FastAPI application.
"""

from pathlib import Path
from typing import Optional

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from app.core.activity import ActivityRecorder
from app.core.config import Settings, get_settings
from app.core.database import Database
from app.core.errors import install_error_handlers
from app.core.logging import configure_logging
from app.core.middleware import (
    RateLimitMiddleware,
    RequestLoggingMiddleware,
    SecurityHeadersMiddleware,
)
from app.core.storage import LocalFileStorage
from app.api.v1 import router as api_v1_router

log = structlog.get_logger()


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Everything the handlers need (database, activity recorder, file storage)
    is built here from ``settings`` and hung on ``app.state``.
    """
    settings = settings or get_settings()
    configure_logging(settings.log_level, settings.log_format)

    app = FastAPI(
        title="TaskHub",
        description="Multi-tenant task and project management API.",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
    )

    db = Database(settings)
    app.state.settings = settings
    app.state.db = db
    app.state.activity = ActivityRecorder(db)
    app.state.storage = LocalFileStorage.from_settings(settings)

    # Last added runs first
    app.add_middleware(
        RateLimitMiddleware,
        max_requests=settings.rate_limit_requests,
        window_seconds=settings.rate_limit_window_seconds,
    )
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=False,
        allow_methods=["GET", "POST", "PATCH", "PUT", "DELETE"],
        allow_headers=["Content-Type", "Authorization", "X-Request-ID"],
    )

    install_error_handlers(app)

    # API routes
    app.include_router(api_v1_router, prefix="/api/v1")

    # Uploaded files
    Path(settings.upload_dir).mkdir(parents=True, exist_ok=True)
    app.mount(
        settings.upload_url_prefix,
        StaticFiles(directory=settings.upload_dir),
        name="uploads",
    )

    @app.get("/health", tags=["System"])
    async def health_check():
        """Health check endpoint for liveness probes."""
        return {"status": "ok"}

    @app.on_event("startup")
    async def on_startup():
        await db.init_db()
        log.info("taskhub.starting", database=db.engine.url.render_as_string(hide_password=True))

    @app.on_event("shutdown")
    async def on_shutdown():
        log.info("taskhub.shutting_down", pending_activity=app.state.activity.pending)
        await app.state.activity.drain()
        await db.dispose()

    return app


app = create_app()
