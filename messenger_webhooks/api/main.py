"""
Messenger Webhooks - FastAPI Application

Receives Meta Messenger webhooks and keeps a dual record of them:
- JSON audit files, one per event
- Relational rows (raw events and normalized messages)
- Replay of the audit files into the database
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

import structlog
from fastapi import FastAPI

from messenger_webhooks import __version__
from messenger_webhooks.api.middleware import RequestIDMiddleware, SecurityHeadersMiddleware
from messenger_webhooks.api.routes import events, health, migration
from messenger_webhooks.config import get_settings
from messenger_webhooks.db.client import close_db, init_db
from messenger_webhooks.kernel.http.errors import register_exception_handlers
from messenger_webhooks.kernel.log_config import configure_logging
from messenger_webhooks.webhooks import webhook_router

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan - startup and shutdown."""
    settings = get_settings()

    logger.info(
        "Starting Messenger Webhooks",
        version=__version__,
        environment=settings.environment,
        storage_dir=settings.webhook_storage_dir,
    )
    if not settings.meta_app_secret:
        logger.warning("META_APP_SECRET is not set; every signed webhook will be rejected")
    if not settings.meta_verify_token:
        logger.warning("META_VERIFY_TOKEN is not set; subscription handshakes will fail")

    await init_db()

    yield

    logger.info("Shutting down Messenger Webhooks")
    await close_db()


def create_app() -> FastAPI:
    settings = get_settings()
    configure_logging(settings.log_level, settings.log_format)

    app = FastAPI(
        title="Messenger Webhooks API",
        description="Meta Messenger webhook receiver with JSON audit log and database replay",
        version=__version__,
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
    )

    register_exception_handlers(app)

    # Order matters - first added = last executed
    app.add_middleware(RequestIDMiddleware)
    app.add_middleware(SecurityHeadersMiddleware)

    app.include_router(health.router, tags=["Health"])
    app.include_router(webhook_router)
    app.include_router(migration.router, prefix="/api")
    app.include_router(events.router, prefix="/api")

    return app


app = create_app()
