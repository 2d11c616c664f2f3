"""Application factory for the FastAPI app.

Centralizes app construction (metadata, middleware, handlers, routers,
lifespan) so tests can build isolated instances.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI

from app.api.dependencies import shutdown_messaging_service
from app.api.routes import api_router
from app.core.config import settings
from app.core.cors import setup_cors
from app.core.exception_handlers import setup_exception_handlers
from app.core.logging import configure_logging
from app.core.middleware import (
    request_id_middleware,
    request_size_middleware,
    security_headers_middleware,
)
from app.core.openapi import apply_openapi_customizations

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    Path(settings.messaging.session_path).mkdir(parents=True, exist_ok=True)
    logger.info(
        "app.started",
        extra={
            "environment": settings.app_env,
            "port": settings.app.port,
            "api_base_url": settings.app.api_base_url,
        },
    )
    try:
        yield
    finally:
        await shutdown_messaging_service()
        logger.info("app.stopped")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application instance.

    Returns:
        Configured FastAPI app with middleware, handlers, routers and docs.
    """
    # Logging first so subsequent init logs are formatted as desired
    configure_logging(settings.log)

    app = FastAPI(
        title="WhatsApp Gateway API",
        description=(
            "HTTP API for WhatsApp Web automation: create sessions, authenticate "
            "them by scanning a QR code, and send text and media messages. "
            "Outgoing messages are paced by per-session and global hourly limits "
            "with a minimum delay between messages. Requires an API key "
            "(X-API-Key or Authorization: Bearer) on every non-health endpoint."
        ),
        version=settings.app.version,
        docs_url="/api-docs",
        redoc_url=None,
        openapi_url="/swagger.json",
        lifespan=lifespan,
        contact={
            "name": "WhatsApp Gateway",
            "url": "https://github.com/",
        },
        license_info={
            "name": "MIT License",
            "url": "https://opensource.org/licenses/MIT",
        },
        servers=[{"url": settings.app.api_base_url, "description": "API server"}],
    )

    # Middleware (last registered runs outermost)
    app.middleware("http")(request_size_middleware)
    app.middleware("http")(security_headers_middleware)
    app.middleware("http")(request_id_middleware)
    setup_cors(app)

    setup_exception_handlers(app)

    app.include_router(api_router)

    @app.get("/", include_in_schema=False)
    def root() -> dict:
        return {
            "success": True,
            "message": "WhatsApp Gateway API",
            "data": {
                "version": settings.app.version,
                "documentation": "/api-docs",
                "openapi": "/swagger.json",
                "health": "/api/health",
            },
        }

    apply_openapi_customizations(app)

    return app
