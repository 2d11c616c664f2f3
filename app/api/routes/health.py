from __future__ import annotations

import logging
import time
from datetime import datetime, timezone
from typing import Annotated

from fastapi import APIRouter, Depends, Header, status
from fastapi.responses import JSONResponse

from app.api.dependencies import get_messaging_service
from app.api.routes.sessions import SessionId
from app.core.auth import verify_api_key
from app.core.config import settings
from app.core.cors import build_cors_config
from app.core.logging import get_request_id
from app.schemas.common import ApiResponse
from app.schemas.health import CorsDetails, HealthResponse, RateLimitOverview
from app.services.messaging_service import MessagingService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/health", tags=["Health"])

Service = Annotated[MessagingService, Depends(get_messaging_service)]

_STARTED_AT = time.monotonic()


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _uptime() -> float:
    return round(time.monotonic() - _STARTED_AT, 3)


@router.get(
    "",
    response_model=ApiResponse[HealthResponse],
    responses={503: {"description": "Service unhealthy"}},
)
def health_check(service: Service):
    """Health check endpoint.

    Reports uptime, session capacity, global send counters and the active
    pacing/CORS configuration. Used by load balancers and monitoring systems.
    Returns 503 with ``status: unhealthy`` if the report cannot be built.
    """
    try:
        cors = build_cors_config()
        health = HealthResponse(
            status="healthy",
            timestamp=_now_iso(),
            uptime=_uptime(),
            version=settings.app.version,
            environment=settings.app_env,
            services={
                "sessions": {
                    "active_sessions": len(service.registry),
                    "max_sessions": service.registry.max_sessions,
                },
                "rate_limit": service.limiter.global_stats(),
            },
            config={
                "anti_ban_enabled": settings.antiban.enabled,
                "message_delay_ms": settings.antiban.message_delay_ms,
                "max_messages_per_hour": settings.antiban.max_messages_per_hour,
                "cors": {
                    "allowed_origins": cors.allowed_origins,
                    "allow_credentials": cors.allow_credentials,
                },
            },
        )
    except Exception as exc:
        logger.exception("health.check_failed")
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={
                "success": False,
                "error": {
                    "code": "health_check_failed",
                    "message": "Health check failed",
                    "request_id": get_request_id(),
                },
                "data": {
                    "status": "unhealthy",
                    "timestamp": _now_iso(),
                    "uptime": _uptime(),
                    "error": type(exc).__name__,
                },
            },
        )

    return ApiResponse(data=health, message="API is healthy")


@router.get("/rate-limits", response_model=ApiResponse[RateLimitOverview])
def rate_limit_status(service: Service) -> ApiResponse[RateLimitOverview]:
    """Anti-ban pacing status for every session plus the global hourly counters."""
    return ApiResponse(data=RateLimitOverview.model_validate(service.rate_limit_overview()))


@router.post(
    "/rate-limits/{session_id}/reset",
    response_model=ApiResponse[None],
    dependencies=[Depends(verify_api_key)],
)
def reset_rate_limits(session_id: SessionId, service: Service) -> ApiResponse[None]:
    service.limiter.reset_session(session_id)
    return ApiResponse(message=f"Rate limits reset for session {session_id}")


@router.get("/cors", response_model=ApiResponse[CorsDetails])
def cors_info(
    origin: Annotated[str | None, Header()] = None,
) -> ApiResponse[CorsDetails]:
    """Effective CORS policy, and whether the caller's Origin is allowed."""
    cfg = build_cors_config()
    return ApiResponse(
        data=CorsDetails(
            allowed_origins=cfg.allowed_origins,
            allow_credentials=cfg.allow_credentials,
            allowed_methods=cfg.allowed_methods,
            allowed_headers=cfg.allowed_headers,
            current_origin=origin,
            is_allowed=origin in cfg.allowed_origins if origin else False,
        )
    )
