"""Request rate limiting dependency for FastAPI routes.

Protects the HTTP surface itself (not outbound messages, which are paced by
``app.services.rate_limit_service``). Requests are counted per API key, or
per client IP when no key is sent.
"""

from __future__ import annotations

import hashlib
import logging
from typing import Annotated

from fastapi import Header, HTTPException, Request, status

from app.adapters.rate_limit.base import AbstractRateLimiter
from app.adapters.rate_limit.in_memory import InMemoryFixedWindowRateLimiter
from app.core.auth import extract_api_key
from app.core.config import settings

logger = logging.getLogger(__name__)


_limiter: AbstractRateLimiter | None = None
_limiter_config: tuple[int, int] | None = None


def get_rate_limiter() -> AbstractRateLimiter:
    """Return the process-wide request limiter.

    Rebuilt when the configured limit/window changes (primarily in tests).
    """

    global _limiter, _limiter_config

    config = (
        settings.app.rate_limit_requests,
        settings.app.rate_limit_window_seconds,
    )

    if _limiter is None or _limiter_config != config:
        _limiter = InMemoryFixedWindowRateLimiter(
            limit=settings.app.rate_limit_requests,
            window_seconds=settings.app.rate_limit_window_seconds,
        )
        _limiter_config = config

    return _limiter


def build_rate_limit_key(request: Request, api_key: str | None) -> str:
    if api_key:
        return f"api_key:{hashlib.sha256(api_key.encode()).hexdigest()}"

    client_host = request.client.host if request.client else "unknown"
    return f"ip:{client_host}"


async def enforce_rate_limit(
    request: Request,
    x_api_key: Annotated[str | None, Header(alias="X-API-Key")] = None,
    authorization: Annotated[str | None, Header(alias="Authorization")] = None,
) -> None:
    """FastAPI dependency consuming one request from the caller's budget.

    Raises:
        HTTPException: 429 Too Many Requests when the budget is exhausted.
    """

    if not settings.app.rate_limit_enabled:
        return

    api_key = extract_api_key(x_api_key, authorization)
    key = build_rate_limit_key(request, api_key)
    result = get_rate_limiter().consume(key)
    if result.allowed:
        return

    retry_after = result.retry_after_seconds or 0
    logger.warning(
        "rate_limit.request_blocked",
        extra={
            "key_type": "api_key" if api_key else "ip",
            "key_hash": hashlib.sha256(key.encode()).hexdigest()[:16],
            "limit": result.limit,
            "window_s": settings.app.rate_limit_window_seconds,
            "retry_after_s": retry_after,
            "request_path": request.url.path,
        },
    )

    headers: dict[str, str] = {}
    if settings.app.rate_limit_include_headers:
        headers["Retry-After"] = str(retry_after)
        headers["X-RateLimit-Limit"] = str(result.limit)
        headers["X-RateLimit-Remaining"] = str(result.remaining)
        headers["X-RateLimit-Reset"] = str(result.reset_at)

    raise HTTPException(
        status_code=status.HTTP_429_TOO_MANY_REQUESTS,
        detail="Too many requests, please try again later.",
        headers=headers or None,
    )
