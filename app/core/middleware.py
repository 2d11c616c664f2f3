"""HTTP middleware: request correlation, access logging, body size guard
and security headers.

Usage (the last registered middleware runs outermost):
    app.middleware("http")(request_size_middleware)
    app.middleware("http")(security_headers_middleware)
    app.middleware("http")(request_id_middleware)
"""

from __future__ import annotations

import logging
import time
import uuid

from fastapi import Request, Response
from fastapi.responses import JSONResponse

from app.core.config import settings
from app.core.logging import clear_request_id, get_request_id, set_request_id

logger = logging.getLogger(__name__)

SECURITY_HEADERS: dict[str, str] = {
    "Content-Security-Policy": (
        "default-src 'self'; style-src 'self' 'unsafe-inline'; "
        "script-src 'self'; img-src 'self' data: https:"
    ),
    "Strict-Transport-Security": "max-age=31536000; includeSubDomains; preload",
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "SAMEORIGIN",
    "Referrer-Policy": "no-referrer",
    "Cross-Origin-Opener-Policy": "same-origin",
}

# Swagger UI loads its assets from a CDN
_DOCS_PATHS = ("/api-docs", "/docs", "/redoc")


async def request_id_middleware(request: Request, call_next) -> Response:
    """Attach a correlation id to the request, its logs and its response.

    Uses the incoming ``X-Request-ID`` header (configurable via
    LOG_REQUEST_ID_HEADER) or a fresh UUID, and logs one access line per
    request with its status and duration.
    """

    header_name = settings.log.request_id_header
    request_id = request.headers.get(header_name) or str(uuid.uuid4())
    set_request_id(request_id)
    start = time.perf_counter()
    try:
        response: Response = await call_next(request)
        duration_ms = (time.perf_counter() - start) * 1000
        logger.info(
            "http.request",
            extra={
                "method": request.method,
                "path": request.url.path,
                "status_code": response.status_code,
                "duration_ms": round(duration_ms, 2),
                "client_ip": request.client.host if request.client else None,
            },
        )
    finally:
        clear_request_id()

    response.headers[header_name] = request_id
    response.headers.setdefault("X-Request-Duration-ms", f"{duration_ms:.2f}")
    return response


async def request_size_middleware(request: Request, call_next) -> Response:
    """Reject bodies whose declared Content-Length exceeds the limit (413)."""

    max_bytes = settings.app.max_request_size_mb * 1024 * 1024
    raw_length = request.headers.get("content-length")
    if raw_length and raw_length.isdigit() and int(raw_length) > max_bytes:
        logger.warning(
            "http.request_too_large",
            extra={"content_length": int(raw_length), "max_bytes": max_bytes},
        )
        return JSONResponse(
            status_code=413,
            content={
                "success": False,
                "error": {
                    "code": "request_too_large",
                    "message": "Request too large",
                    "request_id": get_request_id(),
                },
            },
        )
    return await call_next(request)


async def security_headers_middleware(request: Request, call_next) -> Response:
    """Add hardening headers to every response."""

    response: Response = await call_next(request)
    is_docs = request.url.path.startswith(_DOCS_PATHS)
    for name, value in SECURITY_HEADERS.items():
        if is_docs and name == "Content-Security-Policy":
            continue
        response.headers.setdefault(name, value)
    return response
