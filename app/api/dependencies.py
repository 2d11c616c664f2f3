"""Process-wide service instances exposed as FastAPI dependencies."""

from __future__ import annotations

import logging

from app.adapters.messaging.factory import create_messaging_client
from app.core.config import settings
from app.services.messaging_service import MessagingService
from app.services.rate_limit_service import SendRateLimiter
from app.services.session_registry import SessionRegistry
from app.utils.qr import print_qr_terminal

logger = logging.getLogger(__name__)

_service: MessagingService | None = None


def _print_qr(session_id: str, payload: str) -> None:
    logger.info("session.qr_received", extra={"session_id": session_id})
    print(f"QR code for session {session_id}:", flush=True)
    print_qr_terminal(payload)


def build_messaging_service() -> MessagingService:
    registry = SessionRegistry(
        settings.messaging.max_sessions,
        on_qr=_print_qr if settings.messaging.print_qr_in_terminal else None,
    )
    limiter = SendRateLimiter(
        enabled=settings.antiban.enabled,
        message_delay_ms=settings.antiban.message_delay_ms,
        max_messages_per_hour=settings.antiban.max_messages_per_hour,
        random_delay_min_ms=settings.antiban.random_delay_min_ms,
        random_delay_max_ms=settings.antiban.random_delay_max_ms,
    )
    return MessagingService(
        registry=registry,
        limiter=limiter,
        client_factory=create_messaging_client,
        session_path=settings.messaging.session_path,
    )


def get_messaging_service() -> MessagingService:
    global _service
    if _service is None:
        _service = build_messaging_service()
    return _service


async def shutdown_messaging_service() -> None:
    """Destroy every live client and drop the cached service."""
    global _service
    if _service is None:
        return
    service, _service = _service, None
    await service.shutdown()
