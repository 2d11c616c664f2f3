"""Session orchestration and message sending.

Ties together the session registry, the messaging client factory and the
anti-ban send limiter. Route handlers call into this service only.
"""

from __future__ import annotations

import asyncio
import logging
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable
from uuid import uuid4

from app.adapters.messaging.base import AbstractMessagingClient, MediaPayload
from app.core.errors import (
    AppError,
    MessagingAppError,
    RateLimitedAppError,
    SessionNotFoundAppError,
    SessionNotReadyAppError,
)
from app.services.rate_limit_service import SendRateLimiter
from app.services.session_registry import SessionEntry, SessionRegistry, SessionState
from app.utils.phone import to_chat_id

logger = logging.getLogger(__name__)

ClientFactory = Callable[[str], AbstractMessagingClient]


@dataclass(frozen=True)
class SentMessage:
    message_id: str
    chat_id: str


class MessagingService:
    """Creates sessions, sends messages through them and tears them down."""

    def __init__(
        self,
        registry: SessionRegistry,
        limiter: SendRateLimiter,
        client_factory: ClientFactory,
        session_path: str | Path,
    ) -> None:
        self.registry = registry
        self.limiter = limiter
        self._client_factory = client_factory
        self._session_path = Path(session_path)
        self._send_locks: dict[str, asyncio.Lock] = {}

    def _ensure_session_path(self) -> None:
        self._session_path.mkdir(parents=True, exist_ok=True)

    def _require(self, session_id: str) -> SessionEntry:
        entry = self.registry.get(session_id)
        if entry is None:
            raise SessionNotFoundAppError(
                code="session_not_found",
                message="Session not found",
                details={"session_id": session_id},
            )
        return entry

    async def _discard_client(self, client: AbstractMessagingClient) -> None:
        """Best-effort teardown of a client that never made it into service."""
        try:
            await client.destroy()
        except Exception as exc:
            logger.warning(
                "session.cleanup_failed",
                extra={"session_id": client.session_id, "error_type": type(exc).__name__},
            )
        finally:
            await client.close()

    def _send_lock(self, session_id: str) -> asyncio.Lock:
        lock = self._send_locks.get(session_id)
        if lock is None:
            lock = self._send_locks[session_id] = asyncio.Lock()
        return lock

    async def create_session(self, session_id: str | None = None) -> SessionState:
        """Register a new session and start its client.

        Raises:
            SessionExistsAppError: Id already registered.
            SessionLimitAppError: Registry full.
            MessagingAppError: The client failed to initialize.
        """
        self._ensure_session_path()
        session_id = session_id or uuid4().hex

        # Reject before a client (and its connections) exists
        self.registry.ensure_available(session_id)
        client = self._client_factory(session_id)
        try:
            state = self.registry.register(session_id, client)
        except AppError:
            await client.close()
            raise

        try:
            await client.initialize()
        except Exception as exc:
            self.registry.remove(session_id)
            logger.warning(
                "session.initialization_failed",
                extra={"session_id": session_id, "error_type": type(exc).__name__},
            )
            await self._discard_client(client)
            raise MessagingAppError(
                code="session_initialization_failed",
                message=f"Failed to initialize session: {exc}",
                details={"session_id": session_id},
            ) from exc

        logger.info("session.created", extra={"session_id": session_id})
        return state

    def get_session(self, session_id: str) -> SessionState:
        return self._require(session_id).state

    def list_sessions(self) -> list[SessionState]:
        return self.registry.sessions()

    async def _send(
        self,
        session_id: str,
        to: str,
        kind: str,
        deliver: Callable[[AbstractMessagingClient, str], Any],
    ) -> SentMessage:
        entry = self._require(session_id)
        if entry.state.status != "ready":
            raise SessionNotReadyAppError(
                code="session_not_ready",
                message="Session not ready",
                details={"session_id": session_id, "status": entry.state.status},
            )

        chat_id = to_chat_id(to)
        async with self._send_lock(session_id):
            check = self.limiter.can_send(session_id)
            if not check.allowed:
                logger.warning(
                    "rate_limit.send_blocked",
                    extra={
                        "session_id": session_id,
                        "reason": check.reason,
                        "retry_after": check.retry_after_seconds,
                    },
                )
                raise RateLimitedAppError(
                    code="send_rate_limited",
                    message=f"Rate limit exceeded: {check.reason}",
                    details={
                        "session_id": session_id,
                        "retry_after": check.retry_after_seconds,
                        "delay_ms": check.delay_ms,
                    },
                )

            await self.limiter.random_delay()

            try:
                message_id = await deliver(entry.client, chat_id)
            except AppError as exc:
                raise MessagingAppError(
                    code="send_failed",
                    message=exc.message,
                    details={"session_id": session_id},
                ) from exc
            except Exception as exc:
                raise MessagingAppError(
                    code="send_failed",
                    message=str(exc) or "Unknown error",
                    details={"session_id": session_id},
                ) from exc

            self.limiter.record_send(session_id)

        logger.info(
            "message.sent",
            extra={"session_id": session_id, "kind": kind, "message_id": message_id},
        )
        return SentMessage(message_id=message_id, chat_id=chat_id)

    async def send_text(self, session_id: str, to: str, text: str) -> SentMessage:
        """Send a text message through a ready session.

        Raises:
            SessionNotFoundAppError: Unknown session.
            SessionNotReadyAppError: Session is not in ``ready`` state.
            RateLimitedAppError: Anti-ban pacing refused the send.
            MessagingAppError: The client failed to deliver the message.
        """
        return await self._send(
            session_id,
            to,
            "text",
            lambda client, chat_id: client.send_text(chat_id, text),
        )

    async def send_media(
        self,
        session_id: str,
        to: str,
        media: MediaPayload,
        caption: str | None = None,
    ) -> SentMessage:
        """Send a media message through a ready session. Raises as ``send_text``."""
        return await self._send(
            session_id,
            to,
            "media",
            lambda client, chat_id: client.send_media(chat_id, media, caption or None),
        )

    async def logout(self, session_id: str) -> None:
        """Unlink the device, stop the client and delete its stored auth data."""
        entry = self._require(session_id)
        try:
            await entry.client.logout()
            await entry.client.destroy()
        except Exception as exc:
            logger.warning(
                "session.logout_failed",
                extra={"session_id": session_id, "error_type": type(exc).__name__},
            )
            raise MessagingAppError(
                code="logout_failed",
                message="Failed to logout session",
                details={"session_id": session_id},
            ) from exc

        self.registry.remove(session_id)
        self._send_locks.pop(session_id, None)

        session_dir = self._session_path / session_id
        if session_dir.exists():
            await asyncio.to_thread(shutil.rmtree, session_dir)
        logger.info("session.logged_out", extra={"session_id": session_id})

    async def destroy_session(self, session_id: str) -> None:
        """Stop the client and forget the session, keeping its auth data."""
        entry = self._require(session_id)
        try:
            await entry.client.destroy()
        except Exception as exc:
            logger.warning(
                "session.destroy_failed",
                extra={"session_id": session_id, "error_type": type(exc).__name__},
            )
            raise MessagingAppError(
                code="destroy_failed",
                message="Failed to destroy session",
                details={"session_id": session_id},
            ) from exc

        self.registry.remove(session_id)
        self._send_locks.pop(session_id, None)
        logger.info("session.destroyed", extra={"session_id": session_id})

    async def shutdown(self) -> None:
        for state in self.registry.sessions():
            entry = self.registry.remove(state.id)
            if entry is None:
                continue
            try:
                await entry.client.destroy()
            except Exception:
                logger.exception("session.shutdown_failed", extra={"session_id": state.id})
            finally:
                await entry.client.close()
        self._send_locks.clear()

    def rate_limit_overview(self) -> dict[str, Any]:
        """Pacing status of every registered session plus the global counters."""
        sessions = [
            {"session_id": state.id, "status": self.limiter.session_status(state.id)}
            for state in self.registry.sessions()
        ]
        return {"sessions": sessions, "global_stats": self.limiter.global_stats()}
