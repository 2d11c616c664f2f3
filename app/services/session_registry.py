"""In-memory registry of messaging sessions.

Maps a session id to the live client handle and the session's lifecycle
state. Entries are created on request, mutated by the client's
asynchronous lifecycle events and removed on logout/destroy.

Invariants:
- at most one entry per id
- never more than ``max_sessions`` entries
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, replace
from typing import Callable, Literal

from app.adapters.messaging.base import AbstractMessagingClient, ClientInfo
from app.core.errors import SessionExistsAppError, SessionLimitAppError

logger = logging.getLogger(__name__)

SessionStatus = Literal["initializing", "qr", "authenticated", "ready", "disconnected"]

SESSION_STATUSES: tuple[SessionStatus, ...] = (
    "initializing",
    "qr",
    "authenticated",
    "ready",
    "disconnected",
)


@dataclass
class SessionState:
    id: str
    status: SessionStatus = "initializing"
    qr_code: str | None = None
    client_info: ClientInfo | None = None


@dataclass
class SessionEntry:
    client: AbstractMessagingClient
    state: SessionState


class SessionRegistry:
    """Thread-safe mapping of session id to ``SessionEntry``.

    Attributes:
        max_sessions: Upper bound on the number of registered sessions.
    """

    def __init__(
        self,
        max_sessions: int,
        *,
        on_qr: Callable[[str, str], None] | None = None,
    ) -> None:
        """Initialize an empty registry.

        Args:
            max_sessions: Maximum number of concurrent sessions (>= 1).
            on_qr: Optional hook called with (session_id, payload) whenever a
                new QR payload arrives.
        """
        if max_sessions < 1:
            raise ValueError("max_sessions must be >= 1")
        self.max_sessions = max_sessions
        self._on_qr = on_qr
        self._entries: dict[str, SessionEntry] = {}
        self._lock = threading.RLock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, session_id: object) -> bool:
        with self._lock:
            return session_id in self._entries

    def ensure_available(self, session_id: str) -> None:
        """Raise if ``session_id`` could not be registered right now.

        Raises:
            SessionExistsAppError: The id is already registered.
            SessionLimitAppError: The registry is full.
        """
        with self._lock:
            if session_id in self._entries:
                raise SessionExistsAppError(
                    code="session_exists",
                    message=f"Session {session_id} already exists",
                    details={"session_id": session_id},
                )
            if len(self._entries) >= self.max_sessions:
                raise SessionLimitAppError(
                    code="session_limit_reached",
                    message=f"Maximum number of sessions ({self.max_sessions}) reached",
                    details={"max_sessions": self.max_sessions},
                )

    def register(self, session_id: str, client: AbstractMessagingClient) -> SessionState:
        """Add a new session in ``initializing`` state and bind its lifecycle.

        Raises:
            SessionExistsAppError: The id is already registered.
            SessionLimitAppError: The registry is full.
        """
        with self._lock:
            self.ensure_available(session_id)
            state = SessionState(id=session_id)
            self._entries[session_id] = SessionEntry(client=client, state=state)

        self._bind_lifecycle(client, state)
        logger.info(
            "session.registered",
            extra={"session_id": session_id, "registry_size": len(self)},
        )
        return state

    def get(self, session_id: str) -> SessionEntry | None:
        with self._lock:
            return self._entries.get(session_id)

    def sessions(self) -> list[SessionState]:
        """Snapshot of all session states (copies, safe to serialize)."""
        with self._lock:
            return [replace(entry.state) for entry in self._entries.values()]

    def remove(self, session_id: str) -> SessionEntry | None:
        with self._lock:
            entry = self._entries.pop(session_id, None)
        if entry is not None:
            logger.info("session.removed", extra={"session_id": session_id})
        return entry

    def _transition(self, state: SessionState, status: SessionStatus, **reason: str) -> None:
        previous = state.status
        state.status = status
        logger.info(
            "session.status_changed",
            extra={
                "session_id": state.id,
                "from_status": previous,
                "to_status": status,
                **reason,
            },
        )

    def _bind_lifecycle(self, client: AbstractMessagingClient, state: SessionState) -> None:
        def on_qr(payload: str) -> None:
            state.qr_code = payload
            self._transition(state, "qr")
            if self._on_qr is not None:
                self._on_qr(state.id, payload)

        def on_authenticated() -> None:
            self._transition(state, "authenticated")

        def on_ready(info: ClientInfo) -> None:
            state.client_info = info
            self._transition(state, "ready")

        def on_disconnected(reason: str) -> None:
            state.qr_code = None
            state.client_info = None
            self._transition(state, "disconnected", reason=str(reason))

        def on_auth_failure(message: str) -> None:
            self._transition(state, "disconnected", reason=f"auth_failure: {message}")

        client.on("qr", on_qr)
        client.on("authenticated", on_authenticated)
        client.on("ready", on_ready)
        client.on("disconnected", on_disconnected)
        client.on("auth_failure", on_auth_failure)
