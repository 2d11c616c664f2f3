"""Application-level exception types.

This module defines domain errors used across services/adapters, enabling
consistent error handling, logging, and API responses.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, NotRequired, TypedDict


class ErrorDetails(TypedDict, total=False):
    """Structured error context for observability and clients.

    Fields are optional to keep the shape flexible while encouraging
    consistent keys across the codebase.
    """

    hint: str
    session_id: str
    status: str
    max_sessions: int
    retry_after: int
    delay_ms: int
    mime_type: str
    max_bytes: int
    upstream_status: int
    errors: list[str]
    context: NotRequired[dict[str, Any]]


@dataclass
class AppError(Exception):
    """Base error for application/domain failures.

    Attributes:
        code: Stable, machine-readable error code.
        message: Human-readable error message.
        details: Optional structured details for debugging/observability.
    """

    code: str
    message: str
    details: ErrorDetails | None = None

    def __post_init__(self) -> None:
        # Populate Exception args so str(error) is useful in logs/tracebacks.
        super().__init__(self.message)


class ValidationAppError(AppError):
    """Raised when input/config validation fails."""


class AuthenticationAppError(AppError):
    """Raised when authentication fails."""


class SessionNotFoundAppError(AppError):
    """Raised when a session id is not registered."""


class ConflictAppError(AppError):
    """Raised when the request conflicts with current session state."""


class SessionExistsAppError(ConflictAppError):
    """Raised when creating a session whose id is already registered."""


class SessionLimitAppError(ConflictAppError):
    """Raised when the registry is full."""


class SessionNotReadyAppError(ConflictAppError):
    """Raised when sending through a session that is not ready."""


class UnsupportedMediaAppError(AppError):
    """Raised when an uploaded file type is not accepted."""


class RateLimitedAppError(AppError):
    """Raised when anti-ban pacing refuses a send."""


class MessagingAppError(AppError):
    """Raised when the messaging client/bridge fails."""
