"""Pydantic schemas for session management."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

SESSION_ID_PATTERN = r"^[A-Za-z0-9]+$"


class CreateSessionRequest(BaseModel):
    session_id: str | None = Field(
        default=None,
        min_length=3,
        max_length=50,
        pattern=SESSION_ID_PATTERN,
        description="Optional custom session id (alphanumeric). Generated when omitted.",
    )


class ClientInfoSchema(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    pushname: str
    wid: str
    platform: str


class SessionResponse(BaseModel):
    """Lifecycle state of one session."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    status: Literal["initializing", "qr", "authenticated", "ready", "disconnected"]
    qr_code: str | None = Field(
        default=None,
        description="Raw QR payload while the session waits to be scanned.",
    )
    client_info: ClientInfoSchema | None = None
