"""Pydantic schemas for health and limiter monitoring endpoints."""

from __future__ import annotations

from pydantic import BaseModel


class SessionCapacity(BaseModel):
    active_sessions: int
    max_sessions: int


class GlobalSendStats(BaseModel):
    global_hourly_count: int
    global_hourly_limit: int
    active_sessions: int
    time_until_reset_ms: int


class SessionSendStatus(BaseModel):
    can_send: bool
    time_until_next_message_ms: int
    hourly_count: int
    hourly_limit: int
    global_count: int
    global_limit: int


class HealthServices(BaseModel):
    sessions: SessionCapacity
    rate_limit: GlobalSendStats


class CorsInfo(BaseModel):
    allowed_origins: list[str]
    allow_credentials: bool


class HealthConfig(BaseModel):
    anti_ban_enabled: bool
    message_delay_ms: int
    max_messages_per_hour: int
    cors: CorsInfo


class HealthResponse(BaseModel):
    status: str
    timestamp: str
    uptime: float
    version: str
    environment: str
    services: HealthServices
    config: HealthConfig


class SessionRateLimit(BaseModel):
    session_id: str
    status: SessionSendStatus


class RateLimitOverview(BaseModel):
    sessions: list[SessionRateLimit]
    global_stats: GlobalSendStats


class CorsDetails(CorsInfo):
    allowed_methods: list[str]
    allowed_headers: list[str]
    current_origin: str | None
    is_allowed: bool
