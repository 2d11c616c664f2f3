"""CORS policy built from APP_CORS_ORIGINS."""

from __future__ import annotations

from dataclasses import dataclass, field

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.core.config import settings


@dataclass(frozen=True)
class CorsConfig:
    allowed_origins: list[str]
    allow_credentials: bool = True
    allowed_methods: list[str] = field(
        default_factory=lambda: ["GET", "POST", "PUT", "DELETE", "OPTIONS"]
    )
    allowed_headers: list[str] = field(
        default_factory=lambda: ["Content-Type", "Authorization", "X-API-Key", "X-Request-ID"]
    )


def parse_origins(raw: str | None) -> list[str]:
    if not raw:
        return []
    return [origin.strip() for origin in raw.split(",") if origin.strip()]


def build_cors_config() -> CorsConfig:
    return CorsConfig(allowed_origins=parse_origins(settings.app.cors_origins))


def setup_cors(app: FastAPI) -> None:
    cfg = build_cors_config()
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cfg.allowed_origins,
        allow_credentials=cfg.allow_credentials,
        allow_methods=cfg.allowed_methods,
        allow_headers=cfg.allowed_headers,
    )
