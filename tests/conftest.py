"""Pytest configuration and fixtures shared across all test modules.

This file is automatically loaded by pytest before running any tests.
Environment defaults are set before any import that might load settings.
"""

import os
import tempfile

# CRITICAL: Set these before any imports that might load settings
os.environ.setdefault("APP_ENV", "testing")
os.environ.setdefault("APP_API_KEY_REQUIRED", "true")
os.environ.setdefault("APP_API_KEYS", "test-api-key-123,test-api-key-456")
os.environ.setdefault("APP_RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("ANTIBAN_ENABLED", "false")
os.environ.setdefault("WA_PRINT_QR_IN_TERMINAL", "false")
os.environ.setdefault("WA_SESSION_PATH", tempfile.mkdtemp(prefix="wa-sessions-"))
os.environ.setdefault("LOG_LEVEL", "WARNING")

from typing import Any  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from app.adapters.messaging.base import AbstractMessagingClient, ClientInfo, MediaPayload  # noqa: E402
from app.api.dependencies import get_messaging_service  # noqa: E402
from app.core.app_factory import create_app  # noqa: E402
from app.services.messaging_service import MessagingService  # noqa: E402
from app.services.rate_limit_service import SendRateLimiter  # noqa: E402
from app.services.session_registry import SessionRegistry  # noqa: E402


class FakeMessagingClient(AbstractMessagingClient):
    """In-memory client; tests drive lifecycle events through ``emit``."""

    def __init__(self, session_id: str) -> None:
        super().__init__(session_id)
        self.calls: list[tuple[Any, ...]] = []
        self.fail_on: set[str] = set()
        self._counter = 0

    def _maybe_fail(self, op: str) -> None:
        if op in self.fail_on:
            raise RuntimeError(f"{op} failed")

    async def initialize(self) -> None:
        self.calls.append(("initialize",))
        self._maybe_fail("initialize")

    async def send_text(self, chat_id: str, text: str) -> str:
        self.calls.append(("send_text", chat_id, text))
        self._maybe_fail("send_text")
        self._counter += 1
        return f"true_{chat_id}_{self._counter}"

    async def send_media(
        self,
        chat_id: str,
        media: MediaPayload,
        caption: str | None = None,
    ) -> str:
        self.calls.append(("send_media", chat_id, media.mimetype, caption))
        self._maybe_fail("send_media")
        self._counter += 1
        return f"true_{chat_id}_{self._counter}"

    async def logout(self) -> None:
        self.calls.append(("logout",))
        self._maybe_fail("logout")

    async def destroy(self) -> None:
        self.calls.append(("destroy",))
        self._maybe_fail("destroy")

    async def close(self) -> None:
        self.calls.append(("close",))

    def make_ready(self) -> None:
        self.emit("qr", "2@fake-qr-payload")
        self.emit("authenticated")
        self.emit(
            "ready",
            ClientInfo(pushname="Tester", wid="5511999999999@c.us", platform="android"),
        )


class FakeClientFactory:
    """Client factory recording every client it builds, by session id."""

    def __init__(self) -> None:
        self.clients: dict[str, FakeMessagingClient] = {}
        # Operations that every newly built client fails
        self.fail_on: set[str] = set()

    def __call__(self, session_id: str) -> FakeMessagingClient:
        client = FakeMessagingClient(session_id)
        client.fail_on.update(self.fail_on)
        self.clients[session_id] = client
        return client


@pytest.fixture
def client_factory() -> FakeClientFactory:
    return FakeClientFactory()


@pytest.fixture
def send_limiter() -> SendRateLimiter:
    return SendRateLimiter(
        enabled=False,
        message_delay_ms=30000,
        max_messages_per_hour=50,
    )


@pytest.fixture
def messaging_service(tmp_path, client_factory, send_limiter) -> MessagingService:
    return MessagingService(
        registry=SessionRegistry(max_sessions=3),
        limiter=send_limiter,
        client_factory=client_factory,
        session_path=tmp_path / "sessions",
    )


@pytest.fixture
def app(messaging_service):
    application = create_app()
    application.dependency_overrides[get_messaging_service] = lambda: messaging_service
    yield application
    application.dependency_overrides.clear()


@pytest.fixture
def client(app) -> TestClient:
    return TestClient(app)


@pytest.fixture
def valid_api_key_headers() -> dict[str, str]:
    """Headers carrying one of the configured test API keys."""
    return {"X-API-Key": "test-api-key-123"}
