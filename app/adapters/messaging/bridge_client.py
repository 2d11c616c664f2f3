"""Messaging client backed by a WhatsApp Web automation bridge over HTTP.

The bridge is a separate process running the headless browser client
(whatsapp-web.js or similar). It exposes, per session:

    POST   /sessions/{id}/start     {"data_path": str}
    GET    /sessions/{id}/state  -> {"state", "qr"?, "info"?, "reason"?}
    POST   /sessions/{id}/messages  {"chat_id", "text"}          -> {"id"}
    POST   /sessions/{id}/media     multipart file/chat_id/caption -> {"id"}
    POST   /sessions/{id}/logout
    DELETE /sessions/{id}

Lifecycle events are produced by polling ``/state`` and emitting one event
per observed transition (and per new QR payload).
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import Any

import httpx

from app.adapters.messaging.base import AbstractMessagingClient, ClientInfo, MediaPayload
from app.core.errors import MessagingAppError

logger = logging.getLogger(__name__)


class BridgeMessagingClient(AbstractMessagingClient):
    """Drives one session on the automation bridge."""

    def __init__(
        self,
        session_id: str,
        *,
        base_url: str,
        token: str | None = None,
        timeout_seconds: float = 30.0,
        poll_interval_seconds: float = 2.0,
        data_path: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the bridge client.

        Args:
            session_id: Session identifier, also used as the bridge client id.
            base_url: Bridge base URL.
            token: Optional bearer token for the bridge.
            timeout_seconds: Per-request timeout.
            poll_interval_seconds: Delay between two state polls.
            data_path: Where the bridge should persist this session's auth data.
            transport: Custom httpx transport (tests use httpx.MockTransport).
        """
        super().__init__(session_id)
        headers = {"Authorization": f"Bearer {token}"} if token else {}
        self._http = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            headers=headers,
            timeout=timeout_seconds,
            transport=transport,
        )
        self._poll_interval = poll_interval_seconds
        self._data_path = data_path
        self._poll_task: asyncio.Task | None = None
        self._last_state: str | None = None
        self._last_qr: str | None = None

    @property
    def _prefix(self) -> str:
        return f"/sessions/{self.session_id}"

    async def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        if self._http.is_closed:
            raise MessagingAppError(
                code="bridge_client_closed",
                message="Messaging client is closed",
                details={"session_id": self.session_id},
            )
        try:
            response = await self._http.request(method, path, **kwargs)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise MessagingAppError(
                code="bridge_error",
                message=f"Messaging bridge returned HTTP {exc.response.status_code}",
                details={
                    "session_id": self.session_id,
                    "upstream_status": exc.response.status_code,
                },
            ) from exc
        except httpx.HTTPError as exc:
            raise MessagingAppError(
                code="bridge_unreachable",
                message=f"Messaging bridge request failed ({type(exc).__name__})",
                details={"session_id": self.session_id},
            ) from exc
        return response

    def _message_id(self, response: httpx.Response) -> str:
        try:
            payload = response.json()
        except ValueError:
            payload = None
        message_id = payload.get("id") if isinstance(payload, dict) else None
        if not message_id:
            raise MessagingAppError(
                code="bridge_bad_response",
                message="Messaging bridge did not return a message id",
                details={"session_id": self.session_id},
            )
        return str(message_id)

    async def initialize(self) -> None:
        payload = {"data_path": self._data_path} if self._data_path else {}
        await self._request("POST", f"{self._prefix}/start", json=payload)
        self._poll_task = asyncio.create_task(
            self._poll_loop(), name=f"bridge-poll-{self.session_id}"
        )
        logger.info("bridge.session_started", extra={"session_id": self.session_id})

    async def poll_once(self) -> None:
        """Fetch the bridge state once and emit events for any transition."""
        response = await self._request("GET", f"{self._prefix}/state")
        try:
            payload = response.json()
        except ValueError as exc:
            raise MessagingAppError(
                code="bridge_bad_response",
                message="Messaging bridge returned an invalid state payload",
                details={"session_id": self.session_id},
            ) from exc
        if not isinstance(payload, dict):
            raise MessagingAppError(
                code="bridge_bad_response",
                message="Messaging bridge returned an invalid state payload",
                details={"session_id": self.session_id},
            )
        self._apply_state(payload)

    def _apply_state(self, payload: dict[str, Any]) -> None:
        state = payload.get("state")

        if state == "qr":
            qr = payload.get("qr")
            if qr and qr != self._last_qr:
                self._last_qr = qr
                self.emit("qr", qr)
            self._last_state = state
            return

        if state == self._last_state:
            return

        if state == "authenticated":
            self.emit("authenticated")
        elif state == "ready":
            info = payload.get("info") or {}
            self.emit(
                "ready",
                ClientInfo(
                    pushname=info.get("pushname") or "Unknown",
                    wid=info.get("wid") or "",
                    platform=info.get("platform") or "Unknown",
                ),
            )
        elif state == "disconnected":
            self._last_qr = None
            self.emit("disconnected", payload.get("reason") or "unknown")
        elif state == "auth_failure":
            self.emit("auth_failure", payload.get("reason") or "authentication failed")

        self._last_state = state

    async def _poll_loop(self) -> None:
        while True:
            try:
                await self.poll_once()
            except MessagingAppError as exc:
                logger.warning(
                    "bridge.poll_failed",
                    extra={"session_id": self.session_id, "error_code": exc.code},
                )
            except Exception:
                logger.exception("bridge.poll_crashed", extra={"session_id": self.session_id})
            await asyncio.sleep(self._poll_interval)

    async def _stop_polling(self) -> None:
        if self._poll_task is None:
            return
        self._poll_task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._poll_task
        self._poll_task = None

    async def send_text(self, chat_id: str, text: str) -> str:
        response = await self._request(
            "POST",
            f"{self._prefix}/messages",
            json={"chat_id": chat_id, "text": text},
        )
        return self._message_id(response)

    async def send_media(
        self,
        chat_id: str,
        media: MediaPayload,
        caption: str | None = None,
    ) -> str:
        data = {"chat_id": chat_id}
        if caption:
            data["caption"] = caption
        response = await self._request(
            "POST",
            f"{self._prefix}/media",
            data=data,
            files={"file": (media.filename, media.data, media.mimetype)},
        )
        return self._message_id(response)

    async def logout(self) -> None:
        await self._request("POST", f"{self._prefix}/logout")

    async def destroy(self) -> None:
        """Stop polling and delete the bridge session.

        The HTTP client stays open when the delete fails so the call can be
        retried.
        """
        await self._stop_polling()
        await self._request("DELETE", self._prefix)
        await self._http.aclose()

    async def close(self) -> None:
        await self._stop_polling()
        if not self._http.is_closed:
            await self._http.aclose()
