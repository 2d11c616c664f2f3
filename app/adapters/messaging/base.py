"""Interface for messaging clients driving one WhatsApp Web identity."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections import defaultdict
from dataclasses import dataclass
from typing import Any, Callable, Literal

logger = logging.getLogger(__name__)

ClientEvent = Literal["qr", "authenticated", "ready", "disconnected", "auth_failure"]

EventHandler = Callable[..., None]


@dataclass(frozen=True)
class ClientInfo:
    """Identity reported by the client once it is ready."""

    pushname: str
    wid: str
    platform: str


@dataclass(frozen=True)
class MediaPayload:
    """An in-memory file to send as a media message."""

    data: bytes
    mimetype: str
    filename: str


class AbstractMessagingClient(ABC):
    """One automated messaging identity.

    Lifecycle events and their handler arguments:
        qr(payload: str)
        authenticated()
        ready(info: ClientInfo)
        disconnected(reason: str)
        auth_failure(message: str)
    """

    def __init__(self, session_id: str) -> None:
        self.session_id = session_id
        self._handlers: dict[str, list[EventHandler]] = defaultdict(list)

    def on(self, event: ClientEvent, handler: EventHandler) -> None:
        self._handlers[event].append(handler)

    def emit(self, event: ClientEvent, *args: Any) -> None:
        """Deliver ``event`` to every registered handler.

        A failing handler is logged and does not prevent the others from
        running.
        """
        for handler in list(self._handlers.get(event, ())):
            try:
                handler(*args)
            except Exception:
                logger.exception(
                    "messaging.handler_failed",
                    extra={"session_id": self.session_id, "client_event": event},
                )

    @abstractmethod
    async def initialize(self) -> None:
        """Start the client; lifecycle events follow asynchronously."""
        ...

    @abstractmethod
    async def send_text(self, chat_id: str, text: str) -> str:
        """Send a text message and return the upstream message id."""
        ...

    @abstractmethod
    async def send_media(
        self,
        chat_id: str,
        media: MediaPayload,
        caption: str | None = None,
    ) -> str:
        """Send a media message and return the upstream message id."""
        ...

    @abstractmethod
    async def logout(self) -> None:
        """Unlink the device from the account."""
        ...

    @abstractmethod
    async def destroy(self) -> None:
        """Stop the client and release its resources."""
        ...

    async def close(self) -> None:
        """Release local resources without touching the remote session.

        Safe to call more than once and after ``destroy``.
        """
        return None
