"""Factory for messaging client instances."""

from pathlib import Path

from app.adapters.messaging.base import AbstractMessagingClient
from app.adapters.messaging.bridge_client import BridgeMessagingClient
from app.core.config import settings
from app.core.errors import ValidationAppError


def create_messaging_client(session_id: str) -> AbstractMessagingClient:
    """Instantiate the configured messaging client for ``session_id``.

    Reads configuration from ``settings.messaging``.

    Raises:
        ValidationAppError: If the provider is unknown or misconfigured.
    """
    provider = settings.messaging.provider.lower()

    if provider == "bridge":
        if not settings.messaging.bridge_url:
            raise ValidationAppError(
                code="messaging_missing_bridge_url",
                message="Bridge provider requires WA_BRIDGE_URL",
            )
        return BridgeMessagingClient(
            session_id,
            base_url=settings.messaging.bridge_url,
            token=settings.messaging.bridge_token,
            timeout_seconds=settings.messaging.timeout_seconds,
            poll_interval_seconds=settings.messaging.poll_interval_seconds,
            data_path=str(Path(settings.messaging.session_path) / session_id),
        )

    raise ValidationAppError(
        code="messaging_unknown_provider",
        message=f"Unknown messaging provider: '{provider}'. Supported providers: bridge",
    )
