"""
mailgun.py — Email delivery channel via the Mailgun HTTP API.

Delivery mechanism:
    • HTTP POST {base_url}/{domain}/messages
    • multipart/form-data fields: from, to, text
    • HTTP Basic auth, user "api", password = API key
    • Any 2xx response counts as delivered

═══════════════════════════════════════════════════════════════════════════
CREDENTIALS
═══════════════════════════════════════════════════════════════════════════

    The API key and sending domain are injected through Settings
    (MAILGUN_API_KEY, MAILGUN_DOMAIN) or the constructor. The key is held
    as a pydantic SecretStr and is never logged; httpx request logging is
    quietened in setup_logging() because it prints full URLs.

Default: simulation mode for development (no network).
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Optional, Union

import httpx
from pydantic import SecretStr

from backend.app.core.config import Settings
from backend.app.safety.interfaces import MessageTransport
from backend.app.safety.models import (
    DeliveryAttempt,
    DeliveryStatus,
    OutboundMessage,
)

logger = logging.getLogger(__name__)


def _form_fields(message: OutboundMessage) -> dict:
    # (None, value) tuples make httpx encode plain fields as multipart parts
    return {
        "from": (None, message.sender),
        "to": (None, message.to),
        "text": (None, message.text),
    }


class MailgunTransport:
    """Sends one message per call through a shared httpx.AsyncClient."""

    def __init__(
        self,
        api_key: Union[SecretStr, str],
        domain: str,
        *,
        base_url: str = "https://api.mailgun.net/v3",
        timeout_seconds: float = 15.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self._api_key = api_key if isinstance(api_key, SecretStr) else SecretStr(api_key)
        self.domain = domain
        self.endpoint = f"{base_url.rstrip('/')}/{domain}/messages"
        self.timeout_seconds = timeout_seconds
        self._client = client
        self._owns_client = client is None

    def __repr__(self) -> str:
        return f"MailgunTransport(domain={self.domain!r})"

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(timeout=self.timeout_seconds)
            self._owns_client = True
        return self._client

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def send(self, message: OutboundMessage) -> DeliveryAttempt:
        attempt = DeliveryAttempt(contact=message.to, status=DeliveryStatus.SENDING)

        try:
            client = await self._get_client()
            response = await client.post(
                self.endpoint,
                files=_form_fields(message),
                auth=httpx.BasicAuth("api", self._api_key.get_secret_value()),
            )
            attempt.status_code = response.status_code
            response.raise_for_status()

            attempt.status = DeliveryStatus.DELIVERED
            attempt.provider_response = {"mode": "mailgun", "status_code": response.status_code}
            logger.info(
                "[MAIL] Delivered to %s (%d)", message.to, response.status_code,
                extra={"contact": message.to, "status_code": response.status_code},
            )

        except httpx.HTTPStatusError as exc:
            attempt.status = DeliveryStatus.FAILED
            attempt.error_message = f"HTTP {exc.response.status_code}"
            logger.error(
                "[MAIL] Rejected for %s: HTTP %d", message.to, exc.response.status_code,
                extra={"contact": message.to, "status_code": exc.response.status_code},
            )

        except httpx.HTTPError as exc:
            attempt.status = DeliveryStatus.FAILED
            attempt.error_message = f"{type(exc).__name__}: {exc}"
            logger.error(
                "[MAIL] Network error for %s: %s", message.to, type(exc).__name__,
                extra={"contact": message.to},
            )

        attempt.completed_at = datetime.now(timezone.utc)
        return attempt


class SimulatedTransport:
    """Logs instead of sending. Keeps the messages for inspection."""

    def __init__(self) -> None:
        self.sent: list = []

    async def send(self, message: OutboundMessage) -> DeliveryAttempt:
        self.sent.append(message)
        logger.info(
            "[MAIL/SIM] Alert → %s (%d chars)", message.to, len(message.text),
            extra={"contact": message.to},
        )
        return DeliveryAttempt(
            contact=message.to,
            status=DeliveryStatus.DELIVERED,
            completed_at=datetime.now(timezone.utc),
            provider_response={"mode": "simulated"},
        )

    async def aclose(self) -> None:
        return None


def build_transport(settings: Settings) -> MessageTransport:
    """Select the transport named by MAIL_PROVIDER."""
    provider = settings.MAIL_PROVIDER.lower()
    if provider == "simulation":
        return SimulatedTransport()
    if provider == "mailgun":
        if settings.MAILGUN_API_KEY is None:
            raise ValueError("MAILGUN_API_KEY must be set when MAIL_PROVIDER=mailgun")
        return MailgunTransport(
            settings.MAILGUN_API_KEY,
            settings.MAILGUN_DOMAIN,
            base_url=settings.MAILGUN_BASE_URL,
            timeout_seconds=settings.TRANSPORT_TIMEOUT_SECONDS,
        )
    raise ValueError(f"Unknown mail provider: {settings.MAIL_PROVIDER}")
