"""
Outbound notification providers (Telegram Bot API and an HTTP email API).

Each send is a single HTTP call on its own AsyncClient with a bounded
timeout. Providers report the HTTP outcome; transport errors (including
timeouts) propagate as httpx exceptions for the caller to classify.
"""
import logging
from dataclasses import dataclass
from typing import Optional

import httpx

from subtracker.core.config import DeliverySettings

logger = logging.getLogger(__name__)

MAX_ERROR_BODY_CHARS = 500


class ProviderNotConfigured(Exception):
    """Raised when a provider is asked to send without its credentials."""


@dataclass
class ProviderResult:
    ok: bool
    status: int
    body: str

    def describe(self, channel: str) -> str:
        return f"{channel}_{self.status}: {self.body[:MAX_ERROR_BODY_CHARS]}"


class TelegramProvider:
    """Sends plain-text messages through the Bot API `sendMessage` method."""

    def __init__(
        self,
        bot_token: str,
        api_base: str = "https://api.telegram.org",
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.bot_token = bot_token
        self.api_base = api_base.rstrip("/")
        self.timeout = timeout
        self.transport = transport

    async def send(self, chat_id: str, text: str) -> ProviderResult:
        if not self.bot_token:
            raise ProviderNotConfigured("telegram bot token not configured")

        url = f"{self.api_base}/bot{self.bot_token}/sendMessage"
        body = {
            "chat_id": str(chat_id),
            "text": text,
            "disable_web_page_preview": True,
        }

        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            response = await client.post(url, json=body)

        return ProviderResult(ok=response.is_success, status=response.status_code, body=response.text)


class EmailProvider:
    """
    Sends mail through a JSON HTTP API (`{from, to, subject, text}` with a
    bearer key). Without an API URL it acts as a mock that logs and succeeds.
    """

    def __init__(
        self,
        api_url: str,
        api_key: str = "",
        sender: str = "reminders@subtracker.local",
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_url = api_url
        self.api_key = api_key
        self.sender = sender
        self.timeout = timeout
        self.transport = transport

    @property
    def is_mock(self) -> bool:
        return not self.api_url

    async def send(self, to: str, subject: str, text: str) -> ProviderResult:
        if self.is_mock:
            logger.info(f"EMAIL_API_URL not set, mock email to={to} subject={subject!r}")
            return ProviderResult(ok=True, status=200, body="mock")

        headers = {}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"

        body = {"from": self.sender, "to": to, "subject": subject, "text": text}

        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            response = await client.post(self.api_url, json=body, headers=headers)

        return ProviderResult(ok=response.is_success, status=response.status_code, body=response.text)


def build_providers(settings: DeliverySettings, transport: Optional[httpx.AsyncBaseTransport] = None):
    """Create the (telegram, email) provider pair from delivery settings."""
    telegram = TelegramProvider(
        bot_token=settings.telegram_bot_token,
        api_base=settings.telegram_api_base,
        timeout=settings.timeout_seconds,
        transport=transport,
    )
    email = EmailProvider(
        api_url=settings.email_api_url,
        api_key=settings.email_api_key,
        sender=settings.email_from,
        timeout=settings.timeout_seconds,
        transport=transport,
    )
    return telegram, email
