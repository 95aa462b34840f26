"""Telegram Bot API client for push delivery for notifications."""

import logging
from typing import Optional

import httpx

from watchrebel.clients.base import DeliveryResult, INotificationChannel

logger = logging.getLogger(__name__)


class TelegramNotifier(INotificationChannel):
    """Sends HTML messages to a user's Telegram chat."""

    API_URL = "https://api.telegram.org"

    def __init__(self, bot_token: str, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.bot_token = bot_token
        self._transport = transport

    async def send(self, chat_id: str, text: str) -> DeliveryResult:
        url = f"{self.API_URL}/bot{self.bot_token}/sendMessage"
        payload = {
            "chat_id": chat_id,
            "text": text,
            "parse_mode": "HTML",
            "disable_web_page_preview": True,
        }

        try:
            async with httpx.AsyncClient(timeout=10.0, transport=self._transport) as client:
                response = await client.post(url, json=payload)
        except httpx.HTTPError as e:
            logger.error(f"Failed to send Telegram message to {chat_id}: {e}")
            return DeliveryResult(success=False, error=str(e))

        if response.status_code != 200:
            logger.error(f"Telegram API error for {chat_id}: {response.status_code} - {response.text}")
            return DeliveryResult(success=False, error=f"HTTP {response.status_code}")

        message_id = response.json().get("result", {}).get("message_id")
        logger.info(f"Telegram message sent to {chat_id}")
        return DeliveryResult(success=True, delivery_id=str(message_id) if message_id is not None else None)


class NullChannel(INotificationChannel):
    """Used when no bot token is configured: every push is a logged no-op."""

    async def send(self, chat_id: str, text: str) -> DeliveryResult:
        logger.debug(f"Push delivery disabled, dropping message for {chat_id}")
        return DeliveryResult(success=False, error="delivery channel not configured")
