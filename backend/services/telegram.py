"""Dispatch notifications to a Telegram chat."""
from __future__ import annotations

import logging
import os

import httpx

logger = logging.getLogger(__name__)

TELEGRAM_API = "https://api.telegram.org"
MAX_MESSAGE_LENGTH = 4000


class TelegramNotifier:
    """Sends HTML messages to the dispatch chat. Failures are logged, never raised."""

    @classmethod
    def is_configured(cls) -> bool:
        return bool(os.getenv("TELEGRAM_BOT_TOKEN") and cls._chat_id())

    @staticmethod
    def _chat_id() -> str | None:
        return os.getenv("TELEGRAM_DISPATCH_CHAT_ID") or os.getenv("TELEGRAM_CHAT_ID")

    def __init__(self, transport: httpx.AsyncBaseTransport | None = None):
        self.token = os.getenv("TELEGRAM_BOT_TOKEN")
        self.chat_id = self._chat_id()
        self.transport = transport

    async def send(self, text: str) -> bool:
        if not self.token or not self.chat_id:
            logger.warning("Telegram env vars missing; skipping notify.")
            return False

        try:
            async with httpx.AsyncClient(timeout=10, transport=self.transport) as client:
                resp = await client.post(
                    f"{TELEGRAM_API}/bot{self.token}/sendMessage",
                    json={
                        "chat_id": self.chat_id,
                        "text": text[:MAX_MESSAGE_LENGTH],
                        "parse_mode": "HTML",
                        "disable_web_page_preview": True,
                    },
                )
        except httpx.HTTPError:
            logger.exception("Telegram sendMessage error")
            return False

        if not resp.is_success:
            logger.error("Telegram sendMessage status %s body: %s", resp.status_code, resp.text[:500])
            return False
        logger.info("Telegram sendMessage status: %s", resp.status_code)
        return True
