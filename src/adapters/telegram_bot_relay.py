"""Telegram Bot API admin relay adapter.

Delivers login QR codes and operational notices to an administrator chat via
a separate bot, so they still arrive while the user session is down.
"""

from __future__ import annotations

import logging

import aiohttp

LOGGER = logging.getLogger(__name__)

API_BASE = "https://api.telegram.org"


class AdminRelayError(RuntimeError):
    """Bot API rejected a request."""


class TelegramBotRelay:
    """AdminRelayPort adapter that talks to the Telegram Bot API."""

    def __init__(self, bot_token: str, chat_id: str, timeout: float = 15.0) -> None:
        self._bot_token = bot_token
        self._chat_id = chat_id
        self._timeout = aiohttp.ClientTimeout(total=timeout)

    def _endpoint(self, method: str) -> str:
        # The Bot API endpoint is deterministic and derived from the token.
        return f"{API_BASE}/bot{self._bot_token}/{method}"

    async def _post(self, method: str, **kwargs) -> None:
        async with aiohttp.ClientSession(timeout=self._timeout) as http:
            async with http.post(self._endpoint(method), **kwargs) as resp:
                if resp.status >= 300:
                    body = await resp.text()
                    raise AdminRelayError(f"Bot API error {resp.status}: {body[:300]}")

    async def send_text(self, text: str) -> None:
        payload = {
            "chat_id": self._chat_id,
            "text": text,
            "disable_web_page_preview": True,
        }
        await self._post("sendMessage", json=payload)

    async def send_image(self, image: bytes, caption: str = "") -> None:
        form = aiohttp.FormData()
        form.add_field("chat_id", self._chat_id)
        if caption:
            form.add_field("caption", caption)
        form.add_field("photo", image, filename="qr.png", content_type="image/png")
        await self._post("sendPhoto", data=form)
