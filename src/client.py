"""Telegram client factory for parley.

Telethon's built-in reconnect loop is turned off: the connection supervisor
owns retries, so a dropped connection must surface as a disconnect instead of
being retried silently inside the library.
"""

from __future__ import annotations

import logging
import os

from dotenv import load_dotenv
from telethon import TelegramClient
from telethon.sessions import StringSession


def require_api_credentials() -> tuple[int, str]:
    """Return API_ID/API_HASH from the environment or fail fast."""

    load_dotenv()

    api_id = os.getenv("API_ID")
    api_hash = os.getenv("API_HASH")

    # Fail fast on missing credentials to avoid an ambiguous login prompt.
    if not api_id or not api_hash:
        raise RuntimeError("Missing API_ID or API_HASH in environment")
    try:
        return int(api_id), api_hash
    except ValueError as exc:
        raise RuntimeError("API_ID must be numeric") from exc


def build_client(session: str = "") -> TelegramClient:
    """Create a Telethon client from environment variables.

    We read API_ID/API_HASH via python-dotenv to keep secrets out of the repo.
    The session is an in-memory StringSession; persistence goes through the
    storage adapter rather than a local .session file.
    """

    api_id, api_hash = require_api_credentials()

    logging.getLogger(__name__).info("Initializing Telegram client")

    return TelegramClient(
        StringSession(session or None),
        api_id,
        api_hash,
        auto_reconnect=False,
        connection_retries=1,
        device_model="Parley",
    )
