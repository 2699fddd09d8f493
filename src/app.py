"""Application entry point for the parley gateway."""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
from datetime import datetime
from logging.handlers import RotatingFileHandler
from typing import Optional

from art import tprint

import settings
from adapters.health_server import HealthServer
from adapters.qr_render import print_ascii, render_png
from adapters.sqlite_storage import SQLiteStorage
from adapters.telegram_bot_relay import TelegramBotRelay
from adapters.telegram_session import CREDENTIALS_NAME, LOGGED_OUT_ERRORS, TelegramSession
from adapters.telegram_transport import TelegramTransport
from client import build_client, require_api_credentials
from core.admin import AdminCommands
from core.backoff import BackoffPolicy
from core.events import CONNECTION, MEMBERSHIP, MESSAGES, EventBus
from core.greeter import Greeter
from core.registry import load_package
from core.router import MessageRouter
from core.supervisor import ConnectionSupervisor, DisconnectClassifier
from login import login_and_store

NAME = "PARLEY"
FONT = "tarty-1"
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
LOG_DATEFMT = "%Y-%m-%d %H:%M:%S"

STARTUP_TEXT = "\U0001F680 Parley started. Login QR codes will arrive here."


def _print_banner() -> None:
    tprint(NAME, FONT, space=1)


class _SecretMaskingFormatter(logging.Formatter):
    """Replace secret values (longest first) with ``***`` in every record."""

    def __init__(self, secrets: list[str]) -> None:
        super().__init__(fmt=LOG_FORMAT, datefmt=LOG_DATEFMT)
        self._secrets = sorted({secret for secret in secrets if secret}, key=len, reverse=True)

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        for secret in self._secrets:
            message = message.replace(secret, "***")
        return message


def _log_handlers(config: dict) -> list[logging.Handler]:
    handlers: list[logging.Handler] = []
    if config.get("console", True):
        handlers.append(logging.StreamHandler())
    file_cfg = config.get("file", {})
    if file_cfg.get("enabled", False):
        # Relative paths are anchored at the project root.
        path = os.path.join(settings.PROJECT_ROOT, file_cfg.get("path", "logs/parley.log"))
        os.makedirs(os.path.dirname(path), exist_ok=True)
        handlers.append(
            RotatingFileHandler(
                path,
                maxBytes=int(file_cfg.get("max_bytes", 5 * 1024 * 1024)),
                backupCount=int(file_cfg.get("backup_count", 5)),
                encoding="utf-8",
            )
        )
    return handlers


def _configure_logging() -> None:
    config = settings.LOGGING or {}
    if not config.get("enabled", False):
        return

    level = getattr(logging, str(settings.LOG_LEVEL or config.get("level", "INFO")).upper(), logging.INFO)
    redact = config.get("redact", {})
    secret_names = redact.get("patterns", []) if redact.get("enabled", False) else []
    formatter = _SecretMaskingFormatter([os.getenv(name, "") for name in secret_names])

    handlers = _log_handlers(config)
    if not handlers:
        return
    for handler in handlers:
        handler.setFormatter(formatter)
    logging.basicConfig(level=level, handlers=handlers)
    # Telethon is chatty at INFO during connects.
    logging.getLogger("telethon").setLevel(max(level, logging.WARNING))


def _build_relay() -> Optional[TelegramBotRelay]:
    if settings.BOT_API and settings.ADMIN_CHAT_ID:
        return TelegramBotRelay(bot_token=settings.BOT_API, chat_id=str(settings.ADMIN_CHAT_ID))
    logging.getLogger(__name__).warning(
        "Admin relay not configured (BOT_API/ADMIN_CHAT_ID); login QR will print to the terminal"
    )
    return None


async def _announce_startup(relay: Optional[TelegramBotRelay]) -> None:
    if relay is None:
        return
    logger = logging.getLogger(__name__)
    try:
        await relay.send_text(STARTUP_TEXT)
        logger.info("Sent startup message to admin channel")
    except Exception:
        logger.exception("Failed to send startup message to admin channel")


async def _serve() -> None:
    logger = logging.getLogger(__name__)
    logger.info("Starting parley")

    # Missing API credentials can never be fixed by reconnecting.
    require_api_credentials()

    storage = SQLiteStorage(settings.DB_PATH)
    storage.init_db()

    registry = load_package("commands")
    logger.info("%s command tokens are loaded", len(registry))

    bus = EventBus()
    transport = TelegramTransport()
    relay = _build_relay()

    router = MessageRouter(
        registry=registry,
        transport=transport,
        ignore_store=storage,
        config=settings.ROUTER_CONFIG,
        profile=settings.BOT_PROFILE,
        admin=AdminCommands(storage, settings.ROUTER_CONFIG.admin_ids, resolve=transport.resolve_chat_id),
        requeue=lambda rest: bus.publish(MESSAGES, rest),
    )
    greeter = Greeter(transport, settings.GROUP_RULES)
    session = TelegramSession(
        client_factory=build_client,
        credentials=storage,
        transport=transport,
        bus=bus,
        qr_attempts=settings.QR_ATTEMPTS,
        qr_timeout=settings.QR_TIMEOUT,
        auth_check_interval=settings.AUTH_CHECK_INTERVAL,
    )

    async def notify_self() -> None:
        stamp = datetime.now().astimezone().strftime("%Y-%m-%d %H:%M:%S %Z")
        await transport.send_text("me", f"{settings.SELF_MESSAGE}\n\nServer time: {stamp}".strip())

    supervisor = ConnectionSupervisor(
        start_session=session.start,
        backoff=BackoffPolicy(settings.BACKOFF_CONFIG),
        classify=DisconnectClassifier(LOGGED_OUT_ERRORS),
        relay=relay,
        render_challenge=render_png,
        print_challenge=print_ascii,
        on_open=[notify_self] if settings.NOTIFY_SELF_ON_OPEN else [],
    )

    bus.subscribe(CONNECTION, supervisor.handle)
    bus.subscribe(MESSAGES, router.handle_batch)
    bus.subscribe(MEMBERSHIP, greeter.handle)

    health = HealthServer(lambda: supervisor.state, port=settings.HTTP_PORT)
    await health.start()
    bus.start()
    await _announce_startup(relay)

    try:
        await supervisor.start()
        # The supervisor and bus run in background tasks from here on.
        await asyncio.Event().wait()
    finally:
        await supervisor.stop()
        await session.close()
        await bus.stop()
        await health.stop()
        logger.info("Parley stopped")


def _run() -> None:
    _print_banner()
    _configure_logging()
    try:
        asyncio.run(_serve())
    except KeyboardInterrupt:
        pass


def _login(reset: bool) -> None:
    _print_banner()
    _configure_logging()
    storage = SQLiteStorage(settings.DB_PATH)
    storage.init_db()
    if reset:
        storage.delete_credentials(CREDENTIALS_NAME)
    stored = storage.load_credentials(CREDENTIALS_NAME) or ""
    client = build_client(stored)
    display = asyncio.run(login_and_store(client, storage, CREDENTIALS_NAME))
    print(f"Session stored for {display}.")


def main(argv: Optional[list[str]] = None) -> None:
    parser = argparse.ArgumentParser(prog="parley")
    subparsers = parser.add_subparsers(dest="command")

    subparsers.add_parser("run", help="Start the gateway")
    login_parser = subparsers.add_parser("login", help="Authorize a session from this terminal and store it")
    login_parser.add_argument("--reset", action="store_true", help="Forget the stored session first")

    args = parser.parse_args(argv)
    if args.command == "login":
        _login(args.reset)
        return
    _run()


if __name__ == "__main__":
    main()
