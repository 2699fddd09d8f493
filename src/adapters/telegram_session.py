"""Telegram session adapter.

Owns one Telethon client at a time and turns its lifecycle into connection
events on the bus:

1) connect with the stored session string
2) if not authorized, run QR login and publish every QR as a challenge
3) persist the session string, attach the client to the transport
4) publish ``open`` and watch the connection
5) publish ``close`` with the error that ended it

Telethon's own reconnect loop is disabled; the supervisor decides when
``start`` is called again.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, Optional

from telethon import TelegramClient, errors, events, functions

from adapters.telegram_mapper import build_inbound, build_membership
from adapters.telegram_transport import TelegramTransport
from core.events import CONNECTION, MEMBERSHIP, MESSAGES, EventBus
from core.models import ConnectionEvent
from core.ports import CredentialStorePort
from login import resolve_2fa_password

LOGGER = logging.getLogger(__name__)

CREDENTIALS_NAME = "telegram"

# RPC errors meaning the authorization is gone for good.
LOGGED_OUT_ERRORS: tuple[type[BaseException], ...] = (
    errors.AuthKeyUnregisteredError,
    errors.AuthKeyDuplicatedError,
    errors.SessionRevokedError,
    errors.SessionExpiredError,
    errors.UserDeactivatedError,
    errors.UserDeactivatedBanError,
)


class LoginTimeoutError(RuntimeError):
    """QR login was not completed in time."""


class TelegramSession:
    """Create, watch and tear down the Telethon client."""

    def __init__(
        self,
        client_factory: Callable[[str], TelegramClient],
        credentials: CredentialStorePort,
        transport: TelegramTransport,
        bus: EventBus,
        qr_attempts: int = 5,
        qr_timeout: float = 60.0,
        auth_check_interval: float = 60.0,
    ) -> None:
        self._client_factory = client_factory
        self._credentials = credentials
        self._transport = transport
        self._bus = bus
        self._qr_attempts = qr_attempts
        self._qr_timeout = qr_timeout
        self._auth_check_interval = auth_check_interval
        self._client: Optional[TelegramClient] = None
        self._close_error: Optional[BaseException] = None
        self._tasks: list[asyncio.Task] = []

    async def start(self) -> None:
        """Replace any previous client with a freshly authorized one."""

        await self.close()
        stored = self._credentials.load_credentials(CREDENTIALS_NAME) or ""
        client = self._client_factory(stored)
        self._client = client
        self._close_error = None
        try:
            await client.connect()
            if not await client.is_user_authorized():
                LOGGER.warning("No authorized session found, starting QR login")
                await self._login(client)
            self._save_credentials(client)
        except BaseException:
            await self.close()
            raise

        client.add_event_handler(self._on_message, events.NewMessage(incoming=True))
        client.add_event_handler(self._on_chat_action, events.ChatAction())
        self._transport.attach(client)
        self._bus.publish(CONNECTION, ConnectionEvent.opened())
        self._tasks = [
            asyncio.create_task(self._watch(client), name="session:watch"),
            asyncio.create_task(self._check_auth(client), name="session:auth-check"),
        ]

    async def close(self) -> None:
        """Disconnect the current client without publishing a close event."""

        client, self._client = self._client, None
        tasks, self._tasks = self._tasks, []
        for task in tasks:
            if task is not asyncio.current_task():
                task.cancel()
        if client is None:
            return
        self._transport.detach()
        self._save_credentials(client)
        try:
            await client.disconnect()
        except Exception:
            LOGGER.warning("Error while disconnecting client", exc_info=True)

    async def _login(self, client: TelegramClient) -> None:
        qr = await client.qr_login()
        for attempt in range(1, self._qr_attempts + 1):
            self._bus.publish(CONNECTION, ConnectionEvent.challenge_issued(qr.url))
            try:
                await qr.wait(timeout=self._qr_timeout)
                LOGGER.info("QR login accepted")
                return
            except asyncio.TimeoutError:
                LOGGER.info("Login QR expired (%s/%s)", attempt, self._qr_attempts)
                await qr.recreate()
            except errors.SessionPasswordNeededError:
                await client.sign_in(password=resolve_2fa_password(interactive=False))
                LOGGER.info("2FA password accepted")
                return
        raise LoginTimeoutError(f"QR login not completed after {self._qr_attempts} codes")

    def _save_credentials(self, client: TelegramClient) -> None:
        try:
            data = client.session.save()
            if data:
                self._credentials.save_credentials(CREDENTIALS_NAME, data)
        except Exception:
            LOGGER.exception("Failed to persist session credentials")

    async def _watch(self, client: TelegramClient) -> None:
        error: Optional[BaseException] = None
        try:
            await client.disconnected
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            error = exc
        if client is not self._client:
            # Closed on purpose by close().
            return
        self._client = None
        tasks, self._tasks = self._tasks, []
        for task in tasks:
            if task is not asyncio.current_task():
                task.cancel()
        self._transport.detach()
        self._save_credentials(client)
        self._bus.publish(CONNECTION, ConnectionEvent.closed(self._close_error or error))

    async def _check_auth(self, client: TelegramClient) -> None:
        """Periodically issue a cheap RPC so revoked sessions are noticed."""

        while True:
            await asyncio.sleep(self._auth_check_interval)
            try:
                await client(functions.updates.GetStateRequest())
            except LOGGED_OUT_ERRORS as exc:
                LOGGER.error("Authorization lost: %s", exc)
                self._close_error = exc
                await client.disconnect()
                return
            except ConnectionError as exc:
                LOGGER.warning("Auth check failed: %s", exc)
                self._close_error = exc
                await client.disconnect()
                return
            except errors.RPCError as exc:
                LOGGER.warning("Auth check returned %s", exc)

    async def _on_message(self, event) -> None:
        try:
            self._bus.publish(MESSAGES, [build_inbound(event.message)])
        except Exception:
            LOGGER.exception("Error while mapping message")

    async def _on_chat_action(self, event) -> None:
        try:
            membership = await build_membership(event)
            if membership is not None:
                self._bus.publish(MEMBERSHIP, membership)
        except Exception:
            LOGGER.exception("Error while mapping chat action")
