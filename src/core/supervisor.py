"""Connection supervisor (core domain).

The supervisor owns the session lifecycle. It consumes the connection events
published by the transport adapter:

- ``challenge``: a login QR was issued; render it and relay it to the admin
  channel (or print it when no relay is configured)
- ``open``: reset the attempt counter and remember when the session opened
- ``close``: classify the cause. A logged-out session is terminal and needs a
  fresh login; anything else schedules a new session after a backoff delay

The reconnect wait runs in its own task so the event loop keeps serving
messages and health checks while the supervisor sleeps.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import time
from typing import Awaitable, Callable, Iterable, Optional

from core.backoff import BackoffPolicy
from core.models import (
    ConnectionEvent,
    ConnectionEventKind,
    ConnectionPhase,
    ConnectionState,
    DisconnectCause,
)
from core.ports import AdminRelayPort

LOGGER = logging.getLogger(__name__)

CHALLENGE_CAPTION = "Scan this code in Telegram (Settings > Devices > Link Desktop Device) to log in."
LOGGED_OUT_TEXT = "Session logged out. Run `parley login` to authorize again."

OpenHook = Callable[[], Awaitable[None]]


class DisconnectClassifier:
    """Map the error that ended a session to a disconnect cause."""

    def __init__(self, logged_out_errors: Iterable[type[BaseException]] = ()) -> None:
        self._logged_out_errors = tuple(logged_out_errors)

    def __call__(self, error: Optional[BaseException]) -> DisconnectCause:
        if self._logged_out_errors and isinstance(error, self._logged_out_errors):
            return DisconnectCause.LOGGED_OUT
        return DisconnectCause.TRANSIENT


class ConnectionSupervisor:
    """Retry/backoff state machine around the transport session."""

    def __init__(
        self,
        start_session: Callable[[], Awaitable[None]],
        backoff: BackoffPolicy,
        classify: Optional[Callable[[Optional[BaseException]], DisconnectCause]] = None,
        relay: Optional[AdminRelayPort] = None,
        render_challenge: Optional[Callable[[str], bytes]] = None,
        print_challenge: Optional[Callable[[str], None]] = None,
        on_open: Iterable[OpenHook] = (),
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._start_session = start_session
        self._backoff = backoff
        self._classify = classify or DisconnectClassifier()
        self._relay = relay
        self._render_challenge = render_challenge
        self._print_challenge = print_challenge
        self._on_open = list(on_open)
        self._clock = clock
        self._sleep = sleep
        self._reconnect_task: Optional[asyncio.Task] = None
        self._stopped = False
        self.state = ConnectionState()

    @property
    def pending_reconnect(self) -> Optional[asyncio.Task]:
        return self._reconnect_task

    async def start(self) -> None:
        """Create the first session."""

        self._stopped = False
        await self._create_session()

    async def stop(self) -> None:
        self._stopped = True
        task, self._reconnect_task = self._reconnect_task, None
        if task is not None and task is not asyncio.current_task():
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task

    async def handle(self, event: ConnectionEvent) -> None:
        """Event-bus entry point; never raises."""

        try:
            if event.kind is ConnectionEventKind.CHALLENGE:
                await self.on_challenge(event.challenge or "")
            elif event.kind is ConnectionEventKind.OPEN:
                await self.on_open()
            elif event.kind is ConnectionEventKind.CLOSE:
                await self.on_close(event.error)
        except Exception:
            LOGGER.exception("Connection handler error (event=%s)", event.kind.value)

    async def on_challenge(self, challenge: str) -> None:
        LOGGER.info("Login challenge issued")
        try:
            if self._relay is not None and self._render_challenge is not None:
                image = self._render_challenge(challenge)
                await self._relay.send_image(image, CHALLENGE_CAPTION)
                LOGGER.info("Login QR sent to admin channel")
            elif self._print_challenge is not None:
                self._print_challenge(challenge)
        except Exception:
            LOGGER.exception("Failed to relay login challenge")

    async def on_open(self) -> None:
        self.state.phase = ConnectionPhase.OPEN
        self.state.attempt_count = 0
        self.state.last_open_at = self._clock()
        LOGGER.info("Connection open")
        for hook in self._on_open:
            try:
                await hook()
            except Exception:
                LOGGER.exception("Open hook %s failed", getattr(hook, "__name__", hook))

    async def on_close(self, error: Optional[BaseException]) -> None:
        if self._stopped:
            return
        if self._reconnect_task is not None and not self._reconnect_task.done():
            LOGGER.debug("Reconnect already scheduled, ignoring close")
            return
        if self.state.phase is ConnectionPhase.LOGGED_OUT:
            return

        try:
            cause = self._classify(error)
        except Exception:
            LOGGER.exception("Failed to classify disconnect, treating as transient")
            cause = DisconnectCause.TRANSIENT

        if cause is DisconnectCause.LOGGED_OUT:
            self.state.phase = ConnectionPhase.LOGGED_OUT
            LOGGER.error("Logged out (%r). Please authorize again.", error)
            await self._notify_admin(LOGGED_OUT_TEXT)
            return

        closed_at = self._clock()
        flap = self._backoff.is_flap(closed_at, self.state.last_open_at)
        if flap:
            delay = self._backoff.flap_delay()
        else:
            self.state.attempt_count += 1
            delay = self._backoff.delay(self.state.attempt_count)
        self.state.phase = ConnectionPhase.CLOSED

        LOGGER.warning(
            "Connection closed (%r). flap=%s attempt=%s, reconnecting in %.1fs",
            error,
            flap,
            self.state.attempt_count,
            delay,
        )
        self._reconnect_task = asyncio.create_task(self._reconnect_after(delay), name="reconnect")

    async def _reconnect_after(self, delay: float) -> None:
        await self._sleep(delay)
        self._reconnect_task = None
        if self._stopped:
            return
        await self._create_session()

    async def _create_session(self) -> None:
        self.state.phase = ConnectionPhase.CONNECTING
        LOGGER.info("Starting session")
        try:
            await self._start_session()
        except Exception as exc:
            LOGGER.exception("Session start failed")
            await self.on_close(exc)

    async def _notify_admin(self, text: str) -> None:
        if self._relay is None:
            return
        try:
            await self._relay.send_text(text)
        except Exception:
            LOGGER.exception("Failed to notify admin channel")
