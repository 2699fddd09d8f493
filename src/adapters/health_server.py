"""HTTP health endpoint.

Keeps answering while the Telegram session reconnects or is logged out, so a
hosting platform can tell "process alive" apart from "session open".
"""

from __future__ import annotations

import logging
from typing import Callable, Optional

from aiohttp import web

from core.models import ConnectionState

LOGGER = logging.getLogger(__name__)


class HealthServer:
    """Minimal aiohttp app exposing ``/`` and ``/healthz``."""

    def __init__(
        self,
        state_provider: Callable[[], ConnectionState],
        host: str = "0.0.0.0",
        port: int = 3000,
    ) -> None:
        self._state_provider = state_provider
        self.host = host
        self.port = port
        self._runner: Optional[web.AppRunner] = None

    def build_app(self) -> web.Application:
        app = web.Application()
        app.router.add_get("/", self._handle_root)
        app.router.add_get("/healthz", self._handle_health)
        return app

    async def start(self) -> None:
        self._runner = web.AppRunner(self.build_app())
        await self._runner.setup()
        site = web.TCPSite(self._runner, self.host, self.port)
        await site.start()
        LOGGER.info("HTTP server running on port %s", self.port)

    async def stop(self) -> None:
        if self._runner:
            await self._runner.cleanup()
            self._runner = None

    async def _handle_root(self, request: web.Request) -> web.Response:
        return web.Response(text="Parley bot running")

    async def _handle_health(self, request: web.Request) -> web.Response:
        LOGGER.info("/healthz ping (ua=%s)", request.headers.get("User-Agent", "-"))
        state = self._state_provider()
        return web.json_response(
            {
                "ok": True,
                "phase": state.phase.value,
                "attempts": state.attempt_count,
            }
        )
