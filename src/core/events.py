"""In-process event bus.

The transport adapter publishes events; one consumer task per category drains
its queue and runs the subscribed handlers. Events of one category are handled
strictly in delivery order, while a slow handler never blocks other
categories.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import Any, Awaitable, Callable, Optional

LOGGER = logging.getLogger(__name__)

CONNECTION = "connection"
MESSAGES = "messages"
MEMBERSHIP = "membership"

EventHandler = Callable[[Any], Awaitable[None]]


class EventBus:
    """Queue-per-category dispatcher."""

    def __init__(self) -> None:
        self._queues: dict[str, asyncio.Queue] = {}
        self._handlers: dict[str, list[EventHandler]] = {}
        self._tasks: dict[str, asyncio.Task] = {}
        self._pending = 0
        self._idle: Optional[asyncio.Event] = None

    def _queue(self, category: str) -> asyncio.Queue:
        queue = self._queues.get(category)
        if queue is None:
            queue = asyncio.Queue()
            self._queues[category] = queue
        return queue

    def _idle_event(self) -> asyncio.Event:
        if self._idle is None:
            self._idle = asyncio.Event()
            self._idle.set()
        return self._idle

    def subscribe(self, category: str, handler: EventHandler) -> None:
        self._handlers.setdefault(category, []).append(handler)
        self._queue(category)

    def publish(self, category: str, payload: Any) -> None:
        self._pending += 1
        self._idle_event().clear()
        self._queue(category).put_nowait(payload)

    def start(self) -> None:
        """Spawn one consumer per subscribed category (idempotent)."""

        for category in self._handlers:
            task = self._tasks.get(category)
            if task is None or task.done():
                self._tasks[category] = asyncio.create_task(
                    self._consume(category), name=f"bus:{category}"
                )

    async def _consume(self, category: str) -> None:
        queue = self._queue(category)
        while True:
            payload = await queue.get()
            try:
                for handler in self._handlers.get(category, []):
                    try:
                        await handler(payload)
                    except Exception:
                        LOGGER.exception("Unhandled error in %s handler", category)
            finally:
                queue.task_done()
                self._pending -= 1
                if self._pending == 0:
                    self._idle_event().set()

    async def drain(self) -> None:
        """Wait until every published event has been handled."""

        while self._pending:
            await self._idle_event().wait()

    async def stop(self) -> None:
        tasks = list(self._tasks.values())
        self._tasks.clear()
        for task in tasks:
            task.cancel()
        for task in tasks:
            with contextlib.suppress(asyncio.CancelledError):
                await task
