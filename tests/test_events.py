from __future__ import annotations

import asyncio

from core.events import CONNECTION, MESSAGES, EventBus


def test_events_are_handled_in_order_per_category() -> None:
    seen: list[int] = []

    async def handler(payload: int) -> None:
        await asyncio.sleep(0)
        seen.append(payload)

    async def scenario() -> None:
        bus = EventBus()
        bus.subscribe(MESSAGES, handler)
        bus.start()
        for value in range(5):
            bus.publish(MESSAGES, value)
        await bus.drain()
        await bus.stop()

    asyncio.run(scenario())

    assert seen == [0, 1, 2, 3, 4]


def test_slow_handler_does_not_block_other_categories() -> None:
    release = None
    seen: list[str] = []

    async def slow(payload: str) -> None:
        await release.wait()
        seen.append(payload)

    async def fast(payload: str) -> None:
        seen.append(payload)

    async def scenario() -> None:
        nonlocal release
        release = asyncio.Event()
        bus = EventBus()
        bus.subscribe(MESSAGES, slow)
        bus.subscribe(CONNECTION, fast)
        bus.start()
        bus.publish(MESSAGES, "message")
        bus.publish(CONNECTION, "open")
        for _ in range(5):
            await asyncio.sleep(0)
        assert seen == ["open"]
        release.set()
        await bus.drain()
        await bus.stop()

    asyncio.run(scenario())

    assert seen == ["open", "message"]


def test_handler_errors_do_not_stop_the_consumer() -> None:
    seen: list[int] = []

    async def flaky(payload: int) -> None:
        if payload == 1:
            raise RuntimeError("boom")
        seen.append(payload)

    async def scenario() -> None:
        bus = EventBus()
        bus.subscribe(MESSAGES, flaky)
        bus.start()
        for value in range(3):
            bus.publish(MESSAGES, value)
        await bus.drain()
        await bus.stop()

    asyncio.run(scenario())

    assert seen == [0, 2]


def test_events_published_before_start_are_delivered() -> None:
    seen: list[str] = []

    async def handler(payload: str) -> None:
        seen.append(payload)

    async def scenario() -> None:
        bus = EventBus()
        bus.subscribe(CONNECTION, handler)
        bus.publish(CONNECTION, "early")
        bus.start()
        bus.start()
        await bus.drain()
        await bus.stop()

    asyncio.run(scenario())

    assert seen == ["early"]
