from __future__ import annotations

import asyncio
from typing import Optional

from core.backoff import BackoffPolicy
from core.config import BackoffConfig
from core.models import ConnectionEvent, ConnectionPhase, DisconnectCause
from core.supervisor import (
    CHALLENGE_CAPTION,
    LOGGED_OUT_TEXT,
    ConnectionSupervisor,
    DisconnectClassifier,
)


class LoggedOutError(Exception):
    pass


class FakeClock:
    def __init__(self, now: float = 100.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


class FakeSleep:
    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)
        await asyncio.sleep(0)


class FakeRelay:
    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.texts: list[str] = []
        self.images: list[tuple[bytes, str]] = []

    async def send_text(self, text: str) -> None:
        if self.fail:
            raise ConnectionError("relay down")
        self.texts.append(text)

    async def send_image(self, image: bytes, caption: str = "") -> None:
        if self.fail:
            raise ConnectionError("relay down")
        self.images.append((image, caption))


class FlakySession:
    """start_session stand-in failing the first ``failures`` calls."""

    def __init__(self, failures: int = 0, clock: Optional[FakeClock] = None, step: float = 0.0) -> None:
        self.failures = failures
        self.calls = 0
        self.clock = clock
        self.step = step

    async def __call__(self) -> None:
        self.calls += 1
        if self.clock is not None:
            self.clock.now += self.step
        if self.calls <= self.failures:
            raise ConnectionError(f"connect failed #{self.calls}")


def _supervisor(session=None, clock=None, sleep=None, relay=None, **kwargs) -> ConnectionSupervisor:
    return ConnectionSupervisor(
        start_session=session or FlakySession(),
        backoff=BackoffPolicy(BackoffConfig(), uniform=lambda low, high: 0.0),
        classify=DisconnectClassifier([LoggedOutError]),
        relay=relay,
        clock=clock or FakeClock(),
        sleep=sleep or FakeSleep(),
        **kwargs,
    )


async def _settle(supervisor: ConnectionSupervisor) -> None:
    while supervisor.pending_reconnect is not None:
        await supervisor.pending_reconnect


def test_classifier_only_flags_configured_errors() -> None:
    classify = DisconnectClassifier([LoggedOutError])

    assert classify(LoggedOutError()) is DisconnectCause.LOGGED_OUT
    assert classify(ConnectionError()) is DisconnectCause.TRANSIENT
    assert classify(None) is DisconnectCause.TRANSIENT
    assert DisconnectClassifier()(LoggedOutError()) is DisconnectCause.TRANSIENT


def test_open_resets_attempts_and_records_time() -> None:
    clock = FakeClock(250.0)
    supervisor = _supervisor(clock=clock)
    supervisor.state.attempt_count = 4

    asyncio.run(supervisor.on_open())

    assert supervisor.state.phase is ConnectionPhase.OPEN
    assert supervisor.state.attempt_count == 0
    assert supervisor.state.last_open_at == 250.0


def test_repeated_transient_failures_back_off_through_the_table() -> None:
    clock = FakeClock()
    sleep = FakeSleep()
    session = FlakySession(failures=3, clock=clock, step=20.0)
    supervisor = _supervisor(session=session, clock=clock, sleep=sleep)

    async def scenario() -> None:
        await supervisor.start()
        await _settle(supervisor)

    asyncio.run(scenario())

    assert session.calls == 4
    assert sleep.delays == [3.0, 5.0, 8.0]
    assert supervisor.state.attempt_count == 3
    assert supervisor.state.phase is ConnectionPhase.CONNECTING


def test_attempts_saturate_at_ceiling() -> None:
    sleep = FakeSleep()
    supervisor = _supervisor(session=FlakySession(failures=7), sleep=sleep)

    async def scenario() -> None:
        await supervisor.start()
        await _settle(supervisor)

    asyncio.run(scenario())

    assert sleep.delays == [3.0, 5.0, 8.0, 13.0, 21.0, 30.0, 30.0]
    assert sleep.delays == sorted(sleep.delays)


def test_attempts_restart_after_successful_open() -> None:
    clock = FakeClock()
    sleep = FakeSleep()
    supervisor = _supervisor(clock=clock, sleep=sleep)

    async def scenario() -> None:
        supervisor.state.attempt_count = 3
        await supervisor.on_open()
        clock.now += 60
        await supervisor.on_close(ConnectionError("dropped"))
        await _settle(supervisor)

    asyncio.run(scenario())

    assert sleep.delays == [3.0]
    assert supervisor.state.attempt_count == 1


def test_flap_uses_flap_delay_without_counting_an_attempt() -> None:
    clock = FakeClock()
    sleep = FakeSleep()
    supervisor = _supervisor(clock=clock, sleep=sleep)

    async def scenario() -> None:
        await supervisor.on_open()
        clock.now += 5
        await supervisor.on_close(ConnectionError("dropped right away"))
        await _settle(supervisor)

    asyncio.run(scenario())

    assert sleep.delays == [45.0]
    assert supervisor.state.attempt_count == 0


def test_close_at_exactly_the_grace_period_is_not_a_flap() -> None:
    clock = FakeClock()
    sleep = FakeSleep()
    supervisor = _supervisor(clock=clock, sleep=sleep)

    async def scenario() -> None:
        await supervisor.on_open()
        clock.now += 10
        await supervisor.on_close(ConnectionError("dropped"))
        await _settle(supervisor)

    asyncio.run(scenario())

    assert sleep.delays == [3.0]


def test_logged_out_is_terminal_and_notifies_admin() -> None:
    session = FlakySession()
    relay = FakeRelay()
    supervisor = _supervisor(session=session, relay=relay)

    async def scenario() -> None:
        await supervisor.on_open()
        await supervisor.on_close(LoggedOutError("revoked"))
        await supervisor.on_close(ConnectionError("late close"))

    asyncio.run(scenario())

    assert supervisor.state.phase is ConnectionPhase.LOGGED_OUT
    assert supervisor.state.attempt_count == 0
    assert supervisor.pending_reconnect is None
    assert session.calls == 0
    assert relay.texts == [LOGGED_OUT_TEXT]


def test_logged_out_during_start_does_not_retry() -> None:
    async def start_session() -> None:
        raise LoggedOutError("auth key unregistered")

    supervisor = _supervisor(session=start_session)

    asyncio.run(supervisor.start())

    assert supervisor.state.phase is ConnectionPhase.LOGGED_OUT
    assert supervisor.pending_reconnect is None


def test_second_close_while_reconnect_pending_is_ignored() -> None:
    sleep = FakeSleep()
    session = FlakySession()
    supervisor = _supervisor(session=session, sleep=sleep)

    async def scenario() -> None:
        await supervisor.on_close(ConnectionError("first"))
        await supervisor.on_close(ConnectionError("second"))
        await _settle(supervisor)

    asyncio.run(scenario())

    assert sleep.delays == [3.0]
    assert session.calls == 1


def test_stop_cancels_pending_reconnect() -> None:
    async def never_wake(delay: float) -> None:
        await asyncio.Event().wait()

    session = FlakySession()
    supervisor = _supervisor(session=session, sleep=never_wake)

    async def scenario() -> None:
        await supervisor.on_close(ConnectionError("dropped"))
        assert supervisor.pending_reconnect is not None
        await supervisor.stop()
        await supervisor.on_close(ConnectionError("after stop"))

    asyncio.run(scenario())

    assert supervisor.pending_reconnect is None
    assert session.calls == 0


def test_challenge_is_rendered_and_relayed() -> None:
    relay = FakeRelay()
    rendered = []

    def render(data: str) -> bytes:
        rendered.append(data)
        return b"png"

    supervisor = _supervisor(relay=relay, render_challenge=render)

    asyncio.run(supervisor.handle(ConnectionEvent.challenge_issued("tg://login?token=abc")))

    assert rendered == ["tg://login?token=abc"]
    assert relay.images == [(b"png", CHALLENGE_CAPTION)]


def test_challenge_prints_when_no_relay() -> None:
    printed = []
    supervisor = _supervisor(render_challenge=lambda data: b"", print_challenge=printed.append)

    asyncio.run(supervisor.on_challenge("tg://login?token=abc"))

    assert printed == ["tg://login?token=abc"]


def test_relay_failure_is_swallowed() -> None:
    supervisor = _supervisor(relay=FakeRelay(fail=True), render_challenge=lambda data: b"png")

    async def scenario() -> None:
        await supervisor.on_challenge("tg://login?token=abc")
        await supervisor.on_close(LoggedOutError())

    asyncio.run(scenario())

    assert supervisor.state.phase is ConnectionPhase.LOGGED_OUT


def test_open_hooks_run_and_failures_are_isolated() -> None:
    calls = []

    async def broken() -> None:
        calls.append("broken")
        raise RuntimeError("hook failed")

    async def notify() -> None:
        calls.append("notify")

    supervisor = _supervisor(on_open=[broken, notify])

    asyncio.run(supervisor.handle(ConnectionEvent.opened()))

    assert calls == ["broken", "notify"]
    assert supervisor.state.phase is ConnectionPhase.OPEN


def test_classifier_failure_counts_as_transient() -> None:
    def broken_classifier(error):
        raise RuntimeError("classifier bug")

    sleep = FakeSleep()
    supervisor = ConnectionSupervisor(
        start_session=FlakySession(),
        backoff=BackoffPolicy(BackoffConfig(), uniform=lambda low, high: 0.0),
        classify=broken_classifier,
        clock=FakeClock(),
        sleep=sleep,
    )

    async def scenario() -> None:
        await supervisor.handle(ConnectionEvent.closed(ConnectionError("dropped")))
        await _settle(supervisor)

    asyncio.run(scenario())

    assert sleep.delays == [3.0]
