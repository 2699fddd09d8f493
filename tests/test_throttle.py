from __future__ import annotations

import pytest

from core.throttle import HintThrottle


def test_interval_throttle() -> None:
    throttle = HintThrottle(interval=60.0)

    assert throttle.allows("a", 0.0)
    throttle.mark("a", 0.0)
    assert not throttle.allows("a", 59.9)
    assert throttle.allows("a", 60.0)
    assert throttle.allows("b", 1.0)


def test_once_ever_throttle() -> None:
    throttle = HintThrottle(interval=None)
    throttle.mark("a", 0.0)

    assert not throttle.allows("a", 10_000_000.0)


def test_oldest_chats_are_evicted() -> None:
    throttle = HintThrottle(interval=None, max_entries=2)
    throttle.mark("a", 0.0)
    throttle.mark("b", 1.0)
    throttle.mark("a", 2.0)
    throttle.mark("c", 3.0)

    assert len(throttle) == 2
    assert throttle.allows("b", 4.0)
    assert not throttle.allows("a", 4.0)
    assert not throttle.allows("c", 4.0)


def test_cache_size_must_be_positive() -> None:
    with pytest.raises(ValueError):
        HintThrottle(interval=None, max_entries=0)
