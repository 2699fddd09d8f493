"""Reconnect delay policy (core domain)."""

from __future__ import annotations

import random
from typing import Callable, Optional

from core.config import BackoffConfig


class BackoffPolicy:
    """Table-driven reconnect delays with jitter and flap detection.

    Attempt ``n`` (1-based, counted since the last successful open) waits
    ``delays[n - 1]``, saturating at ``ceiling``. A close that arrives less
    than ``flap_grace`` seconds after the last open is a flap and waits the
    fixed ``flap_delay`` instead.
    """

    def __init__(
        self,
        config: BackoffConfig,
        uniform: Callable[[float, float], float] = random.uniform,
    ) -> None:
        if not config.delays:
            raise ValueError("backoff delays must not be empty")
        if any(later < earlier for earlier, later in zip(config.delays, config.delays[1:])):
            raise ValueError("backoff delays must be non-decreasing")
        if config.jitter < 0:
            raise ValueError("backoff jitter must not be negative")
        self._config = config
        self._uniform = uniform

    @property
    def config(self) -> BackoffConfig:
        return self._config

    def base_delay(self, attempt: int) -> float:
        """Table delay for an attempt, without jitter."""

        index = max(attempt, 1) - 1
        delays = self._config.delays
        delay = delays[index] if index < len(delays) else self._config.ceiling
        return min(delay, self._config.ceiling)

    def delay(self, attempt: int) -> float:
        return self.base_delay(attempt) + self._uniform(0.0, self._config.jitter)

    def is_flap(self, closed_at: float, last_open_at: Optional[float]) -> bool:
        if last_open_at is None:
            return False
        return closed_at - last_open_at < self._config.flap_grace

    def flap_delay(self) -> float:
        jitter = self._config.jitter
        return max(0.0, self._config.flap_delay + self._uniform(-jitter, jitter))
