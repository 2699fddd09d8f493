"""Per-chat throttle for the default onboarding hint."""

from __future__ import annotations

from collections import OrderedDict
from typing import Optional


class HintThrottle:
    """Remember when each chat last received the default hint.

    With ``interval`` set, a chat may receive the hint again once the interval
    has elapsed. With ``interval=None`` a chat receives it at most once for
    the lifetime of the process. The oldest chats are evicted once
    ``max_entries`` is exceeded, so an evicted chat may see the hint early.
    """

    def __init__(self, interval: Optional[float], max_entries: int = 10_000) -> None:
        if max_entries < 1:
            raise ValueError("max_entries must be positive")
        self._interval = interval
        self._max_entries = max_entries
        self._last_sent: OrderedDict[str, float] = OrderedDict()

    def allows(self, chat_id: str, now: float) -> bool:
        last = self._last_sent.get(chat_id)
        if last is None:
            return True
        if self._interval is None:
            return False
        return now - last >= self._interval

    def mark(self, chat_id: str, now: float) -> None:
        self._last_sent[chat_id] = now
        self._last_sent.move_to_end(chat_id)
        while len(self._last_sent) > self._max_entries:
            self._last_sent.popitem(last=False)

    def __len__(self) -> int:
        return len(self._last_sent)
