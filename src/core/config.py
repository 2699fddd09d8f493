"""Core configuration dataclasses.

We keep config parsing outside the core, but these dataclasses define the
shape the core expects so adapters and app layers can build safely.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Mapping, Optional


@dataclass(frozen=True)
class BotProfile:
    """Identity details shown by built-in commands."""

    name: str = "Parley"
    owner: str = ""
    timezone: str = "UTC"


@dataclass(frozen=True)
class RouterConfig:
    """Fallback and admin settings for the message router."""

    keyword_replies: Mapping[str, str] = field(default_factory=dict)
    default_hint: str = ""
    # None means "send the hint at most once ever per chat".
    hint_interval_seconds: Optional[float] = 24 * 60 * 60
    hint_cache_size: int = 10_000
    admin_ids: frozenset[str] = frozenset()


@dataclass(frozen=True)
class BackoffConfig:
    """Reconnect delay policy for the connection supervisor."""

    delays: tuple[float, ...] = (3.0, 5.0, 8.0, 13.0, 21.0)
    ceiling: float = 30.0
    jitter: float = 1.0
    flap_grace: float = 10.0
    flap_delay: float = 45.0


@dataclass(frozen=True)
class GroupRules:
    """Greeter settings for one group (or the default entry)."""

    welcome_on: bool = True
    farewell_on: bool = True
    use_about_as_rules: bool = True
    rules: tuple[str, ...] = ()
    link: str = ""
