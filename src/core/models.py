"""Core domain models.

These dataclasses are shared across the core and adapters to avoid tight
coupling to any integration-specific types.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional


@dataclass(frozen=True)
class InboundMessage:
    """Minimal inbound message used by the router."""

    chat_id: str
    sender_id: str
    message_id: int
    date: datetime
    text: str
    is_group: bool = False
    is_broadcast: bool = False
    from_self: bool = False
    # Transport-native message, used for quoting replies.
    raw: Any = field(default=None, compare=False, repr=False)


@dataclass(frozen=True)
class MembershipEvent:
    """Members joining or leaving a group chat."""

    chat_id: str
    action: str  # "join" or "leave"
    member_ids: tuple[str, ...]
    member_names: tuple[str, ...]
    chat_title: str = ""
    chat_about: str = ""


@dataclass(frozen=True)
class IgnoreEntry:
    """Persisted mute flag for one chat."""

    chat_id: str
    added_by: str
    created_at: Optional[datetime] = None


class ConnectionPhase(str, enum.Enum):
    CONNECTING = "connecting"
    OPEN = "open"
    CLOSED = "closed"
    LOGGED_OUT = "logged_out"


class DisconnectCause(str, enum.Enum):
    LOGGED_OUT = "logged_out"
    TRANSIENT = "transient"


@dataclass
class ConnectionState:
    """Process-wide connection state, mutated only by the supervisor."""

    phase: ConnectionPhase = ConnectionPhase.CONNECTING
    attempt_count: int = 0
    last_open_at: Optional[float] = None


class ConnectionEventKind(str, enum.Enum):
    CHALLENGE = "challenge"
    OPEN = "open"
    CLOSE = "close"


@dataclass(frozen=True)
class ConnectionEvent:
    """Connection-state transition emitted by the transport session."""

    kind: ConnectionEventKind
    challenge: Optional[str] = None
    error: Optional[BaseException] = None

    @classmethod
    def challenge_issued(cls, challenge: str) -> "ConnectionEvent":
        return cls(ConnectionEventKind.CHALLENGE, challenge=challenge)

    @classmethod
    def opened(cls) -> "ConnectionEvent":
        return cls(ConnectionEventKind.OPEN)

    @classmethod
    def closed(cls, error: Optional[BaseException] = None) -> "ConnectionEvent":
        return cls(ConnectionEventKind.CLOSE, error=error)
