"""Ports (interfaces) used by the core.

Ports define the minimal contracts for the transport, storage and admin relay
adapters so that the core can be reused with different backends.
"""

from __future__ import annotations

from typing import Optional, Protocol, Sequence

from core.models import IgnoreEntry, InboundMessage


class TransportPort(Protocol):
    """Outbound operations of the messaging session."""

    async def send_text(self, chat_id: str, text: str, reply_to: Optional[InboundMessage] = None) -> None:
        ...

    async def send_image(
        self,
        chat_id: str,
        image: bytes,
        caption: str = "",
        reply_to: Optional[InboundMessage] = None,
    ) -> None:
        ...

    async def send_poll(
        self,
        chat_id: str,
        question: str,
        options: Sequence[str],
        reply_to: Optional[InboundMessage] = None,
    ) -> None:
        ...


class IgnoreStorePort(Protocol):
    """Per-chat mute flags."""

    async def exists(self, chat_id: str) -> bool:
        ...

    async def upsert(self, chat_id: str, added_by: str) -> None:
        ...

    async def delete(self, chat_id: str) -> int:
        ...

    async def list_recent(self, limit: int) -> list[IgnoreEntry]:
        ...


class CredentialStorePort(Protocol):
    """Opaque session credential persistence."""

    def load_credentials(self, name: str) -> Optional[str]:
        ...

    def save_credentials(self, name: str, data: str) -> None:
        ...


class AdminRelayPort(Protocol):
    """Out-of-band administrative channel."""

    async def send_text(self, text: str) -> None:
        ...

    async def send_image(self, image: bytes, caption: str = "") -> None:
        ...
