"""Telegram transport adapter.

Implements the core TransportPort on top of whichever Telethon client the
session adapter currently has attached. The transport object itself outlives
reconnects, so the router and commands can hold on to it.
"""

from __future__ import annotations

import io
import random
from typing import Optional, Sequence, Union

from telethon import TelegramClient
from telethon.tl.types import InputMediaPoll, Poll, PollAnswer, TextWithEntities

from core.models import InboundMessage

PARSE_MODE = "md"


def peer_of(chat_id: str) -> Union[int, str]:
    """Numeric chat ids become ints; usernames and "me" stay strings."""

    try:
        return int(chat_id)
    except ValueError:
        return chat_id


def _reply_id(reply_to: Optional[InboundMessage]) -> Optional[int]:
    return reply_to.message_id if reply_to is not None else None


class SessionUnavailableError(RuntimeError):
    """Raised when sending while no session is attached."""


class TelegramTransport:
    """TransportPort backed by the active Telethon client."""

    def __init__(self) -> None:
        self._client: Optional[TelegramClient] = None

    def attach(self, client: TelegramClient) -> None:
        self._client = client

    def detach(self) -> None:
        self._client = None

    @property
    def client(self) -> TelegramClient:
        if self._client is None:
            raise SessionUnavailableError("No active Telegram session")
        return self._client

    async def send_text(self, chat_id: str, text: str, reply_to: Optional[InboundMessage] = None) -> None:
        await self.client.send_message(
            peer_of(chat_id),
            text,
            reply_to=_reply_id(reply_to),
            parse_mode=PARSE_MODE,
            link_preview=False,
        )

    async def send_image(
        self,
        chat_id: str,
        image: bytes,
        caption: str = "",
        reply_to: Optional[InboundMessage] = None,
    ) -> None:
        handle = io.BytesIO(image)
        # Telethon infers the upload type from the file name.
        handle.name = "image.jpg"
        await self.client.send_file(
            peer_of(chat_id),
            handle,
            caption=caption,
            reply_to=_reply_id(reply_to),
            parse_mode=PARSE_MODE,
        )

    async def send_poll(
        self,
        chat_id: str,
        question: str,
        options: Sequence[str],
        reply_to: Optional[InboundMessage] = None,
    ) -> None:
        poll = Poll(
            id=random.getrandbits(62),
            hash=0,
            question=TextWithEntities(text=question, entities=[]),
            answers=[
                PollAnswer(text=TextWithEntities(text=option, entities=[]), option=bytes([index]))
                for index, option in enumerate(options)
            ],
        )
        await self.client.send_message(
            peer_of(chat_id),
            file=InputMediaPoll(poll=poll),
            reply_to=_reply_id(reply_to),
        )

    async def resolve_chat_id(self, username: str) -> str:
        """Resolve ``@username`` to the marked chat id used on inbound messages."""

        return str(await self.client.get_peer_id(username))
