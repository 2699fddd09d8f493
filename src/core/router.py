"""Inbound message router (core domain).

Every message goes through the same ordered steps:
1) Drop broadcast posts and our own outgoing messages
2) Drop messages without text
3) Admin sub-commands (before the ignore policy, so muted chats stay manageable)
4) Ignore policy: muted chats get no reply of any kind
5) Registered commands, looked up by the first whitespace-delimited token
6) Exact keyword replies
7) A throttled onboarding hint, private chats only

Nothing raised while handling a message escapes ``handle``; failures are logged
with the chat id and the router keeps serving other chats.
"""

from __future__ import annotations

import logging
import time
from typing import Callable, Iterable, Optional, Sequence

from core.admin import AdminCommands
from core.config import BotProfile, RouterConfig
from core.models import InboundMessage
from core.ports import IgnoreStorePort, TransportPort
from core.registry import CommandContext, CommandDefinition, CommandRegistry
from core.throttle import HintThrottle

LOGGER = logging.getLogger(__name__)


def first_text(fields: Iterable[Optional[str]]) -> str:
    """Return the first non-empty text field, stripped, in priority order."""

    for value in fields:
        if isinstance(value, str) and value.strip():
            return value.strip()
    return ""


class MessageRouter:
    """Resolve inbound messages to commands, keyword replies or the hint."""

    def __init__(
        self,
        registry: CommandRegistry,
        transport: TransportPort,
        ignore_store: IgnoreStorePort,
        config: RouterConfig,
        profile: Optional[BotProfile] = None,
        admin: Optional[AdminCommands] = None,
        requeue: Optional[Callable[[list[InboundMessage]], None]] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._registry = registry
        self._transport = transport
        self._ignore_store = ignore_store
        self._profile = profile or BotProfile()
        self._admin = admin
        self._requeue = requeue
        self._clock = clock
        self._keyword_replies = {
            key.strip().lower(): value for key, value in config.keyword_replies.items() if key.strip()
        }
        self._default_hint = config.default_hint
        self._throttle = HintThrottle(config.hint_interval_seconds, config.hint_cache_size)

    async def handle_batch(self, batch: Sequence[InboundMessage]) -> None:
        """Handle the first message of a batch and queue the rest."""

        if not batch:
            return
        if len(batch) > 1 and self._requeue is not None:
            self._requeue(list(batch[1:]))
        await self.handle(batch[0])

    async def handle(self, message: InboundMessage) -> None:
        try:
            await self._route(message)
        except Exception:
            LOGGER.exception("Message handler error (chat=%s)", message.chat_id)

    async def _route(self, message: InboundMessage) -> None:
        if message.is_broadcast or message.from_self:
            return

        text = (message.text or "").strip()
        if not text:
            return

        async def reply(reply_text: str) -> None:
            await self._send(message, reply_text)

        if self._admin is not None and await self._admin.handle(message.sender_id, text, reply):
            return

        if await self._ignore_store.exists(message.chat_id):
            return

        first_word, *arguments = text.split()
        definition = self._registry.resolve(first_word)
        if definition is not None:
            await self._invoke(definition, message, arguments)
            return

        lowered = text.lower()
        keyword_reply = self._keyword_replies.get(lowered)
        if keyword_reply and lowered not in self._registry:
            await self._send(message, keyword_reply)
            return

        if message.is_group or not self._default_hint:
            return
        now = self._clock()
        if self._throttle.allows(message.chat_id, now):
            if await self._send(message, self._default_hint):
                self._throttle.mark(message.chat_id, now)

    async def _invoke(
        self,
        definition: CommandDefinition,
        message: InboundMessage,
        arguments: list[str],
    ) -> None:
        context = CommandContext(
            transport=self._transport,
            message=message,
            arguments=arguments,
            chat_id=message.chat_id,
            sender_id=message.sender_id,
            is_group=message.is_group,
            logger=logging.getLogger(f"commands.{definition.name.lstrip('!') or 'unnamed'}"),
            profile=self._profile,
            registry=self._registry,
        )
        try:
            await definition.handler(context)
        except Exception:
            LOGGER.exception("Command %s failed (chat=%s)", definition.name, message.chat_id)

    async def _send(self, message: InboundMessage, text: str) -> bool:
        try:
            await self._transport.send_text(message.chat_id, text, reply_to=message)
        except Exception:
            LOGGER.exception("Failed to send reply (chat=%s)", message.chat_id)
            return False
        return True
