"""Administrative mute/unmute sub-commands (core domain).

These run before the ignore policy so an administrator can always unmute a
chat, including the chat they are typing in.
"""

from __future__ import annotations

import logging
from typing import Awaitable, Callable, Iterable, Optional

from core.ports import IgnoreStorePort
from core.registry import token_variants

LOGGER = logging.getLogger(__name__)

MUTE_TOKENS = token_variants("!mute")
UNMUTE_TOKENS = token_variants("!unmute")
LIST_TOKENS = token_variants("!muted")
LIST_LIMIT = 100
ADDED_BY = "admin"

Reply = Callable[[str], Awaitable[None]]
Resolver = Callable[[str], Awaitable[Optional[str]]]

INVALID_TARGET = "Invalid chat identifier. Use @username or a numeric id."


def normalize_target(raw: str) -> Optional[str]:
    """Return a canonical chat identifier for ``@username`` or numeric ids."""

    value = (raw or "").strip().lower()
    if value.startswith("@"):
        username = value[1:]
        if not username or not username.replace("_", "a").isalnum():
            return None
        return f"@{username}"
    try:
        return str(int(value))
    except ValueError:
        return None


class AdminCommands:
    """Handle mute, unmute and muted-list requests from configured admins."""

    def __init__(
        self,
        store: IgnoreStorePort,
        admin_ids: Iterable[str],
        resolve: Optional[Resolver] = None,
    ) -> None:
        self._store = store
        self._admin_ids = frozenset(str(admin_id) for admin_id in admin_ids)
        self._resolve = resolve

    def is_admin(self, sender_id: str) -> bool:
        return sender_id in self._admin_ids

    async def handle(self, sender_id: str, text: str, reply: Reply) -> bool:
        """Run an admin sub-command; return True if the text was one."""

        if not self.is_admin(sender_id):
            return False

        token, _, rest = text.strip().partition(" ")
        token = token.lower()

        if token in LIST_TOKENS and not rest.strip():
            await self._list(reply)
            return True
        if token in MUTE_TOKENS:
            await self._mute(rest, reply)
            return True
        if token in UNMUTE_TOKENS:
            await self._unmute(rest, reply)
            return True
        return False

    async def _chat_id(self, target: str) -> Optional[str]:
        """Stored ids are numeric chat ids, so usernames are resolved first."""

        if not target.startswith("@"):
            return target
        if self._resolve is None:
            return None
        try:
            return await self._resolve(target)
        except Exception:
            LOGGER.warning("Could not resolve %s", target, exc_info=True)
            return None

    async def _target(self, raw_target: str, reply: Reply) -> Optional[tuple[str, str]]:
        target = normalize_target(raw_target)
        if target is None:
            await reply(INVALID_TARGET)
            return None
        chat_id = await self._chat_id(target)
        if chat_id is None:
            await reply(f"Could not find chat {target}.")
            return None
        label = target if chat_id == target else f"{target} ({chat_id})"
        return chat_id, label

    async def _mute(self, raw_target: str, reply: Reply) -> None:
        resolved = await self._target(raw_target, reply)
        if resolved is None:
            return
        chat_id, label = resolved
        await self._store.upsert(chat_id, ADDED_BY)
        LOGGER.info("Admin muted chat %s", label)
        await reply(f"Muted chat: {label}")

    async def _unmute(self, raw_target: str, reply: Reply) -> None:
        resolved = await self._target(raw_target, reply)
        if resolved is None:
            return
        chat_id, label = resolved
        removed = await self._store.delete(chat_id)
        if removed:
            LOGGER.info("Admin unmuted chat %s", label)
            await reply(f"Unmuted chat: {label}")
        else:
            await reply(f"Chat {label} is not muted.")

    async def _list(self, reply: Reply) -> None:
        entries = await self._store.list_recent(LIST_LIMIT)
        if not entries:
            await reply("No muted chats.")
            return
        lines = []
        for index, entry in enumerate(entries, start=1):
            stamp = entry.created_at.strftime("%Y-%m-%d %H:%M") if entry.created_at else "?"
            lines.append(f"{index}. {entry.chat_id} ({entry.added_by}, {stamp})")
        await reply("Muted chats:\n\n" + "\n".join(lines))
