"""Telegram-to-core message mapping adapter.

This keeps Telethon-specific details out of the router and greeter.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Optional

from telethon import functions, utils
from telethon.tl.custom import Message
from telethon.tl.types import Channel

from core.models import InboundMessage, MembershipEvent
from core.router import first_text

LOGGER = logging.getLogger(__name__)


def _poll_question(message: Message) -> Optional[str]:
    media = getattr(message, "poll", None)
    poll = getattr(media, "poll", None)
    question = getattr(poll, "question", None)
    # Newer layers wrap the question in TextWithEntities.
    return getattr(question, "text", question)


def extract_text(message: Message) -> str:
    """Pick the first populated text field: text, caption, poll question."""

    return first_text(
        (
            getattr(message, "raw_text", None),
            getattr(message, "message", None),
            _poll_question(message),
        )
    )


def is_broadcast(message: Message) -> bool:
    """Broadcast channels (not megagroups) are never answered."""

    return bool(getattr(message, "is_channel", False)) and not bool(getattr(message, "is_group", False))


def build_inbound(message: Message) -> InboundMessage:
    """Build a core InboundMessage from a Telethon Message."""

    chat_id = str(message.chat_id)
    sender_id = getattr(message, "sender_id", None)
    return InboundMessage(
        chat_id=chat_id,
        sender_id=str(sender_id) if sender_id is not None else chat_id,
        message_id=message.id,
        date=message.date or datetime.now(timezone.utc),
        text=extract_text(message),
        is_group=bool(getattr(message, "is_group", False)),
        is_broadcast=is_broadcast(message),
        from_self=bool(getattr(message, "out", False)),
        raw=message,
    )


async def _fetch_about(event: Any, chat: Any) -> str:
    try:
        if isinstance(chat, Channel):
            full = await event.client(functions.channels.GetFullChannelRequest(chat))
        else:
            full = await event.client(functions.messages.GetFullChatRequest(chat.id))
    except Exception:
        LOGGER.warning("Group description fetch failed for %s", getattr(chat, "id", "?"))
        return ""
    return getattr(full.full_chat, "about", "") or ""


async def build_membership(event: Any) -> Optional[MembershipEvent]:
    """Build a MembershipEvent from a Telethon ChatAction event, if relevant."""

    if event.user_joined or event.user_added:
        action = "join"
    elif event.user_left or event.user_kicked:
        action = "leave"
    else:
        return None

    users = await event.get_users() or []
    chat = await event.get_chat()
    about = await _fetch_about(event, chat) if action == "join" and chat is not None else ""
    return MembershipEvent(
        chat_id=str(event.chat_id),
        action=action,
        member_ids=tuple(str(user.id) for user in users),
        member_names=tuple(utils.get_display_name(user) or f"@{user.id}" for user in users),
        chat_title=getattr(chat, "title", "") or "",
        chat_about=about,
    )
