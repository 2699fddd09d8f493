"""Group welcome and farewell messages (core domain)."""

from __future__ import annotations

import logging
from typing import Mapping

from core.config import GroupRules
from core.models import MembershipEvent
from core.ports import TransportPort

LOGGER = logging.getLogger(__name__)

DEFAULT_KEY = "default"
NO_RULES_TEXT = "(no rules set)"


def build_rules_text(rules: GroupRules, chat_about: str) -> str:
    """Combine the group description (if enabled) with the configured rules."""

    parts = []
    about = (chat_about or "").strip()
    if rules.use_about_as_rules and about:
        parts.append(about)
    if rules.rules:
        parts.append("\n".join(f"• {rule}" for rule in rules.rules))
    if not parts:
        return NO_RULES_TEXT
    return "\n".join(parts)


def build_welcome(rules: GroupRules, event: MembershipEvent) -> str:
    names = ", ".join(event.member_names or event.member_ids)
    lines = [
        f"Welcome {names}! \U0001F44B",
        f"You joined *{event.chat_title}*." if event.chat_title else "Glad to have you here.",
        "",
        "Our rules:",
        build_rules_text(rules, event.chat_about),
    ]
    if rules.link:
        lines.extend(["", f"\U0001F517 Link: {rules.link}"])
    return "\n".join(lines)


def build_farewell(event: MembershipEvent) -> str:
    names = ", ".join(event.member_names or event.member_ids)
    return f"Goodbye {names} \U0001F44B\nAll the best."


class Greeter:
    """Send welcome/farewell texts for membership events."""

    def __init__(self, transport: TransportPort, groups: Mapping[str, GroupRules]) -> None:
        self._transport = transport
        self._groups = dict(groups)

    def rules_for(self, chat_id: str) -> GroupRules:
        return self._groups.get(chat_id) or self._groups.get(DEFAULT_KEY) or GroupRules()

    async def handle(self, event: MembershipEvent) -> None:
        try:
            if not event.member_ids:
                return
            rules = self.rules_for(event.chat_id)
            if event.action == "join" and rules.welcome_on:
                await self._transport.send_text(event.chat_id, build_welcome(rules, event))
            elif event.action == "leave" and rules.farewell_on:
                await self._transport.send_text(event.chat_id, build_farewell(event))
        except Exception:
            LOGGER.exception("Membership handler error (chat=%s)", event.chat_id)
