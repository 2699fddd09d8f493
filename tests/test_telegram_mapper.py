from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from types import SimpleNamespace

from telethon.tl.types import User

from adapters.telegram_mapper import build_inbound, build_membership, extract_text, is_broadcast


class DummyMessage:
    def __init__(
        self,
        raw_text=None,
        message=None,
        poll=None,
        chat_id: int = 100,
        sender_id=200,
        is_channel: bool = False,
        is_group: bool = False,
        out: bool = False,
    ) -> None:
        self.id = 7
        self.chat_id = chat_id
        self.sender_id = sender_id
        self.date = datetime(2024, 1, 1, tzinfo=timezone.utc)
        self.raw_text = raw_text
        self.message = message
        self.poll = poll
        self.is_channel = is_channel
        self.is_group = is_group
        self.out = out


def _poll_media(question) -> SimpleNamespace:
    return SimpleNamespace(poll=SimpleNamespace(question=question))


def test_extract_text_priority() -> None:
    assert extract_text(DummyMessage(raw_text=" hello ", message="caption")) == "hello"
    assert extract_text(DummyMessage(raw_text="", message="caption")) == "caption"
    assert extract_text(DummyMessage(poll=_poll_media("Lunch?"))) == "Lunch?"
    assert extract_text(DummyMessage(poll=_poll_media(SimpleNamespace(text="Dinner?")))) == "Dinner?"
    assert extract_text(DummyMessage()) == ""


def test_broadcast_detection() -> None:
    assert is_broadcast(DummyMessage(is_channel=True))
    assert not is_broadcast(DummyMessage(is_channel=True, is_group=True))
    assert not is_broadcast(DummyMessage())


def test_build_inbound_maps_fields() -> None:
    message = DummyMessage(raw_text="ping", chat_id=-100123, sender_id=5, is_group=True, out=True)

    inbound = build_inbound(message)

    assert inbound.chat_id == "-100123"
    assert inbound.sender_id == "5"
    assert inbound.message_id == 7
    assert inbound.text == "ping"
    assert inbound.is_group is True
    assert inbound.is_broadcast is False
    assert inbound.from_self is True
    assert inbound.raw is message


def test_build_inbound_falls_back_to_chat_as_sender() -> None:
    inbound = build_inbound(DummyMessage(raw_text="hi", sender_id=None))
    assert inbound.sender_id == "100"


class DummyChatAction:
    def __init__(self, **flags) -> None:
        self.chat_id = -100
        self.user_joined = flags.get("user_joined", False)
        self.user_added = flags.get("user_added", False)
        self.user_left = flags.get("user_left", False)
        self.user_kicked = flags.get("user_kicked", False)
        self.requests: list = []

    async def get_users(self):
        return [User(id=1, first_name="Ann")]

    async def get_chat(self):
        # Not a Channel, so the basic-group request is used.
        return SimpleNamespace(id=100, title="Book Club")

    async def client(self, request):
        self.requests.append(request)
        return SimpleNamespace(full_chat=SimpleNamespace(about="Read together"))


def test_build_membership_join_fetches_about() -> None:
    event = DummyChatAction(user_joined=True)

    membership = asyncio.run(build_membership(event))

    assert membership is not None
    assert membership.action == "join"
    assert membership.chat_id == "-100"
    assert membership.member_ids == ("1",)
    assert membership.member_names == ("Ann",)
    assert membership.chat_title == "Book Club"
    assert membership.chat_about == "Read together"
    assert len(event.requests) == 1


def test_build_membership_leave_skips_about() -> None:
    event = DummyChatAction(user_kicked=True)

    membership = asyncio.run(build_membership(event))

    assert membership.action == "leave"
    assert membership.chat_about == ""
    assert event.requests == []


def test_build_membership_other_actions_are_ignored() -> None:
    assert asyncio.run(build_membership(DummyChatAction())) is None


def test_build_membership_about_failure_is_tolerated() -> None:
    class Failing(DummyChatAction):
        async def client(self, request):
            raise ConnectionError("offline")

    membership = asyncio.run(build_membership(Failing(user_added=True)))

    assert membership.chat_about == ""
