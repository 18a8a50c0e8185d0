"""Tests for the event relay and message projection."""

from __future__ import annotations

from collections.abc import AsyncIterator

import pytest

from axonkit.adapters.mock import MockProtocolAdapter, friend, member
from axonkit.core.executor import SerialExecutor
from axonkit.core.relay import EventRelay, project_element, project_message
from axonkit.identity.codec import UNKNOWN_IDENTITY
from axonkit.identity.directory import IdentityDirectory
from axonkit.models.enums import AdapterEvent, ElementType
from axonkit.models.identity import FRIENDS, Identity, Scope
from axonkit.models.message import (
    GroupInviteEvent,
    GroupMessageEvent,
    GroupRecallEvent,
    MemberDecreaseEvent,
    MemberIncreaseEvent,
    MessageElement,
    PrivateMessageEvent,
)
from tests.conftest import RecordingSink, make_adapter

OPS = Scope.group(600)


def text(body: str) -> MessageElement:
    return MessageElement.plain(body)


def image(url: str | None = "http://img/1.png") -> MessageElement:
    return MessageElement(type=ElementType.IMAGE, url=url)


def element(kind: ElementType) -> MessageElement:
    return MessageElement(type=kind)


class Harness:
    def __init__(self, adapter: MockProtocolAdapter, sink: RecordingSink) -> None:
        self.adapter = adapter
        self.sink = sink
        self.executor = SerialExecutor("relay-test")
        self.directory = IdentityDirectory(adapter)
        self.invites: list[GroupInviteEvent] = []
        self.relay = EventRelay(
            self.directory, self.executor, sink, on_invite=self.invites.append
        )
        self.subscription = self.relay.bind(adapter)

    async def emit(self, event: AdapterEvent, payload: object) -> None:
        await self.adapter.emit(event, payload)

        async def _noop() -> None:
            return None

        await self.executor.submit(_noop, label="drain")


@pytest.fixture
async def harness(sink: RecordingSink) -> AsyncIterator[Harness]:
    h = Harness(make_adapter(), sink)
    yield h
    h.subscription.release()
    await h.executor.stop()


class TestProjection:
    def test_elements(self) -> None:
        assert project_element(text("hi")) == "hi"
        assert project_element(MessageElement(type=ElementType.FACE, text="smile")) == "[smile]"
        assert project_element(image(None)) == "[image]"
        assert project_element(element(ElementType.FILE)) == "[unsupported content: file]"
        assert project_element(element(ElementType.VIDEO)) == "[unsupported content: video]"
        assert project_element(element(ElementType.UNKNOWN)) == "[unknown content]"

    def test_images_become_attachments(self) -> None:
        projected = project_message([text("look "), image(), text("!")])
        assert projected.text == "look !"
        assert projected.attachments == [(ElementType.IMAGE, "http://img/1.png")]
        assert projected.has_text

    def test_flash_image_with_url_is_an_image(self) -> None:
        flash = MessageElement(type=ElementType.FLASH, url="http://img/f.png")
        assert project_message([flash]).attachments == [(ElementType.IMAGE, "http://img/f.png")]

    def test_unsupported_only_has_no_text(self) -> None:
        projected = project_message([element(ElementType.FILE)])
        assert projected.text == "[unsupported content: file]"
        assert not projected.has_text

    def test_whitespace_only_has_no_text(self) -> None:
        assert not project_message([text("  ")]).has_text

    def test_unsupported_placeholder_kept_alongside_text(self) -> None:
        projected = project_message([text("see "), element(ElementType.VIDEO)])
        assert projected.text == "see [unsupported content: video]"
        assert projected.has_text


class TestPrivateMessages:
    async def test_text_message(self, harness: Harness) -> None:
        event = PrivateMessageEvent(sender=friend(11234, "Tom"), message=[text("hi")], time=100)
        await harness.emit(AdapterEvent.MESSAGE_PRIVATE, event)
        assert harness.sink.frames == [
            {"status": 1, "type": 1, "sender": "Tom#1234", "time": 100, "text": "hi"}
        ]

    async def test_image_then_text(self, harness: Harness) -> None:
        event = PrivateMessageEvent(
            sender=friend(30001, "Ann"), message=[image(), text("caption")], time=5
        )
        await harness.emit(AdapterEvent.MESSAGE_PRIVATE, event)
        assert harness.sink.frames == [
            {"status": 1, "type": 8, "sender": "Ann", "time": 5, "url": "http://img/1.png"},
            {"status": 1, "type": 1, "sender": "Ann", "time": 5, "text": "caption"},
        ]

    async def test_poke_is_attention(self, harness: Harness) -> None:
        # Poke payloads carry only the id; the name comes from the friend list
        event = PrivateMessageEvent(
            sender=Identity(numeric_id=30001, scope=FRIENDS),
            message=[element(ElementType.POKE)],
            time=7,
        )
        await harness.emit(AdapterEvent.MESSAGE_PRIVATE, event)
        assert harness.sink.frames == [{"status": 1, "type": 3, "sender": "Ann", "time": 7}]

    async def test_file_only_message_is_suppressed(self, harness: Harness) -> None:
        event = PrivateMessageEvent(
            sender=friend(30001, "Ann"), message=[element(ElementType.FILE)]
        )
        await harness.emit(AdapterEvent.MESSAGE_PRIVATE, event)
        assert harness.sink.frames == []

    async def test_unknown_sender(self, harness: Harness) -> None:
        harness.adapter.get_friend_list = _raise  # type: ignore[method-assign]
        event = PrivateMessageEvent(sender=friend(77, "Stranger"), message=[text("yo")])
        await harness.emit(AdapterEvent.MESSAGE_PRIVATE, event)
        assert harness.sink.last["sender"] == UNKNOWN_IDENTITY


async def _raise(*args: object, **kwargs: object) -> None:
    raise RuntimeError("backend unavailable")


class TestGroupMessages:
    async def test_text_message(self, harness: Harness) -> None:
        event = GroupMessageEvent(
            group_id=500,
            group_name="Dev",
            sender=member(500, 40003, "Eve", card="Evie"),
            message=[text("@Bob "), text("ship it")],
            time=9,
        )
        await harness.emit(AdapterEvent.MESSAGE_GROUP, event)
        assert harness.sink.frames == [
            {
                "status": 1,
                "type": 2,
                "sender": "Evie",
                "time": 9,
                "text": "@Bob ship it",
                "name": "Dev",
                "id": 500,
            }
        ]

    async def test_image_message(self, harness: Harness) -> None:
        event = GroupMessageEvent(
            group_id=500, group_name="Dev", sender=member(500, 40004, "Tom"), message=[image()]
        )
        await harness.emit(AdapterEvent.MESSAGE_GROUP, event)
        assert harness.sink.frames == [
            {
                "status": 1,
                "type": 7,
                "sender": "Tom#0004",
                "time": 0,
                "url": "http://img/1.png",
                "name": "Dev",
                "id": 500,
            }
        ]

    async def test_sender_uses_current_card(self, harness: Harness) -> None:
        # The event still carries the old name
        event = GroupMessageEvent(
            group_id=500, sender=member(500, 40003, "Eve"), message=[text("hi")]
        )
        await harness.emit(AdapterEvent.MESSAGE_GROUP, event)
        assert harness.sink.last["sender"] == "Evie"


class TestGroupNotices:
    async def test_invite(self, harness: Harness) -> None:
        invite = GroupInviteEvent(
            group_id=700, group_name="New", inviter_id=25678, flag="f-1", time=3
        )
        await harness.emit(AdapterEvent.GROUP_INVITE, invite)
        assert harness.invites == [invite]
        assert harness.sink.frames == [
            {"status": 1, "type": 4, "sender": "Tom#5678", "id": 700, "name": "New", "time": 3}
        ]

    async def test_member_increase_refreshes_before_naming(self, harness: Harness) -> None:
        assert await harness.directory.name_for_id(OPS, 40005) == "Zed"
        harness.adapter.set_members(
            600,
            [member(600, 40002, "Bob"), member(600, 40005, "Zed"), member(600, 41111, "Zed")],
        )
        await harness.emit(
            AdapterEvent.GROUP_MEMBER_INCREASE,
            MemberIncreaseEvent(group_id=600, user_id=41111, time=11),
        )
        assert harness.sink.frames == [{"status": 1, "type": 5, "name": "Zed#1111", "id": 600, "time": 11}]

    async def test_member_decrease_uses_last_known_name(self, harness: Harness) -> None:
        await harness.directory.build()
        harness.adapter.set_members(600, [member(600, 40002, "Bob")])
        await harness.emit(
            AdapterEvent.GROUP_MEMBER_DECREASE,
            MemberDecreaseEvent(group_id=600, user_id=40005, time=12),
        )
        assert harness.sink.frames == [{"status": 1, "type": 6, "name": "Zed", "id": 600, "time": 12}]
        table = harness.directory.table(OPS)
        assert table is not None and 40005 not in table.identities

    async def test_recall(self, harness: Harness) -> None:
        await harness.emit(
            AdapterEvent.GROUP_RECALL,
            GroupRecallEvent(group_id=500, user_id=40002, operator_id=40002, time=13),
        )
        assert harness.sink.frames == [{"status": 1, "type": 9, "name": "Bob", "id": 500, "time": 13}]


class TestSubscription:
    async def test_release_stops_delivery(self, harness: Harness) -> None:
        harness.subscription.release()
        assert harness.adapter.listener_count() == 0
        event = PrivateMessageEvent(sender=friend(30001, "Ann"), message=[text("late")])
        await harness.emit(AdapterEvent.MESSAGE_PRIVATE, event)
        assert harness.sink.frames == []
