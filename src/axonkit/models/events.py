"""Normalized outbound event records written to the client connection."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel

from axonkit.models.enums import EventCode, StatusCode


class EventRecord(BaseModel):
    """Base for every ``stat-event`` frame."""

    status: Literal[StatusCode.STAT_EVENT] = StatusCode.STAT_EVENT
    type: EventCode

    def to_frame(self) -> dict[str, Any]:
        return self.model_dump(mode="json", exclude_none=True)


class FriendMessage(EventRecord):
    type: Literal[EventCode.FRIEND_MESSAGE] = EventCode.FRIEND_MESSAGE
    sender: str
    time: int
    text: str


class FriendImageMessage(EventRecord):
    type: Literal[EventCode.FRIEND_IMAGE_MESSAGE] = EventCode.FRIEND_IMAGE_MESSAGE
    sender: str
    time: int
    url: str


class FriendAttention(EventRecord):
    type: Literal[EventCode.FRIEND_ATTENTION] = EventCode.FRIEND_ATTENTION
    sender: str
    time: int


class GroupMessage(EventRecord):
    type: Literal[EventCode.GROUP_MESSAGE] = EventCode.GROUP_MESSAGE
    sender: str
    time: int
    text: str
    name: str
    id: int


class GroupImageMessage(EventRecord):
    type: Literal[EventCode.GROUP_IMAGE_MESSAGE] = EventCode.GROUP_IMAGE_MESSAGE
    sender: str
    time: int
    url: str
    name: str
    id: int


class GroupInvite(EventRecord):
    type: Literal[EventCode.GROUP_INVITE] = EventCode.GROUP_INVITE
    sender: str
    id: int
    name: str
    time: int | None = None


class GroupMemberIncrease(EventRecord):
    type: Literal[EventCode.GROUP_MEMBER_INCREASE] = EventCode.GROUP_MEMBER_INCREASE
    name: str
    id: int
    time: int | None = None


class GroupMemberDecrease(EventRecord):
    type: Literal[EventCode.GROUP_MEMBER_DECREASE] = EventCode.GROUP_MEMBER_DECREASE
    name: str
    id: int
    time: int | None = None


class GroupRecall(EventRecord):
    type: Literal[EventCode.GROUP_RECALL] = EventCode.GROUP_RECALL
    name: str
    id: int
    time: int | None = None
