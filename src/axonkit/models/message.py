"""Message content and protocol adapter event payloads."""

from __future__ import annotations

from typing import Annotated, Literal

from pydantic import BaseModel, Field

from axonkit.models.enums import ElementType
from axonkit.models.identity import GroupInvitation, Identity

# ---------------------------------------------------------------------------
# Inbound message elements
# ---------------------------------------------------------------------------


class MessageElement(BaseModel):
    """One element of an inbound message chain.

    ``text`` carries the body of text/at elements and the caption of face
    elements; ``url`` is set for image and flash elements when the backend
    provides one.
    """

    type: ElementType
    text: str = ""
    url: str | None = None

    @classmethod
    def plain(cls, text: str) -> MessageElement:
        return cls(type=ElementType.TEXT, text=text)


# ---------------------------------------------------------------------------
# Outbound content
# ---------------------------------------------------------------------------


class TextSegment(BaseModel):
    type: Literal["text"] = "text"
    text: str


class ImageSegment(BaseModel):
    type: Literal["image"] = "image"
    data: bytes


class ShakeSegment(BaseModel):
    """Window shake / poke sent to a friend."""

    type: Literal["shake"] = "shake"


OutboundContent = Annotated[
    TextSegment | ImageSegment | ShakeSegment,
    Field(discriminator="type"),
]


# ---------------------------------------------------------------------------
# Adapter event payloads
# ---------------------------------------------------------------------------


class OnlineEvent(BaseModel):
    pass


class LoginErrorEvent(BaseModel):
    code: int = 0
    message: str = ""


class LoginQRCodeEvent(BaseModel):
    image: bytes


class LoginSliderEvent(BaseModel):
    url: str


class LoginDeviceEvent(BaseModel):
    url: str


class PrivateMessageEvent(BaseModel):
    sender: Identity
    message: list[MessageElement] = Field(default_factory=list)
    time: int = 0


class GroupMessageEvent(BaseModel):
    group_id: int
    group_name: str = ""
    sender: Identity
    message: list[MessageElement] = Field(default_factory=list)
    time: int = 0


class GroupInviteEvent(GroupInvitation):
    pass


class MemberIncreaseEvent(BaseModel):
    group_id: int
    user_id: int
    time: int = 0


class MemberDecreaseEvent(BaseModel):
    """A member left or was removed; ``member`` is the last known record."""

    group_id: int
    user_id: int
    member: Identity | None = None
    time: int = 0


class GroupRecallEvent(BaseModel):
    group_id: int
    user_id: int
    operator_id: int | None = None
    message_id: str = ""
    time: int = 0
