"""All enums for AxonKit."""

from __future__ import annotations

from enum import IntEnum, StrEnum, unique


@unique
class StatusCode(IntEnum):
    OK = 0
    NO_CLIENT = -1
    UNKNOWN_ERROR = -2
    NOT_FOUND = -3
    STAT_EVENT = 1


@unique
class EventCode(IntEnum):
    FRIEND_MESSAGE = 1
    GROUP_MESSAGE = 2
    FRIEND_ATTENTION = 3
    GROUP_INVITE = 4
    GROUP_MEMBER_INCREASE = 5
    GROUP_MEMBER_DECREASE = 6
    GROUP_IMAGE_MESSAGE = 7
    FRIEND_IMAGE_MESSAGE = 8
    GROUP_RECALL = 9


@unique
class LoginChallenge(IntEnum):
    DEVICE = 0
    ERROR = 1
    SLIDER = 2
    QRCODE = 3


@unique
class LoginMethod(IntEnum):
    PASSWORD = 0
    QRCODE = 1


@unique
class OnlineStatus(IntEnum):
    """Presence codes understood by the IM backend."""

    ONLINE = 11
    INVISIBLE = 41
    BUSY = 50


@unique
class SessionState(StrEnum):
    UNINITIALIZED = "uninitialized"
    INITIALIZED = "initialized"
    AWAITING_LOGIN = "awaiting_login"
    ONLINE = "online"


@unique
class ScopeKind(StrEnum):
    FRIEND = "friend"
    GROUP = "group"


@unique
class MemberRole(StrEnum):
    OWNER = "owner"
    ADMIN = "admin"
    MEMBER = "member"


@unique
class ElementType(StrEnum):
    TEXT = "text"
    AT = "at"
    FACE = "face"
    IMAGE = "image"
    FLASH = "flash"
    FILE = "file"
    VIDEO = "video"
    POKE = "poke"
    UNKNOWN = "unknown"


@unique
class AdapterEvent(StrEnum):
    """Events a protocol adapter can emit to its subscribers."""

    ONLINE = "online"
    LOGIN_ERROR = "login_error"
    LOGIN_QRCODE = "login_qrcode"
    LOGIN_SLIDER = "login_slider"
    LOGIN_DEVICE = "login_device"
    MESSAGE_PRIVATE = "message_private"
    MESSAGE_GROUP = "message_group"
    GROUP_INVITE = "group_invite"
    GROUP_MEMBER_INCREASE = "group_member_increase"
    GROUP_MEMBER_DECREASE = "group_member_decrease"
    GROUP_RECALL = "group_recall"
