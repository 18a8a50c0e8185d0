"""AxonKit data models."""

from axonkit.models.enums import (
    AdapterEvent,
    ElementType,
    EventCode,
    LoginChallenge,
    LoginMethod,
    MemberRole,
    OnlineStatus,
    ScopeKind,
    SessionState,
    StatusCode,
)
from axonkit.models.identity import FRIENDS, GroupInfo, GroupInvitation, Identity, Scope

__all__ = [
    "FRIENDS",
    "AdapterEvent",
    "ElementType",
    "EventCode",
    "GroupInfo",
    "GroupInvitation",
    "Identity",
    "LoginChallenge",
    "LoginMethod",
    "MemberRole",
    "OnlineStatus",
    "Scope",
    "ScopeKind",
    "SessionState",
    "StatusCode",
]
