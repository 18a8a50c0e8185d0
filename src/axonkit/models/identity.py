"""Identity, scope and group models."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, model_validator

from axonkit.models.enums import MemberRole, ScopeKind


class Scope(BaseModel):
    """An identity namespace: the friend list or one group's member list."""

    model_config = ConfigDict(frozen=True)

    kind: ScopeKind
    group_id: int | None = None

    @model_validator(mode="after")
    def _check_group_id(self) -> Scope:
        if self.kind == ScopeKind.GROUP and self.group_id is None:
            raise ValueError("group scope requires group_id")
        if self.kind == ScopeKind.FRIEND and self.group_id is not None:
            raise ValueError("friend scope must not carry group_id")
        return self

    @classmethod
    def friends(cls) -> Scope:
        return FRIENDS

    @classmethod
    def group(cls, group_id: int) -> Scope:
        return cls(kind=ScopeKind.GROUP, group_id=group_id)

    @property
    def is_group(self) -> bool:
        return self.kind == ScopeKind.GROUP

    def __str__(self) -> str:
        if self.is_group:
            return f"group:{self.group_id}"
        return "friends"


FRIENDS = Scope(kind=ScopeKind.FRIEND)


class Identity(BaseModel):
    """A contact or group member known to the IM backend.

    ``card`` is the group-specific alias of a group member and is empty for
    friends or members without one.
    """

    model_config = ConfigDict(frozen=True)

    numeric_id: int
    display_name: str = ""
    scope: Scope = FRIENDS
    role: MemberRole | None = None
    card: str = ""
    remark: str = ""
    sex: str = "unknown"


class GroupInfo(BaseModel):
    """Summary of a joined group."""

    group_id: int
    group_name: str = ""
    topic: str = ""
    member_count: int = 0
    owner_id: int | None = None


class GroupInvitation(BaseModel):
    """An invitation to join a group, awaiting approval or refusal."""

    group_id: int
    group_name: str = ""
    inviter_id: int
    flag: str = ""
    time: int = 0
