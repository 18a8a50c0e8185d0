"""Mock protocol adapter for testing."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any

from axonkit.adapters.base import BaseProtocolAdapter
from axonkit.models.enums import AdapterEvent, MemberRole, OnlineStatus
from axonkit.models.identity import FRIENDS, GroupInfo, GroupInvitation, Identity, Scope
from axonkit.models.message import LoginErrorEvent, OnlineEvent, OutboundContent


def friend(numeric_id: int, name: str, **kwargs: Any) -> Identity:
    """Build a friend identity."""
    return Identity(numeric_id=numeric_id, display_name=name, scope=FRIENDS, **kwargs)


def member(
    group_id: int,
    numeric_id: int,
    name: str,
    card: str = "",
    role: MemberRole = MemberRole.MEMBER,
    **kwargs: Any,
) -> Identity:
    """Build a group-member identity."""
    return Identity(
        numeric_id=numeric_id,
        display_name=name,
        card=card,
        role=role,
        scope=Scope.group(group_id),
        **kwargs,
    )


class MockProtocolAdapter(BaseProtocolAdapter):
    """In-memory adapter that records calls for verification in tests.

    ``login()`` goes online immediately unless ``login_error`` is set, in which
    case a ``login_error`` event is emitted instead.  Set ``fail_sends`` to
    make every send raise.
    """

    def __init__(
        self,
        uin: int = 10001,
        platform: int = 1,
        *,
        nickname: str = "axon",
        friends: Iterable[Identity] = (),
        groups: Iterable[GroupInfo] = (),
        members: Mapping[int, Iterable[Identity]] | None = None,
        auto_online: bool = True,
        login_error: str | None = None,
    ) -> None:
        super().__init__()
        self._uin = uin
        self.platform = platform
        self._nickname = nickname
        self._online = False
        self.auto_online = auto_online
        self.login_error = login_error
        self.fail_sends = False
        self.friends: dict[int, Identity] = {f.numeric_id: f for f in friends}
        self.groups: dict[int, GroupInfo] = {g.group_id: g for g in groups}
        self.members: dict[int, dict[int, Identity]] = {
            gid: {m.numeric_id: m for m in ms} for gid, ms in (members or {}).items()
        }
        self.sent: list[dict[str, Any]] = []
        self.logins: list[str | None] = []
        self.statuses: list[OnlineStatus] = []
        self.invitation_responses: list[tuple[GroupInvitation, bool]] = []
        self.friend_fetches = 0
        self.member_fetches: dict[int, int] = {}
        self.logout_count = 0
        self.closed = False

    @property
    def uin(self) -> int:
        return self._uin

    @property
    def nickname(self) -> str:
        return self._nickname

    @property
    def is_online(self) -> bool:
        return self._online

    # -- test helpers ----------------------------------------------------------

    async def emit(self, event: AdapterEvent, payload: Any) -> None:
        """Deliver *payload* to the listeners of *event*."""
        await self._emit(event, payload)

    def set_members(self, group_id: int, members: Iterable[Identity]) -> None:
        self.members[group_id] = {m.numeric_id: m for m in members}

    # -- ProtocolAdapter -------------------------------------------------------

    async def login(self, password: str | None = None) -> None:
        self.logins.append(password)
        if self.login_error is not None:
            await self._emit(AdapterEvent.LOGIN_ERROR, LoginErrorEvent(message=self.login_error))
            return
        if self.auto_online:
            self._online = True
            await self._emit(AdapterEvent.ONLINE, OnlineEvent())

    async def logout(self) -> None:
        self.logout_count += 1
        self._online = False

    async def close(self) -> None:
        self.closed = True

    async def get_friend_list(self) -> Mapping[int, Identity]:
        self.friend_fetches += 1
        return dict(self.friends)

    async def get_group_list(self) -> Mapping[int, GroupInfo]:
        return dict(self.groups)

    async def get_group_member_list(
        self, group_id: int, force_refresh: bool = False
    ) -> Mapping[int, Identity]:
        self.member_fetches[group_id] = self.member_fetches.get(group_id, 0) + 1
        return dict(self.members.get(group_id, {}))

    async def get_group_info(self, group_id: int) -> GroupInfo | None:
        return self.groups.get(group_id)

    async def send_to_friend(self, user_id: int, content: OutboundContent) -> None:
        self._record_send("friend", user_id, content)

    async def send_to_group(self, group_id: int, content: OutboundContent) -> None:
        self._record_send("group", group_id, content)

    async def set_online_status(self, status: OnlineStatus) -> None:
        self.statuses.append(status)

    async def respond_invitation(self, invitation: GroupInvitation, approve: bool) -> None:
        self.invitation_responses.append((invitation, approve))

    def _record_send(self, target: str, target_id: int, content: OutboundContent) -> None:
        if self.fail_sends:
            raise RuntimeError(f"send to {target} {target_id} failed")
        self.sent.append({"target": target, "id": target_id, "content": content})
