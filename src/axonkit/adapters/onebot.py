"""OneBot v11 protocol adapter over a forward WebSocket connection.

Talks to any OneBot v11 implementation (NapCat, LLOneBot, go-cqhttp, ...)
that exposes a forward WebSocket endpoint.  Actions are JSON frames of the
form ``{"action": ..., "params": ..., "echo": ...}``; the implementation
answers with ``{"status": "ok", "retcode": 0, "data": ..., "echo": ...}``
and pushes events as frames carrying a ``post_type``.

The IM account itself is logged in by the OneBot implementation, so
``login()`` only connects and verifies which account the backend serves.
"""

from __future__ import annotations

import asyncio
import base64
import contextlib
import itertools
import json
import logging
from collections.abc import Mapping
from typing import Any

from axonkit.adapters.base import AdapterFactory, BaseProtocolAdapter
from axonkit.config import OneBotConfig
from axonkit.errors import AdapterOperationFailedError
from axonkit.models.enums import AdapterEvent, ElementType, MemberRole, OnlineStatus
from axonkit.models.identity import FRIENDS, GroupInfo, GroupInvitation, Identity, Scope
from axonkit.models.message import (
    GroupInviteEvent,
    GroupMessageEvent,
    GroupRecallEvent,
    ImageSegment,
    LoginErrorEvent,
    MemberDecreaseEvent,
    MemberIncreaseEvent,
    MessageElement,
    OnlineEvent,
    OutboundContent,
    PrivateMessageEvent,
    ShakeSegment,
    TextSegment,
)

# Optional dependency - import for type checking and availability check
try:
    import websockets
    from websockets import ClientConnection

    HAS_WEBSOCKETS = True
except ImportError:
    websockets = None  # type: ignore[assignment]
    ClientConnection = None  # type: ignore[assignment, misc]
    HAS_WEBSOCKETS = False

logger = logging.getLogger("axonkit.adapters.onebot")

# Segment types that carry nothing worth relaying
_IGNORED_SEGMENTS = frozenset({"reply"})

_SEGMENT_TYPES = {
    "text": ElementType.TEXT,
    "at": ElementType.AT,
    "face": ElementType.FACE,
    "image": ElementType.IMAGE,
    "file": ElementType.FILE,
    "video": ElementType.VIDEO,
    "poke": ElementType.POKE,
    "shake": ElementType.POKE,
}

_ROLES = {
    "owner": MemberRole.OWNER,
    "admin": MemberRole.ADMIN,
    "member": MemberRole.MEMBER,
}


class OneBotActionError(AdapterOperationFailedError):
    """A OneBot action returned a failed status or timed out."""

    def __init__(self, action: str, message: str, retcode: int | None = None) -> None:
        super().__init__(f"{action}: {message}")
        self.action = action
        self.retcode = retcode


# ---------------------------------------------------------------------------
# Segment conversion
# ---------------------------------------------------------------------------


def parse_segments(message: Any) -> list[MessageElement]:
    """Convert a OneBot message (segment array or plain string) to elements."""
    if isinstance(message, str):
        return [MessageElement.plain(message)] if message else []
    elements: list[MessageElement] = []
    for segment in message or ():
        if not isinstance(segment, dict):
            continue
        seg_type = segment.get("type", "")
        data = segment.get("data") or {}
        if seg_type in _IGNORED_SEGMENTS:
            continue
        kind = _SEGMENT_TYPES.get(seg_type, ElementType.UNKNOWN)
        if kind == ElementType.TEXT:
            elements.append(MessageElement(type=kind, text=str(data.get("text", ""))))
        elif kind == ElementType.AT:
            target = data.get("name") or data.get("qq", "")
            elements.append(MessageElement(type=kind, text=f"@{target}"))
        elif kind == ElementType.FACE:
            elements.append(MessageElement(type=kind, text=f"face:{data.get('id', '')}"))
        elif kind == ElementType.IMAGE:
            if data.get("type") == "flash":
                kind = ElementType.FLASH
            elements.append(MessageElement(type=kind, url=data.get("url") or None))
        else:
            elements.append(MessageElement(type=kind))
    return elements


def build_segments(content: OutboundContent) -> list[dict[str, Any]]:
    """Convert outbound content to a OneBot segment array."""
    if isinstance(content, TextSegment):
        return [{"type": "text", "data": {"text": content.text}}]
    if isinstance(content, ImageSegment):
        encoded = base64.b64encode(content.data).decode()
        return [{"type": "image", "data": {"file": f"base64://{encoded}"}}]
    if isinstance(content, ShakeSegment):
        return [{"type": "shake", "data": {}}]
    raise TypeError(f"unsupported content: {type(content).__name__}")


def _role(value: Any) -> MemberRole:
    return _ROLES.get(str(value), MemberRole.MEMBER)


def _friend(raw: Mapping[str, Any]) -> Identity:
    return Identity(
        numeric_id=int(raw["user_id"]),
        display_name=raw.get("nickname") or "",
        scope=FRIENDS,
        remark=raw.get("remark") or "",
        sex=raw.get("sex") or "unknown",
    )


def _member(group_id: int, raw: Mapping[str, Any]) -> Identity:
    return Identity(
        numeric_id=int(raw["user_id"]),
        display_name=raw.get("nickname") or "",
        scope=Scope.group(group_id),
        card=raw.get("card") or "",
        role=_role(raw.get("role")),
        sex=raw.get("sex") or "unknown",
    )


def _group(raw: Mapping[str, Any]) -> GroupInfo:
    return GroupInfo(
        group_id=int(raw["group_id"]),
        group_name=raw.get("group_name") or "",
        topic=raw.get("group_memo") or raw.get("group_remark") or "",
        member_count=int(raw.get("member_count") or 0),
        owner_id=raw.get("owner_id"),
    )


# ---------------------------------------------------------------------------
# Adapter
# ---------------------------------------------------------------------------


class OneBotAdapter(BaseProtocolAdapter):
    """Protocol adapter backed by a OneBot v11 forward WebSocket.

    Example:
        from axonkit import AxonServer
        from axonkit.adapters.onebot import onebot_adapter_factory
        from axonkit.config import OneBotConfig

        factory = onebot_adapter_factory(OneBotConfig(url="ws://127.0.0.1:3001"))
        server = AxonServer(adapter_factory=factory)
        await server.serve_forever()
    """

    def __init__(self, config: OneBotConfig, *, uin: int, platform: int = 1) -> None:
        super().__init__()
        self._config = config
        self._uin = uin
        self.platform = platform
        self._nickname = ""
        self._online = False
        self._ws: ClientConnection | None = None
        self._reader: asyncio.Task[None] | None = None
        self._pending: dict[str, asyncio.Future[Any]] = {}
        self._echo = itertools.count(1)
        self._group_names: dict[int, str] = {}
        self._members: dict[int, dict[int, Identity]] = {}

    @property
    def uin(self) -> int:
        return self._uin

    @property
    def nickname(self) -> str:
        return self._nickname

    @property
    def is_online(self) -> bool:
        return self._online

    @property
    def connected(self) -> bool:
        return self._ws is not None

    # -- connection ------------------------------------------------------------

    async def _connect(self) -> None:
        if self._ws is not None:
            return
        if not HAS_WEBSOCKETS:
            raise ImportError(
                "websockets is required for OneBotAdapter. "
                "Install it with: pip install axonkit[onebot]"
            )
        connect_kwargs: dict[str, Any] = {
            "uri": self._config.url,
            "open_timeout": self._config.connect_timeout,
            "max_size": None,
        }
        if self._config.headers:
            connect_kwargs["additional_headers"] = self._config.headers
        self._ws = await websockets.connect(**connect_kwargs)
        self._reader = asyncio.get_running_loop().create_task(
            self._receive_loop(self._ws), name=f"onebot:{self._uin}"
        )
        logger.info("Connected to %s", self._config.url)

    async def _disconnect(self) -> None:
        ws, self._ws = self._ws, None
        reader, self._reader = self._reader, None
        if reader is not None:
            reader.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await reader
        if ws is not None:
            with contextlib.suppress(Exception):
                await ws.close()
        self._fail_pending(ConnectionError("connection closed"))

    def _fail_pending(self, exc: Exception) -> None:
        pending, self._pending = self._pending, {}
        for future in pending.values():
            if not future.done():
                future.set_exception(exc)

    async def _receive_loop(self, ws: ClientConnection) -> None:
        try:
            while True:
                raw = await ws.recv()
                await self._handle_frame(raw)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.warning("OneBot connection lost: %s", e)
            if self._ws is ws:
                self._ws = None
                self._reader = None
                self._online = False
            self._fail_pending(ConnectionError(str(e)))

    async def _handle_frame(self, raw: str | bytes) -> None:
        try:
            data = json.loads(raw)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            logger.debug("Failed to parse OneBot frame: %s", e)
            return
        if not isinstance(data, dict):
            return
        echo = data.get("echo")
        if echo is not None and "post_type" not in data:
            future = self._pending.pop(str(echo), None)
            if future is not None and not future.done():
                future.set_result(data)
            return
        try:
            await self._dispatch(data)
        except (KeyError, TypeError, ValueError):
            logger.warning("Malformed OneBot event: %s", data, exc_info=True)

    async def _call(self, action: str, **params: Any) -> Any:
        """Run one OneBot action and wait for its response.

        Args:
            action: OneBot action name, e.g. ``send_private_msg``.
            **params: The action's ``params`` object.

        Returns:
            The response's ``data`` field.

        Raises:
            OneBotActionError: If the backend reports a failure or no
                response arrives within ``action_timeout``.
        """
        await self._connect()
        assert self._ws is not None
        echo = str(next(self._echo))
        future: asyncio.Future[Any] = asyncio.get_running_loop().create_future()
        self._pending[echo] = future
        frame = {"action": action, "params": params, "echo": echo}
        try:
            await self._ws.send(json.dumps(frame, ensure_ascii=False))
            response = await asyncio.wait_for(future, timeout=self._config.action_timeout)
        except TimeoutError as e:
            raise OneBotActionError(action, "timed out") from e
        except ConnectionError as e:
            raise OneBotActionError(action, str(e)) from e
        finally:
            self._pending.pop(echo, None)
        if response.get("status") == "failed" or response.get("retcode", 0) != 0:
            raise OneBotActionError(
                action,
                response.get("message") or response.get("wording") or "action failed",
                retcode=response.get("retcode"),
            )
        return response.get("data")

    # -- login -----------------------------------------------------------------

    async def login(self, password: str | None = None) -> None:
        try:
            await self._connect()
            info = await self._call("get_login_info")
        except Exception as e:
            logger.warning("OneBot login failed: %s", e)
            await self._emit(AdapterEvent.LOGIN_ERROR, LoginErrorEvent(message=str(e)))
            return
        user_id = int(info.get("user_id", 0))
        if user_id != self._uin:
            message = f"backend is logged in as {user_id}, not {self._uin}"
            logger.warning("OneBot login failed: %s", message)
            await self._emit(AdapterEvent.LOGIN_ERROR, LoginErrorEvent(message=message))
            return
        self._nickname = info.get("nickname") or ""
        self._online = True
        logger.info("Account %s online via OneBot", self._uin)
        await self._emit(AdapterEvent.ONLINE, OnlineEvent())

    async def logout(self) -> None:
        self._online = False
        await self._disconnect()

    async def close(self) -> None:
        self._online = False
        await self._disconnect()

    # -- queries ---------------------------------------------------------------

    async def get_friend_list(self) -> Mapping[int, Identity]:
        result = await self._call("get_friend_list")
        return {f.numeric_id: f for f in map(_friend, result or ())}

    async def get_group_list(self) -> Mapping[int, GroupInfo]:
        result = await self._call("get_group_list")
        groups = {g.group_id: g for g in map(_group, result or ())}
        self._group_names.update((gid, g.group_name) for gid, g in groups.items())
        return groups

    async def get_group_member_list(
        self, group_id: int, force_refresh: bool = False
    ) -> Mapping[int, Identity]:
        try:
            result = await self._call(
                "get_group_member_list", group_id=group_id, no_cache=force_refresh
            )
        except OneBotActionError as e:
            if e.retcode is None:
                raise
            # Unknown group
            logger.debug("No member list for group %s: %s", group_id, e)
            return {}
        members = {m.numeric_id: m for m in (_member(group_id, raw) for raw in result or ())}
        self._members[group_id] = members
        return members

    async def get_group_info(self, group_id: int) -> GroupInfo | None:
        try:
            result = await self._call("get_group_info", group_id=group_id, no_cache=True)
        except OneBotActionError as e:
            if e.retcode is None:
                raise
            return None
        if not result:
            return None
        info = _group(result)
        self._group_names[info.group_id] = info.group_name
        return info

    # -- actions ---------------------------------------------------------------

    async def send_to_friend(self, user_id: int, content: OutboundContent) -> None:
        await self._call("send_private_msg", user_id=user_id, message=build_segments(content))

    async def send_to_group(self, group_id: int, content: OutboundContent) -> None:
        await self._call("send_group_msg", group_id=group_id, message=build_segments(content))

    async def set_online_status(self, status: OnlineStatus) -> None:
        await self._call("set_online_status", status=int(status), ext_status=0, battery_status=0)

    async def respond_invitation(self, invitation: GroupInvitation, approve: bool) -> None:
        await self._call(
            "set_group_add_request",
            flag=invitation.flag,
            sub_type="invite",
            approve=approve,
        )

    # -- events ----------------------------------------------------------------

    async def _dispatch(self, data: dict[str, Any]) -> None:
        post_type = data.get("post_type")
        if post_type in ("message", "message_sent"):
            await self._on_message(data)
        elif post_type == "notice":
            await self._on_notice(data)
        elif post_type == "request":
            await self._on_request(data)
        elif post_type == "meta_event":
            return
        else:
            logger.debug("Ignoring OneBot frame with post_type %r", post_type)

    async def _on_message(self, data: dict[str, Any]) -> None:
        if int(data.get("user_id", 0)) == self._uin:
            return
        sender = data.get("sender") or {}
        sender.setdefault("user_id", data["user_id"])
        elements = parse_segments(data.get("message"))
        time = int(data.get("time") or 0)
        if data.get("message_type") == "group":
            group_id = int(data["group_id"])
            await self._emit(
                AdapterEvent.MESSAGE_GROUP,
                GroupMessageEvent(
                    group_id=group_id,
                    group_name=self._group_names.get(group_id, ""),
                    sender=_member(group_id, sender),
                    message=elements,
                    time=time,
                ),
            )
        elif data.get("message_type") == "private":
            await self._emit(
                AdapterEvent.MESSAGE_PRIVATE,
                PrivateMessageEvent(sender=_friend(sender), message=elements, time=time),
            )

    async def _on_notice(self, data: dict[str, Any]) -> None:
        notice_type = data.get("notice_type")
        time = int(data.get("time") or 0)
        if notice_type == "group_increase":
            await self._emit(
                AdapterEvent.GROUP_MEMBER_INCREASE,
                MemberIncreaseEvent(
                    group_id=int(data["group_id"]), user_id=int(data["user_id"]), time=time
                ),
            )
        elif notice_type == "group_decrease":
            group_id = int(data["group_id"])
            user_id = int(data["user_id"])
            member = self._members.get(group_id, {}).get(user_id)
            await self._emit(
                AdapterEvent.GROUP_MEMBER_DECREASE,
                MemberDecreaseEvent(group_id=group_id, user_id=user_id, member=member, time=time),
            )
        elif notice_type == "group_recall":
            await self._emit(
                AdapterEvent.GROUP_RECALL,
                GroupRecallEvent(
                    group_id=int(data["group_id"]),
                    user_id=int(data["user_id"]),
                    operator_id=data.get("operator_id"),
                    message_id=str(data.get("message_id", "")),
                    time=time,
                ),
            )
        elif notice_type == "notify" and data.get("sub_type") == "poke":
            await self._on_poke(data, time)

    async def _on_poke(self, data: dict[str, Any], time: int) -> None:
        # Only private pokes aimed at this account become attention events
        if data.get("group_id") or int(data.get("target_id", 0)) != self._uin:
            return
        sender = Identity(numeric_id=int(data["user_id"]), scope=FRIENDS)
        await self._emit(
            AdapterEvent.MESSAGE_PRIVATE,
            PrivateMessageEvent(
                sender=sender, message=[MessageElement(type=ElementType.POKE)], time=time
            ),
        )

    async def _on_request(self, data: dict[str, Any]) -> None:
        if data.get("request_type") != "group" or data.get("sub_type") != "invite":
            return
        group_id = int(data["group_id"])
        await self._emit(
            AdapterEvent.GROUP_INVITE,
            GroupInviteEvent(
                group_id=group_id,
                group_name=self._group_names.get(group_id, ""),
                inviter_id=int(data["user_id"]),
                flag=str(data.get("flag", "")),
                time=int(data.get("time") or 0),
            ),
        )


def onebot_adapter_factory(config: OneBotConfig) -> AdapterFactory:
    """Adapter factory that connects every session to the same OneBot endpoint."""

    def factory(uin: int, platform: int) -> OneBotAdapter:
        return OneBotAdapter(config, uin=uin, platform=platform)

    return factory
