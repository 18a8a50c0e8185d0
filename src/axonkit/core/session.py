"""Per-connection session: state machine and command dispatcher.

A session owns one protocol adapter (created by ``INIT``), one identity
directory and one serial executor.  Commands and adapter events are both
queued on the executor, so at most one handler runs at a time and handlers
complete in arrival order.
"""

from __future__ import annotations

import asyncio
import base64
import logging
from collections.abc import Awaitable, Callable
from typing import Any

from axonkit.adapters.base import (
    AdapterFactory,
    ProtocolAdapter,
    Subscription,
)
from axonkit.core.executor import SerialExecutor
from axonkit.core.framing import SendFrame
from axonkit.core.relay import EventRelay
from axonkit.errors import (
    AdapterOperationFailedError,
    AxonKitError,
    ClientNotInitializedError,
    HandlerDispatchError,
    IdentityNotFoundError,
    MalformedInputError,
)
from axonkit.identity import codec
from axonkit.identity.directory import IdentityDirectory
from axonkit.models.commands import (
    ApproveCommand,
    BaseCommand,
    Command,
    FListCommand,
    GInfoCommand,
    GListCommand,
    GMListCommand,
    GoAheadCommand,
    GSendCommand,
    GSendImgCommand,
    InitCommand,
    LoginCommand,
    LookupCommand,
    RefuseCommand,
    StatusCommand,
    USendCommand,
    USendImgCommand,
    USendShakeCommand,
    WhoAmICommand,
    parse_command,
)
from axonkit.models.enums import (
    AdapterEvent,
    LoginChallenge,
    LoginMethod,
    MemberRole,
    SessionState,
    StatusCode,
)
from axonkit.models.identity import FRIENDS, GroupInvitation, Scope
from axonkit.models.message import (
    GroupInviteEvent,
    ImageSegment,
    LoginDeviceEvent,
    LoginErrorEvent,
    LoginQRCodeEvent,
    LoginSliderEvent,
    OnlineEvent,
    OutboundContent,
    ShakeSegment,
    TextSegment,
)

logger = logging.getLogger("axonkit.core.session")

Reply = dict[str, Any]

# Separator used when LOOKUP joins several ids or groups into one string
LIST_SEPARATOR = "、"


def status_reply(status: StatusCode) -> Reply:
    return {"status": int(status)}


class Session:
    """State machine for one client connection.

    States::

        uninitialized --INIT--> initialized --LOGIN--> awaiting_login --online--> online
              ^                                                                       |
              +-------------------- INIT (from any state) ----------------------------+

    ``INIT`` always tears down the previous adapter (logging out first when it
    is online) and resets the directory.
    """

    def __init__(
        self,
        send: SendFrame,
        adapter_factory: AdapterFactory,
        *,
        name: str = "session",
    ) -> None:
        self._send = send
        self._adapter_factory = adapter_factory
        self._name = name
        self._executor = SerialExecutor(name)
        self.state = SessionState.UNINITIALIZED
        self.adapter: ProtocolAdapter | None = None
        self.directory = IdentityDirectory()
        self.pending_invitation: GroupInvitation | None = None
        self._relay = EventRelay(
            self.directory,
            self._executor,
            self._send,
            on_invite=self._store_invitation,
        )
        self._login_subscription: Subscription | None = None
        self._event_subscription: Subscription | None = None
        self._background: set[asyncio.Task[Any]] = set()
        self._closed = False
        self._handlers: dict[type[BaseCommand], Callable[[Any], Awaitable[Reply | None]]] = {
            InitCommand: self._on_init,
            LoginCommand: self._on_login,
            GoAheadCommand: self._on_goahead,
            USendCommand: self._on_usend,
            USendImgCommand: self._on_usend_img,
            USendShakeCommand: self._on_usend_shake,
            GSendCommand: self._on_gsend,
            GSendImgCommand: self._on_gsend_img,
            GInfoCommand: self._on_ginfo,
            GMListCommand: self._on_gmlist,
            FListCommand: self._on_flist,
            GListCommand: self._on_glist,
            WhoAmICommand: self._on_whoami,
            StatusCommand: self._on_status,
            LookupCommand: self._on_lookup,
            ApproveCommand: self._on_approve,
            RefuseCommand: self._on_refuse,
        }

    @property
    def name(self) -> str:
        return self._name

    @property
    def executor(self) -> SerialExecutor:
        return self._executor

    @property
    def closed(self) -> bool:
        return self._closed

    # -- intake ----------------------------------------------------------------

    def submit_frame(self, frame: Any) -> asyncio.Future[None] | None:
        """Validate a decoded frame and queue its command.

        Malformed frames are dropped; unknown commands are logged.  Neither
        produces a reply.

        Args:
            frame: One decoded JSON object from the connection.

        Returns:
            A future resolving once the command's reply has been written, or
            ``None`` when the frame was dropped or the session is closed.
        """
        try:
            command = parse_command(frame)
        except HandlerDispatchError as e:
            logger.warning("%s: %s", self._name, e)
            return None
        except MalformedInputError as e:
            logger.debug("%s: dropping frame: %s", self._name, e)
            return None
        return self.submit(command)

    def submit(self, command: Command) -> asyncio.Future[None] | None:
        if self._closed:
            logger.debug("%s: closed, dropping %s", self._name, command.command)
            return None
        return self._executor.submit(lambda: self.handle(command), label=command.command)

    async def handle(self, command: Command) -> None:
        """Run one command handler and write its reply.

        Every failure is converted to a status reply here; nothing a handler
        raises reaches the executor.

        Args:
            command: A parsed command.  Its handler returns the reply, or
                ``None`` when the reply is written later by an event (LOGIN).
        """
        handler = self._handlers[type(command)]
        try:
            reply = await handler(command)
        except AxonKitError as e:
            if isinstance(e, AdapterOperationFailedError):
                logger.error("%s: %s failed: %s", self._name, command.command, e, exc_info=True)
            else:
                logger.debug("%s: %s -> %s", self._name, command.command, e)
            reply = status_reply(e.status)
        except Exception:
            logger.exception("%s: %s failed", self._name, command.command)
            reply = status_reply(StatusCode.UNKNOWN_ERROR)
        if reply is not None:
            await self._send(reply)

    def _require_adapter(self) -> ProtocolAdapter:
        if self.adapter is None:
            raise ClientNotInitializedError("INIT has not been issued")
        return self.adapter

    # -- lifecycle -------------------------------------------------------------

    async def _on_init(self, command: InitCommand) -> Reply:
        await self._teardown_adapter()
        self.adapter = self._adapter_factory(command.uin, command.platform)
        self.directory.reset(self.adapter)
        self.state = SessionState.INITIALIZED
        logger.info("%s: initialized account %s (platform %s)", self._name, command.uin, command.platform)
        return status_reply(StatusCode.OK)

    async def _teardown_adapter(self) -> None:
        adapter = self.adapter
        self._release_subscriptions()
        self.pending_invitation = None
        self.directory.reset()
        self.state = SessionState.UNINITIALIZED
        if adapter is None:
            return
        self.adapter = None
        if adapter.is_online:
            try:
                await adapter.logout()
            except Exception:
                logger.warning("%s: logout of %s failed", self._name, adapter.uin, exc_info=True)
        try:
            await adapter.close()
        except Exception:
            logger.debug("%s: error closing adapter", self._name, exc_info=True)

    def _release_subscriptions(self) -> None:
        for subscription in (self._login_subscription, self._event_subscription):
            if subscription is not None:
                subscription.release()
        self._login_subscription = None
        self._event_subscription = None

    async def _on_login(self, command: LoginCommand) -> Reply | None:
        adapter = self._require_adapter()
        if self.state == SessionState.ONLINE:
            return status_reply(StatusCode.OK)
        if self._login_subscription is not None:
            self._login_subscription.release()
        queued = self._executor.listener
        self._login_subscription = adapter.subscribe(
            {
                AdapterEvent.ONLINE: queued(self._on_online),
                AdapterEvent.LOGIN_ERROR: queued(self._on_login_error),
                AdapterEvent.LOGIN_QRCODE: queued(self._on_login_qrcode),
                AdapterEvent.LOGIN_SLIDER: queued(self._on_login_slider),
                AdapterEvent.LOGIN_DEVICE: queued(self._on_login_device),
            }
        )
        self.state = SessionState.AWAITING_LOGIN
        password = command.passwd if command.method == LoginMethod.PASSWORD else None
        try:
            await adapter.login(password)
        except Exception as e:
            self._login_subscription.release()
            self._login_subscription = None
            self.state = SessionState.INITIALIZED
            raise AdapterOperationFailedError(f"login failed: {e}") from e
        return None

    async def _on_goahead(self, command: GoAheadCommand) -> None:
        adapter = self._require_adapter()
        await adapter.login(None)

    async def _on_online(self, event: OnlineEvent) -> None:
        adapter = self.adapter
        if adapter is None:
            return
        if self._event_subscription is None:
            self._event_subscription = self._relay.bind(adapter)
        self.state = SessionState.ONLINE
        try:
            await self.directory.build()
        except Exception:
            logger.warning("%s: failed to build identity directory", self._name, exc_info=True)
        logger.info("%s: account %s online", self._name, adapter.uin)
        await self._send(status_reply(StatusCode.OK))

    async def _on_login_error(self, event: LoginErrorEvent) -> None:
        logger.warning("%s: login error %s: %s", self._name, event.code, event.message)
        await self._send_challenge(LoginChallenge.ERROR, message=event.message)

    async def _on_login_qrcode(self, event: LoginQRCodeEvent) -> None:
        await self._send_challenge(LoginChallenge.QRCODE, data=base64.b64encode(event.image).decode())

    async def _on_login_slider(self, event: LoginSliderEvent) -> None:
        await self._send_challenge(LoginChallenge.SLIDER, url=event.url)

    async def _on_login_device(self, event: LoginDeviceEvent) -> None:
        await self._send_challenge(LoginChallenge.DEVICE, url=event.url)

    async def _send_challenge(self, challenge: LoginChallenge, **fields: str) -> None:
        await self._send({"status": int(StatusCode.UNKNOWN_ERROR), "login": int(challenge), **fields})

    def _store_invitation(self, event: GroupInviteEvent) -> None:
        self.pending_invitation = event

    async def close(self) -> None:
        """Tear the session down after the connection closed.

        Runs outside the serial queue: listeners are released immediately,
        an online adapter is logged out in the background, and queued work
        that has not started is discarded.
        """
        if self._closed:
            return
        self._closed = True
        adapter = self.adapter
        self._release_subscriptions()
        self.adapter = None
        self.state = SessionState.UNINITIALIZED
        if adapter is not None:
            self._schedule(self._shutdown_adapter(adapter))
        await self._executor.stop()
        self.directory.reset()
        logger.info("%s: closed", self._name)

    async def _shutdown_adapter(self, adapter: ProtocolAdapter) -> None:
        if adapter.is_online:
            try:
                await adapter.logout()
            except Exception:
                logger.warning("%s: logout of %s failed", self._name, adapter.uin, exc_info=True)
        try:
            await adapter.close()
        except Exception:
            logger.debug("%s: error closing adapter", self._name, exc_info=True)

    def _schedule(self, coro: Awaitable[None]) -> None:
        task = asyncio.ensure_future(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    async def wait_background(self) -> None:
        """Wait for fire-and-forget teardown work to finish."""
        if self._background:
            await asyncio.gather(*self._background, return_exceptions=True)

    # -- messaging -------------------------------------------------------------

    async def _send_to_friend(self, alternate_name: str, content: OutboundContent) -> Reply:
        adapter = self._require_adapter()
        friend = await self.directory.resolve_id(FRIENDS, alternate_name)
        _, tail = codec.split_alternate_name(alternate_name)
        if friend is None or tail is None:
            # A bare name is only unambiguous against the current friend list
            await self.directory.refresh_scope(FRIENDS, force=True)
            friend = await self.directory.resolve_id(FRIENDS, alternate_name)
        if friend is None:
            raise IdentityNotFoundError(f"no friend named {alternate_name!r}")
        await adapter.send_to_friend(friend.numeric_id, content)
        return status_reply(StatusCode.OK)

    async def _send_to_group(self, group_id: int, content: OutboundContent) -> Reply:
        adapter = self._require_adapter()
        await adapter.send_to_group(group_id, content)
        return status_reply(StatusCode.OK)

    async def _on_usend(self, command: USendCommand) -> Reply:
        return await self._send_to_friend(command.id, TextSegment(text=command.message))

    async def _on_usend_img(self, command: USendImgCommand) -> Reply:
        return await self._send_to_friend(command.id, ImageSegment(data=command.image))

    async def _on_usend_shake(self, command: USendShakeCommand) -> Reply:
        return await self._send_to_friend(command.id, ShakeSegment())

    async def _on_gsend(self, command: GSendCommand) -> Reply:
        return await self._send_to_group(command.id, TextSegment(text=command.message))

    async def _on_gsend_img(self, command: GSendImgCommand) -> Reply:
        return await self._send_to_group(command.id, ImageSegment(data=command.image))

    # -- queries ---------------------------------------------------------------

    async def _on_ginfo(self, command: GInfoCommand) -> Reply:
        adapter = self._require_adapter()
        info = await adapter.get_group_info(command.id)
        if info is None:
            raise IdentityNotFoundError(f"unknown group {command.id}")
        return {"status": int(StatusCode.OK), "name": info.group_name, "topic": info.topic}

    async def _on_gmlist(self, command: GMListCommand) -> Reply:
        self._require_adapter()
        scope = Scope.group(command.id)
        table = await self.directory.refresh_scope(scope)
        if not table.identities:
            # Possibly joined since the table was cached
            table = await self.directory.refresh_scope(scope, force=True)
        if not table.identities:
            raise IdentityNotFoundError(f"no members known for group {command.id}")
        friends = await self.directory.refresh_scope(FRIENDS)
        names: list[str] = []
        admins: list[str] = []
        owner: str | None = None
        for member in table.identities.values():
            # Friends are listed by their friend-scope name so USEND accepts it
            friend = friends.identities.get(member.numeric_id)
            name = await self.directory.resolve_name(friend or member)
            names.append(name)
            if member.role == MemberRole.OWNER:
                owner = name
            elif member.role == MemberRole.ADMIN:
                admins.append(name)
        return {"status": int(StatusCode.OK), "list": names, "owner": owner, "admin": admins}

    async def _on_flist(self, command: FListCommand) -> Reply:
        self._require_adapter()
        table = await self.directory.refresh_scope(FRIENDS, force=True)
        names = [await self.directory.resolve_name(f) for f in table.identities.values()]
        return {"status": int(StatusCode.OK), "list": names, "idlist": list(table.identities)}

    async def _on_glist(self, command: GListCommand) -> Reply:
        self._require_adapter()
        groups = await self.directory.groups(force=True)
        return {
            "status": int(StatusCode.OK),
            "namelist": [g.group_name for g in groups.values()],
            "idlist": [str(gid) for gid in groups],
        }

    async def _on_whoami(self, command: WhoAmICommand) -> Reply:
        adapter = self._require_adapter()
        return {"status": int(StatusCode.OK), "name": adapter.nickname}

    async def _on_status(self, command: StatusCommand) -> Reply:
        adapter = self._require_adapter()
        await adapter.set_online_status(command.online_status)
        return status_reply(StatusCode.OK)

    async def _on_lookup(self, command: LookupCommand) -> Reply:
        self._require_adapter()
        related = self.directory.search(command.nickname)
        if not related:
            raise IdentityNotFoundError(f"nobody named {command.nickname!r}")
        groups = await self.directory.groups()
        ids = list(dict.fromkeys(i.numeric_id for i in related))
        relation = []
        for group_id in dict.fromkeys(i.scope.group_id for i in related):
            info = groups.get(group_id) if group_id is not None else None
            if info is not None:
                relation.append(f"{info.group_name}[{info.group_id}]")
        first = related[0]
        return {
            "status": int(StatusCode.OK),
            "nickname": first.display_name,
            "id": LIST_SEPARATOR.join(str(i) for i in ids),
            "relation": LIST_SEPARATOR.join(relation),
            "sex": first.sex,
        }

    # -- invitations -----------------------------------------------------------

    async def _respond_invitation(self, approve: bool) -> Reply:
        adapter = self._require_adapter()
        invitation = self.pending_invitation
        if invitation is None:
            raise IdentityNotFoundError("no pending invitation")
        await adapter.respond_invitation(invitation, approve)
        self.pending_invitation = None
        return status_reply(StatusCode.OK)

    async def _on_approve(self, command: ApproveCommand) -> Reply:
        return await self._respond_invitation(True)

    async def _on_refuse(self, command: RefuseCommand) -> Reply:
        return await self._respond_invitation(False)

