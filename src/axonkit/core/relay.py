"""Event relay: adapter events -> normalized event frames.

Every adapter event is queued on the session's serial executor; the handler
resolves the actor's alternate name through the identity directory and
writes the resulting event record.  Name-resolution failures never block an
event; the actor is then reported as :data:`UNKNOWN_IDENTITY`.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field

from axonkit.adapters.base import ProtocolAdapter, Subscription
from axonkit.core.executor import SerialExecutor
from axonkit.core.framing import SendFrame
from axonkit.identity.codec import UNKNOWN_IDENTITY
from axonkit.identity.directory import IdentityDirectory
from axonkit.models.enums import AdapterEvent, ElementType
from axonkit.models.events import (
    EventRecord,
    FriendAttention,
    FriendImageMessage,
    FriendMessage,
    GroupImageMessage,
    GroupInvite,
    GroupMemberDecrease,
    GroupMemberIncrease,
    GroupMessage,
    GroupRecall,
)
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

logger = logging.getLogger("axonkit.core.relay")

# Elements whose projection counts as message text
TEXTUAL_ELEMENTS = frozenset({ElementType.TEXT, ElementType.AT, ElementType.FACE})


# ---------------------------------------------------------------------------
# Message projection
# ---------------------------------------------------------------------------


def project_element(element: MessageElement) -> str:
    """Render one element as text."""
    kind = element.type
    if kind in (ElementType.TEXT, ElementType.AT):
        return element.text
    if kind == ElementType.FACE:
        return f"[{element.text}]"
    if kind == ElementType.IMAGE:
        return f"[image: {element.url}]" if element.url else "[image]"
    if kind == ElementType.FLASH:
        return f"[flash image: {element.url}]" if element.url else "[flash image]"
    if kind in (ElementType.FILE, ElementType.VIDEO):
        return f"[unsupported content: {kind.value}]"
    if kind == ElementType.POKE:
        return "[poke]"
    return "[unknown content]"


@dataclass
class ProjectedMessage:
    """A message chain split into its text body and side events.

    ``attachments`` holds ``(ElementType.IMAGE, url)`` for images and flash
    images that carry a URL, and ``(ElementType.POKE, None)`` for pokes, in
    chain order.
    """

    text: str = ""
    has_text: bool = False
    attachments: list[tuple[ElementType, str | None]] = field(default_factory=list)


def project_message(elements: Iterable[MessageElement]) -> ProjectedMessage:
    """Project a message chain element by element.

    ``has_text`` is false when the textual elements are blank, in which case
    no message event is emitted for the chain; placeholders for unsupported
    content do not count as text.
    """
    projected = ProjectedMessage()
    parts: list[str] = []
    textual: list[str] = []
    for element in elements:
        if element.type == ElementType.POKE:
            projected.attachments.append((ElementType.POKE, None))
            continue
        if element.type in (ElementType.IMAGE, ElementType.FLASH) and element.url:
            projected.attachments.append((ElementType.IMAGE, element.url))
            continue
        fragment = project_element(element)
        parts.append(fragment)
        if element.type in TEXTUAL_ELEMENTS:
            textual.append(fragment)
    projected.text = "".join(parts)
    projected.has_text = bool("".join(textual).strip())
    return projected


# ---------------------------------------------------------------------------
# Relay
# ---------------------------------------------------------------------------


class EventRelay:
    """Subscribes to adapter events and writes normalized event frames.

    Handlers run on the session's :class:`SerialExecutor`, never directly from
    the adapter's callback, so event delivery stays ordered with respect to
    in-flight commands.
    """

    def __init__(
        self,
        directory: IdentityDirectory,
        executor: SerialExecutor,
        send: SendFrame,
        *,
        on_invite: Callable[[GroupInviteEvent], None] | None = None,
    ) -> None:
        self._directory = directory
        self._executor = executor
        self._send = send
        self._on_invite = on_invite

    def bind(self, adapter: ProtocolAdapter) -> Subscription:
        """Subscribe to *adapter*; release the returned handle to unbind."""
        queued = self._executor.listener
        return adapter.subscribe(
            {
                AdapterEvent.MESSAGE_PRIVATE: queued(self.on_private_message),
                AdapterEvent.MESSAGE_GROUP: queued(self.on_group_message),
                AdapterEvent.GROUP_INVITE: queued(self.on_group_invite),
                AdapterEvent.GROUP_MEMBER_INCREASE: queued(self.on_member_increase),
                AdapterEvent.GROUP_MEMBER_DECREASE: queued(self.on_member_decrease),
                AdapterEvent.GROUP_RECALL: queued(self.on_group_recall),
            }
        )

    async def _write(self, record: EventRecord) -> None:
        await self._send(record.to_frame())

    async def _name(self, identity: Identity) -> str:
        try:
            # The directory's record may carry a newer card than the event
            known = await self._directory.lookup(identity.scope, identity.numeric_id)
            return await self._directory.resolve_name(known or identity)
        except Exception:
            logger.warning("Failed to resolve name of %s", identity.numeric_id, exc_info=True)
            return UNKNOWN_IDENTITY

    async def _refresh(self, scope: Scope) -> None:
        try:
            await self._directory.refresh_scope(scope, force=True)
        except Exception:
            logger.warning("Failed to refresh %s", scope, exc_info=True)

    # -- handlers --------------------------------------------------------------

    async def on_private_message(self, event: PrivateMessageEvent) -> None:
        sender = await self._name(event.sender)
        projected = project_message(event.message)
        for kind, url in projected.attachments:
            if kind == ElementType.POKE:
                await self._write(FriendAttention(sender=sender, time=event.time))
            elif url is not None:
                await self._write(FriendImageMessage(sender=sender, time=event.time, url=url))
        if not projected.has_text:
            return
        await self._write(FriendMessage(sender=sender, time=event.time, text=projected.text))

    async def on_group_message(self, event: GroupMessageEvent) -> None:
        sender = await self._name(event.sender)
        projected = project_message(event.message)
        for kind, url in projected.attachments:
            # Pokes inside a group chain carry no attention event
            if kind == ElementType.IMAGE and url is not None:
                await self._write(
                    GroupImageMessage(
                        sender=sender,
                        time=event.time,
                        url=url,
                        name=event.group_name,
                        id=event.group_id,
                    )
                )
        if not projected.has_text:
            return
        await self._write(
            GroupMessage(
                sender=sender,
                time=event.time,
                text=projected.text,
                name=event.group_name,
                id=event.group_id,
            )
        )

    async def on_group_invite(self, event: GroupInviteEvent) -> None:
        if self._on_invite is not None:
            self._on_invite(event)
        sender = await self._directory.name_for_id(FRIENDS, event.inviter_id)
        await self._write(
            GroupInvite(sender=sender, id=event.group_id, name=event.group_name, time=event.time)
        )

    async def on_member_increase(self, event: MemberIncreaseEvent) -> None:
        scope = Scope.group(event.group_id)
        # The new member must be in the table before its name is derived
        await self._refresh(scope)
        name = await self._directory.name_for_id(scope, event.user_id)
        await self._write(GroupMemberIncrease(name=name, id=event.group_id, time=event.time))

    async def on_member_decrease(self, event: MemberDecreaseEvent) -> None:
        scope = Scope.group(event.group_id)
        if event.member is not None:
            name = await self._name(event.member)
        else:
            name = await self._directory.name_for_id(scope, event.user_id)
        await self._refresh(scope)
        await self._write(GroupMemberDecrease(name=name, id=event.group_id, time=event.time))

    async def on_group_recall(self, event: GroupRecallEvent) -> None:
        scope = Scope.group(event.group_id)
        name = await self._directory.name_for_id(scope, event.user_id)
        await self._write(GroupRecall(name=name, id=event.group_id, time=event.time))
