"""Base abstraction for protocol adapters.

A protocol adapter wraps a third-party instant-messaging client: it performs
login, enumerates contacts and groups, sends messages and emits inbound
events.  AxonKit never speaks the IM wire protocol itself.
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable, Mapping
from typing import Any

from axonkit.models.enums import AdapterEvent, OnlineStatus
from axonkit.models.identity import GroupInfo, GroupInvitation, Identity
from axonkit.models.message import OutboundContent

logger = logging.getLogger("axonkit.adapters")

# Type alias for event listeners; payloads are the models in axonkit.models.message
AdapterEventHandler = Callable[[Any], Awaitable[None] | None]

# Creates the protocol adapter for an account: (uin, platform) -> adapter
AdapterFactory = Callable[[int, int], "ProtocolAdapter"]


class Subscription:
    """Handle for a group of listeners registered with :meth:`ProtocolAdapter.subscribe`.

    Releasing the handle removes exactly the listeners it registered.
    Release is idempotent; the handle can also be used as a context manager.
    """

    def __init__(
        self,
        adapter: ProtocolAdapter,
        handlers: Mapping[AdapterEvent, AdapterEventHandler],
    ) -> None:
        self._adapter = adapter
        self._handlers = dict(handlers)
        self._active = True

    @property
    def active(self) -> bool:
        return self._active

    @property
    def events(self) -> frozenset[AdapterEvent]:
        return frozenset(self._handlers)

    def release(self) -> None:
        if not self._active:
            return
        self._active = False
        for event, handler in self._handlers.items():
            self._adapter._remove_listener(event, handler)

    def __enter__(self) -> Subscription:
        return self

    def __exit__(self, *exc: object) -> None:
        self.release()


class ProtocolAdapter(ABC):
    """Capability interface consumed by a session.

    All I/O methods may suspend.  Implementations raise on failure; the
    session converts any exception into an ``UnknownError`` reply.

    Lifecycle:
        1. Created by an adapter factory on ``INIT``
        2. ``login()`` - emits ``online`` or one of the login challenge events
        3. Inbound events are delivered to subscribers
        4. ``logout()`` and ``close()`` on re-initialization or disconnect
    """

    @property
    @abstractmethod
    def uin(self) -> int:
        """Account number this adapter logs in as."""
        ...

    @property
    @abstractmethod
    def nickname(self) -> str:
        """Nickname of the logged-in account."""
        ...

    @property
    @abstractmethod
    def is_online(self) -> bool: ...

    @abstractmethod
    async def login(self, password: str | None = None) -> None:
        """Start or resume login.

        ``password=None`` requests QR-code login, or resumes a login that is
        waiting on a slider or device challenge.
        """
        ...

    @abstractmethod
    async def logout(self) -> None: ...

    @abstractmethod
    async def get_friend_list(self) -> Mapping[int, Identity]: ...

    @abstractmethod
    async def get_group_list(self) -> Mapping[int, GroupInfo]: ...

    @abstractmethod
    async def get_group_member_list(
        self, group_id: int, force_refresh: bool = False
    ) -> Mapping[int, Identity]:
        """Members of *group_id*; empty when the group is unknown."""
        ...

    @abstractmethod
    async def get_group_info(self, group_id: int) -> GroupInfo | None: ...

    @abstractmethod
    async def send_to_friend(self, user_id: int, content: OutboundContent) -> None: ...

    @abstractmethod
    async def send_to_group(self, group_id: int, content: OutboundContent) -> None: ...

    @abstractmethod
    async def set_online_status(self, status: OnlineStatus) -> None: ...

    @abstractmethod
    async def respond_invitation(self, invitation: GroupInvitation, approve: bool) -> None: ...

    @abstractmethod
    def subscribe(self, handlers: Mapping[AdapterEvent, AdapterEventHandler]) -> Subscription:
        """Register *handlers* and return the handle that removes them."""
        ...

    @abstractmethod
    def _remove_listener(self, event: AdapterEvent, handler: AdapterEventHandler) -> None: ...

    async def close(self) -> None:
        """Release transport resources.  Default is a no-op."""
        return None


class BaseProtocolAdapter(ProtocolAdapter):
    """Convenience base class with a listener registry.

    Provides:
    - ``subscribe`` / ``Subscription`` bookkeeping
    - ``_emit`` to fan a payload out to the listeners of one event
    """

    def __init__(self) -> None:
        self._listeners: dict[AdapterEvent, list[AdapterEventHandler]] = {}

    def subscribe(self, handlers: Mapping[AdapterEvent, AdapterEventHandler]) -> Subscription:
        for event, handler in handlers.items():
            self._listeners.setdefault(event, []).append(handler)
        return Subscription(self, handlers)

    def _remove_listener(self, event: AdapterEvent, handler: AdapterEventHandler) -> None:
        listeners = self._listeners.get(event)
        if not listeners:
            return
        try:
            listeners.remove(handler)
        except ValueError:
            return
        if not listeners:
            del self._listeners[event]

    def listener_count(self, event: AdapterEvent | None = None) -> int:
        if event is None:
            return sum(len(v) for v in self._listeners.values())
        return len(self._listeners.get(event, ()))

    async def _emit(self, event: AdapterEvent, payload: Any) -> None:
        """Invoke every listener of *event*; listener errors are logged."""
        for handler in list(self._listeners.get(event, ())):
            try:
                result = handler(payload)
                if asyncio.iscoroutine(result) or asyncio.isfuture(result):
                    await result
            except Exception:
                logger.warning("Listener for %s failed", event, exc_info=True)
