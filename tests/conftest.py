"""Shared test fixtures and helpers."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Callable, Coroutine, Mapping
from typing import Any

import pytest

from axonkit.adapters.mock import MockProtocolAdapter, friend, member
from axonkit.core.session import Session
from axonkit.models.enums import MemberRole
from axonkit.models.identity import GroupInfo


@pytest.fixture
def advance() -> Callable[[int], Coroutine[Any, Any, None]]:
    """Yield control to let pending tasks run without real delay.

    await advance()       # 5 yields (default)
    await advance(10)     # 10 yields for heavier workloads
    """

    async def _advance(n: int = 5) -> None:
        for _ in range(n):
            await asyncio.sleep(0)

    return _advance


class RecordingSink:
    """Stands in for a connection writer; keeps every frame written."""

    def __init__(self) -> None:
        self.frames: list[dict[str, Any]] = []

    async def __call__(self, frame: Mapping[str, Any]) -> None:
        self.frames.append(dict(frame))

    @property
    def last(self) -> dict[str, Any]:
        return self.frames[-1]

    def events(self) -> list[dict[str, Any]]:
        return [f for f in self.frames if f.get("status") == 1]

    def clear(self) -> None:
        self.frames.clear()


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()


def make_adapter(uin: int = 10001, platform: int = 1, **kwargs: Any) -> MockProtocolAdapter:
    """Mock account with two friends named Tom and two groups.

    Friends: Tom (11234), Tom (25678), Ann (30001).
    Group 500 "Dev": Tom (11234), Bob (owner), Eve carded "Evie" (admin),
    Tom (40004), Annie (30001, also the friend Ann).
    Group 600 "Ops": Bob (40002), Zed (40005).
    """
    defaults: dict[str, Any] = {
        "friends": [
            friend(11234, "Tom"),
            friend(25678, "Tom"),
            friend(30001, "Ann"),
        ],
        "groups": [
            GroupInfo(group_id=500, group_name="Dev", topic="build stuff", member_count=5),
            GroupInfo(group_id=600, group_name="Ops", member_count=2),
        ],
        "members": {
            500: [
                member(500, 11234, "Tom"),
                member(500, 40002, "Bob", role=MemberRole.OWNER),
                member(500, 40003, "Eve", card="Evie", role=MemberRole.ADMIN),
                member(500, 40004, "Tom"),
                member(500, 30001, "Annie"),
            ],
            600: [
                member(600, 40002, "Bob"),
                member(600, 40005, "Zed"),
            ],
        },
    }
    defaults.update(kwargs)
    return MockProtocolAdapter(uin, platform, **defaults)


class AdapterFactoryRecorder:
    """Adapter factory that remembers every adapter it built."""

    def __init__(self, **kwargs: Any) -> None:
        self.kwargs = kwargs
        self.created: list[MockProtocolAdapter] = []

    def __call__(self, uin: int, platform: int) -> MockProtocolAdapter:
        adapter = make_adapter(uin, platform, **self.kwargs)
        self.created.append(adapter)
        return adapter

    @property
    def latest(self) -> MockProtocolAdapter:
        return self.created[-1]


@pytest.fixture
def factory() -> AdapterFactoryRecorder:
    return AdapterFactoryRecorder()


@pytest.fixture
async def session(sink: RecordingSink, factory: AdapterFactoryRecorder) -> AsyncIterator[Session]:
    s = Session(sink, factory, name="test")
    yield s
    await s.close()
    await s.wait_background()


async def run(session: Session, frame: dict[str, Any]) -> None:
    """Submit one frame and wait until every job queued so far has run."""
    future = session.submit_frame(frame)
    if future is not None:
        await future
    await drain(session)


async def drain(session: Session) -> None:
    async def _noop() -> None:
        return None

    await session.executor.submit(_noop, label="drain")


async def go_online(session: Session, uin: int = 10001) -> None:
    await run(session, {"command": "INIT", "uin": uin, "platform": 1})
    await run(session, {"command": "LOGIN", "method": 0, "passwd": "secret"})
