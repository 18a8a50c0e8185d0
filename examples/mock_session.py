"""Mock session walkthrough.

Starts an AxonServer backed by MockProtocolAdapter on a free port and drives
it over a real socket. Shows:
- INIT / LOGIN and the online reply
- Alternate names for friends that share a nickname (Tom#1234, Tom#5678)
- USEND by alternate name, and NotFound for an ambiguous bare name
- Event frames relayed from the adapter (a private message)

Run with:
    uv run python examples/mock_session.py
"""

from __future__ import annotations

import asyncio
import json
import logging

from axonkit import AxonConfig, AxonServer, GroupInfo, MockProtocolAdapter
from axonkit.adapters.mock import friend, member
from axonkit.models.enums import AdapterEvent, MemberRole
from axonkit.models.message import MessageElement, PrivateMessageEvent

logging.basicConfig(level=logging.INFO)

adapters: list[MockProtocolAdapter] = []


def make_adapter(uin: int, platform: int) -> MockProtocolAdapter:
    adapter = MockProtocolAdapter(
        uin,
        platform,
        nickname="demo-bot",
        friends=[friend(11234, "Tom"), friend(25678, "Tom"), friend(30001, "Ann")],
        groups=[GroupInfo(group_id=500, group_name="Dev", topic="release train")],
        members={
            500: [
                member(500, 11234, "Tom", role=MemberRole.OWNER),
                member(500, 40003, "Eve", card="Evie", role=MemberRole.ADMIN),
            ]
        },
    )
    adapters.append(adapter)
    return adapter


async def main() -> None:
    async with AxonServer(AxonConfig(port=0), adapter_factory=make_adapter) as server:
        reader, writer = await asyncio.open_connection("127.0.0.1", server.port)

        async def call(frame: dict) -> dict:
            writer.write(json.dumps(frame).encode() + b"\n")
            await writer.drain()
            reply = json.loads(await reader.readline())
            print(f"> {frame}\n< {reply}")
            return reply

        await call({"command": "INIT", "uin": 10001, "platform": 1})
        await call({"command": "LOGIN", "method": 0, "passwd": "hunter2"})
        await call({"command": "FLIST"})
        await call({"command": "USEND", "id": "Tom#5678", "message": "hi Tom"})
        await call({"command": "USEND", "id": "Tom", "message": "which Tom?"})
        await call({"command": "GMLIST", "id": 500})

        # --- Inbound event from the IM side ---
        await adapters[-1].emit(
            AdapterEvent.MESSAGE_PRIVATE,
            PrivateMessageEvent(
                sender=friend(30001, "Ann"),
                message=[MessageElement.plain("lunch?")],
                time=1700000000,
            ),
        )
        print(f"< event {json.loads(await reader.readline())}")

        writer.close()
        await writer.wait_closed()


if __name__ == "__main__":
    asyncio.run(main())
