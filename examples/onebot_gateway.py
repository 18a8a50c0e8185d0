"""OneBot v11 gateway.

Serves the line-delimited JSON protocol on 127.0.0.1:9999 and forwards
every session to a OneBot v11 implementation (NapCat, LLOneBot, ...) over
its forward WebSocket endpoint.

Environment variables:
    ONEBOT_URL            forward WebSocket URL (default ws://127.0.0.1:3001)
    ONEBOT_ACCESS_TOKEN   access token configured on the OneBot side

Run with:
    uv run python examples/onebot_gateway.py

Then connect with any line-oriented client, e.g.:
    printf '{"command":"INIT","uin":10001,"platform":1}\n' | nc 127.0.0.1 9999
"""

from __future__ import annotations

import asyncio
import logging
import os

from axonkit import AxonConfig, AxonServer, OneBotConfig
from axonkit.adapters.onebot import onebot_adapter_factory

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)


async def main() -> None:
    onebot = OneBotConfig(
        url=os.environ.get("ONEBOT_URL", "ws://127.0.0.1:3001"),
        access_token=os.environ.get("ONEBOT_ACCESS_TOKEN") or None,
    )
    config = AxonConfig(debug=bool(os.environ.get("AXON_DEBUG")))
    async with AxonServer(config, adapter_factory=onebot_adapter_factory(onebot)) as server:
        print(f"Listening on {config.host}:{server.port}, backend {onebot.url}")
        await server.serve_forever()


if __name__ == "__main__":
    asyncio.run(main())
