"""Command-line entry point: ``axonkit`` / ``python -m axonkit``."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys

from axonkit._version import __version__
from axonkit.adapters.base import AdapterFactory
from axonkit.config import DEFAULT_HOST, DEFAULT_PORT, AxonConfig, OneBotConfig
from axonkit.core.server import AxonServer

logger = logging.getLogger("axonkit.cli")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="axonkit",
        description="Socket server fronting an instant-messaging client",
    )
    parser.add_argument("-a", "--host", default=DEFAULT_HOST, help="Address to listen on")
    parser.add_argument("-p", "--port", type=int, default=DEFAULT_PORT, help="Port to listen on")
    parser.add_argument(
        "-d", "--debug", action="store_true", help="Log every frame read and written"
    )
    parser.add_argument(
        "--onebot-url",
        default="ws://127.0.0.1:3001",
        help="Forward WebSocket endpoint of the OneBot v11 backend",
    )
    parser.add_argument(
        "--access-token", default=None, help="Access token for the OneBot backend"
    )
    parser.add_argument(
        "--mock", action="store_true", help="Serve an in-memory mock account (for testing clients)"
    )
    parser.add_argument("-V", "--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def make_factory(args: argparse.Namespace) -> AdapterFactory:
    if args.mock:
        from axonkit.adapters.mock import MockProtocolAdapter

        return MockProtocolAdapter

    from axonkit.adapters.onebot import onebot_adapter_factory

    return onebot_adapter_factory(
        OneBotConfig(url=args.onebot_url, access_token=args.access_token)
    )


async def _serve(config: AxonConfig, factory: AdapterFactory) -> None:
    async with AxonServer(config, adapter_factory=factory) as server:
        await server.serve_forever()


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(sys.argv[1:] if argv is None else argv)
    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    config = AxonConfig(host=args.host, port=args.port, debug=args.debug)
    try:
        asyncio.run(_serve(config, make_factory(args)))
    except KeyboardInterrupt:
        logger.info("Interrupted")
    return 0
