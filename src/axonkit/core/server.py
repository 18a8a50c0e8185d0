"""TCP server accepting client connections, one session per connection."""

from __future__ import annotations

import asyncio
import itertools
import logging
from typing import Any

from axonkit.adapters.base import AdapterFactory
from axonkit.config import AxonConfig
from axonkit.core.framing import FrameReader, FrameWriter
from axonkit.core.session import Session

logger = logging.getLogger("axonkit.core.server")


class AxonServer:
    """Listens for clients and runs a :class:`Session` for each connection.

    Example:
        from axonkit import AxonServer
        from axonkit.adapters.mock import MockProtocolAdapter

        async with AxonServer(adapter_factory=MockProtocolAdapter) as server:
            await server.serve_forever()
    """

    def __init__(
        self,
        config: AxonConfig | None = None,
        *,
        adapter_factory: AdapterFactory,
    ) -> None:
        """Initialise the server.

        Args:
            config: Listen address and framing limits. Defaults to
                ``AxonConfig()`` (``127.0.0.1:9999``).
            adapter_factory: Called with ``(uin, platform)`` on every ``INIT``
                to create that session's protocol adapter.
        """
        self._config = config or AxonConfig()
        self._adapter_factory = adapter_factory
        self._server: asyncio.Server | None = None
        self._sessions: dict[Session, asyncio.Task[Any]] = {}
        self._ids = itertools.count(1)

    @property
    def config(self) -> AxonConfig:
        return self._config

    @property
    def sessions(self) -> list[Session]:
        return list(self._sessions)

    @property
    def port(self) -> int:
        """Bound port; useful when configured with port 0.

        Raises:
            RuntimeError: If the server has not been started.
        """
        if self._server is None or not self._server.sockets:
            raise RuntimeError("server is not running")
        return int(self._server.sockets[0].getsockname()[1])

    async def start(self) -> None:
        if self._server is not None:
            return
        self._server = await asyncio.start_server(
            self._on_connection,
            host=self._config.host,
            port=self._config.port,
            limit=self._config.max_frame_bytes,
        )
        logger.info("Listening on %s:%s", self._config.host, self.port)

    async def serve_forever(self) -> None:
        await self.start()
        assert self._server is not None
        await self._server.serve_forever()

    async def stop(self) -> None:
        """Stop accepting connections and close every live session."""
        server, self._server = self._server, None
        if server is not None:
            server.close()
        for task in list(self._sessions.values()):
            task.cancel()
        if self._sessions:
            await asyncio.gather(*self._sessions.values(), return_exceptions=True)
        if server is not None:
            await server.wait_closed()
        logger.info("Server stopped")

    async def __aenter__(self) -> AxonServer:
        await self.start()
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.stop()

    async def _on_connection(
        self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter
    ) -> None:
        peer = writer.get_extra_info("peername")
        frames = FrameWriter(writer, debug=self._config.debug)
        session = Session(
            frames.write,
            self._adapter_factory,
            name=f"session-{next(self._ids)}",
        )
        task = asyncio.current_task()
        assert task is not None
        self._sessions[session] = task
        logger.info("%s: connected from %s", session.name, peer)
        try:
            async for frame in FrameReader(reader, debug=self._config.debug):
                session.submit_frame(frame)
        except ConnectionError as e:
            logger.info("%s: connection lost: %s", session.name, e)
        finally:
            await session.close()
            await frames.close()
            self._sessions.pop(session, None)
            logger.info("%s: disconnected", session.name)
