"""Newline-delimited JSON framing over asyncio streams."""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import AsyncIterator, Awaitable, Callable, Mapping
from typing import Any

logger = logging.getLogger("axonkit.core.framing")

# Writes one outbound frame to the client connection
SendFrame = Callable[[Mapping[str, Any]], Awaitable[None]]


class FrameReader:
    """Yields one decoded JSON object per line.

    Lines that are not valid UTF-8 JSON objects, or that exceed the stream
    limit, are dropped and reading continues.
    """

    def __init__(self, reader: asyncio.StreamReader, *, debug: bool = False) -> None:
        self._reader = reader
        self._debug = debug
        self.dropped = 0

    def __aiter__(self) -> AsyncIterator[dict[str, Any]]:
        return self._frames()

    async def _frames(self) -> AsyncIterator[dict[str, Any]]:
        while True:
            try:
                line = await self._reader.readline()
            except ValueError:
                # Line longer than the stream limit; the buffer is discarded.
                self.dropped += 1
                logger.warning("Dropped oversized frame")
                continue
            if not line:
                return
            if not line.strip():
                continue
            frame = decode_frame(line)
            if frame is None:
                self.dropped += 1
                continue
            if self._debug:
                logger.debug("IN: %s", frame)
            yield frame


def decode_frame(line: bytes | str) -> dict[str, Any] | None:
    """Decode one line, returning ``None`` for anything but a JSON object."""
    try:
        if isinstance(line, bytes):
            line = line.decode("utf-8")
        data = json.loads(line)
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        logger.debug("Failed to parse frame: %s", e)
        return None
    if not isinstance(data, dict):
        logger.debug("Ignoring non-object frame")
        return None
    return data


def encode_frame(frame: Mapping[str, Any]) -> bytes:
    return (json.dumps(frame, ensure_ascii=False, separators=(",", ":")) + "\n").encode("utf-8")


class FrameWriter:
    """Writes one JSON object per line and drains the transport.

    Writes after the peer has gone away are silently dropped; the reader
    side notices the disconnect and tears the session down.
    """

    def __init__(self, writer: asyncio.StreamWriter, *, debug: bool = False) -> None:
        self._writer = writer
        self._debug = debug
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed or self._writer.is_closing()

    async def write(self, frame: Mapping[str, Any]) -> None:
        if self.closed:
            logger.debug("Connection closed, dropping frame %s", frame)
            return
        if self._debug:
            logger.debug("OUT: %s", frame)
        try:
            self._writer.write(encode_frame(frame))
            await self._writer.drain()
        except ConnectionError:
            self._closed = True
            logger.debug("Connection lost while writing", exc_info=True)

    async def close(self) -> None:
        self._closed = True
        if not self._writer.is_closing():
            self._writer.close()
        try:
            await self._writer.wait_closed()
        except OSError:
            logger.debug("Error closing connection", exc_info=True)
