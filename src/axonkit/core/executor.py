"""FIFO serial executor.

Runs submitted coroutine factories one at a time, in submission order, on a
single background task.  A session owns one executor and submits both
command handlers and inbound adapter events to it, so no two handlers of a
session ever interleave.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

logger = logging.getLogger("axonkit.core.executor")

T = TypeVar("T")

Job = tuple[Callable[[], Awaitable[Any]], "asyncio.Future[Any]", str]

# Sentinel placed on the queue to stop the worker
_STOP = None


class ExecutorClosedError(RuntimeError):
    """Raised when submitting to an executor that has been stopped."""


class SerialExecutor:
    """Single-worker FIFO queue of coroutine factories.

    ``submit`` never blocks; it returns a future that resolves with the job's
    result once the job has run.  A failing job is logged and its exception
    set on the future; the worker carries on with the next job.
    """

    def __init__(self, name: str = "serial") -> None:
        self._name = name
        self._queue: asyncio.Queue[Job | None] = asyncio.Queue()
        self._task: asyncio.Task[None] | None = None
        self._closed = False
        self._current: str | None = None

    @property
    def name(self) -> str:
        return self._name

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def pending(self) -> int:
        """Jobs queued but not yet started."""
        return self._queue.qsize()

    @property
    def running(self) -> str | None:
        """Label of the job currently executing, if any."""
        return self._current

    def start(self) -> None:
        if self._task is None and not self._closed:
            self._task = asyncio.get_running_loop().create_task(
                self._run(), name=f"serial:{self._name}"
            )

    def submit(self, fn: Callable[[], Awaitable[T]], label: str = "") -> asyncio.Future[T]:
        """Queue *fn* to run after every previously submitted job.

        Args:
            fn: Zero-argument coroutine factory; called when the job starts.
            label: Name used in logs and reported by :attr:`running`.

        Returns:
            A future resolving to the job's result, or to its exception.

        Raises:
            ExecutorClosedError: If :meth:`stop` has been called.
        """
        if self._closed:
            raise ExecutorClosedError(f"executor {self._name} is closed")
        self.start()
        future: asyncio.Future[T] = asyncio.get_running_loop().create_future()
        self._queue.put_nowait((fn, future, label))
        return future

    def listener(self, handler: Callable[[Any], Awaitable[None]]) -> Callable[[Any], None]:
        """Wrap an async event handler so each call queues it on this executor.

        Args:
            handler: Coroutine function taking the event payload.

        Returns:
            A synchronous callable suitable as an adapter listener.  Payloads
            that arrive after :meth:`stop` are dropped.
        """
        label = handler.__name__

        def listener(payload: Any) -> None:
            if self._closed:
                logger.debug("Executor %s closed, dropping %s", self._name, label)
                return
            self.submit(lambda: handler(payload), label=label)

        return listener

    async def stop(self, timeout: float = 2.0) -> None:
        """Discard queued jobs, let the running job finish, stop the worker.

        The running job gets *timeout* seconds before it is cancelled.
        """
        if self._closed:
            return
        self._closed = True
        discarded = self._drain()
        if discarded:
            logger.debug("Executor %s discarded %d queued job(s)", self._name, discarded)
        if self._task is None:
            return
        self._queue.put_nowait(_STOP)
        try:
            await asyncio.wait_for(asyncio.shield(self._task), timeout=timeout)
        except (TimeoutError, asyncio.CancelledError):
            self._task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._task
        self._task = None

    def _drain(self) -> int:
        count = 0
        while True:
            try:
                item = self._queue.get_nowait()
            except asyncio.QueueEmpty:
                return count
            if item is not None:
                item[1].cancel()
                count += 1

    async def _run(self) -> None:
        while True:
            item = await self._queue.get()
            if item is _STOP:
                return
            fn, future, label = item
            if future.cancelled():
                continue
            self._current = label
            try:
                result = await fn()
            except asyncio.CancelledError:
                future.cancel()
                raise
            except Exception as exc:
                logger.error("Job %s on %s failed", label or "<anonymous>", self._name, exc_info=True)
                if not future.done():
                    future.set_exception(exc)
                    # Already logged; awaiting callers still receive it.
                    future.exception()
            else:
                if not future.done():
                    future.set_result(result)
            finally:
                self._current = None
