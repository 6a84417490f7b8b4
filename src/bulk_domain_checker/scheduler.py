"""
Single-flight scheduler for WHOIS lookups.

WHOIS servers enforce informal per-IP rate limits and start refusing (or
silently dropping) queries from clients that go too fast. Every outbound
lookup in the process goes through one SerialScheduler: operations run one at
a time, in submission order, and at least `delay` seconds apart.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Delay between WHOIS queries in seconds
DEFAULT_DELAY = 2.0


class SchedulerCleared(RuntimeError):
    """Raised to submitters whose pending operation was dropped by clear()."""


@dataclass
class _QueuedTask:
    operation: Callable[[], Awaitable[Any]]
    future: asyncio.Future


class SerialScheduler:
    """
    FIFO work queue drained by a single worker task.

    Usage:
        async with SerialScheduler(delay=2.0) as scheduler:
            data = await scheduler.submit(lambda: client.lookup("example.com", timeout=10))
    """

    def __init__(self, delay: float = DEFAULT_DELAY) -> None:
        self._delay = delay
        self._queue: asyncio.Queue[_QueuedTask] | None = None
        self._worker: asyncio.Task | None = None
        self._last_finished: float | None = None

    async def __aenter__(self) -> "SerialScheduler":
        await self.start()
        return self

    async def __aexit__(self, *args) -> None:
        await self.aclose()

    @property
    def delay(self) -> float:
        return self._delay

    @property
    def running(self) -> bool:
        return self._worker is not None and not self._worker.done()

    async def start(self) -> None:
        """Start the worker. Must be called from a running event loop."""
        if self.running:
            return
        self._queue = asyncio.Queue()
        self._worker = asyncio.create_task(self._run(), name="serial-scheduler")

    async def aclose(self) -> None:
        """Fail pending operations and stop the worker."""
        if self._worker is None:
            return
        self.clear()
        self._worker.cancel()
        try:
            await self._worker
        except asyncio.CancelledError:
            pass
        self._worker = None
        self._queue = None

    async def submit(self, operation: Callable[[], Awaitable[T]]) -> T:
        """
        Queue an operation and wait for its outcome.

        Args:
            operation: Zero-argument callable returning an awaitable

        Returns:
            Whatever the operation returns. If it raises, the same exception
            is raised here.
        """
        if not self.running or self._queue is None:
            raise RuntimeError("Scheduler not started. Use 'async with' or call start().")

        future = asyncio.get_running_loop().create_future()
        self._queue.put_nowait(_QueuedTask(operation=operation, future=future))
        return await future

    def set_delay(self, delay: float) -> None:
        """Change the delay for waits that have not started yet."""
        self._delay = delay

    def size(self) -> int:
        """Number of operations waiting to run (excludes the one in flight)."""
        return self._queue.qsize() if self._queue is not None else 0

    def clear(self) -> int:
        """Drop every pending operation. The one in flight keeps running."""
        if self._queue is None:
            return 0

        dropped = 0
        while True:
            try:
                task = self._queue.get_nowait()
            except asyncio.QueueEmpty:
                break
            self._queue.task_done()
            if not task.future.done():
                task.future.set_exception(SchedulerCleared("Queued lookup was cancelled"))
            dropped += 1

        if dropped:
            logger.info("Dropped %d pending lookups", dropped)
        return dropped

    async def _wait_for_turn(self) -> None:
        # Keep at least `delay` seconds between the end of one operation and
        # the start of the next, however long the queue sat empty.
        if self._last_finished is None:
            return
        wait = self._last_finished + self._delay - time.monotonic()
        if wait > 0:
            await asyncio.sleep(wait)

    async def _run(self) -> None:
        assert self._queue is not None
        queue = self._queue

        while True:
            await self._wait_for_turn()
            task = await queue.get()
            try:
                if task.future.done():
                    # Submitter gave up (cancelled) while queued
                    continue
                try:
                    result = await task.operation()
                except asyncio.CancelledError:
                    task.future.cancel()
                    raise
                except Exception as exc:
                    if not task.future.done():
                        task.future.set_exception(exc)
                else:
                    if not task.future.done():
                        task.future.set_result(result)
                finally:
                    self._last_finished = time.monotonic()
            finally:
                queue.task_done()
