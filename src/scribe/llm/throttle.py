"""Request throttle for LLM calls.

A single RequestThrottle serialises every admitted operation through one
FIFO queue and guarantees that no two dispatches start less than
``min_interval`` seconds apart. Share one instance by reference between
services that should share a clock; inject a zero-interval instance in
tests.
"""

from __future__ import annotations

import asyncio
import time
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Deque, Optional, TypeVar

import structlog

from scribe.core.exceptions import GenerationCancelledError

log = structlog.get_logger()

T = TypeVar("T")


@dataclass(eq=False)
class ThrottleEntry:
    """One admitted operation waiting for (or undergoing) dispatch."""

    operation: Callable[[], Awaitable[Any]]
    sequence: int
    future: asyncio.Future
    task: Optional[asyncio.Task] = field(default=None)


async def _invoke(operation: Callable[[], Awaitable[T]]) -> T:
    return await operation()


class RequestThrottle:
    """FIFO admission queue enforcing a minimum inter-dispatch interval.

    A dispatcher task pops one entry at a time, waits out whatever is left
    of ``min_interval`` since the previous dispatch, runs the operation to
    completion and hands the outcome to that entry's caller only.

    ``last_dispatch_time`` records the dispatch instant, not the completion
    instant, so slow calls do not push later calls further back.

    Note:
        An admitted operation must not admit into the same throttle; it
        would wait behind itself forever.
    """

    def __init__(
        self,
        min_interval: float = 0.1,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if min_interval < 0:
            raise ValueError("min_interval must be >= 0")

        self._min_interval = float(min_interval)
        self._clock = clock
        self._last_dispatch: Optional[float] = None
        self._pending: Deque[ThrottleEntry] = deque()
        self._dispatcher: Optional[asyncio.Task] = None
        self._sequence = 0
        self._total_dispatched = 0

    @classmethod
    def from_rate(cls, requests_per_second: float, **kwargs: Any) -> "RequestThrottle":
        """Build a throttle allowing at most ``requests_per_second`` dispatches."""
        if requests_per_second <= 0:
            raise ValueError("requests_per_second must be positive")
        return cls(min_interval=1.0 / requests_per_second, **kwargs)

    @property
    def min_interval(self) -> float:
        """Return configured minimum interval in seconds."""
        return self._min_interval

    @property
    def last_dispatch_time(self) -> Optional[float]:
        """Return the clock value of the most recent dispatch."""
        return self._last_dispatch

    @property
    def queue_depth(self) -> int:
        """Return the number of entries waiting to be dispatched."""
        return len(self._pending)

    @property
    def total_dispatched(self) -> int:
        """Return total operations dispatched since init."""
        return self._total_dispatched

    async def admit(
        self,
        operation: Callable[[], Awaitable[T]],
        timeout: Optional[float] = None,
    ) -> T:
        """Queue an operation and wait for its own result.

        Args:
            operation: Zero-argument callable returning an awaitable.
            timeout: Optional seconds to wait for the result, queue time
                included.

        Returns:
            Whatever the operation returned.

        Raises:
            GenerationCancelledError: ``timeout`` expired first.
            asyncio.CancelledError: The calling task was cancelled.
            Exception: Whatever the operation raised.
        """
        loop = asyncio.get_running_loop()
        entry = ThrottleEntry(
            operation=operation,
            sequence=self._sequence,
            future=loop.create_future(),
        )
        self._sequence += 1
        self._pending.append(entry)
        self._ensure_dispatcher()

        log.debug(
            "throttle_admitted",
            sequence=entry.sequence,
            queue_depth=self.queue_depth,
        )

        try:
            if timeout is None:
                return await entry.future
            return await asyncio.wait_for(entry.future, timeout=timeout)
        except asyncio.TimeoutError:
            if entry.future.done() and not entry.future.cancelled():
                # The operation itself raised TimeoutError; it belongs to the caller.
                raise
            self._abandon(entry)
            raise GenerationCancelledError(stage="throttle", timeout_seconds=timeout)
        except asyncio.CancelledError:
            self._abandon(entry)
            raise

    def _abandon(self, entry: ThrottleEntry) -> None:
        """Drop an entry whose caller has gone away.

        A queued entry is removed without ever starting. An in-flight entry
        has its operation task cancelled.
        """
        if not entry.future.done():
            entry.future.cancel()
        try:
            self._pending.remove(entry)
            log.info("throttle_entry_abandoned", sequence=entry.sequence, started=False)
        except ValueError:
            if entry.task is not None and not entry.task.done():
                entry.task.cancel()
                log.info("throttle_entry_abandoned", sequence=entry.sequence, started=True)

    def _ensure_dispatcher(self) -> None:
        if self._dispatcher is None or self._dispatcher.done():
            self._dispatcher = asyncio.get_running_loop().create_task(self._dispatch_loop())

    async def _dispatch_loop(self) -> None:
        """Dispatch queued entries one at a time until the queue drains."""
        while self._pending:
            if self._last_dispatch is not None:
                remaining = self._min_interval - (self._clock() - self._last_dispatch)
                if remaining > 0:
                    await asyncio.sleep(remaining)
                    # The head may have been abandoned while we slept.
                    continue

            entry = self._pending.popleft()
            if entry.future.done():
                continue

            self._last_dispatch = self._clock()
            self._total_dispatched += 1
            log.debug(
                "throttle_dispatch",
                sequence=entry.sequence,
                queue_depth=self.queue_depth,
            )

            entry.task = asyncio.ensure_future(_invoke(entry.operation))
            await asyncio.wait([entry.task])
            self._settle(entry)

    @staticmethod
    def _settle(entry: ThrottleEntry) -> None:
        """Hand an operation's outcome to its caller."""
        task = entry.task
        if entry.future.done():
            if not task.cancelled():
                # Retrieve the exception so asyncio does not warn about it.
                task.exception()
            return
        if task.cancelled():
            entry.future.cancel()
        elif task.exception() is not None:
            entry.future.set_exception(task.exception())
        else:
            entry.future.set_result(task.result())
