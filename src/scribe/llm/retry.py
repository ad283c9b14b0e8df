"""Retry logic and configuration for LLM requests."""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, TypeVar

import structlog

from scribe.core.exceptions import GenerationCancelledError, TransientProviderError

log = structlog.get_logger()

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    """Configuration for retry behavior.

    max_attempts counts every call, including the first one.
    """

    max_attempts: int = 3
    initial_delay: float = 1.0
    max_delay: float = 10.0
    backoff_factor: float = 2.0

    def __post_init__(self) -> None:
        """Validate configuration."""
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if self.initial_delay < 0:
            raise ValueError("initial_delay must be >= 0")
        if self.max_delay < self.initial_delay:
            raise ValueError("max_delay must be >= initial_delay")
        if self.backoff_factor <= 1:
            raise ValueError("backoff_factor must be > 1")

    def delays(self) -> list[float]:
        """Return the sleeps applied between attempts, in order."""
        result = []
        delay = self.initial_delay
        for _ in range(self.max_attempts - 1):
            result.append(delay)
            delay = min(delay * self.backoff_factor, self.max_delay)
        return result


def is_transient(error: BaseException) -> bool:
    """Return True if the error is worth retrying."""
    return isinstance(error, TransientProviderError)


class BackoffRetrier:
    """Retries a single fallible async operation with exponential backoff.

    Only transient provider errors (rate limit, timeout, network) are
    retried; anything else propagates immediately and unchanged. The
    backoff sleep is a cooperative suspension, so cancelling the calling
    task aborts it.
    """

    def __init__(
        self,
        policy: Optional[RetryPolicy] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._policy = policy or RetryPolicy()
        self._sleep = sleep
        self._clock = clock

    @property
    def policy(self) -> RetryPolicy:
        return self._policy

    async def run(
        self,
        operation: Callable[[], Awaitable[T]],
        policy: Optional[RetryPolicy] = None,
        deadline: Optional[float] = None,
    ) -> T:
        """Run operation, retrying transient failures.

        Args:
            operation: Zero-argument callable returning an awaitable.
            policy: Optional policy overriding the instance default.
            deadline: Optional absolute deadline on this retrier's clock.
                A backoff sleep that would end past it is not started.

        Returns:
            The operation's result.

        Raises:
            TransientProviderError: Last transient error once max_attempts is spent.
            GenerationCancelledError: The next backoff would overrun the deadline.
            Exception: Any non-transient error, unchanged, on first occurrence.
        """
        policy = policy or self._policy
        delay = policy.initial_delay
        attempt = 0

        while True:
            attempt += 1
            try:
                return await operation()
            except Exception as e:
                if not is_transient(e):
                    raise

                if attempt >= policy.max_attempts:
                    log.error(
                        "llm_retry_exhausted",
                        attempts=attempt,
                        error_class=type(e).__name__,
                        error=str(e),
                    )
                    raise

                if deadline is not None and self._clock() + delay > deadline:
                    log.warning(
                        "llm_retry_deadline_exceeded",
                        attempt=attempt,
                        delay=delay,
                    )
                    raise GenerationCancelledError(stage="backoff") from e

                log.warning(
                    "llm_retry",
                    attempt=attempt,
                    max_attempts=policy.max_attempts,
                    delay=delay,
                    error_class=type(e).__name__,
                    error=str(e),
                )
                await self._sleep(delay)
                delay = min(delay * policy.backoff_factor, policy.max_delay)
