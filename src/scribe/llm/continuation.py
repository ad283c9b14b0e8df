"""Continuation loop: drive a provider until its output looks complete.

The loop is an explicit state machine:

    IDLE -> REQUESTING -> VALIDATING -> CONTINUING -> REQUESTING ...
                                     -> DONE
                                     -> FAILED

Every provider call goes through the shared RequestThrottle and, inside it,
the BackoffRetrier. New content is appended to the accumulated text with a
newline separator; earlier text is never rewritten.

Usage:
    loop = ContinuationLoop(provider, throttle=RequestThrottle.from_rate(10))
    text = await loop.run([
        Message.system("You are a lecturer."),
        Message.user("Explain Fourier series."),
    ])
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from enum import StrEnum
from typing import List, Optional, Sequence

import structlog

from scribe.core.exceptions import (
    EmptyResponseError,
    GenerationCancelledError,
    IncompleteAfterMaxAttemptsError,
)
from scribe.llm.provider import (
    ChatRequest,
    ChatResponse,
    FinishReason,
    LLMProvider,
    Message,
    TokenUsage,
)
from scribe.llm.retry import BackoffRetrier
from scribe.llm.throttle import RequestThrottle
from scribe.llm.validation import ValidationConfig, find_failed_rule

log = structlog.get_logger()

CONTINUE_PREFIX = "Continue from: "
SEGMENT_SEPARATOR = "\n"


class LoopState(StrEnum):
    """Continuation loop states."""

    IDLE = "IDLE"
    REQUESTING = "REQUESTING"
    VALIDATING = "VALIDATING"
    CONTINUING = "CONTINUING"
    DONE = "DONE"
    FAILED = "FAILED"


@dataclass
class GenerationAttempt:
    """Mutable state of one continuation loop run.

    Attributes:
        accumulated_text: Everything generated so far (append-only).
        attempt_count: Continuations consumed so far.
        last_finish_signal: Finish signal of the most recent response.
        state: Current loop state.
        provider_calls: Provider responses received.
        usage: Token usage summed over every response.
        model: Model reported by the most recent response.
        last_failed_rule: Most recent completeness rule that failed.
    """

    accumulated_text: str = ""
    attempt_count: int = 0
    last_finish_signal: FinishReason = FinishReason.UNKNOWN
    state: LoopState = LoopState.IDLE
    provider_calls: int = 0
    usage: TokenUsage = field(default_factory=TokenUsage)
    model: Optional[str] = None
    last_failed_rule: Optional[str] = None

    def append(self, segment: str) -> None:
        """Append a generated segment, newline-joined."""
        if self.accumulated_text:
            self.accumulated_text = self.accumulated_text + SEGMENT_SEPARATOR + segment
        else:
            self.accumulated_text = segment


def build_continuation_messages(
    messages: Sequence[Message], accumulated_text: str
) -> List[Message]:
    """Keep the first (instruction) message and ask to continue from the text."""
    return [messages[0], Message.user(f"{CONTINUE_PREFIX}{accumulated_text}")]


class ContinuationLoop:
    """Request/validate/continue loop around a single LLMProvider.

    Args:
        provider: Adapter for the text-generation service.
        throttle: Shared request throttle. Defaults to a private zero-interval
            throttle.
        retrier: Backoff retrier for transient failures.
        validation: Completeness rules.
        max_attempts: Continuation budget (>= 1). Provider-signalled
            truncation consumes an attempt just like heuristic truncation.
        model: Model identifier sent with each request. Defaults to the
            provider's model.
        temperature: Default sampling temperature.
        max_tokens: Per-request token budget.
    """

    def __init__(
        self,
        provider: LLMProvider,
        throttle: Optional[RequestThrottle] = None,
        retrier: Optional[BackoffRetrier] = None,
        validation: Optional[ValidationConfig] = None,
        max_attempts: int = 3,
        model: Optional[str] = None,
        temperature: float = 0.4,
        max_tokens: int = 8192,
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")

        self._provider = provider
        self._throttle = throttle or RequestThrottle(min_interval=0.0)
        self._retrier = retrier or BackoffRetrier()
        self._validation = validation or ValidationConfig()
        self._max_attempts = max_attempts
        self._model = model or provider.get_model_name()
        self._temperature = temperature
        self._max_tokens = max_tokens

    @property
    def provider(self) -> LLMProvider:
        return self._provider

    @property
    def max_attempts(self) -> int:
        return self._max_attempts

    @property
    def validation(self) -> ValidationConfig:
        return self._validation

    async def run(
        self,
        messages: Sequence[Message],
        *,
        temperature: Optional[float] = None,
        timeout: Optional[float] = None,
        seed_text: Optional[str] = None,
    ) -> str:
        """Generate until complete and return the accumulated text.

        See ``execute`` for arguments and errors.
        """
        attempt = await self.execute(
            messages, temperature=temperature, timeout=timeout, seed_text=seed_text
        )
        return attempt.accumulated_text

    async def execute(
        self,
        messages: Sequence[Message],
        *,
        temperature: Optional[float] = None,
        timeout: Optional[float] = None,
        seed_text: Optional[str] = None,
    ) -> GenerationAttempt:
        """Generate until complete and return the finished attempt.

        Args:
            messages: Initial messages. The first one is kept verbatim on
                every continuation request.
            temperature: Optional per-run sampling temperature.
            timeout: Optional deadline in seconds for the whole run. Expiry
                aborts whichever wait is in progress (queue, backoff or
                provider call).
            seed_text: Optional text generated earlier; the run resumes
                from it instead of starting fresh.

        Returns:
            GenerationAttempt in state DONE.

        Raises:
            EmptyResponseError: A response carried no content.
            IncompleteAfterMaxAttemptsError: The budget ran out.
            GenerationCancelledError: ``timeout`` expired.
            TransientProviderError: Retries exhausted on a transient failure.
            PermanentProviderError: Provider rejected a request.
        """
        if not messages:
            raise ValueError("messages cannot be empty")

        deadline = time.monotonic() + timeout if timeout is not None else None
        coro = self._execute(list(messages), temperature, seed_text, deadline)
        if timeout is None:
            return await coro
        try:
            async with asyncio.timeout(timeout) as scope:
                return await coro
        except TimeoutError:
            if not scope.expired():
                raise
            log.warning("continuation_timed_out", timeout=timeout)
            raise GenerationCancelledError(stage="generation", timeout_seconds=timeout)

    async def _execute(
        self,
        messages: List[Message],
        temperature: Optional[float],
        seed_text: Optional[str],
        deadline: Optional[float],
    ) -> GenerationAttempt:
        attempt = GenerationAttempt()
        request_messages = messages
        if seed_text:
            attempt.accumulated_text = seed_text
            request_messages = build_continuation_messages(messages, seed_text)

        started = time.monotonic()
        while True:
            attempt.state = LoopState.REQUESTING
            response = await self._request(request_messages, temperature, deadline)
            self._absorb(attempt, response)

            attempt.state = LoopState.VALIDATING
            if self._is_done(attempt):
                attempt.state = LoopState.DONE
                log.info(
                    "continuation_done",
                    provider_calls=attempt.provider_calls,
                    attempts=attempt.attempt_count,
                    length=len(attempt.accumulated_text),
                    elapsed_ms=int((time.monotonic() - started) * 1000),
                )
                return attempt

            attempt.state = LoopState.CONTINUING
            attempt.attempt_count += 1
            if attempt.attempt_count >= self._max_attempts:
                attempt.state = LoopState.FAILED
                log.error(
                    "continuation_exhausted",
                    attempts=attempt.attempt_count,
                    finish_signal=str(attempt.last_finish_signal),
                    failed_rule=attempt.last_failed_rule,
                )
                raise IncompleteAfterMaxAttemptsError(
                    attempts=attempt.attempt_count,
                    partial_text=attempt.accumulated_text,
                    failed_rule=attempt.last_failed_rule,
                )

            log.info(
                "continuation_incomplete",
                attempt=attempt.attempt_count,
                max_attempts=self._max_attempts,
                finish_signal=str(attempt.last_finish_signal),
                failed_rule=attempt.last_failed_rule,
            )
            request_messages = build_continuation_messages(messages, attempt.accumulated_text)

    async def _request(
        self,
        messages: List[Message],
        temperature: Optional[float],
        deadline: Optional[float],
    ) -> ChatResponse:
        request = ChatRequest(
            messages=messages,
            model=self._model,
            temperature=self._temperature if temperature is None else temperature,
            max_tokens=self._max_tokens,
        )
        return await self._throttle.admit(
            lambda: self._retrier.run(
                lambda: self._provider.complete_async(request), deadline=deadline
            )
        )

    def _absorb(self, attempt: GenerationAttempt, response: ChatResponse) -> None:
        """Fold a response into the attempt, rejecting empty content."""
        attempt.provider_calls += 1
        attempt.usage = attempt.usage + response.usage
        attempt.model = response.model

        content = response.content
        if content is None or not content.strip():
            attempt.state = LoopState.FAILED
            log.error(
                "continuation_empty_response",
                provider=self._provider.name,
                attempt=attempt.attempt_count,
            )
            raise EmptyResponseError(provider=self._provider.name, attempt=attempt.attempt_count)

        attempt.append(content)
        attempt.last_finish_signal = response.finish_reason

    def _is_done(self, attempt: GenerationAttempt) -> bool:
        # A provider-signalled truncation always continues; otherwise the
        # completeness rules decide.
        if attempt.last_finish_signal is FinishReason.LENGTH:
            attempt.last_failed_rule = None
            return False
        attempt.last_failed_rule = find_failed_rule(attempt.accumulated_text, self._validation)
        return attempt.last_failed_rule is None
