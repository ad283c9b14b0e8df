"""LLM Provider module for Scribe.

This module provides the abstract base class and data models for LLM providers.
Every provider call the continuation loop makes goes through an implementation
of LLMProvider; concrete adapters translate these models to a vendor API.

Classes:
    Role: Message role (system, user, assistant)
    Message: Role-tagged chat message
    FinishReason: Normalised provider finish signal
    ChatRequest: Request dataclass for chat completions
    ChatResponse: Response dataclass from chat completions
    TokenUsage: Token usage breakdown (frozen)
    HealthStatus: Health check result
    LLMProvider: Abstract base class for LLM providers
    MockLLMProvider: Scripted provider for testing
"""

from __future__ import annotations

import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass, field, replace
from enum import StrEnum
from typing import Dict, Iterable, List, Optional, Sequence, Union


class Role(StrEnum):
    """Chat message roles."""

    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


@dataclass(frozen=True)
class Message:
    """Role-tagged chat message.

    Attributes:
        role: Who is speaking.
        content: Message text.
    """

    role: Role
    content: str

    @classmethod
    def system(cls, content: str) -> "Message":
        return cls(Role.SYSTEM, content)

    @classmethod
    def user(cls, content: str) -> "Message":
        return cls(Role.USER, content)

    @classmethod
    def assistant(cls, content: str) -> "Message":
        return cls(Role.ASSISTANT, content)

    def to_dict(self) -> Dict[str, str]:
        return {"role": str(self.role), "content": self.content}


class FinishReason(StrEnum):
    """Why the provider stopped generating.

    STOP: natural completion.
    LENGTH: truncated by the token budget.
    UNKNOWN: absent or unrecognised signal.
    """

    STOP = "stop"
    LENGTH = "length"
    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, raw: Optional[str]) -> "FinishReason":
        """Normalise a vendor finish reason string."""
        if not raw:
            return cls.UNKNOWN
        value = raw.strip().lower()
        if value in ("stop", "end_turn", "stop_sequence"):
            return cls.STOP
        if value in ("length", "max_tokens"):
            return cls.LENGTH
        return cls.UNKNOWN


@dataclass(frozen=True)
class TokenUsage:
    """Token usage breakdown for LLM responses.

    Attributes:
        prompt_tokens: Number of tokens in the prompt.
        completion_tokens: Number of tokens in the completion.
        total_tokens: Total tokens (prompt + completion).
    """

    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0

    def __add__(self, other: "TokenUsage") -> "TokenUsage":
        return TokenUsage(
            prompt_tokens=self.prompt_tokens + other.prompt_tokens,
            completion_tokens=self.completion_tokens + other.completion_tokens,
            total_tokens=self.total_tokens + other.total_tokens,
        )


@dataclass
class ChatRequest:
    """Request dataclass for chat completions.

    Attributes:
        messages: Ordered role-tagged messages (required, non-empty).
        model: Model identifier (required).
        temperature: Sampling temperature (0.0-2.0, default 0.4).
        max_tokens: Maximum response tokens (1-32768, default 8192).
    """

    messages: List[Message]
    model: str
    temperature: float = 0.4
    max_tokens: int = 8192

    def __post_init__(self) -> None:
        """Validate fields after initialization."""
        if not self.messages:
            raise ValueError("messages cannot be empty")
        if not self.model:
            raise ValueError("model cannot be empty")
        if not 0.0 <= self.temperature <= 2.0:
            raise ValueError("temperature must be between 0.0 and 2.0")
        if self.max_tokens <= 0 or self.max_tokens > 32768:
            raise ValueError("max_tokens must be between 1 and 32768")


@dataclass
class ChatResponse:
    """Response dataclass from chat completions.

    Attributes:
        content: Generated text, None when the provider sent none.
        model: Model that produced the response.
        usage: Token usage breakdown.
        latency_ms: Request latency in milliseconds.
        finish_reason: Normalised finish signal.
        request_id: Optional request identifier.
    """

    content: Optional[str]
    model: str
    usage: TokenUsage = field(default_factory=TokenUsage)
    latency_ms: int = 0
    finish_reason: FinishReason = FinishReason.UNKNOWN
    request_id: Optional[str] = None

    @property
    def total_tokens(self) -> int:
        """Return total tokens from usage."""
        return self.usage.total_tokens


@dataclass
class HealthStatus:
    """Health check result for LLM providers.

    Attributes:
        healthy: Whether the provider is healthy.
        latency_ms: Optional latency in milliseconds.
        error: Optional error message if unhealthy.
    """

    healthy: bool
    latency_ms: Optional[int] = None
    error: Optional[str] = None


class LLMProvider(ABC):
    """Abstract base class for LLM providers.

    The continuation loop depends only on this contract. Each adapter owns
    its own client configuration and counters; adapters never share mutable
    state.

    Abstract Methods:
        complete_async: Asynchronous chat completion.
        health_check: Lightweight liveness probe.
        get_model_name: Return model identifier.
        get_token_usage: Return accumulated token usage.
    """

    #: Short provider name used in errors and log events.
    name: str = "provider"

    @abstractmethod
    async def complete_async(self, request: ChatRequest) -> ChatResponse:
        """Generate a chat completion.

        Args:
            request: Chat request with messages and sampling parameters.

        Returns:
            Chat response with content, finish signal and usage.

        Raises:
            TransientProviderError: Rate limit, timeout or network failure.
            PermanentProviderError: Any other provider failure.
        """
        ...  # pragma: no cover

    @abstractmethod
    async def health_check(self) -> HealthStatus:
        """Check provider health.

        Returns:
            Health status with latency and error info.
        """
        ...  # pragma: no cover

    @abstractmethod
    def get_model_name(self) -> str:
        """Return the model identifier."""
        ...  # pragma: no cover

    @abstractmethod
    def get_token_usage(self) -> Dict[str, int]:
        """Return accumulated token usage metrics.

        Returns:
            Dictionary with prompt_tokens, completion_tokens, total_tokens.
        """
        ...  # pragma: no cover


ScriptedReply = Union[ChatResponse, BaseException, str, None]


class MockLLMProvider(LLMProvider):
    """Scripted LLM provider for testing.

    Replays a sequence of replies, one per call. A reply may be a
    ChatResponse, a plain string (returned with finish_reason STOP), None
    (an empty response) or an exception instance (raised). Once the script
    runs out the last reply is repeated. Every received request is recorded.

    Thread-safe implementation.
    """

    name = "mock"

    def __init__(
        self,
        replies: Optional[Iterable[ScriptedReply]] = None,
        model_name: str = "mock-model",
        available: bool = True,
    ) -> None:
        self._replies: List[ScriptedReply] = list(replies) if replies is not None else ["Mock response"]
        if not self._replies:
            raise ValueError("replies cannot be empty")
        self._model_name = model_name
        self._available = available
        self._call_count = 0
        self._requests: List[ChatRequest] = []
        self._total_prompt_tokens = 0
        self._total_completion_tokens = 0
        self._lock = threading.Lock()

    @property
    def call_count(self) -> int:
        """Return number of calls made."""
        with self._lock:
            return self._call_count

    @property
    def requests(self) -> Sequence[ChatRequest]:
        """Return every request received, in order."""
        with self._lock:
            return list(self._requests)

    async def complete_async(self, request: ChatRequest) -> ChatResponse:
        """Return (or raise) the next scripted reply."""
        with self._lock:
            index = min(self._call_count, len(self._replies) - 1)
            self._call_count += 1
            self._requests.append(request)
            reply = self._replies[index]

        if isinstance(reply, BaseException):
            raise reply
        if isinstance(reply, ChatResponse):
            response = reply
        else:
            response = ChatResponse(
                content=reply,
                model=self._model_name,
                finish_reason=FinishReason.STOP,
            )

        prompt_tokens = sum(len(m.content.split()) for m in request.messages)
        completion_tokens = len((response.content or "").split())
        with self._lock:
            self._total_prompt_tokens += prompt_tokens
            self._total_completion_tokens += completion_tokens

        if response.usage.total_tokens == 0:
            response = replace(
                response,
                usage=TokenUsage(
                    prompt_tokens=prompt_tokens,
                    completion_tokens=completion_tokens,
                    total_tokens=prompt_tokens + completion_tokens,
                ),
            )
        return response

    async def health_check(self) -> HealthStatus:
        """Return mock health status."""
        if self._available:
            return HealthStatus(healthy=True, latency_ms=5)
        return HealthStatus(healthy=False, error="Provider unavailable")

    def get_model_name(self) -> str:
        """Return configured model name."""
        return self._model_name

    def get_token_usage(self) -> Dict[str, int]:
        """Return accumulated token usage."""
        with self._lock:
            return {
                "prompt_tokens": self._total_prompt_tokens,
                "completion_tokens": self._total_completion_tokens,
                "total_tokens": self._total_prompt_tokens
                + self._total_completion_tokens,
            }
