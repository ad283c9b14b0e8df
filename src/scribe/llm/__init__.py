from .provider import (
    ChatRequest,
    ChatResponse,
    FinishReason,
    HealthStatus,
    LLMProvider,
    Message,
    MockLLMProvider,
    Role,
    TokenUsage,
)
from .retry import BackoffRetrier, RetryPolicy, is_transient
from .throttle import RequestThrottle
from .validation import ValidationConfig, find_failed_rule, is_complete
from .continuation import ContinuationLoop, GenerationAttempt, LoopState
from .http_provider import HTTPChatProvider
from .openai_compat import OpenAICompatibleProvider
from .gemini import GeminiProvider

__all__ = [
    "ChatRequest",
    "ChatResponse",
    "FinishReason",
    "HealthStatus",
    "LLMProvider",
    "Message",
    "MockLLMProvider",
    "Role",
    "TokenUsage",
    "BackoffRetrier",
    "RetryPolicy",
    "is_transient",
    "RequestThrottle",
    "ValidationConfig",
    "find_failed_rule",
    "is_complete",
    "ContinuationLoop",
    "GenerationAttempt",
    "LoopState",
    "HTTPChatProvider",
    "OpenAICompatibleProvider",
    "GeminiProvider",
]
