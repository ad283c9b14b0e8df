"""Core module for Scribe.

Exports the exception hierarchy. Configuration lives in
``scribe.core.config`` and logging setup in ``scribe.core.logging``.
"""

from scribe.core.exceptions import (
    ScribeError,
    ConfigurationError,
    InputValidationError,
    LLMError,
    TransientProviderError,
    PermanentProviderError,
    LLMProviderUnavailable,
    LLMRateLimitExceeded,
    LLMTimeoutError,
    LLMResponseError,
    EmptyResponseError,
    IncompleteAfterMaxAttemptsError,
    GenerationCancelledError,
)

__all__ = [
    "ScribeError",
    "ConfigurationError",
    "InputValidationError",
    "LLMError",
    "TransientProviderError",
    "PermanentProviderError",
    "LLMProviderUnavailable",
    "LLMRateLimitExceeded",
    "LLMTimeoutError",
    "LLMResponseError",
    "EmptyResponseError",
    "IncompleteAfterMaxAttemptsError",
    "GenerationCancelledError",
]
