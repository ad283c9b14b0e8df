"""Scribe Exception Hierarchy.

This module defines the structured exception hierarchy for Scribe.
All custom exceptions inherit from ScribeError, enabling consistent
error handling across the codebase.

Exception Categories:
- Provider errors (LLMError) -> split into transient (retried by the
  backoff retrier) and permanent (propagated immediately).
- Orchestration errors -> raised by the continuation loop when the output
  never looked complete, or when a deadline expired.

Usage:
    from scribe.core.exceptions import (
        IncompleteAfterMaxAttemptsError,
        TransientProviderError,
    )

    try:
        text = await loop.run(messages)
    except IncompleteAfterMaxAttemptsError as e:
        log.warning("output_kept_truncating", **e.context)
"""

from typing import Any, Optional


class ScribeError(Exception):
    """Base exception for all Scribe errors.

    All custom exceptions in Scribe inherit from this class,
    enabling consistent catch-all error handling.

    Attributes:
        message: Human-readable error description.
    """

    def __init__(self, message: Optional[str] = None) -> None:
        """Initialize ScribeError.

        Args:
            message: Optional custom message. Defaults to a generic message.
        """
        self.message = message or "A Scribe error occurred."
        super().__init__(self.message)

    @property
    def context(self) -> dict[str, Any]:
        """Return context dictionary for structured logging.

        Returns:
            dict: Key-value pairs of exception context.
        """
        return {}

    def __repr__(self) -> str:
        """Return debug representation."""
        return f"{self.__class__.__name__}({self.message!r})"


class ConfigurationError(ScribeError):
    """Configuration file or value is invalid.

    Raised when YAML configuration cannot be parsed or
    contains invalid values.

    Attributes:
        config_path: Path to the configuration file.
        key: The configuration key that caused the error.
    """

    def __init__(
        self,
        config_path: str,
        key: Optional[str] = None,
        message: Optional[str] = None,
    ) -> None:
        self.config_path = config_path
        self.key = key

        if message is None:
            key_info = f" (key: {key})" if key else ""
            message = f"Invalid configuration in '{config_path}'{key_info}."

        super().__init__(message)

    @property
    def context(self) -> dict[str, Any]:
        """Return context for configuration error."""
        return {
            "config_path": self.config_path,
            "key": self.key,
        }

    def __repr__(self) -> str:
        """Return debug representation with attributes."""
        return (
            f"ConfigurationError(config_path={self.config_path!r}, "
            f"key={self.key!r})"
        )


class InputValidationError(ScribeError):
    """Caller supplied an unusable argument.

    Attributes:
        field: Name of the offending argument.
    """

    def __init__(self, field: str, message: Optional[str] = None) -> None:
        self.field = field
        if message is None:
            message = f"{field} is required."
        super().__init__(message)

    @property
    def context(self) -> dict[str, Any]:
        """Return context for input validation error."""
        return {"field": self.field}

    def __repr__(self) -> str:
        """Return debug representation."""
        return f"InputValidationError(field={self.field!r}, message={self.message!r})"


# === LLM Provider Exceptions ===


class LLMError(ScribeError):
    """Base exception for LLM provider errors.

    All provider-side exceptions inherit from this class.

    Attributes:
        provider: Optional name of the LLM provider.
        model: Optional model identifier.
    """

    def __init__(
        self,
        message: str | None = None,
        provider: str | None = None,
        model: str | None = None,
    ) -> None:
        """Initialize LLMError.

        Args:
            message: Error description.
            provider: Name of the LLM provider.
            model: Model identifier.
        """
        self.provider = provider
        self.model = model

        if message is None:
            message = "An LLM error occurred."

        super().__init__(message)

    @property
    def context(self) -> dict[str, Any]:
        """Return context for LLM error."""
        return {
            "provider": self.provider,
            "model": self.model,
        }

    def __repr__(self) -> str:
        """Return debug representation."""
        return f"{self.__class__.__name__}(provider={self.provider!r}, model={self.model!r})"


class TransientProviderError(LLMError):
    """Recoverable provider failure.

    Rate limits, timeouts and network failures land here. The backoff
    retrier retries these and only surfaces them once its attempt budget
    is exhausted.
    """


class PermanentProviderError(LLMError):
    """Non-recoverable provider failure.

    Anything the provider raises that is not transient (authentication,
    bad request, unknown model). Never retried.

    Attributes:
        status_code: Optional HTTP status code returned by the provider.
    """

    def __init__(
        self,
        provider: str,
        message: str | None = None,
        status_code: int | None = None,
    ) -> None:
        self.status_code = status_code

        if message is None:
            status_info = f" (HTTP {status_code})" if status_code else ""
            message = f"LLM provider '{provider}' rejected the request{status_info}."

        super().__init__(message, provider=provider)

    @property
    def context(self) -> dict[str, Any]:
        """Return context for permanent provider error."""
        ctx = super().context
        ctx["status_code"] = self.status_code
        return ctx

    def __repr__(self) -> str:
        """Return debug representation."""
        return (
            f"PermanentProviderError(provider={self.provider!r}, "
            f"status_code={self.status_code!r})"
        )


class LLMProviderUnavailable(TransientProviderError):
    """LLM provider is not reachable or available.

    Raised when the provider cannot be contacted (connection refused,
    network error) or answers with a 5xx status.

    Attributes:
        provider: Name of the unavailable provider.
        retry_after: Optional seconds to wait before retry.
    """

    def __init__(
        self,
        provider: str,
        message: str | None = None,
        retry_after: int | None = None,
    ) -> None:
        """Initialize LLMProviderUnavailable.

        Args:
            provider: Name of the unavailable provider.
            message: Optional custom message.
            retry_after: Optional seconds to wait before retry.
        """
        self.retry_after = retry_after

        if message is None:
            retry_info = f" (retry after {retry_after}s)" if retry_after else ""
            message = f"LLM provider '{provider}' is unavailable{retry_info}."

        super().__init__(message, provider=provider)

    @property
    def context(self) -> dict[str, Any]:
        """Return context for provider unavailable."""
        ctx = super().context
        ctx["retry_after"] = self.retry_after
        return ctx

    def __repr__(self) -> str:
        """Return debug representation."""
        return (
            f"LLMProviderUnavailable(provider={self.provider!r}, "
            f"retry_after={self.retry_after!r})"
        )


class LLMRateLimitExceeded(TransientProviderError):
    """LLM rate limit exceeded.

    Raised when the provider answers HTTP 429.

    Attributes:
        provider: Name of the provider.
        retry_after: Seconds the provider asked us to wait, if it said.
    """

    def __init__(
        self,
        provider: str,
        retry_after: int | None = None,
        message: str | None = None,
    ) -> None:
        """Initialize LLMRateLimitExceeded.

        Args:
            provider: Name of the provider.
            retry_after: Seconds to wait before retry.
            message: Optional custom message.
        """
        self.retry_after = retry_after

        if message is None:
            message = f"Rate limit exceeded for '{provider}'."

        super().__init__(message, provider=provider)

    @property
    def context(self) -> dict[str, Any]:
        """Return context for rate limit error."""
        ctx = super().context
        ctx["retry_after"] = self.retry_after
        return ctx

    def __repr__(self) -> str:
        """Return debug representation."""
        return (
            f"LLMRateLimitExceeded(provider={self.provider!r}, "
            f"retry_after={self.retry_after!r})"
        )


class LLMTimeoutError(TransientProviderError):
    """LLM request timed out.

    Attributes:
        provider: Name of the provider.
        timeout_seconds: Timeout threshold in seconds.
    """

    def __init__(
        self,
        provider: str,
        timeout_seconds: float,
        message: str | None = None,
    ) -> None:
        self.timeout_seconds = timeout_seconds

        if message is None:
            message = f"LLM request to '{provider}' timed out ({timeout_seconds}s)."

        super().__init__(message, provider=provider)

    @property
    def context(self) -> dict[str, Any]:
        """Return context for timeout error."""
        ctx = super().context
        ctx["timeout_seconds"] = self.timeout_seconds
        return ctx

    def __repr__(self) -> str:
        """Return debug representation."""
        return (
            f"LLMTimeoutError(provider={self.provider!r}, "
            f"timeout_seconds={self.timeout_seconds!r})"
        )


class LLMResponseError(PermanentProviderError):
    """Invalid LLM response format.

    Raised when the provider payload cannot be parsed or
    doesn't match the expected shape.

    Attributes:
        provider: Name of the provider.
        reason: Description of the format issue.
    """

    def __init__(
        self,
        provider: str,
        reason: str,
        message: str | None = None,
    ) -> None:
        self.reason = reason

        if message is None:
            message = f"Invalid response from '{provider}': {reason}."

        super().__init__(provider, message=message)

    @property
    def context(self) -> dict[str, Any]:
        """Return context for response error."""
        ctx = super().context
        ctx["reason"] = self.reason
        return ctx

    def __repr__(self) -> str:
        """Return debug representation."""
        return (
            f"LLMResponseError(provider={self.provider!r}, "
            f"reason={self.reason!r})"
        )


class EmptyResponseError(LLMError):
    """Provider answered without any generated content.

    Fatal for the continuation loop: continuing from an empty segment would
    never make progress.

    Attributes:
        provider: Name of the provider (or model) that answered.
        attempt: Zero-based continuation attempt at which it happened.
    """

    def __init__(
        self,
        provider: str | None = None,
        attempt: int = 0,
        message: str | None = None,
    ) -> None:
        self.attempt = attempt

        if message is None:
            message = f"Provider returned no content (attempt {attempt})."

        super().__init__(message, provider=provider)

    @property
    def context(self) -> dict[str, Any]:
        """Return context for empty response error."""
        ctx = super().context
        ctx["attempt"] = self.attempt
        return ctx

    def __repr__(self) -> str:
        """Return debug representation."""
        return f"EmptyResponseError(provider={self.provider!r}, attempt={self.attempt!r})"


# === Orchestration Exceptions ===


class IncompleteAfterMaxAttemptsError(ScribeError):
    """Generation incomplete after maximum attempts.

    The finish signal and completeness checks never agreed the text was
    done within the attempt budget. Deliberately not an LLMError so callers
    can tell "the provider is broken" apart from "the output kept looking
    truncated".

    Attributes:
        attempts: Number of continuation attempts consumed.
        partial_text: Text accumulated before giving up (diagnostics only).
        failed_rule: Last completeness rule that failed, if any.
    """

    def __init__(
        self,
        attempts: int,
        partial_text: str = "",
        failed_rule: str | None = None,
        message: str | None = None,
    ) -> None:
        self.attempts = attempts
        self.partial_text = partial_text
        self.failed_rule = failed_rule

        if message is None:
            message = f"Generation incomplete after maximum attempts ({attempts})."

        super().__init__(message)

    @property
    def context(self) -> dict[str, Any]:
        """Return context for exhausted continuation."""
        return {
            "attempts": self.attempts,
            "partial_length": len(self.partial_text),
            "failed_rule": self.failed_rule,
        }

    def __repr__(self) -> str:
        """Return debug representation."""
        return (
            f"IncompleteAfterMaxAttemptsError(attempts={self.attempts!r}, "
            f"failed_rule={self.failed_rule!r})"
        )


class GenerationCancelledError(ScribeError):
    """Operation deadline expired while queued or backing off.

    Attributes:
        stage: Where the wait was aborted ("throttle", "backoff", "generation").
        timeout_seconds: Deadline that expired, if known.
    """

    def __init__(
        self,
        stage: str,
        timeout_seconds: float | None = None,
        message: str | None = None,
    ) -> None:
        self.stage = stage
        self.timeout_seconds = timeout_seconds

        if message is None:
            timeout_info = f" after {timeout_seconds}s" if timeout_seconds is not None else ""
            message = f"Generation cancelled during {stage}{timeout_info}."

        super().__init__(message)

    @property
    def context(self) -> dict[str, Any]:
        """Return context for cancellation."""
        return {
            "stage": self.stage,
            "timeout_seconds": self.timeout_seconds,
        }

    def __repr__(self) -> str:
        """Return debug representation."""
        return (
            f"GenerationCancelledError(stage={self.stage!r}, "
            f"timeout_seconds={self.timeout_seconds!r})"
        )
