"""Shared HTTP plumbing for chat-completion adapters.

Subclasses describe their vendor's endpoint, headers and payload shapes;
this base class posts the request with httpx, maps transport failures and
HTTP status codes onto the Scribe error taxonomy, and keeps the adapter's
own token counters.
"""

import threading
import time
from abc import abstractmethod
from typing import Any, Dict, Optional

import httpx
import structlog

from scribe.core.exceptions import (
    LLMProviderUnavailable,
    LLMRateLimitExceeded,
    LLMResponseError,
    LLMTimeoutError,
    PermanentProviderError,
    ScribeError,
)
from scribe.llm.provider import (
    ChatRequest,
    ChatResponse,
    HealthStatus,
    LLMProvider,
    Message,
    TokenUsage,
)

log = structlog.get_logger()


class HTTPChatProvider(LLMProvider):
    """Base class for providers reached over HTTP.

    Args:
        api_key: Provider API key.
        model: Model identifier.
        base_url: API root URL.
        timeout: Per-request timeout in seconds.
        client: Optional shared httpx.AsyncClient. When omitted a client is
            opened per request.
    """

    DEFAULT_BASE_URL: str = ""
    DEFAULT_MODEL: str = ""
    DEFAULT_TIMEOUT: float = 120.0
    DEFAULT_RETRY_AFTER: int = 5

    def __init__(
        self,
        api_key: str,
        model: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        if not api_key:
            raise ValueError("api_key cannot be empty")

        self._api_key = api_key
        self._model = model or self.DEFAULT_MODEL
        self._base_url = (base_url or self.DEFAULT_BASE_URL).rstrip("/")
        self._timeout = timeout or self.DEFAULT_TIMEOUT
        self._client = client

        self._lock = threading.Lock()
        self._total_prompt_tokens = 0
        self._total_completion_tokens = 0

    # Vendor hooks

    @abstractmethod
    def _endpoint(self, request: ChatRequest) -> str:
        """Return the absolute URL to POST the request to."""
        ...  # pragma: no cover

    @abstractmethod
    def _get_headers(self) -> Dict[str, str]:
        ...  # pragma: no cover

    @abstractmethod
    def _build_request_payload(self, request: ChatRequest) -> Dict[str, Any]:
        ...  # pragma: no cover

    @abstractmethod
    def _parse_response(self, response: httpx.Response, start_time: float) -> ChatResponse:
        """Parse a successful HTTP response into a ChatResponse."""
        ...  # pragma: no cover

    def _health_payload(self) -> ChatRequest:
        return ChatRequest(messages=[Message.user("ping")], model=self._model, max_tokens=1)

    # LLMProvider

    async def complete_async(self, request: ChatRequest) -> ChatResponse:
        """Generate a chat completion over HTTP."""
        start_time = time.monotonic()
        url = self._endpoint(request)
        payload = self._build_request_payload(request)

        try:
            response = await self._post(url, payload)
            self._handle_response_error(response)
            result = self._parse_response(response, start_time)
        except httpx.TimeoutException:
            raise LLMTimeoutError(provider=self.name, timeout_seconds=self._timeout)
        except httpx.TransportError as e:
            raise LLMProviderUnavailable(provider=self.name, message=f"Connection failed: {e}")
        except ScribeError:
            raise
        except Exception as e:
            log.error("llm_provider_error", provider=self.name, error=str(e))
            raise PermanentProviderError(provider=self.name, message=f"Unexpected error: {e}") from e

        self._record_usage(result.usage)
        log.debug(
            "llm_completion",
            provider=self.name,
            model=result.model,
            finish_reason=str(result.finish_reason),
            latency_ms=result.latency_ms,
            total_tokens=result.total_tokens,
        )
        return result

    async def health_check(self) -> HealthStatus:
        """Check provider health via a minimal completion."""
        start = time.monotonic()
        request = self._health_payload()
        try:
            response = await self._post(self._endpoint(request), self._build_request_payload(request))
            response.raise_for_status()
        except Exception as e:
            return HealthStatus(healthy=False, error=str(e))
        latency = int((time.monotonic() - start) * 1000)
        return HealthStatus(healthy=True, latency_ms=latency)

    def get_model_name(self) -> str:
        """Return configured model."""
        return self._model

    def get_token_usage(self) -> Dict[str, int]:
        """Return accumulated token usage."""
        with self._lock:
            return {
                "prompt_tokens": self._total_prompt_tokens,
                "completion_tokens": self._total_completion_tokens,
                "total_tokens": self._total_prompt_tokens + self._total_completion_tokens,
            }

    # Private helpers

    async def _post(self, url: str, payload: Dict[str, Any]) -> httpx.Response:
        if self._client is not None:
            return await self._client.post(url, json=payload, headers=self._get_headers(), timeout=self._timeout)
        async with httpx.AsyncClient(timeout=self._timeout) as client:
            return await client.post(url, json=payload, headers=self._get_headers())

    def _handle_response_error(self, response: httpx.Response) -> None:
        """Map HTTP error responses onto the error taxonomy."""
        if response.is_success:
            return

        if response.status_code == 429:
            retry_after = self._retry_after(response)
            log.warning("llm_rate_limited", provider=self.name, retry_after=retry_after)
            raise LLMRateLimitExceeded(provider=self.name, retry_after=retry_after)

        if response.status_code >= 500:
            raise LLMProviderUnavailable(
                provider=self.name,
                message=f"Server error: {response.status_code}",
            )

        if response.status_code in (401, 403):
            log.error("llm_auth_error", provider=self.name, status=response.status_code)

        raise PermanentProviderError(
            provider=self.name,
            message=f"API Error: {self._error_message(response)}",
            status_code=response.status_code,
        )

    def _retry_after(self, response: httpx.Response) -> int:
        try:
            return int(response.headers.get("Retry-After", self.DEFAULT_RETRY_AFTER))
        except ValueError:
            return self.DEFAULT_RETRY_AFTER

    @staticmethod
    def _error_message(response: httpx.Response) -> str:
        try:
            data = response.json()
        except ValueError:
            return response.text
        if not isinstance(data, dict):
            return response.text
        error = data.get("error", {})
        if isinstance(error, dict):
            return error.get("message", response.text)
        return str(error)

    def _json(self, response: httpx.Response) -> Dict[str, Any]:
        try:
            data = response.json()
        except ValueError as e:
            raise LLMResponseError(provider=self.name, reason=f"Malformed response: {e}")
        if not isinstance(data, dict):
            raise LLMResponseError(provider=self.name, reason="Expected a JSON object")
        return data

    def _record_usage(self, usage: TokenUsage) -> None:
        with self._lock:
            self._total_prompt_tokens += usage.prompt_tokens
            self._total_completion_tokens += usage.completion_tokens
