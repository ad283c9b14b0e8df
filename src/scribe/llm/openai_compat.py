"""OpenAI-compatible chat completions provider."""

import time
from typing import Any, Dict

import httpx

from scribe.core.exceptions import LLMResponseError
from scribe.llm.http_provider import HTTPChatProvider
from scribe.llm.provider import ChatRequest, ChatResponse, FinishReason, TokenUsage


class OpenAICompatibleProvider(HTTPChatProvider):
    """Provider for any ``/chat/completions`` endpoint.

    Works against OpenAI itself and against the many services that mirror
    its API (set ``base_url`` accordingly).
    """

    name = "openai"

    DEFAULT_BASE_URL = "https://api.openai.com/v1"
    DEFAULT_MODEL = "gpt-4o-mini"

    def _endpoint(self, request: ChatRequest) -> str:
        return f"{self._base_url}/chat/completions"

    def _get_headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self._api_key}",
            "Content-Type": "application/json",
            "Accept": "application/json",
        }

    def _build_request_payload(self, request: ChatRequest) -> Dict[str, Any]:
        return {
            "model": request.model,
            "messages": [message.to_dict() for message in request.messages],
            "temperature": request.temperature,
            "max_tokens": request.max_tokens,
        }

    def _parse_response(self, response: httpx.Response, start_time: float) -> ChatResponse:
        """Parse successful API response."""
        data = self._json(response)

        choices = data.get("choices")
        if not choices:
            raise LLMResponseError(provider=self.name, reason="Missing 'choices' field")

        choice = choices[0]
        if not isinstance(choice, dict):
            raise LLMResponseError(provider=self.name, reason="Invalid choice format: expected dict")
        message = choice.get("message") or {}
        if not isinstance(message, dict):
            raise LLMResponseError(provider=self.name, reason="Message field must be a dictionary")

        usage_data = data.get("usage") or {}
        usage = TokenUsage(
            prompt_tokens=usage_data.get("prompt_tokens", 0),
            completion_tokens=usage_data.get("completion_tokens", 0),
            total_tokens=usage_data.get("total_tokens", 0),
        )

        return ChatResponse(
            content=message.get("content"),
            model=data.get("model", self._model),
            usage=usage,
            latency_ms=int((time.monotonic() - start_time) * 1000),
            finish_reason=FinishReason.parse(choice.get("finish_reason")),
            request_id=response.headers.get("x-request-id") or data.get("id"),
        )
