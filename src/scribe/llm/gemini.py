"""Google Gemini provider (``generateContent`` REST endpoint)."""

import time
from typing import Any, Dict, List

import httpx

from scribe.core.exceptions import LLMResponseError
from scribe.llm.http_provider import HTTPChatProvider
from scribe.llm.provider import ChatRequest, ChatResponse, FinishReason, Role, TokenUsage


class GeminiProvider(HTTPChatProvider):
    """Provider for Gemini models.

    System messages become the request's ``systemInstruction``; user and
    assistant messages become ``contents`` turns with the ``user`` and
    ``model`` roles. Gemini rejects a request without any turn, so a
    request made only of system messages is sent as a single user turn.
    """

    name = "gemini"

    DEFAULT_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"
    DEFAULT_MODEL = "gemini-1.5-pro"

    def _endpoint(self, request: ChatRequest) -> str:
        return f"{self._base_url}/models/{request.model}:generateContent"

    def _get_headers(self) -> Dict[str, str]:
        return {
            "x-goog-api-key": self._api_key,
            "Content-Type": "application/json",
            "Accept": "application/json",
        }

    def _build_request_payload(self, request: ChatRequest) -> Dict[str, Any]:
        system_parts: List[Dict[str, str]] = []
        contents: List[Dict[str, Any]] = []
        for message in request.messages:
            if message.role is Role.SYSTEM:
                system_parts.append({"text": message.content})
                continue
            role = "model" if message.role is Role.ASSISTANT else "user"
            contents.append({"role": role, "parts": [{"text": message.content}]})

        if not contents:
            contents = [{"role": "user", "parts": system_parts}]
            system_parts = []

        payload: Dict[str, Any] = {
            "contents": contents,
            "generationConfig": {
                "temperature": request.temperature,
                "maxOutputTokens": request.max_tokens,
            },
        }
        if system_parts:
            payload["systemInstruction"] = {"parts": system_parts}
        return payload

    def _parse_response(self, response: httpx.Response, start_time: float) -> ChatResponse:
        data = self._json(response)

        candidates = data.get("candidates")
        if not candidates:
            block_reason = (data.get("promptFeedback") or {}).get("blockReason")
            reason = f"Prompt blocked: {block_reason}" if block_reason else "Missing 'candidates' field"
            raise LLMResponseError(provider=self.name, reason=reason)

        candidate = candidates[0]
        if not isinstance(candidate, dict):
            raise LLMResponseError(provider=self.name, reason="Invalid candidate format: expected dict")

        parts = (candidate.get("content") or {}).get("parts") or []
        texts = [part.get("text", "") for part in parts if isinstance(part, dict)]
        content = "".join(texts) if texts else None

        usage_data = data.get("usageMetadata") or {}
        usage = TokenUsage(
            prompt_tokens=usage_data.get("promptTokenCount", 0),
            completion_tokens=usage_data.get("candidatesTokenCount", 0),
            total_tokens=usage_data.get("totalTokenCount", 0),
        )

        return ChatResponse(
            content=content,
            model=data.get("modelVersion", self._model),
            usage=usage,
            latency_ms=int((time.monotonic() - start_time) * 1000),
            finish_reason=FinishReason.parse(candidate.get("finishReason")),
            request_id=data.get("responseId"),
        )
