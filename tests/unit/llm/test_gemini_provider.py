"""Unit tests for the Gemini provider."""

import json

import pytest
import respx
from httpx import ConnectError, Response

from scribe.core.exceptions import (
    LLMProviderUnavailable,
    LLMRateLimitExceeded,
    LLMResponseError,
    PermanentProviderError,
)
from scribe.llm.gemini import GeminiProvider
from scribe.llm.provider import ChatRequest, FinishReason, Message

BASE = "https://generativelanguage.googleapis.com/v1beta"
URL = f"{BASE}/models/gemini-1.5-pro:generateContent"

pytestmark = pytest.mark.unit


@pytest.fixture
def gemini_provider():
    return GeminiProvider(api_key="g-key")


@pytest.fixture
def chat_request():
    return ChatRequest(
        messages=[
            Message.system("You are a lecturer."),
            Message.user("Explain entropy"),
            Message.assistant("Entropy is"),
            Message.user("Continue"),
        ],
        model="gemini-1.5-pro",
        temperature=0.4,
        max_tokens=512,
    )


@pytest.fixture
def mock_gemini_response():
    return {
        "candidates": [
            {
                "content": {"role": "model", "parts": [{"text": "Entropy "}, {"text": "grows."}]},
                "finishReason": "STOP",
            }
        ],
        "usageMetadata": {
            "promptTokenCount": 20,
            "candidatesTokenCount": 3,
            "totalTokenCount": 23,
        },
        "modelVersion": "gemini-1.5-pro-002",
        "responseId": "resp-9",
    }


def test_defaults():
    provider = GeminiProvider(api_key="k")
    assert provider.name == "gemini"
    assert provider.get_model_name() == "gemini-1.5-pro"


def test_requires_api_key():
    with pytest.raises(ValueError, match="api_key cannot be empty"):
        GeminiProvider(api_key="")


@respx.mock
async def test_complete_async(gemini_provider, chat_request, mock_gemini_response):
    route = respx.post(URL).mock(return_value=Response(200, json=mock_gemini_response))

    response = await gemini_provider.complete_async(chat_request)

    assert response.content == "Entropy grows."
    assert response.finish_reason is FinishReason.STOP
    assert response.model == "gemini-1.5-pro-002"
    assert response.request_id == "resp-9"
    assert response.usage.prompt_tokens == 20
    assert response.usage.completion_tokens == 3
    assert response.usage.total_tokens == 23

    sent = route.calls.last.request
    assert sent.headers["x-goog-api-key"] == "g-key"
    assert json.loads(sent.content) == {
        "systemInstruction": {"parts": [{"text": "You are a lecturer."}]},
        "contents": [
            {"role": "user", "parts": [{"text": "Explain entropy"}]},
            {"role": "model", "parts": [{"text": "Entropy is"}]},
            {"role": "user", "parts": [{"text": "Continue"}]},
        ],
        "generationConfig": {"temperature": 0.4, "maxOutputTokens": 512},
    }


@respx.mock
async def test_system_only_request_becomes_user_turn(gemini_provider, mock_gemini_response):
    route = respx.post(URL).mock(return_value=Response(200, json=mock_gemini_response))
    request = ChatRequest(messages=[Message.system("Say hi")], model="gemini-1.5-pro")

    await gemini_provider.complete_async(request)

    payload = json.loads(route.calls.last.request.content)
    assert payload["contents"] == [{"role": "user", "parts": [{"text": "Say hi"}]}]
    assert "systemInstruction" not in payload


@respx.mock
async def test_max_tokens_finish(gemini_provider, chat_request, mock_gemini_response):
    mock_gemini_response["candidates"][0]["finishReason"] = "MAX_TOKENS"
    respx.post(URL).mock(return_value=Response(200, json=mock_gemini_response))

    response = await gemini_provider.complete_async(chat_request)

    assert response.finish_reason is FinishReason.LENGTH


@respx.mock
async def test_candidate_without_parts_has_no_content(gemini_provider, chat_request):
    respx.post(URL).mock(
        return_value=Response(200, json={"candidates": [{"finishReason": "SAFETY"}]})
    )

    response = await gemini_provider.complete_async(chat_request)

    assert response.content is None
    assert response.finish_reason is FinishReason.UNKNOWN
    assert response.model == "gemini-1.5-pro"


@respx.mock
async def test_blocked_prompt(gemini_provider, chat_request):
    respx.post(URL).mock(
        return_value=Response(200, json={"promptFeedback": {"blockReason": "SAFETY"}})
    )

    with pytest.raises(LLMResponseError, match="Prompt blocked: SAFETY"):
        await gemini_provider.complete_async(chat_request)


@respx.mock
async def test_missing_candidates(gemini_provider, chat_request):
    respx.post(URL).mock(return_value=Response(200, json={}))

    with pytest.raises(LLMResponseError, match="Missing 'candidates' field"):
        await gemini_provider.complete_async(chat_request)


@respx.mock
async def test_error_mapping(gemini_provider, chat_request):
    route = respx.post(URL)

    route.mock(return_value=Response(429))
    with pytest.raises(LLMRateLimitExceeded):
        await gemini_provider.complete_async(chat_request)

    route.mock(return_value=Response(500))
    with pytest.raises(LLMProviderUnavailable):
        await gemini_provider.complete_async(chat_request)

    route.mock(return_value=Response(403, json={"error": {"message": "API key invalid"}}))
    with pytest.raises(PermanentProviderError, match="API key invalid"):
        await gemini_provider.complete_async(chat_request)

    route.mock(side_effect=ConnectError("down"))
    with pytest.raises(LLMProviderUnavailable, match="Connection failed"):
        await gemini_provider.complete_async(chat_request)


@respx.mock
async def test_request_model_selects_endpoint(gemini_provider, mock_gemini_response):
    route = respx.post(f"{BASE}/models/gemini-1.5-flash:generateContent").mock(
        return_value=Response(200, json=mock_gemini_response)
    )
    request = ChatRequest(messages=[Message.user("hi")], model="gemini-1.5-flash")

    await gemini_provider.complete_async(request)

    assert route.called
