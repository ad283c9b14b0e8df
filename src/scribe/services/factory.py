"""Build providers and services from Settings."""

from typing import Dict, Optional, Type

import httpx
import structlog

from scribe.core.config import Settings, get_settings
from scribe.core.exceptions import ConfigurationError
from scribe.llm.continuation import ContinuationLoop
from scribe.llm.gemini import GeminiProvider
from scribe.llm.http_provider import HTTPChatProvider
from scribe.llm.openai_compat import OpenAICompatibleProvider
from scribe.llm.provider import LLMProvider
from scribe.llm.retry import BackoffRetrier
from scribe.llm.throttle import RequestThrottle
from scribe.services.notes import NotesService

log = structlog.get_logger()

PROVIDERS: Dict[str, Type[HTTPChatProvider]] = {
    OpenAICompatibleProvider.name: OpenAICompatibleProvider,
    GeminiProvider.name: GeminiProvider,
}


def create_provider(
    settings: Optional[Settings] = None,
    client: Optional[httpx.AsyncClient] = None,
) -> HTTPChatProvider:
    """Instantiate the adapter named by ``settings.llm.provider``.

    Raises:
        ConfigurationError: If no API key is configured.
    """
    settings = settings or get_settings()
    llm = settings.llm

    api_key = llm.api_key.get_secret_value() if llm.api_key else ""
    if not api_key.strip():
        raise ConfigurationError(
            config_path="llm.api_key",
            key="api_key",
            message="API key is required (set SCRIBE_LLM__API_KEY)",
        )

    provider_cls = PROVIDERS[llm.provider]
    log.info("provider_created", provider=llm.provider, model=llm.model or provider_cls.DEFAULT_MODEL)
    return provider_cls(
        api_key=api_key,
        model=llm.model,
        base_url=llm.base_url,
        timeout=llm.request_timeout,
        client=client,
    )


def create_notes_service(
    settings: Optional[Settings] = None,
    throttle: Optional[RequestThrottle] = None,
    provider: Optional[LLMProvider] = None,
    timeout: Optional[float] = None,
) -> NotesService:
    """Wire provider, retrier, throttle and validation into a NotesService.

    Args:
        settings: Settings to build from. Defaults to ``get_settings()``.
        throttle: Shared throttle. Pass the same instance to several services
            to make them share one dispatch clock. A new one is created from
            ``settings.throttle`` when omitted.
        provider: Pre-built provider, skipping ``create_provider``.
        timeout: Optional per-generation deadline in seconds.
    """
    settings = settings or get_settings()
    provider = provider or create_provider(settings)
    throttle = throttle or RequestThrottle(min_interval=settings.throttle.min_interval)

    loop = ContinuationLoop(
        provider,
        throttle=throttle,
        retrier=BackoffRetrier(settings.retry.to_policy()),
        validation=settings.validation.to_config(),
        max_attempts=settings.llm.max_attempts,
        temperature=settings.llm.temperature,
        max_tokens=settings.llm.max_tokens,
    )
    return NotesService(loop, timeout=timeout)
