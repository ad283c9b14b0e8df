"""
Scribe Test Configuration

Shared pytest fixtures and configuration for all test types.
"""

import os
from typing import Callable, Generator, Iterable, List

import pytest

from scribe.core.config import reset_settings
from scribe.llm.continuation import ContinuationLoop
from scribe.llm.provider import Message, MockLLMProvider
from scribe.llm.retry import BackoffRetrier, RetryPolicy
from scribe.llm.throttle import RequestThrottle


# Configure pytest collection
def pytest_configure(config: pytest.Config) -> None:
    """Register custom markers for test categorization."""
    config.addinivalue_line("markers", "unit: Unit tests (fast, isolated)")
    config.addinivalue_line("markers", "integration: Integration tests (several components wired together)")
    config.addinivalue_line("markers", "chaos: Chaos tests (injected provider failures)")
    config.addinivalue_line("markers", "load: Load tests (many concurrent callers)")


@pytest.fixture
def clean_settings() -> Generator[None, None, None]:
    """Reset the settings cache and drop SCRIBE_ variables around a test."""

    def _clear() -> None:
        for key in list(os.environ.keys()):
            if key.startswith("SCRIBE_"):
                del os.environ[key]

    reset_settings()
    _clear()
    yield
    reset_settings()
    _clear()


class RecordingSleep:
    """Stand-in for asyncio.sleep that records delays and returns at once."""

    def __init__(self) -> None:
        self.delays: List[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


@pytest.fixture
def recording_sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def instant_retrier(recording_sleep: RecordingSleep) -> BackoffRetrier:
    """Backoff retrier with the default policy and no real sleeping."""
    return BackoffRetrier(RetryPolicy(), sleep=recording_sleep)


@pytest.fixture
def zero_throttle() -> RequestThrottle:
    """Throttle that never delays dispatch."""
    return RequestThrottle(min_interval=0.0)


@pytest.fixture
def base_messages() -> List[Message]:
    return [
        Message.system("You are a professional lecturer."),
        Message.user("Generate lecture notes about: Fourier series"),
    ]


@pytest.fixture
def make_loop(
    zero_throttle: RequestThrottle, instant_retrier: BackoffRetrier
) -> Callable[..., ContinuationLoop]:
    """Factory fixture building a loop over a scripted provider."""

    def _make(replies: Iterable, **kwargs) -> ContinuationLoop:
        provider = kwargs.pop("provider", None) or MockLLMProvider(replies)
        kwargs.setdefault("throttle", zero_throttle)
        kwargs.setdefault("retrier", instant_retrier)
        return ContinuationLoop(provider, **kwargs)

    return _make
