"""Unit tests for structlog configuration."""

import json

import pytest
import structlog

from scribe.core.config import LoggingConfig
from scribe.core.logging import configure_logging

pytestmark = pytest.mark.unit


@pytest.fixture(autouse=True)
def restore_structlog():
    yield
    structlog.reset_defaults()


def test_json_output(capsys):
    configure_logging(LoggingConfig(level="INFO", format="json"))

    structlog.get_logger().info("continuation_done", provider_calls=2)

    line = capsys.readouterr().out.strip().splitlines()[-1]
    event = json.loads(line)
    assert event["event"] == "continuation_done"
    assert event["provider_calls"] == 2
    assert event["level"] == "info"
    assert "timestamp" in event


def test_level_filtering(capsys):
    configure_logging(LoggingConfig(level="WARNING"))

    log = structlog.get_logger()
    log.info("throttle_dispatch")
    log.warning("llm_retry", attempt=1)

    out = capsys.readouterr().out
    assert "throttle_dispatch" not in out
    assert "llm_retry" in out


def test_console_output(capsys):
    configure_logging(LoggingConfig(level="DEBUG", format="console"))

    structlog.get_logger().debug("throttle_admitted", sequence=3)

    out = capsys.readouterr().out
    assert "throttle_admitted" in out
    assert "sequence" in out


def test_defaults_when_no_config(capsys):
    configure_logging()
    structlog.get_logger().debug("hidden_event")
    assert "hidden_event" not in capsys.readouterr().out
