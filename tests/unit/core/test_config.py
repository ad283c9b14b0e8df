"""Unit tests for Scribe Configuration System.

Tests layered YAML configuration loading with Pydantic validation:
defaults, system config, environment, runtime overrides, validation errors,
conversions and singleton behavior.
"""

from pathlib import Path

import pytest
import yaml

from scribe.core.config import (
    LLMConfig,
    LoggingConfig,
    RetryConfig,
    Settings,
    ThrottleConfig,
    ValidationSettings,
    create_settings,
    get_settings,
    load_system_config,
    load_yaml_file,
    merge_configs,
    reset_settings,
)
from scribe.core.exceptions import ConfigurationError
from scribe.llm.retry import RetryPolicy
from scribe.llm.validation import DEFAULT_TRUNCATION_INDICATORS, ValidationConfig

pytestmark = [pytest.mark.unit, pytest.mark.usefixtures("clean_settings")]


def _write_yaml(path: Path, data) -> Path:
    path.write_text(yaml.safe_dump(data))
    return path


@pytest.fixture
def isolated_home(tmp_path, monkeypatch):
    """Point the default config directory at an empty temp dir."""
    monkeypatch.setattr("scribe.core.config.DEFAULT_CONFIG_DIR", tmp_path / ".scribe")
    return tmp_path / ".scribe"


# =============================================================================
# Default Value Tests
# =============================================================================


class TestDefaultValues:
    def test_llm_defaults(self) -> None:
        config = LLMConfig()
        assert config.provider == "openai"
        assert config.model is None
        assert config.api_key is None
        assert config.temperature == 0.4
        assert config.max_tokens == 8192
        assert config.max_attempts == 3
        assert config.request_timeout == 120.0

    def test_retry_defaults(self) -> None:
        config = RetryConfig()
        assert (config.max_attempts, config.initial_delay, config.max_delay, config.backoff_factor) == (3, 1.0, 10.0, 2.0)

    def test_throttle_defaults(self) -> None:
        assert ThrottleConfig().requests_per_second == 10.0
        assert ThrottleConfig().min_interval == pytest.approx(0.1)

    def test_validation_defaults(self) -> None:
        config = ValidationSettings()
        assert tuple(config.truncation_indicators) == DEFAULT_TRUNCATION_INDICATORS
        assert config.check_latex and config.check_code_fences and config.check_brackets

    def test_logging_defaults(self) -> None:
        config = LoggingConfig()
        assert config.level == "INFO"
        assert config.format == "json"

    def test_settings_defaults(self, isolated_home) -> None:
        settings = create_settings()
        assert settings.llm.provider == "openai"
        assert settings.logging.level == "INFO"


# =============================================================================
# Validation Tests
# =============================================================================


class TestValidation:
    @pytest.mark.parametrize("temperature", [-0.1, 2.5])
    def test_temperature_range(self, temperature) -> None:
        with pytest.raises(ValueError):
            LLMConfig(temperature=temperature)

    @pytest.mark.parametrize("max_tokens", [0, 40000])
    def test_max_tokens_range(self, max_tokens) -> None:
        with pytest.raises(ValueError):
            LLMConfig(max_tokens=max_tokens)

    def test_max_attempts_minimum(self) -> None:
        with pytest.raises(ValueError):
            LLMConfig(max_attempts=0)
        with pytest.raises(ValueError):
            RetryConfig(max_attempts=0)

    def test_unknown_provider(self) -> None:
        with pytest.raises(ValueError):
            LLMConfig(provider="anthropic")

    def test_retry_delays(self) -> None:
        with pytest.raises(ValueError, match="max_delay must be >= initial_delay"):
            RetryConfig(initial_delay=5.0, max_delay=1.0)
        with pytest.raises(ValueError):
            RetryConfig(backoff_factor=1.0)

    def test_throttle_rate_positive(self) -> None:
        with pytest.raises(ValueError):
            ThrottleConfig(requests_per_second=0)

    def test_log_level_normalised(self) -> None:
        assert LoggingConfig(level="debug").level == "DEBUG"
        with pytest.raises(ValueError, match="Invalid log level"):
            LoggingConfig(level="LOUD")

    def test_invalid_yaml_values_raise_configuration_error(self, tmp_path) -> None:
        path = _write_yaml(tmp_path / "config.yaml", {"llm": {"temperature": 9}})
        with pytest.raises(ConfigurationError, match="Configuration validation failed"):
            create_settings(system_config_path=path)


# =============================================================================
# Conversion Tests
# =============================================================================


class TestConversions:
    def test_retry_to_policy(self) -> None:
        policy = RetryConfig(max_attempts=5, initial_delay=0.5, max_delay=4.0, backoff_factor=3.0).to_policy()
        assert policy == RetryPolicy(max_attempts=5, initial_delay=0.5, max_delay=4.0, backoff_factor=3.0)

    def test_validation_to_config(self) -> None:
        config = ValidationSettings(truncation_indicators=["<more>"], check_brackets=False).to_config()
        assert config == ValidationConfig(truncation_indicators=("<more>",), check_brackets=False)


# =============================================================================
# YAML Loading Tests
# =============================================================================


class TestYamlLoading:
    def test_load_yaml_file(self, tmp_path) -> None:
        path = _write_yaml(tmp_path / "c.yaml", {"throttle": {"requests_per_second": 2}})
        assert load_yaml_file(path) == {"throttle": {"requests_per_second": 2}}

    def test_empty_file_is_empty_dict(self, tmp_path) -> None:
        path = tmp_path / "empty.yaml"
        path.write_text("")
        assert load_yaml_file(path) == {}

    def test_missing_file(self, tmp_path) -> None:
        with pytest.raises(ConfigurationError, match="not found"):
            load_yaml_file(tmp_path / "nope.yaml")

    def test_invalid_yaml(self, tmp_path) -> None:
        path = tmp_path / "bad.yaml"
        path.write_text("llm: [unclosed")
        with pytest.raises(ConfigurationError, match="Invalid YAML"):
            load_yaml_file(path)

    def test_non_mapping_top_level(self, tmp_path) -> None:
        path = tmp_path / "list.yaml"
        path.write_text("- a\n- b\n")
        with pytest.raises(ConfigurationError, match="must be a mapping"):
            load_yaml_file(path)

    def test_default_system_config_may_be_absent(self, isolated_home) -> None:
        assert load_system_config() == {}

    def test_default_system_config_is_read(self, isolated_home) -> None:
        isolated_home.mkdir()
        _write_yaml(isolated_home / "config.yaml", {"llm": {"provider": "gemini"}})
        assert create_settings().llm.provider == "gemini"


# =============================================================================
# Layering Tests
# =============================================================================


class TestLayering:
    def test_merge_configs_is_deep(self) -> None:
        merged = merge_configs(
            {"llm": {"model": "a", "temperature": 0.1}, "throttle": {"requests_per_second": 1}},
            {"llm": {"model": "b"}},
        )
        assert merged == {
            "llm": {"model": "b", "temperature": 0.1},
            "throttle": {"requests_per_second": 1},
        }

    def test_yaml_overrides_defaults(self, tmp_path) -> None:
        path = _write_yaml(tmp_path / "config.yaml", {
            "llm": {"provider": "gemini", "model": "gemini-1.5-flash"},
            "retry": {"max_attempts": 5},
            "logging": {"level": "debug", "format": "console"},
        })

        settings = create_settings(system_config_path=path)

        assert settings.llm.provider == "gemini"
        assert settings.llm.model == "gemini-1.5-flash"
        assert settings.retry.max_attempts == 5
        assert settings.retry.initial_delay == 1.0
        assert settings.logging.level == "DEBUG"
        assert settings.logging.format == "console"

    def test_env_overrides_yaml(self, tmp_path, monkeypatch) -> None:
        path = _write_yaml(tmp_path / "config.yaml", {"throttle": {"requests_per_second": 2}})
        monkeypatch.setenv("SCRIBE_THROTTLE__REQUESTS_PER_SECOND", "5")

        settings = create_settings(system_config_path=path)

        assert settings.throttle.requests_per_second == 5.0

    def test_env_logging_section(self, tmp_path, monkeypatch) -> None:
        path = _write_yaml(tmp_path / "config.yaml", {"logging": {"format": "console"}})
        monkeypatch.setenv("SCRIBE_LOGGING__LEVEL", "debug")

        settings = create_settings(system_config_path=path)

        assert settings.logging.level == "DEBUG"
        assert settings.logging.format == "console"

    def test_runtime_overrides_win(self, tmp_path, monkeypatch) -> None:
        path = _write_yaml(tmp_path / "config.yaml", {"llm": {"max_attempts": 4}})
        monkeypatch.setenv("SCRIBE_LLM__MAX_ATTEMPTS", "6")

        settings = create_settings(
            system_config_path=path,
            runtime_overrides={"llm": {"max_attempts": 8}},
        )

        assert settings.llm.max_attempts == 8

    def test_runtime_overrides_are_validated(self, tmp_path) -> None:
        path = _write_yaml(tmp_path / "config.yaml", {})
        with pytest.raises(ConfigurationError):
            create_settings(system_config_path=path, runtime_overrides={"llm": {"max_tokens": 0}})

    def test_api_key_is_secret(self, tmp_path, monkeypatch) -> None:
        path = _write_yaml(tmp_path / "config.yaml", {})
        monkeypatch.setenv("SCRIBE_LLM__API_KEY", "sk-secret")

        settings = create_settings(system_config_path=path)

        assert settings.llm.api_key.get_secret_value() == "sk-secret"
        assert "sk-secret" not in repr(settings)

    def test_dotenv_next_to_config(self, tmp_path) -> None:
        path = _write_yaml(tmp_path / "config.yaml", {})
        (tmp_path / ".env").write_text("SCRIBE_LLM__MODEL=from-dotenv\n")

        settings = create_settings(system_config_path=path)

        assert settings.llm.model == "from-dotenv"


# =============================================================================
# Singleton Tests
# =============================================================================


class TestSingleton:
    def test_get_settings_is_cached(self, isolated_home) -> None:
        first = get_settings()
        assert get_settings() is first
        assert isinstance(first, Settings)

    def test_force_reload(self, isolated_home) -> None:
        first = get_settings()
        assert get_settings(force_reload=True) is not first

    def test_arguments_ignored_once_loaded_warn(self, isolated_home) -> None:
        get_settings()
        with pytest.warns(RuntimeWarning, match="ignored"):
            get_settings(runtime_overrides={"llm": {"max_attempts": 2}})

    def test_reset(self, isolated_home) -> None:
        first = get_settings()
        reset_settings()
        assert get_settings() is not first
