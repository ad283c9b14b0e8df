"""Scribe Configuration System.

Layered YAML configuration with Pydantic validation.

Config Layer Priority (highest to lowest):
1. Runtime overrides (in-memory)
2. Environment variables (SCRIBE_ prefix, ``__`` nested delimiter)
3. System config (~/.scribe/config.yaml, or an explicit path)
4. Defaults (defined in Pydantic models)

A ``.env`` file next to the config file is loaded first so secrets such as
``SCRIBE_LLM__API_KEY`` can live outside the YAML.

Usage:
    from scribe.core.config import get_settings

    settings = get_settings()
    print(settings.throttle.requests_per_second)  # 10.0 (default)
"""

from __future__ import annotations

import threading
import warnings
from pathlib import Path
from typing import Any, Dict, List, Literal, Optional, Tuple

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field, PositiveFloat, SecretStr, field_validator, model_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

from scribe.core.exceptions import ConfigurationError
from scribe.llm.retry import RetryPolicy
from scribe.llm.validation import DEFAULT_TRUNCATION_INDICATORS, ValidationConfig

DEFAULT_CONFIG_DIR = Path.home() / ".scribe"


# =============================================================================
# Sub-configuration Models (nested sections)
# =============================================================================


class LLMConfig(BaseModel):
    """LLM provider configuration."""

    provider: Literal["openai", "gemini"] = "openai"
    model: Optional[str] = None
    api_key: Optional[SecretStr] = None
    base_url: Optional[str] = None
    temperature: float = Field(default=0.4, ge=0.0, le=2.0)
    max_tokens: int = Field(default=8192, ge=1, le=32768)
    max_attempts: int = Field(default=3, ge=1)  # continuation budget
    request_timeout: PositiveFloat = 120.0  # seconds


class RetryConfig(BaseModel):
    """Backoff retry configuration for transient provider failures."""

    max_attempts: int = Field(default=3, ge=1)
    initial_delay: float = Field(default=1.0, ge=0.0)  # seconds
    max_delay: float = Field(default=10.0, ge=0.0)  # seconds
    backoff_factor: float = Field(default=2.0, gt=1.0)

    @model_validator(mode="after")
    def check_delays(self) -> "RetryConfig":
        """Validate max_delay is not below initial_delay."""
        if self.max_delay < self.initial_delay:
            raise ValueError("max_delay must be >= initial_delay")
        return self

    def to_policy(self) -> RetryPolicy:
        return RetryPolicy(
            max_attempts=self.max_attempts,
            initial_delay=self.initial_delay,
            max_delay=self.max_delay,
            backoff_factor=self.backoff_factor,
        )


class ThrottleConfig(BaseModel):
    """Request throttle configuration."""

    requests_per_second: PositiveFloat = 10.0

    @property
    def min_interval(self) -> float:
        """Return the minimum gap between dispatches in seconds."""
        return 1.0 / self.requests_per_second


class ValidationSettings(BaseModel):
    """Completeness rules applied to generated text."""

    truncation_indicators: List[str] = Field(
        default_factory=lambda: list(DEFAULT_TRUNCATION_INDICATORS)
    )
    check_latex: bool = True
    check_code_fences: bool = True
    check_brackets: bool = True

    def to_config(self) -> ValidationConfig:
        return ValidationConfig(
            truncation_indicators=tuple(self.truncation_indicators),
            check_latex=self.check_latex,
            check_code_fences=self.check_code_fences,
            check_brackets=self.check_brackets,
        )


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = "INFO"
    format: Literal["json", "console"] = "json"

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        """Validate log level is valid."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if v.upper() not in valid_levels:
            raise ValueError(f"Invalid log level: {v}. Must be one of {valid_levels}")
        return v.upper()


# =============================================================================
# Main Configuration Model
# =============================================================================


class Settings(BaseSettings):
    """Main settings class with layered configuration support.

    Loads configuration from:
    1. Init kwargs (merged YAML + runtime overrides)
    2. Environment variables (SCRIBE_ prefix)
    3. Defaults defined in Pydantic models

    Environment variables win over the YAML layer, runtime overrides win
    over both (see ``create_settings``).
    """

    model_config = SettingsConfigDict(
        env_prefix="SCRIBE_",
        env_nested_delimiter="__",
        extra="ignore",
    )

    llm: LLMConfig = Field(default_factory=LLMConfig)
    retry: RetryConfig = Field(default_factory=RetryConfig)
    throttle: ThrottleConfig = Field(default_factory=ThrottleConfig)
    validation: ValidationSettings = Field(default_factory=ValidationSettings)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> Tuple[PydanticBaseSettingsSource, ...]:
        # Environment beats the file layer passed in as init kwargs.
        return env_settings, init_settings, dotenv_settings, file_secret_settings


# =============================================================================
# Configuration Loading Functions
# =============================================================================


def load_yaml_file(path: Path) -> Dict[str, Any]:
    """Load and parse a YAML file.

    Args:
        path: Path to the YAML file.

    Returns:
        Parsed YAML content as dictionary.

    Raises:
        ConfigurationError: If file cannot be read or parsed.
    """
    try:
        with open(path, "r", encoding="utf-8") as f:
            content = yaml.safe_load(f)
    except FileNotFoundError:
        raise ConfigurationError(
            config_path=str(path),
            message=f"Configuration file not found: {path}",
        )
    except yaml.YAMLError as e:
        raise ConfigurationError(
            config_path=str(path),
            message=f"Invalid YAML in {path}: {e}",
        )

    if content is None:
        return {}
    if not isinstance(content, dict):
        raise ConfigurationError(
            config_path=str(path),
            message=f"Top level of {path} must be a mapping",
        )
    return content


def load_system_config(path: Optional[Path] = None) -> Dict[str, Any]:
    """Load system configuration from YAML file.

    Args:
        path: Optional path to config file. Defaults to ~/.scribe/config.yaml.
            An explicit path must exist; the default one may be absent.

    Returns:
        System configuration dictionary.
    """
    if path is None:
        default_path = DEFAULT_CONFIG_DIR / "config.yaml"
        if not default_path.exists():
            return {}
        return load_yaml_file(default_path)

    return load_yaml_file(Path(path).expanduser())


def merge_configs(*configs: Dict[str, Any]) -> Dict[str, Any]:
    """Deep merge multiple configuration dictionaries.

    Later configs override earlier ones.
    """
    result: Dict[str, Any] = {}

    for config in configs:
        for key, value in config.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = merge_configs(result[key], value)
            else:
                result[key] = value

    return result


def create_settings(
    system_config_path: Optional[Path] = None,
    runtime_overrides: Optional[Dict[str, Any]] = None,
) -> Settings:
    """Create a Settings instance with layered configuration.

    Args:
        system_config_path: Optional path to system config file.
        runtime_overrides: Optional runtime overrides dictionary. These are
            applied on top of the environment layer.

    Returns:
        Configured Settings instance.

    Raises:
        ConfigurationError: If configuration is invalid.
    """
    if system_config_path:
        config_base = Path(system_config_path).expanduser().parent
    else:
        config_base = DEFAULT_CONFIG_DIR

    env_path = config_base / ".env"
    if env_path.exists():
        load_dotenv(env_path)

    system_config = load_system_config(system_config_path)
    config_label = str(system_config_path or DEFAULT_CONFIG_DIR / "config.yaml")

    try:
        settings = Settings(**system_config)
        if runtime_overrides:
            merged = merge_configs(settings.model_dump(), runtime_overrides)
            settings = Settings.model_validate(merged)
    except ValueError as e:
        raise ConfigurationError(
            config_path=config_label,
            message=f"Configuration validation failed: {e}",
        ) from e
    return settings


# =============================================================================
# Singleton Settings Access
# =============================================================================


class _SettingsHolder:
    """Thread-safe holder for the cached Settings instance."""

    _instance: Optional[Settings] = None
    _lock: threading.Lock = threading.Lock()

    @classmethod
    def get(cls, force_reload: bool = False, **kwargs: Any) -> Settings:
        if cls._instance is None or force_reload:
            with cls._lock:
                if cls._instance is None or force_reload:  # pragma: no cover
                    cls._instance = create_settings(**kwargs)
        return cls._instance

    @classmethod
    def reset(cls) -> None:
        """Reset the cached settings (for testing)."""
        with cls._lock:
            cls._instance = None


def get_settings(
    force_reload: bool = False,
    system_config_path: Optional[Path] = None,
    runtime_overrides: Optional[Dict[str, Any]] = None,
) -> Settings:
    """Get the cached Settings instance.

    Settings are loaded once and cached for subsequent calls.

    Args:
        force_reload: If True, reload settings from files and environment.
        system_config_path: Optional path to system config file.
        runtime_overrides: Optional runtime overrides.

    Returns:
        Settings instance.
    """
    if not force_reload and _SettingsHolder._instance is not None:
        if system_config_path is not None or runtime_overrides is not None:
            warnings.warn(
                "Arguments provided to get_settings() are ignored because "
                "settings are already loaded. Use force_reload=True "
                "to apply new configuration.",
                RuntimeWarning,
                stacklevel=2,
            )

    return _SettingsHolder.get(
        force_reload=force_reload,
        system_config_path=system_config_path,
        runtime_overrides=runtime_overrides,
    )


def reset_settings() -> None:
    """Reset the settings cache (for testing)."""
    _SettingsHolder.reset()
