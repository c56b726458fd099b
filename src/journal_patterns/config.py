"""Central Configuration System for the Journal Pattern Reflection Engine.

This module is the single source of truth for configuration. Every other
module that needs settings imports from here.

The configuration system supports:
- Multi-source configuration (environment variables > config file > defaults)
- Gemini API key lookup (env > system keyring), wrapped in SecretStr
- Graceful degradation when a config file is missing or malformed

Example:
    >>> from journal_patterns.config import get_config, get_api_key
    >>>
    >>> cfg = get_config()
    >>> print(cfg.cache.ttl_seconds)  # 300
    >>>
    >>> key = get_api_key()  # raises APIKeyNotFoundError if absent

Config File Format (YAML):
    ```yaml
    ai:
      model_name: gemini-2.0-flash   # optional, otherwise auto-resolved
      temperature: 0.0
      max_output_tokens: 2048

    cache:
      ttl_seconds: 300

    logging:
      level: INFO
      log_file: ./journal_patterns.log

    debug: false
    ```
"""

from __future__ import annotations

import functools
import logging
import os
from pathlib import Path
from typing import Any

import keyring
import keyring.errors
import yaml
from pydantic import AliasChoices, BaseModel, Field, SecretStr
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource

# Never log secrets through this logger
logger = logging.getLogger(__name__)


# =============================================================================
# Exceptions
# =============================================================================


class ConfigError(Exception):
    """Base exception for configuration errors."""

    pass


class ConfigFileError(ConfigError):
    """Raised when a config file exists but cannot be read or parsed."""

    pass


class APIKeyError(ConfigError):
    """Base exception for API key related issues."""

    pass


class APIKeyNotFoundError(APIKeyError):
    """Raised when no API key could be found in any configured source."""

    pass


# =============================================================================
# Configuration Models
# =============================================================================


DEFAULT_PREFERRED_MODELS = [
    "models/gemini-2.5-flash",
    "models/gemini-2.5-flash-lite",
    "models/gemini-2.0-flash",
    "models/gemini-2.0-flash-lite",
    "models/gemini-1.5-flash",
    "models/gemini-1.5-pro",
    "models/gemini-1.0-pro",
]


class AIConfig(BaseModel):
    """Settings for the Gemini model call.

    Attributes:
        model_name: Explicit model to use. When unset the client lists the
            available models once and picks the first preferred match.
        default_model: Used when listing fails or nothing matches.
        preferred_models: Prefix order used during model resolution.
        temperature: Sampling temperature. Zero keeps output shape stable.
        max_output_tokens: Kept high to avoid truncated JSON.
        output_preview_chars: Length of the output preview in debug payloads.
    """

    model_name: str | None = Field(
        default=None,
        validation_alias=AliasChoices("model_name", "GEMINI_MODEL"),
        description="Explicit Gemini model. None = auto-resolve.",
    )
    default_model: str = Field(
        default="models/gemini-2.0-flash", description="Fallback model name."
    )
    preferred_models: list[str] = Field(
        default_factory=lambda: list(DEFAULT_PREFERRED_MODELS),
        description="Model name prefixes in order of preference.",
    )
    temperature: float = Field(
        default=0.0, ge=0.0, le=2.0, description="Sampling temperature."
    )
    max_output_tokens: int = Field(
        default=2048, ge=100, le=32000, description="Maximum tokens in model response."
    )
    output_preview_chars: int = Field(
        default=600, ge=0, le=10000, description="Output preview length in debug payloads."
    )


class CacheConfig(BaseModel):
    """Per-user result cache settings."""

    ttl_seconds: int = Field(
        default=300, ge=0, description="How long a cached reflection may be served."
    )


class LoggingConfig(BaseModel):
    """Logging settings consumed by journal_patterns.utils.logging."""

    level: str = Field(default="INFO", description="Log level name.")
    log_file: Path | None = Field(default=None, description="Optional log file path.")
    quiet_third_party: bool = Field(
        default=True, description="Silence noisy SDK and HTTP loggers."
    )


class AppConfig(BaseSettings):
    """Top-level application configuration.

    Configuration priority (highest wins):
    1. Environment variables (JOURNAL_PATTERNS_*, nested with __)
    2. Config file (YAML)
    3. In-code defaults

    Example:
        >>> JOURNAL_PATTERNS_CACHE__TTL_SECONDS=60 journal-patterns reflect entries.json
    """

    ai: AIConfig = Field(default_factory=AIConfig)
    cache: CacheConfig = Field(default_factory=CacheConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    debug: bool = Field(default=False, description="Include debug payloads by default.")

    model_config = {
        "env_prefix": "JOURNAL_PATTERNS_",
        "env_nested_delimiter": "__",
        "case_sensitive": False,
        "extra": "ignore",
    }

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        # load_config() passes file values as init kwargs; env must still win.
        return env_settings, init_settings, dotenv_settings, file_secret_settings


# =============================================================================
# API Key Management
# =============================================================================


class APIKeyManager:
    """Retrieve the Gemini API key from the environment or system keyring.

    Sources are tried in priority order:
    1. Environment variable (GEMINI_API_KEY)
    2. System keyring (macOS Keychain, Windows Credential Manager, etc.)

    Keys are wrapped in SecretStr to prevent accidental logging and cached
    after the first successful lookup.

    Example:
        >>> manager = APIKeyManager()
        >>> key = manager.get_key()
        >>> if key:
        ...     raw = key.get_secret_value()  # only at the call site
    """

    KEYRING_SERVICE = "journal-patterns"
    KEYRING_USERNAME = "gemini"
    ENV_VAR_NAME = "GEMINI_API_KEY"

    def __init__(self) -> None:
        self._cached_key: SecretStr | None = None
        self._key_source: str = "none"

    def get_key(self) -> SecretStr | None:
        if self._cached_key is not None:
            return self._cached_key

        key = self._read_from_environment()
        if key:
            self._cached_key = SecretStr(key)
            self._key_source = "environment"
            logger.debug("API key loaded from environment variable")
            return self._cached_key

        key = self._read_from_keyring()
        if key:
            self._cached_key = SecretStr(key)
            self._key_source = "keyring"
            logger.debug("API key loaded from system keyring")
            return self._cached_key

        self._key_source = "none"
        logger.debug("No API key found in any source")
        return None

    def get_key_source(self) -> str:
        return self._key_source

    def store_key(self, key: str) -> None:
        """Store the key in the system keyring.

        Raises:
            ConfigError: If the key is blank or the keyring rejects it.
        """
        key = key.strip()
        if not key:
            raise ConfigError("API key must not be empty")
        try:
            keyring.set_password(self.KEYRING_SERVICE, self.KEYRING_USERNAME, key)
        except keyring.errors.KeyringError as e:
            raise ConfigError(f"Could not store key in keyring: {type(e).__name__}") from e
        self._cached_key = SecretStr(key)
        self._key_source = "keyring"

    def _read_from_environment(self) -> str | None:
        value = os.environ.get(self.ENV_VAR_NAME, "").strip()
        return value or None

    def _read_from_keyring(self) -> str | None:
        try:
            value = keyring.get_password(self.KEYRING_SERVICE, self.KEYRING_USERNAME)
        except keyring.errors.KeyringError as e:
            logger.debug(f"Keyring unavailable: {type(e).__name__}")
            return None
        return value.strip() if value else None


# =============================================================================
# Loading
# =============================================================================


def _search_paths(path: Path | None) -> list[Path | None]:
    return [
        path,
        Path("./journal_patterns.yaml"),
        Path("./journal_patterns.yml"),
        Path.home() / ".journal-patterns" / "config.yaml",
    ]


def load_config(path: Path | None = None) -> AppConfig:
    """Load configuration from file, environment, and defaults.

    If no config file is found, uses defaults only. A malformed file logs a
    warning and falls back to defaults.

    Args:
        path: Optional explicit config file path.

    Returns:
        Fully-populated AppConfig instance.

    Raises:
        ConfigFileError: If an explicitly requested file does not exist.
    """
    if path is not None and not path.exists():
        raise ConfigFileError(f"Config file not found: {path}")

    config_data: dict[str, Any] = {}
    config_file = next((p for p in _search_paths(path) if p is not None and p.exists()), None)

    if config_file is not None:
        try:
            content = config_file.read_text(encoding="utf-8")
            loaded = yaml.safe_load(content) if content.strip() else None
            if isinstance(loaded, dict):
                config_data = loaded
            elif loaded is not None:
                logger.warning(f"Config file {config_file} has unexpected format. Using defaults.")
        except yaml.YAMLError as e:
            logger.warning(f"Failed to parse config file {config_file}: {e}. Using defaults.")
        except OSError as e:
            logger.warning(
                f"Failed to read config file {config_file}: {type(e).__name__}. Using defaults."
            )

    ai_data = dict(config_data.get("ai") or {})
    # GEMINI_MODEL is honored for parity with the web deployment.
    if "model_name" not in ai_data and os.environ.get("GEMINI_MODEL"):
        ai_data["model_name"] = os.environ["GEMINI_MODEL"]

    try:
        # Plain dicts, so environment values merge into file sections field by field.
        return AppConfig(
            ai=ai_data,
            cache=dict(config_data.get("cache") or {}),
            logging=dict(config_data.get("logging") or {}),
            debug=config_data.get("debug", False),
        )
    except (TypeError, ValueError) as e:
        logger.warning(f"Error parsing config values: {e}. Using defaults.")
        return AppConfig()


@functools.lru_cache(maxsize=1)
def get_config() -> AppConfig:
    """Get the cached configuration singleton."""
    return load_config()


def get_api_key() -> SecretStr:
    """Return the Gemini API key.

    Raises:
        APIKeyNotFoundError: If no API key is configured in any source.
    """
    key = APIKeyManager().get_key()
    if key is None:
        raise APIKeyNotFoundError(
            "No API key found. Set the GEMINI_API_KEY environment variable "
            "or store a key in the system keyring."
        )
    return key


def reset_config() -> None:
    """Clear the configuration cache (used by tests)."""
    get_config.cache_clear()
