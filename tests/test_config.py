"""Tests for configuration loading and API key management."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import patch

import keyring.errors
import pytest

from journal_patterns.config import (
    APIKeyManager,
    APIKeyNotFoundError,
    AppConfig,
    ConfigError,
    ConfigFileError,
    get_api_key,
    get_config,
    load_config,
    reset_config,
)


class TestLoadConfig:
    """Tests for load_config()."""

    def test_defaults_without_file(self) -> None:
        config = load_config()

        assert config.ai.model_name is None
        assert config.ai.default_model == "models/gemini-2.0-flash"
        assert config.ai.temperature == 0.0
        assert config.ai.max_output_tokens == 2048
        assert config.cache.ttl_seconds == 300
        assert config.debug is False

    def test_explicit_file(self, tmp_path: Path) -> None:
        path = tmp_path / "custom.yaml"
        path.write_text(
            "ai:\n  model_name: gemini-2.5-flash\ncache:\n  ttl_seconds: 60\ndebug: true\n",
            encoding="utf-8",
        )

        config = load_config(path)

        assert config.ai.model_name == "gemini-2.5-flash"
        assert config.cache.ttl_seconds == 60
        assert config.debug is True

    def test_missing_explicit_file_raises(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigFileError):
            load_config(tmp_path / "nope.yaml")

    def test_project_file_is_discovered(self) -> None:
        # The autouse fixture runs every test from an empty tmp directory.
        Path("journal_patterns.yaml").write_text("logging:\n  level: DEBUG\n", encoding="utf-8")

        assert load_config().logging.level == "DEBUG"

    def test_malformed_yaml_falls_back_to_defaults(self, tmp_path: Path) -> None:
        path = tmp_path / "bad.yaml"
        path.write_text("ai: [unclosed\n", encoding="utf-8")

        assert load_config(path).cache.ttl_seconds == 300

    def test_non_mapping_falls_back_to_defaults(self, tmp_path: Path) -> None:
        path = tmp_path / "list.yaml"
        path.write_text("- one\n- two\n", encoding="utf-8")

        assert load_config(path).ai.max_output_tokens == 2048

    def test_invalid_values_fall_back_to_defaults(self, tmp_path: Path) -> None:
        path = tmp_path / "invalid.yaml"
        path.write_text("cache:\n  ttl_seconds: -5\n", encoding="utf-8")

        assert load_config(path).cache.ttl_seconds == 300

    def test_gemini_model_env_var(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("GEMINI_MODEL", "gemini-1.5-pro")

        assert load_config().ai.model_name == "gemini-1.5-pro"

    def test_file_model_beats_env_var(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("GEMINI_MODEL", "gemini-1.5-pro")
        path = tmp_path / "c.yaml"
        path.write_text("ai:\n  model_name: gemini-2.5-flash\n", encoding="utf-8")

        assert load_config(path).ai.model_name == "gemini-2.5-flash"

    def test_prefixed_env_vars(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("JOURNAL_PATTERNS_CACHE__TTL_SECONDS", "45")

        assert AppConfig().cache.ttl_seconds == 45

    def test_env_vars_override_file_per_field(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("JOURNAL_PATTERNS_AI__TEMPERATURE", "0.4")
        path = tmp_path / "c.yaml"
        path.write_text("ai:\n  temperature: 0.9\n  max_output_tokens: 4096\n", encoding="utf-8")

        config = load_config(path)

        assert config.ai.temperature == 0.4
        assert config.ai.max_output_tokens == 4096

    def test_get_config_is_cached_until_reset(self) -> None:
        first = get_config()

        assert get_config() is first
        reset_config()
        assert get_config() is not first


class TestAPIKeyManager:
    """Tests for APIKeyManager and get_api_key()."""

    def test_environment_wins(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("GEMINI_API_KEY", "  env-key  ")
        manager = APIKeyManager()

        assert manager.get_key().get_secret_value() == "env-key"
        assert manager.get_key_source() == "environment"

    def test_keyring_is_second(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(
            "journal_patterns.config.keyring.get_password", lambda service, username: "ring-key"
        )
        manager = APIKeyManager()

        assert manager.get_key().get_secret_value() == "ring-key"
        assert manager.get_key_source() == "keyring"

    def test_keyring_errors_mean_no_key(self, monkeypatch: pytest.MonkeyPatch) -> None:
        def broken(service: str, username: str) -> str:
            raise keyring.errors.NoKeyringError()

        monkeypatch.setattr("journal_patterns.config.keyring.get_password", broken)

        manager = APIKeyManager()

        assert manager.get_key() is None
        assert manager.get_key_source() == "none"

    def test_key_is_never_in_repr(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("GEMINI_API_KEY", "AIzaSuperSecretValue")

        assert "AIzaSuperSecretValue" not in repr(get_api_key())

    def test_get_api_key_raises_when_absent(self) -> None:
        with pytest.raises(APIKeyNotFoundError):
            get_api_key()

    def test_store_key(self) -> None:
        manager = APIKeyManager()

        with patch("journal_patterns.config.keyring.set_password") as set_password:
            manager.store_key("  new-key ")

        set_password.assert_called_once_with("journal-patterns", "gemini", "new-key")
        assert manager.get_key().get_secret_value() == "new-key"
        assert manager.get_key_source() == "keyring"

    def test_store_blank_key_raises(self) -> None:
        with pytest.raises(ConfigError):
            APIKeyManager().store_key("   ")

    def test_store_key_keyring_failure(self) -> None:
        with patch(
            "journal_patterns.config.keyring.set_password",
            side_effect=keyring.errors.PasswordSetError("denied"),
        ):
            with pytest.raises(ConfigError):
                APIKeyManager().store_key("new-key")
