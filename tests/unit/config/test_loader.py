"""Tests for config loader."""

import os
from pathlib import Path
from unittest.mock import patch

import pytest
from pydantic import ValidationError

from slackdigest.config.loader import (
    ConfigError,
    ConfigFileNotFoundError,
    ConfigParseError,
    EnvVarNotFoundError,
    expand_env_vars,
    load_config,
)
from slackdigest.config.models import AppConfig


class TestLoadConfig:
    """Tests for load_config function."""

    def test_load_valid_config(self, tmp_path: Path) -> None:
        """Load a valid config file."""
        config_file = tmp_path / "config.yaml"
        config_file.write_text("""
slack:
  bot_token: "xoxb-test"
  digest_channel: "C0DIGEST"
server:
  port: 9000
""")

        config = load_config(config_file)

        assert isinstance(config, AppConfig)
        assert config.slack.bot_token == "xoxb-test"
        assert config.slack.digest_channel == "C0DIGEST"
        assert config.server.port == 9000
        assert config.server.host == "0.0.0.0"

    def test_file_not_found(self) -> None:
        """File not found raises ConfigFileNotFoundError."""
        with pytest.raises(ConfigFileNotFoundError) as exc_info:
            load_config(Path("/nonexistent/path/config.yaml"))

        assert "not found" in str(exc_info.value).lower()

    def test_invalid_yaml(self, tmp_path: Path) -> None:
        """Invalid YAML format raises ConfigParseError."""
        config_file = tmp_path / "config.yaml"
        config_file.write_text("invalid: yaml: format:")

        with pytest.raises(ConfigParseError):
            load_config(config_file)

    def test_non_mapping_top_level(self, tmp_path: Path) -> None:
        """A YAML list at the top level raises ConfigParseError."""
        config_file = tmp_path / "config.yaml"
        config_file.write_text("- one\n- two\n")

        with pytest.raises(ConfigParseError):
            load_config(config_file)

    def test_missing_required_field(self, tmp_path: Path) -> None:
        """Missing slack section raises ValidationError."""
        config_file = tmp_path / "config.yaml"
        config_file.write_text("""
server:
  port: 8080
""")

        with pytest.raises(ValidationError) as exc_info:
            load_config(config_file)

        errors = exc_info.value.errors()
        assert any(e["loc"] == ("slack",) for e in errors)

    def test_invalid_cron(self, tmp_path: Path) -> None:
        """An invalid cron expression fails validation."""
        config_file = tmp_path / "config.yaml"
        config_file.write_text("""
slack:
  bot_token: "xoxb-test"
scheduler:
  cron: "every day"
""")

        with pytest.raises(ValidationError):
            load_config(config_file)

    def test_full_config(self, tmp_path: Path) -> None:
        """Every section is loaded."""
        config_file = tmp_path / "config.yaml"
        config_file.write_text("""
slack:
  bot_token: ${SLACK_BOT_TOKEN}
  digest_channel: C0DIGEST
  max_retries: 5
  base_delay: 0.5
  conversation_delay: 0
  conversation_types: [public_channel]
  page_size: 100
  user_cache_ttl: 60
  preload_users: true
database:
  url: "sqlite+aiosqlite:///data/test.db"
summary:
  highlight_limit: 3
  llm:
    model_id: openai/gpt-4o-mini
    params:
      temperature: 0.2
    client_args:
      api_key: ${OPENAI_API_KEY}
scheduler:
  cron: "30 6 * * 1-5"
  retention_days: 14
server:
  enabled: false
  host: "127.0.0.1"
  port: 9000
logging:
  level: DEBUG
  format: text
""")

        with patch.dict(
            os.environ,
            {"SLACK_BOT_TOKEN": "xoxb-env", "OPENAI_API_KEY": "sk-test"},
            clear=False,
        ):
            config = load_config(config_file)

        assert config.slack.bot_token == "xoxb-env"
        assert config.slack.max_retries == 5
        assert config.slack.base_delay == 0.5
        assert config.slack.conversation_delay == 0
        assert config.slack.conversation_types == ["public_channel"]
        assert config.slack.page_size == 100
        assert config.slack.user_cache_ttl == 60
        assert config.slack.preload_users is True
        assert config.database.url == "sqlite+aiosqlite:///data/test.db"
        assert config.summary.highlight_limit == 3
        assert config.summary.llm is not None
        assert config.summary.llm.params == {"temperature": 0.2}
        assert config.summary.llm.client_args == {"api_key": "sk-test"}
        assert config.scheduler.cron == "30 6 * * 1-5"
        assert config.scheduler.retention_days == 14
        assert config.server.enabled is False
        assert config.logging.level == "DEBUG"
        assert config.logging.format == "text"


class TestExpandEnvVars:
    """Tests for expand_env_vars function."""

    def test_expand_string_env_var(self) -> None:
        """Expand environment variable in string."""
        with patch.dict(os.environ, {"API_KEY": "test-key"}, clear=False):
            result = expand_env_vars("${API_KEY}")

        assert result == "test-key"

    def test_expand_nested_dict(self) -> None:
        """Expand environment variable in nested dict."""
        with patch.dict(os.environ, {"API_KEY": "test-key"}, clear=False):
            data = {"summary": {"llm": {"client_args": {"api_key": "${API_KEY}"}}}}
            result = expand_env_vars(data)

        assert result["summary"]["llm"]["client_args"]["api_key"] == "test-key"

    def test_expand_in_list(self) -> None:
        """Expand environment variable in list."""
        with patch.dict(os.environ, {"VAR1": "value1", "VAR2": "value2"}, clear=False):
            result = expand_env_vars(["${VAR1}", "${VAR2}", "static"])

        assert result == ["value1", "value2", "static"]

    def test_no_expansion_for_partial_match(self) -> None:
        """No expansion for partial match (prefix/suffix present)."""
        with patch.dict(os.environ, {"VAR": "value"}, clear=False):
            result = expand_env_vars("prefix${VAR}suffix")

        assert result == "prefix${VAR}suffix"

    def test_undefined_env_var_raises_error(self) -> None:
        """Undefined environment variable raises EnvVarNotFoundError."""
        with patch.dict(os.environ, {}, clear=True):
            with pytest.raises(EnvVarNotFoundError) as exc_info:
                expand_env_vars("${UNDEFINED_VAR}")

            assert "UNDEFINED_VAR" in str(exc_info.value)

    def test_env_var_errors_are_config_errors(self) -> None:
        """EnvVarNotFoundError is a ConfigError."""
        with patch.dict(os.environ, {}, clear=True):
            with pytest.raises(ConfigError):
                expand_env_vars("${UNDEFINED_VAR}")

    def test_default_used_when_unset(self) -> None:
        """${VAR:-fallback} expands to the fallback when VAR is unset."""
        with patch.dict(os.environ, {}, clear=True):
            result = expand_env_vars("${DIGEST_CHANNEL:-C0DEFAULT}")

        assert result == "C0DEFAULT"

    def test_default_ignored_when_set(self) -> None:
        """${VAR:-fallback} prefers the environment value."""
        with patch.dict(os.environ, {"DIGEST_CHANNEL": "C0ENV"}, clear=True):
            result = expand_env_vars("${DIGEST_CHANNEL:-C0DEFAULT}")

        assert result == "C0ENV"

    def test_empty_default_expands_to_none(self) -> None:
        """${VAR:-} expands to None when VAR is unset."""
        with patch.dict(os.environ, {}, clear=True):
            result = expand_env_vars("${DIGEST_CHANNEL:-}")

        assert result is None

    def test_non_string_values_unchanged(self) -> None:
        """Non-string values should pass through unchanged."""
        data = {
            "port": 8080,
            "enabled": True,
            "ratio": 0.5,
            "nothing": None,
        }
        result = expand_env_vars(data)

        assert result == data


class TestLoadConfigWithEnvVars:
    """Tests for load_config with environment variable expansion."""

    def test_load_config_undefined_env_var(self, tmp_path: Path) -> None:
        """Undefined environment variable raises error."""
        config_file = tmp_path / "config.yaml"
        config_file.write_text("""
slack:
  bot_token: ${UNDEFINED_TOKEN}
""")

        with patch.dict(os.environ, {}, clear=True):
            with pytest.raises(EnvVarNotFoundError) as exc_info:
                load_config(config_file)

            assert "UNDEFINED_TOKEN" in str(exc_info.value)

    def test_optional_digest_channel_from_env(self, tmp_path: Path) -> None:
        """An unset optional channel disables posting."""
        config_file = tmp_path / "config.yaml"
        config_file.write_text("""
slack:
  bot_token: "xoxb-test"
  digest_channel: ${DIGEST_CHANNEL:-}
""")

        with patch.dict(os.environ, {}, clear=True):
            config = load_config(config_file)

        assert config.slack.digest_channel is None
