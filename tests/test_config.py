"""Tests for readmebot.config."""

from __future__ import annotations

from pathlib import Path

import pytest

from readmebot.config import (
    CONFIG_FILENAME,
    DEFAULT_APPLY_COMMAND,
    DEFAULT_COMMENT_MARKER,
    BotConfig,
    load_config,
    write_default_config,
)
from readmebot.errors import ConfigError


def test_load_config_returns_defaults_when_missing(tmp_path: Path) -> None:
    config = load_config(tmp_path, environ={})

    assert isinstance(config, BotConfig)
    assert config.source is None
    assert config.llm.provider == "anthropic"
    assert config.llm.model is None
    assert config.llm.max_tokens == 4000
    assert config.github.comment_marker == DEFAULT_COMMENT_MARKER
    assert config.webhook.secret is None
    assert config.webhook.allow_unsigned is False
    assert config.webhook.apply_command == DEFAULT_APPLY_COMMAND
    assert config.publish.mode == "commit"
    assert config.delivery_timeout == pytest.approx(120.0)


def test_load_config_parses_expected_fields(tmp_path: Path) -> None:
    config_file = tmp_path / CONFIG_FILENAME
    config_file.write_text(
        """
llm:
  provider: "OpenAI"
  model: "gpt-4o-mini"
  base_url: "http://localhost:12434/engines/v1"
  api_key: "test-key"
  temperature: 0.15
  max_tokens: 2048
  request_timeout: 30
github:
  api_url: "https://github.example.com/api/v3"
  comment_marker: "<!-- docs-bot -->"
webhook:
  secret: "from-file"
  apply_command: " /docs apply "
publish:
  mode: comment
analysis:
  validate_suggestions: true
delivery_timeout: 45
""",
        encoding="utf-8",
    )

    config = load_config(config_file, environ={"WEBHOOK_SECRET": "from-env"})

    assert config.source == config_file.resolve()
    assert config.llm.provider == "openai"
    assert config.llm.model == "gpt-4o-mini"
    assert config.llm.temperature == pytest.approx(0.15)
    assert config.llm.max_tokens == 2048
    assert config.llm.request_timeout == pytest.approx(30.0)
    assert config.github.api_url == "https://github.example.com/api/v3"
    assert config.github.comment_marker == "<!-- docs-bot -->"
    assert config.webhook.secret == "from-file"
    assert config.webhook.apply_command == "/docs apply"
    assert config.publish.mode == "comment"
    assert config.analysis.validate_suggestions is True
    assert config.delivery_timeout == pytest.approx(45.0)


def test_environment_fills_missing_values(tmp_path: Path) -> None:
    config = load_config(
        tmp_path,
        environ={
            "GITHUB_TOKEN": "ghs_token",
            "ANTHROPIC_API_KEY": "sk-ant",
            "CLAUDE_MODEL": "claude-test",
            "README_BOT_WEBHOOK_SECRET": "hook",
            "README_BOT_ALLOW_UNSIGNED": "true",
        },
    )

    assert config.github.token == "ghs_token"
    assert config.llm.api_key == "sk-ant"
    assert config.llm.model == "claude-test"
    assert config.webhook.secret == "hook"
    assert config.webhook.allow_unsigned is True


def test_prefixed_environment_wins(tmp_path: Path) -> None:
    config = load_config(
        tmp_path, environ={"README_BOT_GITHUB_TOKEN": "specific", "GITHUB_TOKEN": "generic"}
    )
    assert config.github.token == "specific"


@pytest.mark.parametrize(
    "content, message",
    [
        ("llm:\n  provider: mystery\n", "provider"),
        ("publish:\n  mode: pr\n", "publish.mode"),
        ("- just\n- a list\n", "mapping"),
        ("llm: [unclosed\n", "Failed to parse"),
    ],
)
def test_invalid_config_rejected(tmp_path: Path, content: str, message: str) -> None:
    (tmp_path / CONFIG_FILENAME).write_text(content, encoding="utf-8")

    with pytest.raises(ConfigError, match=message):
        load_config(tmp_path, environ={})


def test_empty_config_file_uses_defaults(tmp_path: Path) -> None:
    (tmp_path / CONFIG_FILENAME).write_text("\n", encoding="utf-8")
    assert load_config(tmp_path, environ={}).publish.mode == "commit"


def test_validate_lists_every_problem() -> None:
    with pytest.raises(ConfigError) as info:
        BotConfig().validate(require_webhook=True)

    message = str(info.value)
    assert "GitHub token" in message
    assert "API key" in message
    assert "webhook secret" in message


def test_validate_accepts_unsigned_opt_in() -> None:
    config = BotConfig()
    config.github.token = "t"
    config.llm.api_key = "k"
    config.webhook.allow_unsigned = True
    config.validate(require_webhook=True)


def test_default_config_round_trips(tmp_path: Path) -> None:
    path = write_default_config(tmp_path)

    config = load_config(path, environ={})

    assert config.llm.provider == "anthropic"
    assert config.webhook.allow_unsigned is False
    with pytest.raises(FileExistsError):
        write_default_config(tmp_path)
