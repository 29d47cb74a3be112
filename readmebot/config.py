"""Configuration loading for readme-bot (.readme-bot.yml plus environment)."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Sequence

import yaml

from .errors import ConfigError

CONFIG_FILENAME = ".readme-bot.yml"
DEFAULT_COMMENT_MARKER = "<!-- README-BOT-ANALYSIS -->"
DEFAULT_APPLY_COMMAND = "@readme-bot apply"
PUBLISH_MODES = ("commit", "comment")

DEFAULT_CONFIG_TEMPLATE = """\
# readme-bot configuration. Secrets are best supplied via environment variables.
llm:
  provider: anthropic
  model: claude-sonnet-4-20250514
  temperature: 0.1
  max_tokens: 4000
  request_timeout: 60
github:
  api_url: https://api.github.com
webhook:
  allow_unsigned: false
  apply_command: "@readme-bot apply"
publish:
  mode: commit
analysis:
  validate_suggestions: false
delivery_timeout: 120
"""


@dataclass
class LLMConfig:
    """Model service settings."""

    provider: str = "anthropic"
    model: Optional[str] = None
    base_url: Optional[str] = None
    api_key: Optional[str] = None
    temperature: float = 0.1
    max_tokens: int = 4000
    request_timeout: float = 60.0


@dataclass
class GitHubConfig:
    """Hosting platform settings."""

    token: Optional[str] = None
    api_url: str = "https://api.github.com"
    comment_marker: str = DEFAULT_COMMENT_MARKER


@dataclass
class WebhookConfig:
    """Inbound webhook settings."""

    secret: Optional[str] = None
    allow_unsigned: bool = False
    apply_command: str = DEFAULT_APPLY_COMMAND


@dataclass
class PublishConfig:
    """How README suggestions are delivered back to the pull request."""

    mode: str = "commit"


@dataclass
class AnalysisConfig:
    validate_suggestions: bool = False


@dataclass
class BotConfig:
    """Represents the effective settings for one readme-bot process."""

    source: Optional[Path] = None
    llm: LLMConfig = field(default_factory=LLMConfig)
    github: GitHubConfig = field(default_factory=GitHubConfig)
    webhook: WebhookConfig = field(default_factory=WebhookConfig)
    publish: PublishConfig = field(default_factory=PublishConfig)
    analysis: AnalysisConfig = field(default_factory=AnalysisConfig)
    delivery_timeout: float = 120.0

    def validate(self, *, require_webhook: bool = False) -> None:
        """Raise ConfigError if credentials needed to run the pipeline are missing."""
        problems = []
        if not self.github.token:
            problems.append("GitHub token is not configured (set GITHUB_TOKEN)")
        if not self.llm.api_key:
            problems.append("model service API key is not configured (set ANTHROPIC_API_KEY)")
        if require_webhook and not self.webhook.secret and not self.webhook.allow_unsigned:
            problems.append(
                "webhook secret is not configured (set README_BOT_WEBHOOK_SECRET "
                "or opt out explicitly with webhook.allow_unsigned: true)"
            )
        if problems:
            raise ConfigError("; ".join(problems))


_ENV_OVERRIDES: Dict[str, Sequence[str]] = {
    "llm.api_key": ("README_BOT_LLM_API_KEY", "ANTHROPIC_API_KEY", "OPENAI_API_KEY"),
    "llm.model": ("README_BOT_LLM_MODEL", "CLAUDE_MODEL"),
    "llm.base_url": ("README_BOT_LLM_BASE_URL",),
    "github.token": ("README_BOT_GITHUB_TOKEN", "GITHUB_TOKEN"),
    "webhook.secret": ("README_BOT_WEBHOOK_SECRET", "WEBHOOK_SECRET"),
}


def load_config(
    config_path: Path | None = None,
    *,
    environ: Mapping[str, str] | None = None,
) -> BotConfig:
    """Load configuration from disk and overlay environment variables."""
    env = os.environ if environ is None else environ
    config_file = _resolve_config_path(config_path)

    data: Dict[str, Any] = {}
    if config_file.exists():
        data = _read_config(config_file)

    llm_data = _as_dict(data.get("llm"))
    llm = LLMConfig(
        provider=(_as_str(llm_data.get("provider")) or "anthropic").lower(),
        model=_as_str(llm_data.get("model")),
        base_url=_as_str(llm_data.get("base_url")),
        api_key=_as_str(llm_data.get("api_key")),
        temperature=_as_float(llm_data.get("temperature"), 0.1),
        max_tokens=_as_int(llm_data.get("max_tokens"), 4000),
        request_timeout=_as_float(llm_data.get("request_timeout"), 60.0),
    )
    if llm.provider not in {"anthropic", "openai"}:
        raise ConfigError(f"Unsupported llm.provider '{llm.provider}'")

    github_data = _as_dict(data.get("github"))
    github = GitHubConfig(
        token=_as_str(github_data.get("token")),
        api_url=_as_str(github_data.get("api_url")) or "https://api.github.com",
        comment_marker=_as_str(github_data.get("comment_marker")) or DEFAULT_COMMENT_MARKER,
    )

    webhook_data = _as_dict(data.get("webhook"))
    webhook = WebhookConfig(
        secret=_as_str(webhook_data.get("secret")),
        allow_unsigned=_as_bool(webhook_data.get("allow_unsigned")),
        apply_command=(_as_str(webhook_data.get("apply_command")) or DEFAULT_APPLY_COMMAND).strip(),
    )

    publish_data = _as_dict(data.get("publish"))
    mode = (_as_str(publish_data.get("mode")) or "commit").lower()
    if mode not in PUBLISH_MODES:
        raise ConfigError(
            f"publish.mode must be one of {', '.join(PUBLISH_MODES)} (got '{mode}')"
        )

    analysis_data = _as_dict(data.get("analysis"))

    config = BotConfig(
        source=config_file if config_file.exists() else None,
        llm=llm,
        github=github,
        webhook=webhook,
        publish=PublishConfig(mode=mode),
        analysis=AnalysisConfig(
            validate_suggestions=_as_bool(analysis_data.get("validate_suggestions")),
        ),
        delivery_timeout=_as_float(data.get("delivery_timeout"), 120.0),
    )
    _apply_env_overrides(config, env)
    return config


def write_default_config(directory: Path) -> Path:
    """Create a starter configuration file, refusing to overwrite an existing one."""
    target = directory / CONFIG_FILENAME
    if target.exists():
        raise FileExistsError(f"{CONFIG_FILENAME} already exists at {target}")
    target.write_text(DEFAULT_CONFIG_TEMPLATE, encoding="utf-8")
    return target


def _apply_env_overrides(config: BotConfig, env: Mapping[str, str]) -> None:
    for dotted, keys in _ENV_OVERRIDES.items():
        value = _first_env_value(env, keys)
        if not value:
            continue
        section_name, attribute = dotted.split(".", 1)
        section = getattr(config, section_name)
        # Explicit values in the file win over ambient environment variables.
        if getattr(section, attribute) is None:
            setattr(section, attribute, value)

    allow_unsigned = _as_bool(env.get("README_BOT_ALLOW_UNSIGNED"))
    if allow_unsigned:
        config.webhook.allow_unsigned = True


def _first_env_value(env: Mapping[str, str], keys: Sequence[str]) -> str | None:
    for key in keys:
        value = env.get(key)
        if value:
            return value
    return None


def _resolve_config_path(config_path: Path | None) -> Path:
    if config_path is None:
        return (Path.cwd() / CONFIG_FILENAME).resolve()
    config_path = config_path.expanduser()
    if config_path.is_dir():
        return (config_path / CONFIG_FILENAME).resolve()
    return config_path.resolve()


def _read_config(path: Path) -> Dict[str, Any]:
    text = path.read_text(encoding="utf-8")
    if not text.strip():
        return {}
    try:
        loaded = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Failed to parse {path.name}: {exc}") from exc
    if loaded is None:
        return {}
    if not isinstance(loaded, dict):
        raise ConfigError(f"{path.name} must contain a mapping at the root")
    return loaded


def _as_dict(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _as_str(value: Any) -> Optional[str]:
    return str(value) if isinstance(value, (str, int, float)) and not isinstance(value, bool) else None


def _as_float(value: Any, default: float) -> float:
    if isinstance(value, bool):
        return default
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value)
        except ValueError:
            return default
    return default


def _as_int(value: Any, default: int) -> int:
    if isinstance(value, bool):
        return default
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value)
        except ValueError:
            return default
    return default


def _as_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() in {"true", "yes", "1"}
    return False


__all__ = [
    "AnalysisConfig",
    "BotConfig",
    "CONFIG_FILENAME",
    "ConfigError",
    "GitHubConfig",
    "LLMConfig",
    "PublishConfig",
    "WebhookConfig",
    "load_config",
    "write_default_config",
]
