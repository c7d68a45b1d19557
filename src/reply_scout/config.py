"""Configuration management for Reply Scout.

Loads from YAML file with environment variable expansion.
The document is re-read before every watch/flush decision so operators can
change thresholds, channels, and digest settings without a restart.
"""

from __future__ import annotations

import os
import re
import tempfile
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Protocol

import yaml

from reply_scout.errors import ConfigUnavailable


def _expand_env_vars(value: Any) -> Any:
    """Recursively expand ${ENV_VAR} references in config values."""
    if isinstance(value, str):
        pattern = re.compile(r"\$\{([^}]+)\}")
        def replacer(match: re.Match) -> str:
            env_key = match.group(1)
            env_val = os.environ.get(env_key)
            if env_val is None:
                raise ConfigUnavailable(f"Environment variable '{env_key}' not set")
            return env_val
        return pattern.sub(replacer, value)
    if isinstance(value, dict):
        return {k: _expand_env_vars(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_expand_env_vars(item) for item in value]
    return value


@dataclass
class SlackConfig:
    """Slack connection settings."""
    bot_token: str = ""
    app_token: str = ""
    signing_secret: str = ""
    owner_user_id: str = ""

    @classmethod
    def from_dict(cls, data: dict) -> SlackConfig:
        return cls(
            bot_token=data.get("bot_token", ""),
            app_token=data.get("app_token", ""),
            signing_secret=data.get("signing_secret", ""),
            owner_user_id=data.get("owner_user_id", ""),
        )


@dataclass
class WatchConfig:
    """Passive channel watching and scoring heuristics."""
    enabled: bool = True
    channel_ids: list[str] = field(default_factory=list)
    keywords: list[str] = field(default_factory=list)
    min_score_to_notify: int = 2
    cooldown_seconds_per_channel: int = 60
    context_messages: int = 20

    @classmethod
    def from_dict(cls, data: dict) -> WatchConfig:
        return cls(
            enabled=bool(data.get("enabled", True)),
            channel_ids=[str(c) for c in data.get("channel_ids") or []],
            keywords=[str(k) for k in data.get("keywords") or []],
            min_score_to_notify=int(data.get("min_score_to_notify", 2)),
            cooldown_seconds_per_channel=int(data.get("cooldown_seconds_per_channel", 60)),
            context_messages=int(data.get("context_messages", 20)),
        )

    def is_watched(self, channel_id: str) -> bool:
        return channel_id in self.channel_ids


@dataclass
class DigestConfig:
    """Batched digest settings."""
    enabled: bool = False
    interval_minutes: int = 1
    max_items: int = 10
    max_queue: int = 50

    @classmethod
    def from_dict(cls, data: dict) -> DigestConfig:
        config = cls(
            enabled=bool(data.get("enabled", False)),
            interval_minutes=int(data.get("interval_minutes", 1)),
            max_items=int(data.get("max_items", 10)),
            max_queue=int(data.get("max_queue", 50)),
        )
        for name in ("interval_minutes", "max_items", "max_queue"):
            if getattr(config, name) < 1:
                raise ValueError(f"digest.{name} must be at least 1")
        return config


@dataclass
class DeliveryConfig:
    """Owner DM delivery settings."""
    timeout_seconds: int = 10

    @classmethod
    def from_dict(cls, data: dict) -> DeliveryConfig:
        return cls(
            timeout_seconds=int(data.get("timeout_seconds", 10)),
        )


@dataclass
class BotConfig:
    """Top-level bot configuration."""
    slack: SlackConfig = field(default_factory=SlackConfig)
    watch: WatchConfig = field(default_factory=WatchConfig)
    digest: DigestConfig = field(default_factory=DigestConfig)
    delivery: DeliveryConfig = field(default_factory=DeliveryConfig)

    @classmethod
    def from_dict(cls, data: dict) -> BotConfig:
        if not isinstance(data, dict):
            raise ConfigUnavailable(
                f"Config document must be a mapping, got {type(data).__name__}"
            )
        try:
            return cls(
                slack=SlackConfig.from_dict(data.get("slack") or {}),
                watch=WatchConfig.from_dict(data.get("watch") or {}),
                digest=DigestConfig.from_dict(data.get("digest") or {}),
                delivery=DeliveryConfig.from_dict(data.get("delivery") or {}),
            )
        except (TypeError, ValueError, AttributeError) as exc:
            raise ConfigUnavailable(f"Invalid config value: {exc}") from exc

    @classmethod
    def from_yaml(cls, path: str | Path) -> BotConfig:
        """Load config from YAML file with env var expansion."""
        expanded = _expand_env_vars(read_document(path))
        return cls.from_dict(expanded)

    @classmethod
    def default(cls) -> BotConfig:
        """Create config with all defaults."""
        return cls()


def read_document(path: str | Path) -> dict:
    """Read the raw YAML document without env expansion.

    Raises ``ConfigUnavailable`` if the file is missing or is not valid YAML.
    """
    path = Path(path)
    if not path.exists():
        raise ConfigUnavailable(f"Config file not found: {path}")
    try:
        with open(path, encoding="utf-8") as f:
            raw = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as exc:
        raise ConfigUnavailable(f"Cannot read config file {path}: {exc}") from exc
    if raw is None:
        raw = {}
    if not isinstance(raw, dict):
        raise ConfigUnavailable(f"Config file {path} must contain a mapping")
    return raw


def write_document(path: str | Path, document: dict) -> None:
    """Atomically write the YAML document (write tmp then rename)."""
    path = Path(path)
    fd, tmp_path = tempfile.mkstemp(
        dir=path.parent,
        prefix=".config_",
        suffix=".tmp",
    )
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            yaml.safe_dump(document, f, default_flow_style=False, sort_keys=False)
        os.replace(tmp_path, path)
    except BaseException:
        try:
            os.unlink(tmp_path)
        except OSError:
            pass
        raise


class ConfigProvider(Protocol):
    """Anything that can hand out the current configuration."""

    def load(self) -> BotConfig: ...


class FileConfigProvider:
    """Re-reads the YAML config file on every ``load()`` call.

    No caching: an operator edit (or a ``/watch`` command) takes effect on the
    very next message.
    """

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)

    def load(self) -> BotConfig:
        return BotConfig.from_yaml(self.path)

    def read_raw(self) -> dict:
        """Return the unexpanded document, for edits that must keep ${VAR} refs."""
        return read_document(self.path)

    def save_raw(self, document: dict) -> None:
        write_document(self.path, document)


class StaticConfigProvider:
    """Serves a fixed in-memory config; used when no config file exists."""

    def __init__(self, config: BotConfig) -> None:
        self.config = config

    def load(self) -> BotConfig:
        return self.config

    def read_raw(self) -> dict:
        return asdict(self.config)

    def save_raw(self, document: dict) -> None:
        self.config = BotConfig.from_dict(document)


def resolve_config_path(path: str | Path | None = None) -> Path | None:
    """Find the config file to use.

    Resolution order:
    1. Explicit path argument
    2. REPLY_SCOUT_CONFIG environment variable
    3. ./config.yaml
    4. ~/.reply-scout/config.yaml

    Returns ``None`` if none of the implicit locations exist.
    """
    if path:
        return Path(path)

    env_path = os.environ.get("REPLY_SCOUT_CONFIG")
    if env_path:
        return Path(env_path)

    local_path = Path("config.yaml")
    if local_path.exists():
        return local_path

    home_path = Path.home() / ".reply-scout" / "config.yaml"
    if home_path.exists():
        return home_path

    return None


def load_provider(path: str | Path | None = None) -> FileConfigProvider | StaticConfigProvider:
    """Build a config provider and validate it with one eager load.

    Raises ``ConfigUnavailable`` if the resolved file is missing or malformed;
    callers treat that as fatal at startup.
    """
    resolved = resolve_config_path(path)
    if resolved is None:
        return StaticConfigProvider(BotConfig.default())
    provider = FileConfigProvider(resolved)
    provider.load()
    return provider
