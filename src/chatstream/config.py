"""Configuration for chatstream.

Config discovery (first match wins):
  1. explicit ``path`` argument
  2. ``./chatstream.yaml``
  3. ``~/.config/chatstream/config.yaml``
  4. Built-in defaults
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from chatstream.errors import ConfigError

_logger = logging.getLogger(__name__)

_API_KEY_ENV = "OPENROUTER_API_KEY"


# ---------------------------------------------------------------------------
# Config data structures
# ---------------------------------------------------------------------------

@dataclass
class ProfileSpec:
    """Where and how to reach the chat completion endpoint."""

    url: str = "https://openrouter.ai/api/v1"
    api_key: str = ""
    model: str = "openai/gpt-4o-mini"
    timeout: float = 120.0
    extra_params: dict[str, Any] = field(default_factory=dict)

    def resolved_api_key(self) -> str:
        return self.api_key or os.environ.get(_API_KEY_ENV, "")


@dataclass(frozen=True)
class ToolLoopConfig:
    """Read-only settings for one orchestrator run."""

    enabled: bool = True
    max_iterations: int = 5

    def __post_init__(self) -> None:
        if self.max_iterations < 0:
            raise ValueError("max_iterations must be >= 0")


@dataclass
class ChatStreamConfig:
    """Top-level config."""

    profile: ProfileSpec = field(default_factory=ProfileSpec)
    tool_loop: ToolLoopConfig = field(default_factory=ToolLoopConfig)
    system_prompt: str = ""


# ---------------------------------------------------------------------------
# Loading
# ---------------------------------------------------------------------------

_SEARCH_PATHS = [
    Path("./chatstream.yaml"),
    Path.home() / ".config" / "chatstream" / "config.yaml",
]


def _parse_profile(raw: dict[str, Any] | None) -> ProfileSpec:
    if not raw:
        return ProfileSpec()
    defaults = ProfileSpec()
    return ProfileSpec(
        url=raw.get("url", defaults.url),
        api_key=raw.get("api_key", defaults.api_key),
        model=raw.get("model", defaults.model),
        timeout=float(raw.get("timeout", defaults.timeout)),
        extra_params=raw.get("extra_params", {}),
    )


def _parse_tool_loop(raw: dict[str, Any] | None) -> ToolLoopConfig:
    if not raw:
        return ToolLoopConfig()
    try:
        return ToolLoopConfig(
            enabled=bool(raw.get("enabled", True)),
            max_iterations=int(raw.get("max_iterations", 5)),
        )
    except ValueError as e:
        raise ConfigError(f"Invalid tool_loop section: {e}") from e


def load_config(path: str | Path | None = None) -> ChatStreamConfig:
    """Load configuration from YAML.

    Parameters
    ----------
    path:
        Explicit config path.  If *None*, search default locations.

    Returns
    -------
    ChatStreamConfig
    """
    config_path: Path | None = None

    if path is not None:
        config_path = Path(path)
        if not config_path.exists():
            _logger.warning("Config file not found: %s, using defaults", path)
            return ChatStreamConfig()
    else:
        for candidate in _SEARCH_PATHS:
            if candidate.exists():
                config_path = candidate
                break

    if config_path is None:
        _logger.info("No config file found, using defaults")
        return ChatStreamConfig()

    _logger.info("Loading config from %s", config_path)
    try:
        with open(config_path) as f:
            raw = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"Cannot parse {config_path}: {e}") from e

    if not isinstance(raw, dict):
        raise ConfigError(f"{config_path} must contain a mapping at top level")

    return ChatStreamConfig(
        profile=_parse_profile(raw.get("profile")),
        tool_loop=_parse_tool_loop(raw.get("tool_loop")),
        system_prompt=raw.get("system_prompt", "") or "",
    )
