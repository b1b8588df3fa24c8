"""Layered configuration for Agent Relay.

Loads and merges configuration from:
1. Default settings (built-in)
2. Project config (.relay/config.yaml)
3. CLI parameters (override)
"""

from __future__ import annotations

import copy
import os
from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel

from ..errors import ConfigurationError

DEFAULT_CONFIG: dict = {
    "api": {
        "base_url": "https://blink.so/api",
        "token_env": "RELAY_API_TOKEN",
        "organization_env": "RELAY_ORGANIZATION_ID",
        "organization_id": None,
        "timeout_seconds": 30,
        "per_page": 100,
    },
    "conversation": {
        # Seconds before a stored chat is considered stale. null/0 = reuse forever.
        "max_age_seconds": 3600,
        "streaming": False,
    },
    "polling": {
        "queued_timeout_seconds": 120,
        "interval_seconds": 2,
        "max_checks": 90,
    },
    "store": {
        "backend": "file",
        "path": ".relay/sessions",
    },
    "logging": {
        "level": "WARNING",
    },
}


class EngineSettings(BaseModel):
    """Knobs the delegation engine reads on every call."""

    max_age_seconds: Optional[float] = 3600
    queued_timeout_seconds: float = 120
    streaming: bool = False

    @property
    def staleness_enabled(self) -> bool:
        return bool(self.max_age_seconds)


def deep_merge(base: dict, override: dict) -> dict:
    """Deep merge two dicts. Arrays are replaced, not merged."""
    result = {}
    for key in base:
        result[key] = base[key]
    for key, value in override.items():
        base_value = result.get(key)
        if isinstance(base_value, dict) and isinstance(value, dict):
            result[key] = deep_merge(base_value, value)
        else:
            result[key] = value
    return result


def load_project_config(project_path: Path) -> dict:
    """Load project configuration from .relay/config.yaml."""
    config_path = project_path / ".relay" / "config.yaml"
    if not config_path.exists():
        return {}
    try:
        content = config_path.read_text(encoding="utf-8-sig")  # utf-8-sig strips BOM
        data = yaml.safe_load(content) or {}
    except (OSError, yaml.YAMLError):
        return {}
    return data if isinstance(data, dict) else {}


def get_effective_config(
    project_path: Path,
    cli_overrides: Optional[dict] = None,
) -> dict:
    """Get the fully resolved configuration."""
    config = copy.deepcopy(DEFAULT_CONFIG)

    project_config = load_project_config(project_path)
    if project_config:
        config = deep_merge(config, project_config)

    if cli_overrides:
        config = deep_merge(config, cli_overrides)

    config["_project_path"] = str(project_path)
    return config


def get_engine_settings(config: dict) -> EngineSettings:
    conversation = config.get("conversation") or {}
    polling = config.get("polling") or {}
    return EngineSettings(
        max_age_seconds=conversation.get("max_age_seconds"),
        queued_timeout_seconds=polling.get("queued_timeout_seconds", 120),
        streaming=bool(conversation.get("streaming", False)),
    )


def get_api_token(config: dict) -> str:
    """Return the API token or raise ConfigurationError. There is no fallback."""
    env_var = (config.get("api") or {}).get("token_env", "RELAY_API_TOKEN")
    token = os.environ.get(env_var, "").strip()
    if not token:
        raise ConfigurationError(
            f"{env_var} environment variable not set. Please configure your API token."
        )
    return token


def get_default_organization(config: dict) -> Optional[str]:
    """Default organization id: environment first, then config file."""
    api = config.get("api") or {}
    env_var = api.get("organization_env", "RELAY_ORGANIZATION_ID")
    return os.environ.get(env_var, "").strip() or api.get("organization_id") or None
