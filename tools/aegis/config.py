"""Configuration loading for the gateway and the management CLI."""

from __future__ import annotations

import copy
import json
import os
from pathlib import Path
from typing import Any, Dict, Optional

DEFAULT_CONFIG_PATH = ".aegis/config.json"

DEFAULTS: Dict[str, Any] = {
    "auth": {
        "jwt_secret": "",
        "token_ttl_seconds": 4 * 60 * 60,
        "bcrypt_rounds": 10,
    },
    "store": {
        "db_path": ".aegis/users.db",
    },
    "web": {
        "enabled": False,
        "host": "127.0.0.1",
        "port": 8765,
    },
    "diagnostics": {
        "event_log": ".aegis/events.jsonl",
    },
}

# Environment variable -> (section, key)
ENV_OVERRIDES = {
    "AEGIS_JWT_SECRET": ("auth", "jwt_secret"),
    "AEGIS_DB_PATH": ("store", "db_path"),
}


class ConfigError(Exception):
    pass


def merge_defaults(raw: Dict[str, Any]) -> Dict[str, Any]:
    """Overlay ``raw`` on top of DEFAULTS, section by section."""
    config = copy.deepcopy(DEFAULTS)
    for section, values in raw.items():
        if isinstance(values, dict) and isinstance(config.get(section), dict):
            config[section].update(values)
        else:
            config[section] = values
    return config


def apply_env(config: Dict[str, Any], environ: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
    env = os.environ if environ is None else environ
    for name, (section, key) in ENV_OVERRIDES.items():
        value = env.get(name)
        if value:
            config.setdefault(section, {})[key] = value
    return config


def load_config(config_path: str, environ: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
    """Load configuration from a JSON file, then apply environment overrides.

    Raises:
        ConfigError: if the file is missing or is not a JSON object.
    """
    path = Path(config_path)
    if not path.exists():
        raise ConfigError(f"Config not found at {path}")

    with open(path) as f:
        try:
            raw = json.load(f)
        except json.JSONDecodeError as exc:
            raise ConfigError(f"Invalid JSON in {path}: {exc}") from exc

    if not isinstance(raw, dict):
        raise ConfigError(f"Config at {path} must be a JSON object")

    return apply_env(merge_defaults(raw), environ)
