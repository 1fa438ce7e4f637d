"""Global configuration."""

from __future__ import annotations

import json
from pathlib import Path

DEFAULT_REMOTE = "origin"


def global_config_dir() -> Path:
    config = Path.home() / ".config" / "gg"
    config.mkdir(parents=True, exist_ok=True)
    return config


def load_global_config() -> dict:
    path = global_config_dir() / "config.json"
    if path.exists():
        return json.loads(path.read_text())
    return {}


def save_global_config(config: dict) -> None:
    path = global_config_dir() / "config.json"
    path.write_text(json.dumps(config, indent=2))


def default_remote(config: dict | None = None) -> str:
    if config is None:
        config = load_global_config()
    return config.get("default_remote") or DEFAULT_REMOTE


def configured_ssh_dir(config: dict | None = None) -> Path | None:
    """Key directory override, or None to use ~/.ssh."""
    if config is None:
        config = load_global_config()
    value = config.get("ssh_dir")
    return Path(value).expanduser() if value else None
