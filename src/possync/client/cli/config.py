"""Configuration utilities for the possync CLI.

This module provides shared configuration functions used across CLI commands.
"""

from __future__ import annotations

import json
from pathlib import Path


def get_config_dir() -> Path:
    """Get the configuration directory for possync.

    Returns:
        Path to ~/.possync or equivalent.
    """
    return Path.home() / ".possync"


def get_config_file() -> Path:
    """Get the path to the config file."""
    return get_config_dir() / "config.json"


def load_config() -> dict[str, str]:
    """Load configuration from config file."""
    config_file = get_config_file()
    if config_file.exists():
        return dict(json.loads(config_file.read_text()))
    return {}


def save_config(config: dict[str, str]) -> None:
    """Save configuration to config file."""
    config_file = get_config_file()
    config_file.parent.mkdir(parents=True, exist_ok=True)
    config_file.write_text(json.dumps(config, indent=2))


def get_db_path(override: str | None = None) -> Path:
    """Get the local database path.

    Returns:
        The override, the configured path, or ~/.possync/pos.db.
    """
    if override:
        return Path(override).expanduser().resolve()
    config = load_config()
    if config.get("db_path"):
        return Path(config["db_path"]).expanduser().resolve()
    return get_config_dir() / "pos.db"


def get_media_dir(override: str | None = None) -> Path | None:
    """Get the image asset directory.

    Returns:
        The override, the configured directory, or None (asset sync disabled).
    """
    if override:
        return Path(override).expanduser().resolve()
    config = load_config()
    if config.get("media_dir"):
        return Path(config["media_dir"]).expanduser().resolve()
    return None
