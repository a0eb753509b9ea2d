"""Application configuration management."""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path

from pydantic import ValidationError

from tempo.errors import InvalidArgumentError
from tempo.models import DEFAULT_PRESETS, AppConfig

log = logging.getLogger(__name__)

_CONFIG_DIR = Path(os.environ.get("TEMPO_CONFIG_DIR", Path.home() / ".config" / "tempo"))
_DB_DIR = Path.home() / ".local" / "share" / "tempo"

_CONFIG_FILE = _CONFIG_DIR / "config.json"

_MAX_PRESET_MINUTES = 24 * 60


def load_config() -> AppConfig:
    """Load config from disk, returning defaults if none exists."""
    if _CONFIG_FILE.exists():
        try:
            data = json.loads(_CONFIG_FILE.read_text())
            return AppConfig(**data)
        except (json.JSONDecodeError, TypeError, ValidationError):
            log.warning("Ignoring unreadable config file %s", _CONFIG_FILE)
    return AppConfig()


def save_config(config: AppConfig) -> Path:
    """Write config to disk. Returns the config file path."""
    _CONFIG_DIR.mkdir(parents=True, exist_ok=True)
    _CONFIG_FILE.write_text(config.model_dump_json(indent=2))
    return _CONFIG_FILE


def get_db_path() -> Path:
    """Resolve the database path from config (or default)."""
    config = load_config()
    if config.db_path is not None:
        p = Path(config.db_path)
        p.parent.mkdir(parents=True, exist_ok=True)
        return p
    # Default
    _DB_DIR.mkdir(parents=True, exist_ok=True)
    return _DB_DIR / "tempo.db"


def set_db_path(path: str) -> AppConfig:
    """Set a custom database path and save config."""
    resolved = Path(path).expanduser().resolve()
    # Ensure it ends with a filename
    if resolved.is_dir():
        resolved = resolved / "tempo.db"
    resolved.parent.mkdir(parents=True, exist_ok=True)
    config = load_config()
    config.db_path = str(resolved)
    save_config(config)
    return config


def reset_db_path() -> AppConfig:
    """Reset to the default local database path."""
    config = load_config()
    config.db_path = None
    save_config(config)
    return config


# ---------------------------------------------------------------------------
# Timer presets
# ---------------------------------------------------------------------------


def add_preset(minutes: int) -> AppConfig:
    """Add a preset duration (minutes). Presets stay sorted and unique."""
    if not 1 <= minutes <= _MAX_PRESET_MINUTES:
        raise InvalidArgumentError(
            f"Preset must be between 1 and {_MAX_PRESET_MINUTES} minutes"
        )
    config = load_config()
    if minutes not in config.timer_presets:
        config.timer_presets = sorted([*config.timer_presets, minutes])
        save_config(config)
    return config


def remove_preset(minutes: int) -> AppConfig:
    config = load_config()
    config.timer_presets = [m for m in config.timer_presets if m != minutes]
    save_config(config)
    return config


def reset_presets() -> AppConfig:
    config = load_config()
    config.timer_presets = list(DEFAULT_PRESETS)
    save_config(config)
    return config
