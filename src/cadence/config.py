"""Configuration management for Cadence."""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from .core.schedule import DEFAULT_TIMEZONE

logger = logging.getLogger(__name__)

CADENCE_HOME = Path(os.environ.get("CADENCE_HOME", Path.home() / "cadence"))
CONFIG_FILE = CADENCE_HOME / "config" / "cadence.conf"
DATA_DIR = CADENCE_HOME / "data"


@dataclass
class Config:
    """Cadence configuration."""

    timezone: str = DEFAULT_TIMEZONE
    due_soon_hours: int = 24
    backfill_time: str = "00:00"
    # Persistence: "file" (local JSON) or "api" (dashboard REST API)
    store: str = "file"
    store_path: str = ""
    api_base_url: str = ""
    api_token: str = ""
    api_timeout: float = 10.0
    # Board
    bulk_workers: int = 4
    mutation_timeout: float = 30.0
    preview_count: int = 5
    show_completed: bool = True


def _strip_value(value: str) -> str:
    """Handle quoted values with inline comments: "value" # comment"""
    if value.startswith('"') or value.startswith("'"):
        quote = value[0]
        end_quote = value.find(quote, 1)
        return value[1:end_quote] if end_quote != -1 else value[1:]
    if "#" in value:
        value = value.split("#")[0].strip()
    return value


def _parse_int(key: str, value: str, default: int) -> int:
    try:
        return int(value)
    except ValueError:
        logger.warning(f"Invalid {key.upper()} value {value!r}, using {default}")
        return default


def _parse_float(key: str, value: str, default: float) -> float:
    try:
        return float(value)
    except ValueError:
        logger.warning(f"Invalid {key.upper()} value {value!r}, using {default}")
        return default


def _parse_timezone(value: str, default: str) -> str:
    try:
        ZoneInfo(value)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning(f"Unknown TIMEZONE {value!r}, using {default}")
        return default
    return value


def load_config(path: Path | None = None) -> Config:
    """Load configuration from cadence.conf file."""
    config = Config()
    path = path or CONFIG_FILE

    if not path.exists():
        return config

    for line in path.read_text().splitlines():
        line = line.strip()
        if not line or line.startswith("#"):
            continue

        if "=" not in line:
            continue

        key, _, value = line.partition("=")
        key = key.strip().lower()
        value = _strip_value(value.strip())

        match key:
            case "timezone":
                config.timezone = _parse_timezone(value, config.timezone)
            case "due_soon_hours":
                config.due_soon_hours = _parse_int(key, value, config.due_soon_hours)
            case "backfill_time":
                config.backfill_time = value
            case "store":
                if value in ("file", "api"):
                    config.store = value
                else:
                    logger.warning(f"Unknown STORE {value!r}, using {config.store}")
            case "store_path":
                config.store_path = value
            case "api_base_url":
                config.api_base_url = value
            case "api_token":
                config.api_token = value
            case "api_timeout":
                config.api_timeout = _parse_float(key, value, config.api_timeout)
            case "bulk_workers":
                config.bulk_workers = max(1, _parse_int(key, value, config.bulk_workers))
            case "mutation_timeout":
                config.mutation_timeout = _parse_float(key, value, config.mutation_timeout)
            case "preview_count":
                config.preview_count = _parse_int(key, value, config.preview_count)
            case "show_completed":
                config.show_completed = value.lower() in ("1", "true", "yes", "on")

    return config
