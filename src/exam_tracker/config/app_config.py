"""Application configuration loader.

Loads centralized configuration from data/config/app_config_v1.yaml,
falling back to built-in defaults when the file is missing. The database
path can be overridden with the EXAM_TRACKER_DB environment variable.

Usage:
    from exam_tracker.config.app_config import load_app_config

    config = load_app_config()
    db_path = config.storage.db_path
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import structlog
import yaml

logger = structlog.get_logger(__name__)

# Config file path (relative to project root)
CONFIG_FILE = Path("data/config/app_config_v1.yaml")
DB_PATH_ENV = "EXAM_TRACKER_DB"


@dataclass
class StorageConfig:
    """Where the tracker keeps its files."""

    db_path: Path = Path("db/exam_tracker.db")
    class_defaults_path: Path = Path("data/class-defaults.json")
    legacy_document_path: Path = Path("data/state/examTrackingData.json")


@dataclass
class BackupConfig:
    """Snapshot rotation and reminder settings."""

    retention: int = 10
    auto_interval_hours: float = 24
    reminder_interval_days: float = 7


@dataclass
class AppConfig:
    """Application-wide configuration."""

    storage: StorageConfig = field(default_factory=StorageConfig)
    backups: BackupConfig = field(default_factory=BackupConfig)


# Module-level cache
_cached_config: AppConfig | None = None


def _get_defaults() -> dict[str, Any]:
    """Get default configuration values."""
    return {
        "storage": {
            "db_path": "db/exam_tracker.db",
            "class_defaults_path": "data/class-defaults.json",
            "legacy_document_path": "data/state/examTrackingData.json",
        },
        "backups": {
            "retention": 10,
            "auto_interval_hours": 24,
            "reminder_interval_days": 7,
        },
    }


def _parse_config(data: dict[str, Any]) -> AppConfig:
    """Parse configuration dictionary into AppConfig object."""
    defaults = _get_defaults()

    storage_data = {**defaults["storage"], **(data.get("storage") or {})}
    db_path = os.environ.get(DB_PATH_ENV) or storage_data["db_path"]
    storage = StorageConfig(
        db_path=Path(db_path),
        class_defaults_path=Path(storage_data["class_defaults_path"]),
        legacy_document_path=Path(storage_data["legacy_document_path"]),
    )

    backup_data = {**defaults["backups"], **(data.get("backups") or {})}
    backups = BackupConfig(
        retention=int(backup_data["retention"]),
        auto_interval_hours=float(backup_data["auto_interval_hours"]),
        reminder_interval_days=float(backup_data["reminder_interval_days"]),
    )

    return AppConfig(storage=storage, backups=backups)


def load_app_config(
    force_reload: bool = False, config_file: Path | None = None
) -> AppConfig:
    """Load application config, falling back to defaults.

    Args:
        force_reload: If True, ignore cached config and reload from file.
        config_file: Alternative YAML file (defaults to CONFIG_FILE).

    Returns:
        AppConfig object with all settings.
    """
    global _cached_config

    if _cached_config is not None and not force_reload:
        return _cached_config

    path = config_file or CONFIG_FILE
    data: dict[str, Any]

    if path.exists():
        logger.debug("loading_app_config", source=str(path))
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    else:
        logger.info("using_default_config")
        data = _get_defaults()

    _cached_config = _parse_config(data)
    return _cached_config


def clear_config_cache() -> None:
    """Clear the configuration cache.

    Useful for testing or when config is modified at runtime.
    """
    global _cached_config
    _cached_config = None
