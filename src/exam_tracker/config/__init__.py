"""Configuration package for the exam tracker."""

from exam_tracker.config.app_config import (
    AppConfig,
    BackupConfig,
    StorageConfig,
    clear_config_cache,
    load_app_config,
)

__all__ = [
    "AppConfig",
    "BackupConfig",
    "StorageConfig",
    "clear_config_cache",
    "load_app_config",
]
