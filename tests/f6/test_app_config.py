"""Tests for app configuration (F6).

Tests the configuration loading, defaults, and the database override.
"""

from pathlib import Path

from exam_tracker.config.app_config import (
    DB_PATH_ENV,
    AppConfig,
    BackupConfig,
    StorageConfig,
    clear_config_cache,
    load_app_config,
)


class TestLoadAppConfig:
    """Tests for load_app_config function."""

    def test_defaults_without_file(self, tmp_path, monkeypatch):
        """Missing config file falls back to built-in defaults."""
        monkeypatch.delenv(DB_PATH_ENV, raising=False)
        config = load_app_config(config_file=tmp_path / "missing.yaml")

        assert isinstance(config, AppConfig)
        assert config.storage.db_path == Path("db/exam_tracker.db")
        assert config.backups.retention == 10
        assert config.backups.auto_interval_hours == 24
        assert config.backups.reminder_interval_days == 7

    def test_load_from_yaml(self, tmp_path, monkeypatch):
        monkeypatch.delenv(DB_PATH_ENV, raising=False)
        path = tmp_path / "app_config_v1.yaml"
        path.write_text(
            "storage:\n"
            "  db_path: custom/tracker.db\n"
            "backups:\n"
            "  retention: 3\n",
            encoding="utf-8",
        )

        config = load_app_config(config_file=path)

        assert config.storage.db_path == Path("custom/tracker.db")
        assert config.storage.class_defaults_path == Path("data/class-defaults.json")
        assert config.backups.retention == 3
        assert config.backups.auto_interval_hours == 24

    def test_empty_yaml(self, tmp_path):
        path = tmp_path / "app_config_v1.yaml"
        path.write_text("", encoding="utf-8")

        assert isinstance(load_app_config(config_file=path).storage, StorageConfig)

    def test_env_overrides_db_path(self, tmp_path, monkeypatch):
        monkeypatch.setenv(DB_PATH_ENV, str(tmp_path / "env.db"))

        config = load_app_config(config_file=tmp_path / "missing.yaml")

        assert config.storage.db_path == tmp_path / "env.db"

    def test_cached(self, tmp_path):
        first = load_app_config(config_file=tmp_path / "missing.yaml")
        assert load_app_config() is first

    def test_force_reload(self, tmp_path):
        first = load_app_config(config_file=tmp_path / "missing.yaml")
        second = load_app_config(force_reload=True, config_file=tmp_path / "missing.yaml")
        assert second is not first

    def test_clear_cache(self, tmp_path):
        first = load_app_config(config_file=tmp_path / "missing.yaml")
        clear_config_cache()
        assert load_app_config(config_file=tmp_path / "missing.yaml") is not first


class TestDataclasses:
    """Tests for config dataclass defaults."""

    def test_backup_config_defaults(self):
        backups = BackupConfig()
        assert (backups.retention, backups.auto_interval_hours) == (10, 24)

    def test_app_config_defaults(self):
        config = AppConfig()
        assert config.storage.legacy_document_path == Path("data/state/examTrackingData.json")
