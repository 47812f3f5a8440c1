"""Tests for the tracker CLI (F6)."""

import json

import pytest
from typer.testing import CliRunner

from exam_tracker.cli.commands import app
from exam_tracker.config.app_config import DB_PATH_ENV

runner = CliRunner()


@pytest.fixture
def workdir(tmp_path, monkeypatch):
    """Run the CLI inside tmp_path with its own database."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv(DB_PATH_ENV, str(tmp_path / "db" / "tracker.db"))
    return tmp_path


class TestStatus:
    """Tests for the status command."""

    def test_status_fresh(self, workdir):
        result = runner.invoke(app, ["status"])

        assert result.exit_code == 0
        assert "Exam tracker" in result.output
        assert (workdir / "db" / "tracker.db").exists()

    def test_storage_failure_exits(self, workdir, monkeypatch):
        blocker = workdir / "blocker"
        blocker.write_text("file")
        monkeypatch.setenv(DB_PATH_ENV, str(blocker / "tracker.db"))

        result = runner.invoke(app, ["status"])

        assert result.exit_code == 1
        assert "Cannot open database" in result.output


class TestBackupCommands:
    """Tests for backup / backups / restore."""

    def test_backup_and_list(self, workdir):
        result = runner.invoke(app, ["backup", "-d", "Before exams"])
        assert result.exit_code == 0
        assert "Backup created" in result.output

        result = runner.invoke(app, ["backups"])
        assert result.exit_code == 0
        assert "Before exams" in result.output
        assert "Auto backup" in result.output

    def test_restore(self, workdir):
        runner.invoke(app, ["status"])

        result = runner.invoke(app, ["restore", "1", "--yes"])

        assert result.exit_code == 0
        assert "Restored backup 1" in result.output

    def test_restore_unknown(self, workdir):
        result = runner.invoke(app, ["restore", "999", "--yes"])

        assert result.exit_code == 1
        assert "Could not restore" in result.output

    def test_restore_cancelled(self, workdir):
        result = runner.invoke(app, ["restore", "1"], input="n\n")

        assert result.exit_code == 1
        assert "Cancelled" in result.output


class TestExportImport:
    """Tests for export / import / export-csv."""

    def test_export_to_file(self, workdir):
        out = workdir / "export.json"

        result = runner.invoke(app, ["export", "-o", str(out)])

        assert result.exit_code == 0
        document = json.loads(out.read_text(encoding="utf-8"))
        assert document["version"] == 1
        assert "trackingData" in document["data"]

    def test_export_default_name(self, workdir):
        result = runner.invoke(app, ["export"])

        assert result.exit_code == 0
        assert list(workdir.glob("exam-tracker-FULL-Student-*.json"))

    def test_import_round_trip(self, workdir):
        out = workdir / "export.json"
        runner.invoke(app, ["export", "-o", str(out)])

        result = runner.invoke(app, ["import", str(out), "--yes"])

        assert result.exit_code == 0
        assert "Imported" in result.output

    def test_import_invalid(self, workdir):
        bad = workdir / "bad.json"
        bad.write_text("{nope", encoding="utf-8")

        result = runner.invoke(app, ["import", str(bad), "--yes"])

        assert result.exit_code == 1
        assert "Invalid export file" in result.output

    def test_import_missing_file(self, workdir):
        result = runner.invoke(app, ["import", str(workdir / "none.json"), "--yes"])

        assert result.exit_code == 1
        assert "File not found" in result.output

    def test_export_csv(self, workdir):
        out = workdir / "chapters.csv"

        result = runner.invoke(app, ["export-csv", "-o", str(out)])

        assert result.exit_code == 0
        assert out.read_text(encoding="utf-8").startswith('"Subject","Chapter No"')


class TestMaintenance:
    """Tests for reload-defaults and reset."""

    def test_reload_defaults_missing_document(self, workdir):
        result = runner.invoke(app, ["reload-defaults"])

        assert result.exit_code == 1
        assert "Could not load" in result.output

    def test_reload_defaults(self, workdir):
        (workdir / "data").mkdir()
        (workdir / "data" / "class-defaults.json").write_text(
            json.dumps({"classes": {"7": {"subjects": ["Maths"]}, "8": {}}}),
            encoding="utf-8",
        )

        result = runner.invoke(app, ["reload-defaults"])

        assert result.exit_code == 0
        assert "2 classes" in result.output

    def test_reset(self, workdir):
        result = runner.invoke(app, ["reset", "--yes"])

        assert result.exit_code == 0
        assert "All data cleared" in result.output

    def test_reset_cancelled(self, workdir):
        result = runner.invoke(app, ["reset"], input="n\n")

        assert result.exit_code == 1
