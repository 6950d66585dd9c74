"""
Tests for the examdesk command line.
"""

import json

import pytest

from examdesk.cli import main


@pytest.fixture
def data_dir(tmp_path):
    return tmp_path / "data"


def run(data_dir, *args):
    return main(["--data-dir", str(data_dir), *args])


class TestCli:
    def test_stats_when_fresh_then_one_profile(self, data_dir, capsys):
        assert run(data_dir, "stats") == 0
        out = capsys.readouterr().out
        assert "scoring_profiles" in out
        assert "tests              0" in out

    def test_export_then_import_when_file_then_round_trip(self, data_dir, tmp_path, capsys):
        export_file = tmp_path / "export.json"
        assert run(data_dir, "export", str(export_file)) == 0
        document = json.loads(export_file.read_text(encoding="utf-8"))
        assert document["data"] == {"tests": [], "attempts": []}

        assert run(data_dir, "import", str(export_file)) == 0
        assert "Imported 0 tests and 0 attempts." in capsys.readouterr().out

    def test_import_when_invalid_json_then_exit_1(self, data_dir, tmp_path):
        bad = tmp_path / "bad.json"
        bad.write_text("{nope", encoding="utf-8")
        assert run(data_dir, "import", str(bad)) == 1

    def test_import_when_file_missing_then_exit_1(self, data_dir, tmp_path):
        assert run(data_dir, "import", str(tmp_path / "missing.json")) == 1

    def test_backups_when_created_then_listed(self, data_dir, capsys):
        assert run(data_dir, "backups", "list") == 0
        assert "No backups" in capsys.readouterr().out

        assert run(data_dir, "backups", "create") == 0
        capsys.readouterr()
        assert run(data_dir, "backups", "list") == 0
        assert "app_backup_v1:" in capsys.readouterr().out

    def test_backups_settings_when_changed_then_persisted(self, data_dir, capsys):
        assert run(data_dir, "backups", "settings", "--enable", "--interval", "10min",
                   "--max-backups", "3") == 0
        capsys.readouterr()

        assert run(data_dir, "backups", "settings") == 0
        settings = json.loads(capsys.readouterr().out)
        assert settings == {"enabled": True, "interval": "10min", "maxBackups": 3}

    def test_backups_settings_when_invalid_max_then_exit_1(self, data_dir):
        assert run(data_dir, "backups", "settings", "--max-backups", "0") == 1

    def test_legacy_scan_when_nothing_then_reported(self, data_dir, capsys):
        assert run(data_dir, "legacy", "scan") == 0
        assert "No legacy data found" in capsys.readouterr().out
