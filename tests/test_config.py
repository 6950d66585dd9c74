"""
Unit Tests for Core Configuration
"""

from pathlib import Path

import pytest

from examdesk import config
from examdesk.config import DATA_DIR_ENV, CoreConfig, get_data_dir


class TestCoreConfig:
    """Tests for CoreConfig validation."""

    def test_defaults_when_created_then_in_memory(self):
        cfg = CoreConfig()
        assert cfg.data_dir is None
        assert cfg.autosave_interval_seconds == 5.0
        assert cfg.backup_lock_ttl_seconds == 300.0
        assert cfg.preserve_pre_restore is True

    def test_data_dir_when_string_then_path(self, tmp_path):
        cfg = CoreConfig(data_dir=str(tmp_path))
        assert cfg.data_dir == tmp_path

    @pytest.mark.parametrize("kwargs", [
        {"autosave_interval_seconds": 0},
        {"backup_lock_ttl_seconds": -1},
        {"storage_quota_bytes": 0},
    ])
    def test_invalid_values_then_value_error(self, kwargs):
        with pytest.raises(ValueError):
            CoreConfig(**kwargs)

    def test_frozen_when_assigned_then_error(self):
        cfg = CoreConfig()
        with pytest.raises(AttributeError):
            cfg.autosave_interval_seconds = 1


class TestGetDataDir:
    """Tests for get_data_dir()."""

    def test_env_override_when_set_then_used(self, monkeypatch, tmp_path):
        monkeypatch.setenv(DATA_DIR_ENV, str(tmp_path / "data"))
        assert get_data_dir() == tmp_path / "data"

    def test_linux_when_xdg_set_then_under_xdg(self, monkeypatch, tmp_path):
        monkeypatch.delenv(DATA_DIR_ENV, raising=False)
        monkeypatch.setattr(config.platform, "system", lambda: "Linux")
        monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path))
        assert get_data_dir() == tmp_path / "Examdesk"

    def test_macos_then_application_support(self, monkeypatch):
        monkeypatch.delenv(DATA_DIR_ENV, raising=False)
        monkeypatch.setattr(config.platform, "system", lambda: "Darwin")
        assert get_data_dir() == Path.home() / "Library" / "Application Support" / "Examdesk"
