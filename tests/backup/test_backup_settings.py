"""
Unit Tests for Backup Settings
"""

import json

import pytest

from examdesk.backup.settings import BackupInterval, BackupSettings, BackupSettingsStore
from examdesk.storage.keys import BACKUP_SETTINGS_KEY


class TestBackupSettings:
    """Tests for the BackupSettings value object."""

    def test_defaults_when_constructed_then_disabled_hourly_twenty(self):
        settings = BackupSettings()
        assert settings.enabled is False
        assert settings.interval is BackupInterval.ONE_HOUR
        assert settings.max_backups == 20

    def test_interval_when_given_as_string_then_coerced(self):
        assert BackupSettings(interval="10min").interval is BackupInterval.TEN_MINUTES

    @pytest.mark.parametrize("value", [0, -1, 2.5, True])
    def test_max_backups_when_invalid_then_value_error(self, value):
        with pytest.raises(ValueError):
            BackupSettings(max_backups=value)

    def test_interval_seconds_when_day_then_86400(self):
        assert BackupInterval.ONE_DAY.seconds == 86400

    def test_from_dict_when_fields_malformed_then_defaults_per_field(self):
        settings = BackupSettings.from_dict({"enabled": "yes", "interval": "weekly", "maxBackups": "5"})
        assert settings == BackupSettings(enabled=False, interval=BackupInterval.ONE_HOUR, max_backups=5)

    def test_to_dict_when_called_then_wire_names(self):
        assert BackupSettings(enabled=True).to_dict() == {
            "enabled": True, "interval": "1hour", "maxBackups": 20,
        }


class TestBackupSettingsStore:
    """Tests for loading and saving settings in the medium."""

    def test_load_when_absent_then_defaults(self, storage):
        assert BackupSettingsStore(storage).load() == BackupSettings()

    def test_load_when_corrupt_json_then_defaults(self, storage):
        storage.set(BACKUP_SETTINGS_KEY, "{nope")
        assert BackupSettingsStore(storage).load() == BackupSettings()

    def test_save_then_load_when_round_tripped_then_equal(self, storage):
        settings = BackupSettings(enabled=True, interval=BackupInterval.ONE_DAY, max_backups=7)
        store = BackupSettingsStore(storage)

        assert store.save(settings) is True

        assert json.loads(storage.get(BACKUP_SETTINGS_KEY))["interval"] == "1day"
        assert store.load() == settings
