"""
Backup settings persistence.

Settings live as JSON under the backup settings key in the durable medium.
Any malformed field falls back to its default rather than failing the load.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Mapping

from ..errors import StorageError
from ..storage.keys import BACKUP_SETTINGS_KEY
from ..storage.keyvalue import KeyValueStorage

logger = logging.getLogger(__name__)

DEFAULT_MAX_BACKUPS = 20


class BackupInterval(str, Enum):
    TEN_MINUTES = "10min"
    ONE_HOUR = "1hour"
    ONE_DAY = "1day"

    def __str__(self) -> str:
        return self.value

    @property
    def seconds(self) -> int:
        return _INTERVAL_SECONDS[self]


_INTERVAL_SECONDS = {
    BackupInterval.TEN_MINUTES: 10 * 60,
    BackupInterval.ONE_HOUR: 60 * 60,
    BackupInterval.ONE_DAY: 24 * 60 * 60,
}


@dataclass(frozen=True)
class BackupSettings:
    """
    Automatic backup configuration.

    Attributes:
        enabled: Whether the timer creates backups
        interval: Time between timed backups
        max_backups: Number of most recent backups retained (>= 1)
    """

    enabled: bool = False
    interval: BackupInterval = BackupInterval.ONE_HOUR
    max_backups: int = DEFAULT_MAX_BACKUPS

    def __post_init__(self):
        if not isinstance(self.interval, BackupInterval):
            object.__setattr__(self, "interval", BackupInterval(self.interval))
        if isinstance(self.max_backups, bool) or not isinstance(self.max_backups, int):
            raise ValueError(f"max_backups must be an integer: {self.max_backups!r}")
        if self.max_backups < 1:
            raise ValueError(f"max_backups must be at least 1: {self.max_backups}")

    def with_changes(self, **changes: Any) -> BackupSettings:
        """Return updated settings. Raises ValueError on invalid values."""
        return replace(self, **changes)

    def to_dict(self) -> dict:
        return {
            "enabled": self.enabled,
            "interval": str(self.interval),
            "maxBackups": self.max_backups,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> BackupSettings:
        """Parse stored settings, using the default for each malformed field."""
        defaults = cls()

        enabled = data.get("enabled", defaults.enabled)
        if not isinstance(enabled, bool):
            logger.warning(f"Ignoring invalid backup setting enabled={enabled!r}")
            enabled = defaults.enabled

        try:
            interval = BackupInterval(data.get("interval", defaults.interval.value))
        except ValueError:
            logger.warning(f"Ignoring invalid backup interval {data.get('interval')!r}")
            interval = defaults.interval

        max_backups = _safe_int(data.get("maxBackups"), defaults.max_backups)
        if max_backups < 1:
            logger.warning(f"Ignoring invalid maxBackups {max_backups}")
            max_backups = defaults.max_backups

        return cls(enabled=enabled, interval=interval, max_backups=max_backups)


def _safe_int(value: Any, default: int) -> int:
    """Safely convert a value to int, returning default on failure."""
    if value is None or isinstance(value, bool):
        return default
    try:
        return int(value)
    except (ValueError, TypeError):
        return default


class BackupSettingsStore:
    """Loads and saves BackupSettings in the durable medium."""

    def __init__(self, storage: KeyValueStorage):
        self.storage = storage

    def load(self) -> BackupSettings:
        try:
            raw = self.storage.get(BACKUP_SETTINGS_KEY)
        except StorageError as e:
            logger.warning(f"Failed to read backup settings: {e}")
            return BackupSettings()
        if raw is None:
            return BackupSettings()
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            logger.warning(f"Backup settings are corrupted, using defaults: {e}")
            return BackupSettings()
        if not isinstance(data, Mapping):
            logger.warning("Backup settings are not an object, using defaults")
            return BackupSettings()
        return BackupSettings.from_dict(data)

    def save(self, settings: BackupSettings) -> bool:
        try:
            self.storage.set(BACKUP_SETTINGS_KEY, json.dumps(settings.to_dict()))
        except StorageError as e:
            logger.warning(f"Failed to save backup settings: {e}")
            return False
        return True
