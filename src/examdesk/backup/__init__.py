"""
Backup Package

Timed backups with retention, restore and export.
"""

from .manager import BackupEntry, BackupManager
from .scheduler import BackupScheduler, RepeatingTask
from .settings import BackupInterval, BackupSettings, BackupSettingsStore

__all__ = [
    "BackupEntry",
    "BackupManager",
    "BackupScheduler",
    "RepeatingTask",
    "BackupInterval",
    "BackupSettings",
    "BackupSettingsStore",
]
