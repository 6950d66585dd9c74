"""
Module: config

Purpose:
    Immutable configuration for the data core, validated on construction,
    and resolution of the data directory.

Key Classes:
    - CoreConfig: Settings consumed by app.DataCore

Key Functions:
    - get_data_dir(): EXAMDESK_DATA_DIR, else a per-platform app-data dir

Used By:
    - app: DataCore wiring
    - cli: --data-dir default
"""

from __future__ import annotations

import os
import platform
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

APP_NAME = "Examdesk"
DATA_DIR_ENV = "EXAMDESK_DATA_DIR"


def get_data_dir() -> Path:
    """
    Get the directory holding the durable key-value entries.

    Override: $EXAMDESK_DATA_DIR
    Otherwise: ~/Library/Application Support/Examdesk (macOS),
               %LOCALAPPDATA%/Examdesk (Windows),
               $XDG_DATA_HOME/Examdesk or ~/.local/share/Examdesk (other)
    """
    override = os.environ.get(DATA_DIR_ENV)
    if override:
        return Path(override).expanduser()

    system = platform.system()
    if system == "Windows":
        base = os.environ.get("LOCALAPPDATA", os.environ.get("APPDATA"))
        return Path(base) / APP_NAME if base else Path.home() / ".examdesk"
    if system == "Darwin":
        return Path.home() / "Library" / "Application Support" / APP_NAME
    xdg = os.environ.get("XDG_DATA_HOME")
    return (Path(xdg) if xdg else Path.home() / ".local" / "share") / APP_NAME


@dataclass(frozen=True)
class CoreConfig:
    """
    Configuration for the data core (immutable).

    Attributes:
        data_dir: Directory for file-backed storage; None keeps everything
            in memory
        autosave_interval_seconds: Period of the autosave task
        backup_lock_ttl_seconds: Age after which a stored backup lock is stale
        storage_quota_bytes: Optional cap on the medium's total size
        preserve_pre_restore: Take a safety backup before restoring one

    Example:
        >>> config = CoreConfig(data_dir=get_data_dir())
    """

    data_dir: Optional[Path] = None
    autosave_interval_seconds: float = 5.0
    backup_lock_ttl_seconds: float = 300.0
    storage_quota_bytes: Optional[int] = None
    preserve_pre_restore: bool = True

    def __post_init__(self) -> None:
        """Validate configuration on construction."""
        if self.data_dir is not None and not isinstance(self.data_dir, Path):
            object.__setattr__(self, "data_dir", Path(self.data_dir))
        if self.autosave_interval_seconds <= 0:
            raise ValueError(
                f"autosave_interval_seconds must be positive: {self.autosave_interval_seconds}"
            )
        if self.backup_lock_ttl_seconds < 0:
            raise ValueError(
                f"backup_lock_ttl_seconds must be non-negative: {self.backup_lock_ttl_seconds}"
            )
        if self.storage_quota_bytes is not None and self.storage_quota_bytes <= 0:
            raise ValueError(f"storage_quota_bytes must be positive: {self.storage_quota_bytes}")
