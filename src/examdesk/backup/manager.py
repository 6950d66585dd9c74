"""
Module: backup.manager

Purpose:
    Timestamped full-snapshot backups in the durable medium, with bounded
    retention, restore, deletion and export.

Key Classes:
    - BackupManager: create / list / restore / delete / export
    - BackupEntry: One parsed backup as returned by list_backups()

Key layout:
    app_backup_v1:<ISO timestamp>  → {tests, attempts, questionBank,
                                      scoringProfiles, version, savedAt}
    app_backup_lock                → epoch millis when the lock was taken

Locking:
    create_backup() takes an in-process mutex (non-blocking) and then the
    stored advisory lock. A stored lock younger than the TTL (5 minutes by
    default) makes the call return False; an older one is stale and
    overridden. The stored lock is a plain value, so two processes can
    still race between reading and writing it.

Used By:
    - backup.scheduler.BackupScheduler
    - app.DataCore, cli
"""

from __future__ import annotations

import json
import logging
import threading
import zipfile
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

from ..core.models import FORMAT_VERSION, Collection, StoreSnapshot
from ..core.schemas import ValidationError, validate_backup_entry
from ..core.utils.serialization import freeze, thaw
from ..core.utils.timestamps import add_millis, parse_iso, to_epoch_millis, to_iso
from ..errors import StorageError
from ..storage.keys import BACKUP_LOCK_KEY, BACKUP_PREFIX
from ..storage.keyvalue import format_size
from ..storage.store import Store
from .settings import BackupSettings, BackupSettingsStore

logger = logging.getLogger(__name__)

DEFAULT_LOCK_TTL_SECONDS = 5 * 60

_OLDEST = datetime.min.replace(tzinfo=timezone.utc)


@dataclass(frozen=True)
class BackupEntry:
    """
    A readable backup.

    Attributes:
        key: Storage key (prefix + timestamp)
        timestamp: ISO timestamp taken from the key
        size: Stored size in bytes
        preview: Item count per collection (wire names)
        data: Parsed backup document, frozen
    """

    key: str
    timestamp: str
    size: int
    preview: Mapping[str, int] = field(default_factory=dict)
    data: Mapping[str, Any] = field(default_factory=dict)

    @property
    def size_label(self) -> str:
        return format_size(self.size)


class BackupManager:
    """
    Creates and manages backups of one Store.

    Args:
        store: Store whose snapshot is backed up and restored into
        settings_store: Where settings are kept (defaults to the store's medium)
        lock_ttl_seconds: Age after which a stored backup lock is stale
        preserve_pre_restore: Back up the live state before a restore
    """

    def __init__(
        self,
        store: Store,
        settings_store: Optional[BackupSettingsStore] = None,
        *,
        lock_ttl_seconds: float = DEFAULT_LOCK_TTL_SECONDS,
        preserve_pre_restore: bool = True,
    ):
        self.store = store
        self.storage = store.persistence.storage
        self.clock = store.clock
        self.settings_store = settings_store or BackupSettingsStore(self.storage)
        self.lock_ttl_ms = int(lock_ttl_seconds * 1000)
        self.preserve_pre_restore = preserve_pre_restore
        self._settings = self.settings_store.load()
        self._mutex = threading.Lock()

    # ─────────────────────────────────────────────────────────────────────
    # Settings
    # ─────────────────────────────────────────────────────────────────────

    @property
    def settings(self) -> BackupSettings:
        return self._settings

    def update_settings(self, **changes: Any) -> BackupSettings:
        """
        Apply and persist setting changes.

        Raises:
            ValueError: If a value is invalid (settings stay unchanged)
        """
        updated = self._settings.with_changes(**changes)
        self._settings = updated
        self.settings_store.save(updated)
        logger.info(f"Backup settings updated: {updated.to_dict()}")
        return updated

    # ─────────────────────────────────────────────────────────────────────
    # Creation
    # ─────────────────────────────────────────────────────────────────────

    def create_backup(self) -> bool:
        """
        Write a backup of the current snapshot and prune old ones.

        Writing and pruning both happen while the cross-process lock is held.

        Returns:
            True if a backup was written. False if another backup holds the
            lock or the write failed (logged, never raised).
        """
        if not self._mutex.acquire(blocking=False):
            logger.debug("Backup already running in this process, skipping")
            return False
        try:
            if not self._acquire_lock():
                return False
            try:
                key = self._write_entry()
                self._rotate()
            except StorageError as e:
                logger.warning(f"Backup creation failed: {e}")
                return False
            finally:
                self._release_lock()
            logger.info(f"Backup created: {key}")
            return True
        finally:
            self._mutex.release()

    def _acquire_lock(self) -> bool:
        now_ms = to_epoch_millis(self.clock())
        try:
            existing = self.storage.get(BACKUP_LOCK_KEY)
            if existing is not None:
                try:
                    held_since: Optional[int] = int(existing)
                except ValueError:
                    held_since = None
                if held_since is not None and now_ms - held_since < self.lock_ttl_ms:
                    logger.info(f"Backup lock held since {held_since}, skipping backup")
                    return False
                logger.warning(f"Overriding stale backup lock ({existing!r})")
            self.storage.set(BACKUP_LOCK_KEY, str(now_ms))
        except StorageError as e:
            logger.warning(f"Could not take backup lock: {e}")
            return False
        return True

    def _release_lock(self) -> None:
        try:
            self.storage.remove(BACKUP_LOCK_KEY)
        except StorageError as e:
            logger.warning(f"Could not release backup lock: {e}")

    def _write_entry(self) -> str:
        moment = self.clock()
        key = f"{BACKUP_PREFIX}{to_iso(moment)}"
        # Entries are immutable: never overwrite, move the timestamp instead
        while key in self.storage:
            moment = add_millis(moment, 1)
            key = f"{BACKUP_PREFIX}{to_iso(moment)}"

        payload = self.store.persistence.build_payload(self.store.snapshot, saved_at=to_iso(moment))
        self.storage.set(key, json.dumps(payload, ensure_ascii=False))
        return key

    def _rotate(self) -> None:
        """Delete all but the ``max_backups`` most recent entries."""
        excess = self.list_backups()[self._settings.max_backups:]
        for entry in excess:
            try:
                self.storage.remove(entry.key)
            except StorageError as e:
                logger.warning(f"Failed to delete old backup {entry.key}: {e}")
        if excess:
            logger.info(f"Deleted {len(excess)} old backup(s)")

    # ─────────────────────────────────────────────────────────────────────
    # Listing
    # ─────────────────────────────────────────────────────────────────────

    def list_backups(self) -> List[BackupEntry]:
        """All readable backups, newest first. Corrupted entries are skipped."""
        entries = []
        for key in self.storage.keys():
            if not key.startswith(BACKUP_PREFIX):
                continue
            entry = self._read_entry(key)
            if entry is not None:
                entries.append(entry)
        entries.sort(key=lambda e: parse_iso(e.timestamp) or _OLDEST, reverse=True)
        return entries

    def _read_entry(self, key: str) -> Optional[BackupEntry]:
        try:
            raw = self.storage.get(key)
            if raw is None:
                return None
            data = json.loads(raw)
            validate_backup_entry(data)
        except (StorageError, ValueError, ValidationError) as e:
            logger.debug(f"Skipping unreadable backup {key}: {e}")
            return None

        return BackupEntry(
            key=key,
            timestamp=key[len(BACKUP_PREFIX):],
            size=len(raw.encode("utf-8")),
            preview={str(c): len(data.get(str(c)) or ()) for c in Collection},
            data=freeze(data),
        )

    # ─────────────────────────────────────────────────────────────────────
    # Restore / delete
    # ─────────────────────────────────────────────────────────────────────

    def restore_from_backup(self, key: str) -> bool:
        """
        Replace the Store's snapshot with the backup under ``key``.

        When ``preserve_pre_restore`` is set, the live state is backed up
        first. After the restore a backup of the restored state is taken.

        Returns:
            True on success, False if the backup is missing or unreadable
        """
        if not key.startswith(BACKUP_PREFIX):
            logger.error(f"Not a backup key: {key!r}")
            return False
        entry = self._read_entry(key)
        if entry is None:
            logger.error(f"Backup not found or unreadable: {key}")
            return False

        snapshot = self.store.persistence.finalize(StoreSnapshot.from_payload(thaw(entry.data)))

        if self.preserve_pre_restore and not self.create_backup():
            logger.warning("Could not back up the live state before restoring")

        self.store.replace_snapshot(snapshot)
        logger.info(f"Restored backup {key}")
        self.create_backup()
        return True

    def delete_backup(self, key: str) -> bool:
        if not key.startswith(BACKUP_PREFIX):
            logger.error(f"Refusing to delete non-backup key: {key!r}")
            return False
        try:
            if key not in self.storage:
                return False
            self.storage.remove(key)
        except StorageError as e:
            logger.error(f"Failed to delete backup {key}: {e}")
            return False
        logger.info(f"Deleted backup {key}")
        return True

    # ─────────────────────────────────────────────────────────────────────
    # Export
    # ─────────────────────────────────────────────────────────────────────

    def export_backups_document(self) -> Dict[str, Any]:
        """Every backup's full snapshot bundled into one JSON-ready document."""
        return {
            "backups": [
                {"timestamp": entry.timestamp, "data": thaw(entry.data)}
                for entry in self.list_backups()
            ],
            "exportedAt": to_iso(self.clock()),
            "version": FORMAT_VERSION,
        }

    def export_backups_as_zip(self, output_path: Path, *, include_readme: bool = True) -> Path:
        """
        Write all backups into a ZIP archive.

        Creates a ZIP file with structure:
            backups.zip
            ├── README.txt      # Summary (optional)
            └── backups.json    # export_backups_document()

        Args:
            output_path: Path for .zip file (will append .zip if missing)
            include_readme: Whether to include README.txt

        Returns:
            Path to created ZIP file

        Raises:
            OSError: If output path is not writable
        """
        output_path = Path(output_path)
        if output_path.suffix != ".zip":
            output_path = output_path.with_suffix(".zip")

        output_path.parent.mkdir(parents=True, exist_ok=True)
        document = self.export_backups_document()

        logger.info(f"Exporting {len(document['backups'])} backup(s) to {output_path}")

        with zipfile.ZipFile(output_path, "w", zipfile.ZIP_DEFLATED) as zf:
            if include_readme:
                zf.writestr("README.txt", _generate_readme(document))
            zf.writestr("backups.json", json.dumps(document, indent=2, ensure_ascii=False))

        return output_path


def _generate_readme(document: Dict[str, Any]) -> str:
    """Generate README.txt content."""
    lines = [
        "examdesk - Exported Backups",
        "=" * 50,
        "",
        f"Exported At: {document['exportedAt']}",
        f"Backups: {len(document['backups'])}",
        "",
        "=" * 50,
        "Backup List:",
        "",
    ]

    for i, backup in enumerate(document["backups"], start=1):
        data = backup["data"]
        counts = ", ".join(f"{c}={len(data.get(str(c)) or [])}" for c in Collection)
        lines.append(f"{i}. {backup['timestamp']}")
        lines.append(f"   {counts}")

    lines.extend([
        "",
        "=" * 50,
        "Usage:",
        "- backups.json holds every backup's full snapshot.",
        "- Each entry has the same shape as the stored data.",
        "",
    ])

    return "\n".join(lines)
