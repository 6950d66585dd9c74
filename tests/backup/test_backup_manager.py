"""
Unit Tests for the Backup Manager

Creation, advisory locking, rotation, listing, restore, delete and export.
"""

import json
import zipfile
from datetime import timedelta

import pytest

from examdesk.backup.manager import BackupManager
from examdesk.core.models import Collection, QuestionBankItem, QuestionType
from examdesk.core.utils.timestamps import to_epoch_millis
from examdesk.storage.keys import BACKUP_LOCK_KEY, BACKUP_PREFIX

TS = "2026-03-01T09:00:00.000Z"


def _item(iid: str) -> QuestionBankItem:
    return QuestionBankItem(id=iid, type=QuestionType.MCQ, points=1, created_at=TS)


def _backup_keys(storage):
    return [k for k in storage.keys() if k.startswith(BACKUP_PREFIX)]


@pytest.fixture
def manager(store):
    return BackupManager(store)


class TestCreateBackup:
    """Tests for create_backup()."""

    def test_create_when_unlocked_then_entry_written_and_lock_released(self, manager, storage):
        assert manager.create_backup() is True

        keys = _backup_keys(storage)
        assert keys == [f"{BACKUP_PREFIX}2026-03-01T09:00:00.000Z"]
        entry = json.loads(storage.get(keys[0]))
        assert entry["version"] == "1.0"
        assert entry["savedAt"] == "2026-03-01T09:00:00.000Z"
        assert set(entry) >= {"tests", "attempts", "questionBank", "scoringProfiles"}
        assert storage.get(BACKUP_LOCK_KEY) is None

    def test_create_when_same_millisecond_then_timestamp_bumped(self, manager, storage):
        manager.create_backup()
        manager.create_backup()

        assert _backup_keys(storage) == [
            f"{BACKUP_PREFIX}2026-03-01T09:00:00.000Z",
            f"{BACKUP_PREFIX}2026-03-01T09:00:00.001Z",
        ]

    def test_create_when_fresh_lock_then_refused(self, manager, storage, clock):
        held = clock() - timedelta(minutes=1)
        storage.set(BACKUP_LOCK_KEY, str(to_epoch_millis(held)))

        assert manager.create_backup() is False
        assert _backup_keys(storage) == []
        # Someone else's lock is left alone
        assert storage.get(BACKUP_LOCK_KEY) == str(to_epoch_millis(held))

    def test_create_when_stale_lock_then_overridden(self, manager, storage, clock):
        held = clock() - timedelta(minutes=6)
        storage.set(BACKUP_LOCK_KEY, str(to_epoch_millis(held)))

        assert manager.create_backup() is True
        assert len(_backup_keys(storage)) == 1
        assert storage.get(BACKUP_LOCK_KEY) is None

    def test_create_when_lock_value_garbage_then_treated_as_stale(self, manager, storage):
        storage.set(BACKUP_LOCK_KEY, "not-a-number")
        assert manager.create_backup() is True

    def test_create_when_rotation_then_keeps_newest(self, manager, storage, clock):
        manager.update_settings(max_backups=3)
        for _ in range(5):
            clock.advance(seconds=60)
            manager.create_backup()

        backups = manager.list_backups()
        assert len(backups) == 3
        assert [b.timestamp for b in backups] == [
            "2026-03-01T09:05:00.000Z",
            "2026-03-01T09:04:00.000Z",
            "2026-03-01T09:03:00.000Z",
        ]
        assert len(_backup_keys(storage)) == 3

    def test_create_when_rotating_then_lock_still_held(self, manager, storage, clock, monkeypatch):
        manager.update_settings(max_backups=1)
        manager.create_backup()
        clock.advance(seconds=60)

        removals = []
        remove = storage.remove

        def recording_remove(key):
            removals.append((key, storage.get(BACKUP_LOCK_KEY) is not None))
            remove(key)

        monkeypatch.setattr(storage, "remove", recording_remove)

        assert manager.create_backup() is True
        assert removals == [
            (f"{BACKUP_PREFIX}2026-03-01T09:00:00.000Z", True),
            (BACKUP_LOCK_KEY, True),
        ]
        assert storage.get(BACKUP_LOCK_KEY) is None


class TestListBackups:
    """Tests for list_backups()."""

    def test_list_when_corrupted_entries_then_skipped(self, manager, storage):
        manager.create_backup()
        storage.set(f"{BACKUP_PREFIX}2026-03-02T00:00:00.000Z", "{broken")
        storage.set(f"{BACKUP_PREFIX}2026-03-03T00:00:00.000Z", json.dumps({"tests": "nope"}))

        backups = manager.list_backups()

        assert [b.timestamp for b in backups] == ["2026-03-01T09:00:00.000Z"]

    def test_list_when_items_present_then_preview_counts(self, manager, store):
        store.add_item(Collection.QUESTION_BANK, _item("b1"))
        manager.create_backup()

        entry = manager.list_backups()[0]

        assert entry.preview["questionBank"] == 1
        assert entry.preview["scoringProfiles"] == 1
        assert entry.size > 0
        assert entry.size_label.endswith("B")


class TestRestore:
    """Tests for restore_from_backup() (scenario C)."""

    def test_restore_when_backup_exists_then_snapshot_replaced(self, manager, store, clock, notifications):
        store.add_item(Collection.QUESTION_BANK, _item("b1"))
        manager.create_backup()
        key = manager.list_backups()[0].key

        clock.advance(seconds=60)
        store.add_item(Collection.QUESTION_BANK, _item("b2"))
        notifications.clear()

        assert manager.restore_from_backup(key) is True

        assert [i.id for i in store.get_question_bank()] == ["b1"]
        assert notifications == [1]

    def test_restore_when_called_then_pre_and_post_backups_taken(self, manager, store, clock):
        store.add_item(Collection.QUESTION_BANK, _item("b1"))
        manager.create_backup()
        key = manager.list_backups()[0].key
        clock.advance(seconds=60)
        store.add_item(Collection.QUESTION_BANK, _item("b2"))

        manager.restore_from_backup(key)

        backups = manager.list_backups()
        assert len(backups) == 3
        # Newest is the restored state, next the live state before restoring
        assert backups[0].preview["questionBank"] == 1
        assert backups[1].preview["questionBank"] == 2

    def test_restore_when_preserve_disabled_then_only_post_backup(self, store, clock):
        manager = BackupManager(store, preserve_pre_restore=False)
        manager.create_backup()
        key = manager.list_backups()[0].key
        clock.advance(seconds=60)

        manager.restore_from_backup(key)

        assert len(manager.list_backups()) == 2

    def test_restore_when_key_missing_then_false(self, manager, notifications):
        assert manager.restore_from_backup(f"{BACKUP_PREFIX}2020-01-01T00:00:00.000Z") is False
        assert manager.restore_from_backup("app_store_v1") is False
        assert notifications == []

    def test_restore_when_backup_has_no_profiles_then_default_seeded(self, manager, store, storage):
        key = f"{BACKUP_PREFIX}2026-02-01T00:00:00.000Z"
        storage.set(key, json.dumps({"tests": [], "questionBank": [_item("b7").to_dict()]}))

        assert manager.restore_from_backup(key) is True

        profiles = store.get_scoring_profiles()
        assert len(profiles) == 1 and profiles[0].is_default


class TestDeleteAndExport:
    """Tests for delete_backup() and the export helpers."""

    def test_delete_when_backup_key_then_removed(self, manager):
        manager.create_backup()
        key = manager.list_backups()[0].key
        assert manager.delete_backup(key) is True
        assert manager.list_backups() == []

    def test_delete_when_not_backup_key_then_refused(self, manager, storage):
        storage.set("app_store_v1", "{}")
        assert manager.delete_backup("app_store_v1") is False
        assert storage.get("app_store_v1") == "{}"

    def test_delete_when_absent_then_false(self, manager):
        assert manager.delete_backup(f"{BACKUP_PREFIX}2020-01-01T00:00:00.000Z") is False

    def test_export_document_when_backups_then_full_snapshots(self, manager, store, clock):
        store.add_item(Collection.QUESTION_BANK, _item("b1"))
        manager.create_backup()
        clock.advance(seconds=1)
        manager.create_backup()

        document = manager.export_backups_document()

        assert len(document["backups"]) == 2
        assert document["backups"][0]["data"]["questionBank"][0]["id"] == "b1"
        assert document["version"] == "1.0"

    def test_export_zip_when_called_then_archive_has_json_and_readme(self, manager, tmp_path):
        manager.create_backup()

        path = manager.export_backups_as_zip(tmp_path / "out" / "backups")

        assert path.suffix == ".zip"
        with zipfile.ZipFile(path) as zf:
            assert sorted(zf.namelist()) == ["README.txt", "backups.json"]
            document = json.loads(zf.read("backups.json"))
        assert len(document["backups"]) == 1

    def test_export_zip_when_readme_disabled_then_json_only(self, manager, tmp_path):
        path = manager.export_backups_as_zip(tmp_path / "b.zip", include_readme=False)
        with zipfile.ZipFile(path) as zf:
            assert zf.namelist() == ["backups.json"]
