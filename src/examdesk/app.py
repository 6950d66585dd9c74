"""
Module: app

Purpose:
    Wire the data core together: medium, persistence, Store, one-time legacy
    migration, repositories, backups and their timers.

Key Classes:
    - DataCore: Owns every component and their lifecycle

Usage:
    >>> core = DataCore(CoreConfig(data_dir=get_data_dir()))
    >>> core.start()
    >>> core.tests.create_test("Midterm")
    >>> core.shutdown()
"""

from __future__ import annotations

import atexit
import logging
from typing import Optional

from .backup import BackupManager, BackupScheduler
from .config import CoreConfig
from .core.utils.ids import IdFactory, new_id
from .core.utils.timestamps import Clock, utc_now
from .migration import LegacyMigration
from .repository import (
    AttemptRepository,
    QuestionBankRepository,
    ScoringProfileRepository,
    TestRepository,
)
from .storage import DirectoryStorage, KeyValueStorage, MemoryStorage, Store, StorePersistence

logger = logging.getLogger(__name__)


def create_storage(config: CoreConfig) -> KeyValueStorage:
    """File-backed medium under ``config.data_dir``, else in memory."""
    if config.data_dir is None:
        return MemoryStorage(max_bytes=config.storage_quota_bytes)
    return DirectoryStorage(config.data_dir, max_bytes=config.storage_quota_bytes)


class DataCore:
    """
    The assembled data core.

    Construction loads the Store and runs the legacy migration once. Timers
    only start with start(); shutdown() is registered with atexit so the
    final save and backup also happen on interpreter exit.

    Args:
        config: Core configuration
        storage: Medium to use instead of the one derived from config
        clock: Time source shared by every component
        id_factory: Id source shared by every component
    """

    def __init__(
        self,
        config: Optional[CoreConfig] = None,
        *,
        storage: Optional[KeyValueStorage] = None,
        clock: Clock = utc_now,
        id_factory: IdFactory = new_id,
    ):
        self.config = config or CoreConfig()
        self.storage = storage if storage is not None else create_storage(self.config)
        self.persistence = StorePersistence(self.storage, clock=clock, id_factory=id_factory)
        self.store = Store(self.persistence)
        self.migration = LegacyMigration(self.store)
        self.migration.run_once()

        self.tests = TestRepository(self.store, id_factory)
        self.attempts = AttemptRepository(self.store, id_factory)
        self.question_bank = QuestionBankRepository(self.store, id_factory)
        self.scoring_profiles = ScoringProfileRepository(self.store, id_factory)

        self.backups = BackupManager(
            self.store,
            lock_ttl_seconds=self.config.backup_lock_ttl_seconds,
            preserve_pre_restore=self.config.preserve_pre_restore,
        )
        self.scheduler = BackupScheduler(
            self.backups,
            autosave_interval_seconds=self.config.autosave_interval_seconds,
        )
        self._atexit_registered = False

    def start(self) -> None:
        """Start the autosave and backup timers."""
        self.scheduler.start()
        if not self._atexit_registered:
            atexit.register(self.shutdown)
            self._atexit_registered = True
        logger.info(f"Data core started ({type(self.storage).__name__})")

    def shutdown(self) -> None:
        """Stop timers, save, and take the teardown backup. Safe to call twice."""
        self.scheduler.shutdown()

    def clear_all(self) -> None:
        """Wipe the stored data, backing it up first when backups are enabled."""
        if self.backups.settings.enabled:
            self.backups.create_backup()
        self.store.clear_all()
