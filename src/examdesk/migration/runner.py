"""
One-time legacy migration.

On first start the whole medium is scanned, the most recent valid legacy
candidate is merged into the Store (id-union, current wins), and a marker
holding the completion time is written. The marker is written whatever the
outcome, so the scan never repeats.
"""

from __future__ import annotations

import logging
from typing import Optional

from ..core.utils.timestamps import to_iso
from ..errors import InvalidLegacyDataError, StorageError
from ..storage.keys import MIGRATION_MARKER_KEY
from ..storage.store import Store
from .reconciler import ALL_COLLECTIONS, MergeStrategy, merge_legacy_data
from .scanner import LegacyCandidate, LegacyScanner

logger = logging.getLogger(__name__)


class LegacyMigration:
    def __init__(self, store: Store, scanner: Optional[LegacyScanner] = None):
        self.store = store
        self.storage = store.persistence.storage
        self.scanner = scanner or LegacyScanner(self.storage, clock=store.clock)

    @property
    def done(self) -> bool:
        try:
            return MIGRATION_MARKER_KEY in self.storage
        except StorageError as e:
            logger.warning(f"Could not read migration marker: {e}")
            return False

    def run_once(self) -> Optional[LegacyCandidate]:
        """
        Run the migration unless the marker is present.

        Returns:
            The merged candidate, or None when nothing was merged
        """
        if self.done:
            return None

        logger.info("Starting legacy data migration")
        merged: Optional[LegacyCandidate] = None
        try:
            candidates = self.scanner.scan()
            chosen = next((c for c in candidates if c.valid), None)
            if candidates:
                logger.info(f"Found {len(candidates)} legacy candidate(s)")
            if chosen is not None:
                logger.info(f"Merging legacy data from {chosen.key}")
                merge_legacy_data(self.store, chosen.raw_data, MergeStrategy.MERGE, ALL_COLLECTIONS)
                merged = chosen
        except (StorageError, InvalidLegacyDataError) as e:
            logger.warning(f"Legacy migration failed: {e}")

        try:
            self.storage.set(MIGRATION_MARKER_KEY, to_iso(self.store.clock()))
        except StorageError as e:
            logger.warning(f"Could not write migration marker: {e}")
        else:
            logger.info("Legacy data migration complete")
        return merged
