"""
Module: storage.persistence

Purpose:
    Read and write the StoreSnapshot as JSON in the durable medium.

    The canonical blob lives under one key; each collection is also
    mirrored to its own legacy key so older readers keep working. Loading
    prefers the canonical key, falls back to the legacy keys, and finally
    to defaults. Every loaded snapshot has exactly one default scoring
    profile.

Key Classes:
    - StorePersistence: load() / save() / clear()

Failure policy:
    Storage and parse errors are logged, never raised. A failed load yields
    defaults; a failed save returns False and leaves memory untouched.
    There are no retries: failures here mean quota or corruption.

Used By:
    - storage.store.Store
    - backup.manager.BackupManager (restore normalization)
"""

from __future__ import annotations

import json
import logging
from dataclasses import replace
from typing import Any, Mapping, Optional

from ..core.models import (
    FORMAT_VERSION,
    Collection,
    ScoringProfile,
    StoreSnapshot,
    create_default_scoring_profile,
    normalize_default,
)
from ..core.utils.ids import IdFactory, new_id
from ..core.utils.timestamps import Clock, to_iso, utc_now
from ..errors import StorageError
from .keys import CANONICAL_KEY, LEGACY_KEYS
from .keyvalue import KeyValueStorage

logger = logging.getLogger(__name__)


class StorePersistence:
    """
    Persistence adapter between StoreSnapshot and a KeyValueStorage.

    Args:
        storage: Durable medium
        clock: Source of ``savedAt`` timestamps
        id_factory: Id source for the seeded scoring profile's rubric items
    """

    def __init__(
        self,
        storage: KeyValueStorage,
        clock: Clock = utc_now,
        id_factory: IdFactory = new_id,
    ):
        self.storage = storage
        self.clock = clock
        self.id_factory = id_factory

    # ─────────────────────────────────────────────────────────────────────
    # Loading
    # ─────────────────────────────────────────────────────────────────────

    def load(self) -> StoreSnapshot:
        """Load the snapshot: canonical key, then legacy keys, then defaults."""
        try:
            canonical = self.storage.get(CANONICAL_KEY)
            if canonical is not None:
                data = json.loads(canonical)
                if not isinstance(data, Mapping):
                    raise ValueError(f"{CANONICAL_KEY} is not a JSON object")
                return self.finalize(StoreSnapshot.from_payload(data))

            return self.finalize(StoreSnapshot.from_payload(self._read_legacy()))
        except (StorageError, ValueError) as e:
            # json.JSONDecodeError is a ValueError
            logger.warning(f"Failed to load store, using defaults: {e}")
            return self.default_snapshot()

    def _read_legacy(self) -> dict[str, Any]:
        data: dict[str, Any] = {}
        for wire, key in LEGACY_KEYS.items():
            raw = self.storage.get(key)
            if raw is not None:
                data[wire] = json.loads(raw)
        if data:
            logger.info(f"Loaded store from legacy keys: {sorted(data)}")
        return data

    def finalize(self, snapshot: StoreSnapshot) -> StoreSnapshot:
        """
        Seed or normalize scoring profiles so exactly one is default.

        Applied to every snapshot coming from outside the Store (load,
        restore, legacy merge).
        """
        return replace(snapshot, scoring_profiles=self.ensure_profiles(snapshot.scoring_profiles))

    def ensure_profiles(self, profiles) -> tuple[ScoringProfile, ...]:
        if not profiles:
            return (self.seed_profile(),)
        return normalize_default(profiles)

    def seed_profile(self) -> ScoringProfile:
        return create_default_scoring_profile(to_iso(self.clock()), self.id_factory)

    def default_snapshot(self) -> StoreSnapshot:
        """Empty collections plus the seeded default scoring profile."""
        return StoreSnapshot(scoring_profiles=(self.seed_profile(),))

    # ─────────────────────────────────────────────────────────────────────
    # Saving
    # ─────────────────────────────────────────────────────────────────────

    def build_payload(self, snapshot: StoreSnapshot, saved_at: Optional[str] = None) -> dict:
        """Canonical wire document: the four collections plus version and savedAt."""
        payload = snapshot.to_payload()
        payload["version"] = FORMAT_VERSION
        payload["savedAt"] = saved_at or to_iso(self.clock())
        return payload

    def save(self, snapshot: StoreSnapshot) -> bool:
        """
        Write the canonical blob and mirror each collection to its legacy key.

        Returns:
            True on success, False if any write failed (logged)
        """
        payload = self.build_payload(snapshot)
        try:
            self.storage.set(CANONICAL_KEY, json.dumps(payload, ensure_ascii=False))
            for collection in Collection:
                self.storage.set(
                    LEGACY_KEYS[str(collection)],
                    json.dumps(payload[str(collection)], ensure_ascii=False),
                )
        except (StorageError, TypeError, ValueError) as e:
            logger.warning(f"Failed to save store: {e}")
            return False
        return True

    def clear(self) -> bool:
        """Remove the canonical key and every legacy mirror."""
        try:
            self.storage.remove(CANONICAL_KEY)
            for key in LEGACY_KEYS.values():
                self.storage.remove(key)
        except StorageError as e:
            logger.warning(f"Failed to clear stored data: {e}")
            return False
        return True
