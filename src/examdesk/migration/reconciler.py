"""
Module: migration.reconciler

Purpose:
    Merge a legacy document into the Store.

    MERGE (default) is an id-union per selected collection: items whose id
    is already present are left untouched, only new ids are appended, and
    items without an id are ignored. Legacy items that do not parse are
    kept raw under the same id rule so a later save does not lose them.
    REPLACE swaps the whole snapshot for the legacy content (recovery UI
    only).

Key Functions:
    - merge_by_id(): Id-union of two model tuples (current wins)
    - merge_legacy_data(): Apply a legacy document to a Store

Invariants:
    - MERGE never modifies an item that already exists in the Store
    - Appended scoring profiles never carry the default flag
"""

from __future__ import annotations

import logging
from dataclasses import replace
from enum import Enum
from typing import Any, Iterable, List, Mapping, Optional, Sequence, Tuple

from ..core.models import Collection, ScoringProfile, StoreSnapshot
from ..core.utils.serialization import deserialize_items, unparsed_ids
from ..errors import InvalidLegacyDataError
from ..storage.store import Store
from .detectors import DEFAULT_DETECTORS, Detector, detector_for, has_non_empty_array

logger = logging.getLogger(__name__)

ALL_COLLECTIONS: Tuple[Collection, ...] = tuple(Collection)


class MergeStrategy(str, Enum):
    MERGE = "merge"
    REPLACE = "replace"

    def __str__(self) -> str:
        return self.value


def merge_by_id(current: Sequence[Any], incoming: Iterable[Any]) -> Tuple[Any, ...]:
    """
    Keep every current item and append incoming items with unseen ids.

    Example:
        >>> [i.id for i in merge_by_id([a1], [a1_changed, b1])]
        ['a', 'b']
    """
    seen = {item.id for item in current}
    merged = list(current)
    for item in incoming:
        item_id = getattr(item, "id", None)
        if not item_id or item_id in seen:
            continue
        seen.add(item_id)
        merged.append(item)
    return tuple(merged)


def extract_collection(
    data: Any,
    collection: Collection,
    detectors: Sequence[Detector] = DEFAULT_DETECTORS,
    rejected: Optional[List[Any]] = None,
) -> Optional[Tuple[Any, ...]]:
    """
    Parse the legacy array feeding ``collection``; None if there is none.

    Raw items that do not parse are appended to ``rejected`` when given.
    """
    detector = detector_for(collection, detectors)
    if detector is None:
        return None
    raw = detector.extract(data)
    if raw is None:
        return None
    return deserialize_items(raw, collection.model.from_dict, f"legacy {collection}", rejected)


def merge_legacy_data(
    store: Store,
    legacy_data: Any,
    strategy: MergeStrategy = MergeStrategy.MERGE,
    fields: Sequence[Collection] = ALL_COLLECTIONS,
    detectors: Sequence[Detector] = DEFAULT_DETECTORS,
) -> bool:
    """
    Merge or replace Store contents from a legacy document.

    Args:
        store: Target Store (persisted and notified once)
        legacy_data: Parsed legacy JSON document
        strategy: MERGE (id-union, current wins) or REPLACE
        fields: Collections to merge (ignored by REPLACE)
        detectors: Detector list used to find each collection

    Returns:
        True once the Store has been updated

    Raises:
        InvalidLegacyDataError: If the document has no non-empty array
    """
    if not has_non_empty_array(legacy_data):
        raise InvalidLegacyDataError("Legacy data has no non-empty array to merge")

    strategy = MergeStrategy(strategy)
    fields = tuple(Collection(f) for f in fields)

    if strategy is MergeStrategy.REPLACE:
        replacement = StoreSnapshot()
        for collection in Collection:
            rejected: List[Any] = []
            items = extract_collection(legacy_data, collection, detectors, rejected) or ()
            replacement = replacement.with_collection(collection, items).with_unparsed(collection, rejected)
        replacement = store.persistence.finalize(replacement)
        logger.info(f"Replaced store from legacy data: {replacement.counts()}")
        return store.replace_snapshot(replacement)

    def _apply(snapshot: StoreSnapshot) -> StoreSnapshot:
        updated = snapshot
        for collection in fields:
            rejected: List[Any] = []
            incoming = extract_collection(legacy_data, collection, detectors, rejected) or ()
            if collection is Collection.SCORING_PROFILES:
                incoming = _demote(incoming)
            current = updated.get(collection)
            merged = merge_by_id(current, incoming)
            if collection is Collection.SCORING_PROFILES:
                merged = store.persistence.ensure_profiles(merged)
            logger.info(f"Legacy merge {collection}: {len(merged) - len(current)} new item(s)")
            updated = updated.with_collection(collection, merged)
            kept = _merge_unparsed(updated, collection, rejected)
            if kept is not None:
                updated = updated.with_unparsed(collection, kept)
        return updated

    return store.mutate(_apply)


def _merge_unparsed(
    snapshot: StoreSnapshot,
    collection: Collection,
    rejected: Sequence[Any],
) -> Optional[Tuple[Any, ...]]:
    """Raw legacy items to keep alongside ``collection``; None when nothing new."""
    existing = tuple(snapshot.unparsed.get(str(collection), ()))
    seen = {item.id for item in snapshot.get(collection)} | unparsed_ids(existing)
    added = []
    for item in rejected:
        item_id = item.get("id") if isinstance(item, Mapping) else None
        if not isinstance(item_id, str) or not item_id or item_id in seen:
            continue
        seen.add(item_id)
        added.append(item)
    if not added:
        return None
    logger.info(f"Legacy merge {collection}: keeping {len(added)} unparsed item(s)")
    return existing + tuple(added)


def _demote(profiles: Iterable[ScoringProfile]) -> Tuple[ScoringProfile, ...]:
    return tuple(replace(p, is_default=False) if p.is_default else p for p in profiles)
