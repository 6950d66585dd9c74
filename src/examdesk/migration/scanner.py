"""
Module: migration.scanner

Purpose:
    Enumerate every key in the durable medium (except the canonical one
    and backup entries, which BackupManager restores) and classify its
    content as a possible legacy candidate.

    A document is a candidate when any detector matches one of its field
    names or when any field holds a non-empty array. It is *valid* (worth
    merging) only with at least one non-empty array. Candidates are sorted
    newest first by a recency heuristic:

        1. root fields savedAt, updatedAt, createdAt, timestamp, lastModified
        2. else the most recent of those fields inside array items
        3. else "now"

Key Classes:
    - LegacyCandidate: One classified entry (read-only)
    - LegacyScanner: scan() / inspect()

Used By:
    - migration.runner.LegacyMigration
    - cli: ``legacy scan``
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from ..core.utils.timestamps import Clock, parse_iso, to_iso, utc_now
from ..errors import StorageError
from ..storage.keys import BACKUP_PREFIX, CANONICAL_KEY
from ..storage.keyvalue import KeyValueStorage
from .detectors import DEFAULT_DETECTORS, PREVIEW_ORDER, Detector, has_non_empty_array

logger = logging.getLogger(__name__)

TIMESTAMP_FIELDS = ("savedAt", "updatedAt", "createdAt", "timestamp", "lastModified")


@dataclass(frozen=True)
class LegacyCandidate:
    """
    A durable-medium entry that may hold prior-format data.

    Attributes:
        key: Storage key
        size: Stored size in bytes
        last_modified: ISO timestamp from the recency heuristic
        data_fields: Detector names whose pattern matched a field name
        preview: Array length per detector name
        raw_data: The parsed document
        valid: Whether the document has a non-empty array
    """

    key: str
    size: int
    last_modified: str
    data_fields: Tuple[str, ...]
    preview: Mapping[str, int] = field(default_factory=dict)
    raw_data: Any = None
    valid: bool = False

    @property
    def recency(self) -> Optional[datetime]:
        return parse_iso(self.last_modified)


class LegacyScanner:
    """
    Read-only classifier over a KeyValueStorage.

    Args:
        storage: Medium to scan
        detectors: Detector list (DEFAULT_DETECTORS unless overridden)
        clock: Source of "now" for undated candidates
        exclude: Keys never considered
        exclude_prefixes: Key prefixes never considered
    """

    def __init__(
        self,
        storage: KeyValueStorage,
        detectors: Sequence[Detector] = DEFAULT_DETECTORS,
        clock: Clock = utc_now,
        exclude: Sequence[str] = (CANONICAL_KEY,),
        exclude_prefixes: Sequence[str] = (BACKUP_PREFIX,),
    ):
        self.storage = storage
        self.detectors = tuple(detectors)
        self.clock = clock
        self.exclude = frozenset(exclude)
        self.exclude_prefixes = tuple(exclude_prefixes)

    def scan(self) -> List[LegacyCandidate]:
        """All candidates, most recent first."""
        now = self.clock()
        candidates = []
        for key in self.storage.keys():
            if key in self.exclude or key.startswith(self.exclude_prefixes):
                continue
            try:
                raw = self.storage.get(key)
            except StorageError as e:
                logger.debug(f"Skipping unreadable key {key}: {e}")
                continue
            if not raw:
                continue
            candidate = self.inspect(key, raw, now=now)
            if candidate is not None:
                candidates.append(candidate)

        # Stable sort: equal timestamps keep key order
        candidates.sort(key=lambda c: c.recency or now, reverse=True)
        logger.debug(f"Legacy scan found {len(candidates)} candidate(s)")
        return candidates

    def inspect(self, key: str, raw: str, now: Optional[datetime] = None) -> Optional[LegacyCandidate]:
        """Classify one stored value; None if it is not JSON or not a candidate."""
        try:
            data = json.loads(raw)
        except ValueError:
            return None
        if not isinstance(data, (dict, list)):
            return None

        data_fields = tuple(d.name for d in self.detectors if d.matches(data))
        valid = has_non_empty_array(data)
        if not data_fields and not valid:
            return None

        recency = _find_timestamp(data) or now or self.clock()
        return LegacyCandidate(
            key=key,
            size=len(raw.encode("utf-8")),
            last_modified=to_iso(recency),
            data_fields=data_fields,
            preview=self._preview(data),
            raw_data=data,
            valid=valid,
        )

    def _preview(self, data: Any) -> Dict[str, int]:
        if isinstance(data, list):
            return {"tests": len(data)}
        order = [d for d in PREVIEW_ORDER if d in self.detectors]
        order += [d for d in self.detectors if d not in order]
        preview: Dict[str, int] = {}
        for key, value in data.items():
            if not isinstance(value, list):
                continue
            detector = next((d for d in order if d.matches_field(str(key))), None)
            if detector is not None:
                preview[detector.name] = len(value)
        return preview


def _find_timestamp(data: Any) -> Optional[datetime]:
    if not isinstance(data, Mapping):
        return None

    for name in TIMESTAMP_FIELDS:
        parsed = parse_iso(data.get(name))
        if parsed is not None:
            return parsed

    latest: Optional[datetime] = None
    for value in data.values():
        if not isinstance(value, list):
            continue
        for item in value:
            if not isinstance(item, Mapping):
                continue
            for name in TIMESTAMP_FIELDS:
                parsed = parse_iso(item.get(name))
                if parsed is not None and (latest is None or parsed > latest):
                    latest = parsed
    return latest
