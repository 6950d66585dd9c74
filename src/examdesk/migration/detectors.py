"""
Module: migration.detectors

Purpose:
    Heuristics that recognise data from earlier storage formats. Each
    Detector pairs a field-name pattern (the predicate) with an extractor
    that pulls the matching array out of a parsed JSON document.

    The list is pluggable: LegacyScanner and merge_legacy_data() accept any
    sequence of detectors, DEFAULT_DETECTORS is what the app uses.

Key Classes:
    - Detector

Key Functions:
    - detector_for(): Detector feeding a given Store collection
    - has_non_empty_array(): The validity rule for legacy documents
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, List, Mapping, Optional, Pattern, Sequence

from ..core.models import Collection


@dataclass(frozen=True)
class Detector:
    """
    One kind of legacy data.

    Attributes:
        name: Field type reported in previews (e.g. "tests", "users")
        pattern: Case-insensitive regex searched in top-level field names
        collection: Store collection this feeds, None for report-only kinds
    """

    name: str
    pattern: Pattern[str]
    collection: Optional[Collection] = None

    def matches_field(self, field_name: str) -> bool:
        return bool(self.pattern.search(field_name))

    def matches(self, data: Any) -> bool:
        """True if any top-level field name of ``data`` matches."""
        return isinstance(data, Mapping) and any(self.matches_field(str(k)) for k in data)

    def extract(self, data: Any) -> Optional[List[Any]]:
        """
        Return the first top-level array whose field name matches.

        A document that is itself an array is taken as a tests array.
        """
        if isinstance(data, list):
            return data if self.collection is Collection.TESTS else None
        if not isinstance(data, Mapping):
            return None
        for key, value in data.items():
            if self.matches_field(str(key)) and isinstance(value, list):
                return value
        return None


def _pattern(expr: str) -> Pattern[str]:
    return re.compile(expr, re.IGNORECASE)


USERS = Detector("users", _pattern(r"users|students|teachers|admins"))
TESTS = Detector("tests", _pattern(r"tests|exams|assessments"), Collection.TESTS)
ASSIGNMENTS = Detector("assignments", _pattern(r"assignments|tasks"))
ATTEMPTS = Detector("attempts", _pattern(r"attempts|results|submissions"), Collection.ATTEMPTS)
QUESTION_BANK = Detector("questionBank", _pattern(r"question_?bank|questions|items"), Collection.QUESTION_BANK)
SCORING_PROFILES = Detector(
    "scoringProfiles", _pattern(r"scoring_?profiles|profiles|rubrics"), Collection.SCORING_PROFILES
)

DEFAULT_DETECTORS = (USERS, TESTS, ASSIGNMENTS, ATTEMPTS, QUESTION_BANK, SCORING_PROFILES)

# Preview counts attribute an array to the first detector in this order
PREVIEW_ORDER = (TESTS, ATTEMPTS, USERS, ASSIGNMENTS, QUESTION_BANK, SCORING_PROFILES)


def detector_for(collection: Collection, detectors: Sequence[Detector] = DEFAULT_DETECTORS) -> Optional[Detector]:
    return next((d for d in detectors if d.collection is collection), None)


def _values(data: Any) -> List[Any]:
    if isinstance(data, Mapping):
        return list(data.values())
    if isinstance(data, list):
        return data
    return []


def has_non_empty_array(data: Any) -> bool:
    """
    True if any top-level value is a non-empty array.

    This is the validity rule: a candidate without one has nothing to merge.
    For a top-level array the values are its elements.
    """
    return any(isinstance(v, list) and v for v in _values(data))
