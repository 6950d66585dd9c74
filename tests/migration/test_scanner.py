"""
Unit Tests for the Legacy Scanner
"""

import json

from examdesk.migration.scanner import LegacyScanner
from examdesk.storage.keys import BACKUP_PREFIX, CANONICAL_KEY


def _put(storage, key, data):
    storage.set(key, json.dumps(data))


class TestScan:
    """Tests for LegacyScanner.scan()."""

    def test_scan_when_canonical_key_then_excluded(self, storage, clock):
        _put(storage, CANONICAL_KEY, {"tests": [{"id": "t1"}]})
        assert LegacyScanner(storage, clock=clock).scan() == []

    def test_scan_when_backup_entry_then_excluded(self, storage, clock):
        _put(storage, f"{BACKUP_PREFIX}2026-02-01T00:00:00.000Z", {
            "version": "1.0",
            "savedAt": "2026-02-01T00:00:00.000Z",
            "tests": [],
            "attempts": [],
            "questionBank": [],
            "scoringProfiles": [{"id": "default-scoring-profile", "isDefault": True}],
        })
        assert LegacyScanner(storage, clock=clock).scan() == []

    def test_scan_when_backup_prefix_not_excluded_then_backup_is_valid_candidate(self, storage, clock):
        key = f"{BACKUP_PREFIX}2026-02-01T00:00:00.000Z"
        _put(storage, key, {"tests": [], "scoringProfiles": [{"id": "p1"}]})

        candidates = LegacyScanner(storage, clock=clock, exclude_prefixes=()).scan()

        assert [c.key for c in candidates] == [key]
        assert candidates[0].valid

    def test_scan_when_not_json_then_ignored(self, storage, clock):
        storage.set("junk", "not json at all")
        storage.set("number", "42")
        assert LegacyScanner(storage, clock=clock).scan() == []

    def test_scan_when_no_matching_field_and_no_arrays_then_not_candidate(self, storage, clock):
        _put(storage, "prefs", {"theme": "dark"})
        assert LegacyScanner(storage, clock=clock).scan() == []

    def test_scan_when_candidates_then_sorted_by_recency(self, storage, clock):
        _put(storage, "old", {"tests": [{"id": "t1"}], "savedAt": "2025-01-01T00:00:00Z"})
        _put(storage, "new", {"tests": [{"id": "t2"}], "savedAt": "2025-06-01T00:00:00Z"})
        _put(storage, "items", {"attempts": [
            {"id": "a1", "updatedAt": "2025-02-01T00:00:00Z"},
            {"id": "a2", "updatedAt": "2025-03-01T00:00:00Z"},
        ]})

        candidates = LegacyScanner(storage, clock=clock).scan()

        assert [c.key for c in candidates] == ["new", "items", "old"]
        assert candidates[1].last_modified == "2025-03-01T00:00:00.000Z"

    def test_scan_when_undated_then_now_used(self, storage, clock):
        _put(storage, "undated", {"tests": [{"id": "t1"}]})
        candidate = LegacyScanner(storage, clock=clock).scan()[0]
        assert candidate.last_modified == "2026-03-01T09:00:00.000Z"

    def test_scan_when_only_empty_arrays_then_candidate_but_invalid(self, storage, clock):
        _put(storage, "empty", {"tests": []})
        candidate = LegacyScanner(storage, clock=clock).scan()[0]
        assert candidate.valid is False
        assert candidate.data_fields == ("tests",)

    def test_scan_when_arrays_present_then_preview_counts(self, storage, clock):
        _put(storage, "blob", {"tests": [1, 2], "students": [1], "questionBank": [1, 2, 3], "misc": [1]})

        candidate = LegacyScanner(storage, clock=clock).scan()[0]

        assert candidate.preview == {"tests": 2, "users": 1, "questionBank": 3}
        assert candidate.valid
        assert candidate.size == len(storage.get("blob").encode("utf-8"))

    def test_inspect_when_top_level_list_then_counted_as_tests(self, storage, clock):
        candidate = LegacyScanner(storage, clock=clock).inspect("list", json.dumps([[1], [2]]))
        assert candidate.preview == {"tests": 2}
        assert candidate.valid
