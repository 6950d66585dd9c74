"""
Unit Tests for Legacy Data Detectors
"""

import pytest

from examdesk.core.models import Collection
from examdesk.migration.detectors import (
    ATTEMPTS,
    DEFAULT_DETECTORS,
    QUESTION_BANK,
    TESTS,
    USERS,
    detector_for,
    has_non_empty_array,
)


class TestDetectors:
    """Tests for field-name matching and extraction."""

    @pytest.mark.parametrize("field_name,detector", [
        ("tests", TESTS),
        ("myExams", TESTS),
        ("submissions", ATTEMPTS),
        ("question_bank", QUESTION_BANK),
        ("questionBank", QUESTION_BANK),
        ("Students", USERS),
    ])
    def test_matches_field_when_name_fits_pattern_then_true(self, field_name, detector):
        assert detector.matches_field(field_name)

    def test_extract_when_field_matches_then_first_array_returned(self):
        data = {"exams": [{"id": "t1"}], "tests": [{"id": "t2"}]}
        assert TESTS.extract(data) == [{"id": "t1"}]

    def test_extract_when_matching_field_not_array_then_none(self):
        assert ATTEMPTS.extract({"attempts": {"a": 1}}) is None

    def test_extract_when_document_is_list_then_tests_only(self):
        data = [{"id": "t1"}]
        assert TESTS.extract(data) == data
        assert ATTEMPTS.extract(data) is None

    def test_detector_for_when_report_only_kind_then_not_mapped(self):
        mapped = {d.collection for d in DEFAULT_DETECTORS if d.collection is not None}
        assert mapped == set(Collection)
        assert detector_for(Collection.ATTEMPTS) is ATTEMPTS


class TestHasNonEmptyArray:
    """Tests for the validity rule."""

    def test_when_object_with_non_empty_array_then_true(self):
        assert has_non_empty_array({"foo": [1]})

    def test_when_only_empty_arrays_then_false(self):
        assert not has_non_empty_array({"tests": [], "attempts": []})

    def test_when_list_of_objects_then_false(self):
        assert not has_non_empty_array([{"id": "a"}])

    def test_when_scalar_then_false(self):
        assert not has_non_empty_array("text")
