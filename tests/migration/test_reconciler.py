"""
Unit Tests for the Merge Reconciler
"""

import pytest

from examdesk.core.models import Collection, QuestionBankItem, QuestionType, SEEDED_PROFILE_ID
from examdesk.errors import InvalidLegacyDataError
from examdesk.migration.reconciler import MergeStrategy, merge_by_id, merge_legacy_data

TS = "2026-03-01T09:00:00.000Z"


def _test_doc(tid: str, name: str = "Legacy") -> dict:
    return {"id": tid, "name": name, "status": "Draft", "createdAt": TS}


def _item(iid: str, prompt: str = "current") -> QuestionBankItem:
    return QuestionBankItem(id=iid, type=QuestionType.SHORT, points=1, created_at=TS, prompt=prompt)


class TestMergeById:
    """Tests for merge_by_id()."""

    def test_merge_when_ids_overlap_then_current_wins(self):
        current = (_item("a"),)
        merged = merge_by_id(current, [_item("a", "incoming"), _item("b", "incoming")])

        assert [i.id for i in merged] == ["a", "b"]
        assert merged[0] is current[0]

    def test_merge_when_incoming_has_duplicates_then_first_kept(self):
        merged = merge_by_id((), [_item("x", "first"), _item("x", "second")])
        assert [i.prompt for i in merged] == ["first"]


class TestMergeLegacyData:
    """Tests for merge_legacy_data()."""

    def test_merge_when_existing_id_then_not_overwritten(self, store):
        store.import_data('{"data": {"tests": [{"id": "t1", "name": "Mine", "status": "Draft", '
                          '"createdAt": "2026-03-01T09:00:00.000Z"}], "attempts": []}}')

        merge_legacy_data(store, {"tests": [_test_doc("t1", "Theirs"), _test_doc("t2")]})

        tests = {t.id: t.name for t in store.get_tests()}
        assert tests == {"t1": "Mine", "t2": "Legacy"}

    def test_merge_when_called_then_persists_and_notifies_once(self, store, notifications):
        merge_legacy_data(store, {"tests": [_test_doc("t1")], "questions": [
            {"id": "b1", "type": "MCQ", "points": 1, "createdAt": TS},
        ]})
        assert notifications == [1]
        assert [i.id for i in store.get_question_bank()] == ["b1"]

    def test_merge_when_fields_limited_then_other_collections_untouched(self, store):
        merge_legacy_data(store, {"tests": [_test_doc("t1")], "questionBank": [
            {"id": "b1", "type": "MCQ", "points": 1},
        ]}, fields=[Collection.QUESTION_BANK])

        assert store.get_tests() == []
        assert len(store.get_question_bank()) == 1

    def test_merge_when_incoming_profile_default_then_demoted(self, store):
        merge_legacy_data(store, {"scoringProfiles": [
            {"id": "p-legacy", "name": "Old", "isDefault": True, "createdAt": TS},
        ]})

        profiles = {p.id: p.is_default for p in store.get_scoring_profiles()}
        assert profiles == {SEEDED_PROFILE_ID: True, "p-legacy": False}

    def test_merge_when_items_lack_ids_then_ignored(self, store):
        merge_legacy_data(store, {"tests": [{"name": "no id"}, _test_doc("t1")]})
        assert [t.id for t in store.get_tests()] == ["t1"]
        assert store.snapshot.unparsed == {}

    def test_merge_when_item_unparseable_then_kept_raw_once(self, store):
        broken = {"id": "t5", "name": "Broken", "status": 3}

        merge_legacy_data(store, {"tests": [broken, _test_doc("t1")]})
        merge_legacy_data(store, {"tests": [broken]})

        assert [t.id for t in store.get_tests()] == ["t1"]
        assert store.snapshot.to_payload()["tests"][1:] == [broken]

    def test_merge_when_unparseable_item_id_already_stored_then_dropped(self, store):
        merge_legacy_data(store, {"tests": [_test_doc("t1")]})
        merge_legacy_data(store, {"tests": [{"id": "t1", "status": 3}]})

        assert store.snapshot.unparsed == {}

    def test_merge_when_no_non_empty_array_then_raises(self, store, notifications):
        with pytest.raises(InvalidLegacyDataError):
            merge_legacy_data(store, {"tests": []})
        assert notifications == []

    def test_replace_when_strategy_replace_then_wholesale(self, store):
        store.add_item(Collection.QUESTION_BANK, _item("b1"))

        merge_legacy_data(store, {"exams": [_test_doc("t9")]}, strategy=MergeStrategy.REPLACE)

        assert [t.id for t in store.get_tests()] == ["t9"]
        assert store.get_question_bank() == []
        # Seeded default restored when the legacy data has no profiles
        assert store.get_default_scoring_profile().id == SEEDED_PROFILE_ID

    def test_replace_when_item_unparseable_then_kept_raw(self, store):
        broken = {"id": "t5", "status": 3}

        merge_legacy_data(store, {"tests": [_test_doc("t9"), broken]}, strategy=MergeStrategy.REPLACE)

        assert [t.id for t in store.get_tests()] == ["t9"]
        assert store.snapshot.to_payload()["tests"][1] == broken
