"""
Unit Tests for the Scoring Profile Repository

The single-default invariant across add, update, set_default and delete.
"""

import pytest

from examdesk.core.models import SEEDED_PROFILE_ID, SpeakingRubricItem
from examdesk.repository.scoring import ScoringProfileRepository


@pytest.fixture
def repo(store, ids):
    return ScoringProfileRepository(store, ids)


def _defaults(repo):
    return {p.id: p.is_default for p in repo.list_profiles()}


class TestDefaultInvariant:
    """Exactly one default after every operation."""

    def test_set_default_when_other_profile_then_flags_flipped(self, repo, notifications):
        p2 = repo.add_profile("P2")
        notifications.clear()

        assert repo.set_default(p2.id) is True

        assert _defaults(repo) == {SEEDED_PROFILE_ID: False, p2.id: True}
        assert notifications == [1]

    def test_set_default_when_missing_then_false(self, repo):
        assert repo.set_default("ghost") is False
        assert repo.get_default().id == SEEDED_PROFILE_ID

    def test_add_when_default_then_siblings_cleared(self, repo):
        p2 = repo.add_profile("P2", is_default=True)
        assert _defaults(repo) == {SEEDED_PROFILE_ID: False, p2.id: True}

    def test_update_when_made_default_then_siblings_cleared(self, repo):
        p2 = repo.add_profile("P2")
        repo.update_profile(p2.id, is_default=True, name="Renamed")

        assert _defaults(repo) == {SEEDED_PROFILE_ID: False, p2.id: True}
        assert repo.get_profile(p2.id).name == "Renamed"

    @pytest.mark.parametrize("flag", [False, 0, "", None])
    def test_update_when_clearing_current_default_then_refused(self, repo, notifications, flag):
        assert repo.update_profile(SEEDED_PROFILE_ID, is_default=flag, name="Renamed") is False

        default = repo.get_default()
        assert default.id == SEEDED_PROFILE_ID
        assert default.is_default is True
        assert default.name != "Renamed"
        assert notifications == []


class TestDeleteAndClone:
    """Tests for delete_profile() and clone_profile()."""

    def test_delete_when_seeded_then_refused(self, repo):
        p2 = repo.add_profile("P2")
        repo.set_default(p2.id)
        assert repo.delete_profile(SEEDED_PROFILE_ID) is False
        assert repo.get_profile(SEEDED_PROFILE_ID) is not None

    def test_delete_when_current_default_then_refused(self, repo):
        p2 = repo.add_profile("P2", is_default=True)
        assert repo.delete_profile(p2.id) is False

    def test_delete_when_ordinary_then_removed(self, repo):
        p2 = repo.add_profile("P2")
        assert repo.delete_profile(p2.id) is True
        assert repo.get_profile(p2.id) is None

    def test_clone_when_default_then_copy_not_default_with_fresh_rubric_ids(self, repo):
        original = repo.get_default()

        clone = repo.clone_profile(original.id, "Copy")

        assert clone.name == "Copy"
        assert clone.is_default is False
        assert clone.id != original.id
        assert [r.label for r in clone.speaking_rubrics] == [r.label for r in original.speaking_rubrics]
        assert not {r.id for r in clone.speaking_rubrics} & {r.id for r in original.speaking_rubrics}
        assert repo.list_profiles()[-1] == clone

    def test_add_when_rubrics_given_then_stored(self, repo):
        rubric = SpeakingRubricItem(id="r1", label="Fluency", weight=50, max_score=5)
        profile = repo.add_profile("Oral", speaking_rubrics=[rubric])
        assert repo.get_profile(profile.id).speaking_rubrics == (rubric,)
