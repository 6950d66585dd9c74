"""
Module: repository.scoring

Purpose:
    Scoring profile CRUD under the default-profile invariant.

Invariants:
    - Exactly one profile is default after every operation
    - Making a profile default clears the flag on every sibling in the
      same mutation
    - The current default and the seeded profile cannot be deleted
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Any, List, Optional, Sequence, Tuple

from ..core.models import (
    Collection,
    MCQConfig,
    ScoringProfile,
    ShortAnswerConfig,
    SpeakingRubricItem,
    StoreSnapshot,
)
from .base import Repository, apply_changes

logger = logging.getLogger(__name__)


def _only_default(profiles: Sequence[ScoringProfile], default_id: str) -> Tuple[ScoringProfile, ...]:
    """Set is_default on ``default_id`` only, reusing unchanged profiles."""
    return tuple(
        p if p.is_default == (p.id == default_id) else replace(p, is_default=(p.id == default_id))
        for p in profiles
    )


class ScoringProfileRepository(Repository):
    def list_profiles(self) -> List[ScoringProfile]:
        return self.store.get_scoring_profiles()

    def get_profile(self, profile_id: str) -> Optional[ScoringProfile]:
        return next((p for p in self.store.get_scoring_profiles() if p.id == profile_id), None)

    def get_default(self) -> Optional[ScoringProfile]:
        return self.store.get_default_scoring_profile()

    def add_profile(
        self,
        name: str,
        description: Optional[str] = None,
        is_default: bool = False,
        mcq_config: Optional[MCQConfig] = None,
        short_config: Optional[ShortAnswerConfig] = None,
        speaking_rubrics: Sequence[SpeakingRubricItem] = (),
    ) -> ScoringProfile:
        profile = ScoringProfile(
            id=self.new_id(),
            name=name,
            description=description,
            is_default=is_default,
            created_at=self.now(),
            mcq_config=mcq_config or MCQConfig(),
            short_config=short_config or ShortAnswerConfig(),
            speaking_rubrics=tuple(speaking_rubrics),
        )

        def _add(s: StoreSnapshot) -> StoreSnapshot:
            profiles = s.scoring_profiles + (profile,)
            if is_default:
                profiles = _only_default(profiles, profile.id)
            return s.with_collection(Collection.SCORING_PROFILES, profiles)

        self.store.mutate(_add)
        return profile

    def update_profile(self, profile_id: str, **changes: Any) -> bool:
        """
        Update profile attributes.

        Setting ``is_default=True`` clears every sibling's flag. Clearing
        the flag on the current default is refused (False), since some
        profile must stay default; use set_default() on another profile.

        Raises:
            ValueError: If a change names a protected or unknown attribute
        """
        def _update(s: StoreSnapshot) -> Optional[StoreSnapshot]:
            profiles = s.scoring_profiles
            current = next((p for p in profiles if p.id == profile_id), None)
            if current is None:
                return None
            updated = apply_changes(current, changes, {"is_default": bool})
            if current.is_default and not updated.is_default:
                logger.warning(f"Refusing to clear the default flag on {profile_id}")
                return None
            profiles = tuple(updated if p.id == profile_id else p for p in profiles)
            if updated.is_default:
                profiles = _only_default(profiles, profile_id)
            return s.with_collection(Collection.SCORING_PROFILES, profiles)

        return self.store.mutate(_update)

    def delete_profile(self, profile_id: str) -> bool:
        """Delete a profile. The default and the seeded profile are refused."""
        profile = self.get_profile(profile_id)
        if profile is None:
            return False
        if profile.is_default or profile.is_seeded:
            logger.warning(f"Refusing to delete protected scoring profile {profile_id}")
            return False
        return self.store.remove_item(Collection.SCORING_PROFILES, profile_id)

    def clone_profile(self, profile_id: str, new_name: str) -> Optional[ScoringProfile]:
        """Copy a profile under a new name; the copy is never default."""
        original = self.get_profile(profile_id)
        if original is None:
            return None
        clone = replace(
            original,
            id=self.new_id(),
            name=new_name,
            is_default=False,
            created_at=self.now(),
            speaking_rubrics=tuple(replace(r, id=self.new_id()) for r in original.speaking_rubrics),
        )
        self.store.add_item(Collection.SCORING_PROFILES, clone)
        return clone

    def set_default(self, profile_id: str) -> bool:
        """Make ``profile_id`` the only default. False if it does not exist."""
        def _set(s: StoreSnapshot) -> Optional[StoreSnapshot]:
            if not any(p.id == profile_id for p in s.scoring_profiles):
                return None
            return s.with_collection(
                Collection.SCORING_PROFILES, _only_default(s.scoring_profiles, profile_id)
            )

        return self.store.mutate(_set)
