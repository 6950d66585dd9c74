"""
Module: core.models.snapshot

Purpose:
    StoreSnapshot is the immutable unit the Store swaps wholesale: the four
    collections (tests, attempts, questionBank, scoringProfiles). Every
    mutation produces a new snapshot; unchanged collections are shared.

Key Classes:
    - Collection: Names and model types of the four collections
    - StoreSnapshot: The snapshot itself

Used By:
    - storage.persistence, storage.store, backup.manager, migration.reconciler
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from types import MappingProxyType
from typing import Any, Iterable, Mapping, Tuple

from ..utils.serialization import EMPTY, UnparsedItems, merge_unparsed
from .attempt import Attempt
from .bank import QuestionBankItem
from .exam import Test
from .scoring import ScoringProfile

FORMAT_VERSION = "1.0"


class Collection(str, Enum):
    """The Store's collections, valued by their wire names."""

    TESTS = "tests"
    ATTEMPTS = "attempts"
    QUESTION_BANK = "questionBank"
    SCORING_PROFILES = "scoringProfiles"

    def __str__(self) -> str:
        return self.value

    @property
    def attr(self) -> str:
        """StoreSnapshot attribute holding this collection."""
        return _ATTRS[self]

    @property
    def model(self) -> Any:
        """Model class of the items in this collection."""
        return _MODELS[self]


_ATTRS = {
    Collection.TESTS: "tests",
    Collection.ATTEMPTS: "attempts",
    Collection.QUESTION_BANK: "question_bank",
    Collection.SCORING_PROFILES: "scoring_profiles",
}

_MODELS = {
    Collection.TESTS: Test,
    Collection.ATTEMPTS: Attempt,
    Collection.QUESTION_BANK: QuestionBankItem,
    Collection.SCORING_PROFILES: ScoringProfile,
}


@dataclass(frozen=True)
class StoreSnapshot:
    tests: Tuple[Test, ...] = ()
    attempts: Tuple[Attempt, ...] = ()
    question_bank: Tuple[QuestionBankItem, ...] = ()
    scoring_profiles: Tuple[ScoringProfile, ...] = ()
    # collection wire name -> raw items that did not parse, written back on save
    unparsed: Mapping[str, Tuple[Any, ...]] = field(default_factory=lambda: EMPTY)

    def get(self, collection: Collection) -> Tuple[Any, ...]:
        return getattr(self, collection.attr)

    def with_collection(self, collection: Collection, items) -> StoreSnapshot:
        """Return a copy with one collection replaced."""
        return replace(self, **{collection.attr: tuple(items)})

    def with_unparsed(self, collection: Collection, items: Iterable[Any]) -> StoreSnapshot:
        """Return a copy whose raw unparsed items for ``collection`` are ``items``."""
        unparsed = {k: v for k, v in self.unparsed.items() if k != str(collection)}
        items = tuple(items)
        if items:
            unparsed[str(collection)] = items
        return replace(self, unparsed=MappingProxyType(unparsed) if unparsed else EMPTY)

    def counts(self) -> dict[str, int]:
        return {str(c): len(self.get(c)) for c in Collection}

    def to_payload(self) -> dict:
        """Wire form of the four collections (no version/savedAt)."""
        payload = {str(c): [item.to_dict() for item in self.get(c)] for c in Collection}
        return merge_unparsed(payload, self.unparsed)

    @classmethod
    def from_payload(cls, data: Mapping[str, Any]) -> StoreSnapshot:
        """
        Parse the four collections out of a wire document.

        Missing collections come back empty. Items that do not parse are kept
        raw in ``unparsed`` and written back by to_payload().
        Default-profile seeding and normalization are the caller's concern.
        """
        unparsed = UnparsedItems()
        collections = {c.attr: unparsed.parse(data, str(c), c.model.from_dict) for c in Collection}
        return cls(unparsed=unparsed.frozen(), **collections)
