"""
Module: core.models.scoring

Purpose:
    Scoring profiles: per-question-type scoring configuration. The
    configuration values are opaque to this package; what matters here is
    the default-profile invariant.

Key Classes:
    - ScoringProfile, MCQConfig, ShortAnswerConfig, SpeakingRubricItem

Key Functions:
    - create_default_scoring_profile(): The seeded, undeletable profile
    - normalize_default(): Restore "exactly one default" on a collection

Invariants:
    - Exactly one profile in a collection has is_default=True
    - The seeded profile (SEEDED_PROFILE_ID) is never removed
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from typing import Any, Callable, Mapping, Optional, Sequence, Tuple

from ..utils.serialization import (
    EMPTY,
    UnparsedItems,
    collect_extra,
    merge_extra,
    merge_unparsed,
    require_id,
    string_tuple,
)

logger = logging.getLogger(__name__)

SEEDED_PROFILE_ID = "default-scoring-profile"


@dataclass(frozen=True)
class MCQConfig:
    default_points: float = 1
    wrong_penalty: Optional[float] = None

    def to_dict(self) -> dict:
        d: dict[str, Any] = {"defaultPoints": self.default_points}
        if self.wrong_penalty is not None:
            d["wrongPenalty"] = self.wrong_penalty
        return d

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> MCQConfig:
        return cls(default_points=data.get("defaultPoints", 1), wrong_penalty=data.get("wrongPenalty"))


@dataclass(frozen=True)
class ShortAnswerConfig:
    ignore_whitespace: bool = True
    ignore_case: bool = True
    typo_tolerance: int = 0
    regex_patterns: Tuple[str, ...] = ()

    def to_dict(self) -> dict:
        return {
            "ignoreWhitespace": self.ignore_whitespace,
            "ignoreCase": self.ignore_case,
            "typoTolerance": self.typo_tolerance,
            "regexPatterns": list(self.regex_patterns),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> ShortAnswerConfig:
        tolerance = int(data.get("typoTolerance", 0))
        if not 0 <= tolerance <= 3:
            raise ValueError(f"typoTolerance must be 0-3: {tolerance}")
        return cls(
            ignore_whitespace=bool(data.get("ignoreWhitespace", True)),
            ignore_case=bool(data.get("ignoreCase", True)),
            typo_tolerance=tolerance,
            regex_patterns=string_tuple(data.get("regexPatterns")),
        )


@dataclass(frozen=True)
class SpeakingRubricItem:
    id: str
    label: str
    description: str = ""
    weight: float = 25
    max_score: float = 4

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "label": self.label,
            "description": self.description,
            "weight": self.weight,
            "maxScore": self.max_score,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> SpeakingRubricItem:
        return cls(
            id=require_id(data, "SpeakingRubricItem"),
            label=str(data.get("label", "")),
            description=str(data.get("description", "")),
            weight=data.get("weight", 25),
            max_score=data.get("maxScore", 4),
        )


@dataclass(frozen=True)
class ScoringProfile:
    """A named scoring configuration; exactly one is the default."""

    id: str
    name: str
    is_default: bool
    created_at: str
    description: Optional[str] = None
    mcq_config: MCQConfig = field(default_factory=MCQConfig)
    short_config: ShortAnswerConfig = field(default_factory=ShortAnswerConfig)
    speaking_rubrics: Tuple[SpeakingRubricItem, ...] = ()
    extra: Mapping[str, Any] = field(default_factory=lambda: EMPTY)
    unparsed: Mapping[str, Tuple[Any, ...]] = field(default_factory=lambda: EMPTY)

    _KNOWN = (
        "id", "name", "description", "isDefault", "createdAt",
        "mcqConfig", "shortConfig", "speakingRubrics",
    )

    @property
    def is_seeded(self) -> bool:
        return self.id == SEEDED_PROFILE_ID

    def to_dict(self) -> dict:
        d: dict[str, Any] = {"id": self.id, "name": self.name}
        if self.description is not None:
            d["description"] = self.description
        d["isDefault"] = self.is_default
        d["createdAt"] = self.created_at
        d["mcqConfig"] = self.mcq_config.to_dict()
        d["shortConfig"] = self.short_config.to_dict()
        d["speakingRubrics"] = [r.to_dict() for r in self.speaking_rubrics]
        return merge_extra(merge_unparsed(d, self.unparsed), self.extra)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> ScoringProfile:
        mcq = data.get("mcqConfig")
        short = data.get("shortConfig")
        unparsed = UnparsedItems()
        return cls(
            id=require_id(data, "ScoringProfile"),
            name=str(data.get("name", "")),
            is_default=bool(data.get("isDefault", False)),
            created_at=str(data.get("createdAt", "")),
            description=data.get("description"),
            mcq_config=MCQConfig.from_dict(mcq) if isinstance(mcq, Mapping) else MCQConfig(),
            short_config=ShortAnswerConfig.from_dict(short) if isinstance(short, Mapping) else ShortAnswerConfig(),
            speaking_rubrics=unparsed.parse(data, "speakingRubrics", SpeakingRubricItem.from_dict),
            extra=collect_extra(data, cls._KNOWN),
            unparsed=unparsed.frozen(),
        )


def create_default_scoring_profile(created_at: str, new_id: Callable[[], str]) -> ScoringProfile:
    """
    Build the seeded default profile.

    Args:
        created_at: ISO timestamp for the profile
        new_id: Id factory for the rubric items

    Returns:
        Profile with id SEEDED_PROFILE_ID and is_default=True
    """
    rubric = (
        ("Fluency", "Speaking fluency"),
        ("Pronunciation", "Accuracy of pronunciation"),
        ("Grammar", "Grammatical accuracy"),
        ("Content", "Relevance and completeness of content"),
    )
    return ScoringProfile(
        id=SEEDED_PROFILE_ID,
        name="Default scoring profile",
        description="System default scoring settings",
        is_default=True,
        created_at=created_at,
        mcq_config=MCQConfig(default_points=1, wrong_penalty=0),
        short_config=ShortAnswerConfig(
            ignore_whitespace=True,
            ignore_case=True,
            typo_tolerance=1,
        ),
        speaking_rubrics=tuple(
            SpeakingRubricItem(id=new_id(), label=label, description=desc, weight=25, max_score=4)
            for label, desc in rubric
        ),
    )


def normalize_default(profiles: Sequence[ScoringProfile]) -> Tuple[ScoringProfile, ...]:
    """
    Return profiles with exactly one default.

    The first profile flagged default wins. When none is flagged, the seeded
    profile (or failing that, the first) becomes the default. Profiles that
    are already correct are returned unchanged (same objects).
    """
    profiles = tuple(profiles)
    if not profiles:
        return profiles

    winner = next((p.id for p in profiles if p.is_default), None)
    if winner is None:
        winner = next((p.id for p in profiles if p.is_seeded), profiles[0].id)
        logger.warning(f"No default scoring profile; promoting {winner}")

    return tuple(
        p if p.is_default == (p.id == winner) else replace(p, is_default=(p.id == winner))
        for p in profiles
    )
