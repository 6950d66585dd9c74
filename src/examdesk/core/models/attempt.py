"""
Module: core.models.attempt

Purpose:
    A candidate's attempt at one Test version. Scoring fields are opaque
    payload here; this package stores them but never computes grades.

Key Classes:
    - Attempt: The attempt record
    - Violation: A proctoring event (tab blur, visibility change, lockdown)
    - ResumePoint: Where an interrupted attempt should resume

Used By:
    - core.models.snapshot.StoreSnapshot
    - repository.attempts.AttemptRepository
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping, Optional, Tuple, Union

from ..utils.serialization import (
    EMPTY,
    UnparsedItems,
    collect_extra,
    frozen_mapping,
    merge_extra,
    merge_unparsed,
    parse_enum,
    require_id,
    thaw,
)


class AttemptStatus(str, Enum):
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    ABANDONED = "abandoned"
    SUBMITTED = "submitted"

    def __str__(self) -> str:
        return self.value


class ViolationType(str, Enum):
    BLUR = "blur"
    VISIBILITY = "visibility"
    LOCKDOWN = "lockdown_violation"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class Violation:
    at: str
    type: Union[ViolationType, str]
    details: Optional[str] = None
    extra: Mapping[str, Any] = field(default_factory=lambda: EMPTY)

    _KNOWN = ("at", "type", "details")

    def to_dict(self) -> dict:
        d: dict[str, Any] = {"at": self.at, "type": str(self.type)}
        if self.details is not None:
            d["details"] = self.details
        return merge_extra(d, self.extra)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Violation:
        return cls(
            at=str(data.get("at", "")),
            type=parse_enum(ViolationType, data["type"]),
            details=data.get("details"),
            extra=collect_extra(data, cls._KNOWN),
        )


@dataclass(frozen=True)
class ResumePoint:
    section_index: int
    question_index: int
    remaining_seconds: int
    saved_at: str

    def to_dict(self) -> dict:
        return {
            "sectionIndex": self.section_index,
            "questionIndex": self.question_index,
            "remainingSeconds": self.remaining_seconds,
            "savedAt": self.saved_at,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> ResumePoint:
        return cls(
            section_index=int(data["sectionIndex"]),
            question_index=int(data["questionIndex"]),
            remaining_seconds=int(data["remainingSeconds"]),
            saved_at=str(data.get("savedAt", "")),
        )


@dataclass(frozen=True)
class Attempt:
    """
    One candidate's attempt at a Test version.

    Attributes:
        id: Globally unique id
        test_id: Owning Test id
        version_id: Version being taken
        started_at: ISO timestamp
        status: Lifecycle state
        answers: questionId -> response
        audio_answers: questionId -> recording reference
        violations: Proctoring events in the order recorded
        resume: Resume point for an interrupted attempt
        review_status: "pending" / "completed" once submitted
        submitted_at: ISO timestamp of submission
        auto_total / max_total / human_total / final_total: Opaque score fields
        extra: candidate, preflight, speakingReviews, rubric, layout and any
            other wire fields
    """

    id: str
    test_id: str
    version_id: str
    started_at: str
    status: Union[AttemptStatus, str] = AttemptStatus.IN_PROGRESS
    answers: Mapping[str, Any] = field(default_factory=lambda: EMPTY)
    audio_answers: Mapping[str, Any] = field(default_factory=lambda: EMPTY)
    violations: Tuple[Violation, ...] = ()
    resume: Optional[ResumePoint] = None
    review_status: Optional[str] = None
    submitted_at: Optional[str] = None
    auto_total: Optional[float] = None
    max_total: Optional[float] = None
    human_total: Optional[float] = None
    final_total: Optional[float] = None
    extra: Mapping[str, Any] = field(default_factory=lambda: EMPTY)
    unparsed: Mapping[str, Tuple[Any, ...]] = field(default_factory=lambda: EMPTY)

    _KNOWN = (
        "id", "testId", "versionId", "startedAt", "status", "answers",
        "audioAnswers", "violations", "resume", "reviewStatus", "submittedAt",
        "autoTotal", "maxTotal", "humanTotal", "finalTotal",
    )
    _OPTIONAL = (
        ("reviewStatus", "review_status"),
        ("submittedAt", "submitted_at"),
        ("autoTotal", "auto_total"),
        ("maxTotal", "max_total"),
        ("humanTotal", "human_total"),
        ("finalTotal", "final_total"),
    )

    def to_dict(self) -> dict:
        d: dict[str, Any] = {
            "id": self.id,
            "testId": self.test_id,
            "versionId": self.version_id,
            "startedAt": self.started_at,
            "status": str(self.status),
            "answers": thaw(self.answers),
            "audioAnswers": thaw(self.audio_answers),
            "violations": [v.to_dict() for v in self.violations],
        }
        if self.resume is not None:
            d["resume"] = self.resume.to_dict()
        for wire, attr in self._OPTIONAL:
            value = getattr(self, attr)
            if value is not None:
                d[wire] = value
        return merge_extra(merge_unparsed(d, self.unparsed), self.extra)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Attempt:
        resume = data.get("resume")
        unparsed = UnparsedItems()
        return cls(
            id=require_id(data, "Attempt"),
            test_id=str(data.get("testId", "")),
            version_id=str(data.get("versionId", "")),
            started_at=str(data.get("startedAt", "")),
            status=parse_enum(AttemptStatus, data.get("status", AttemptStatus.IN_PROGRESS.value)),
            answers=frozen_mapping(data.get("answers")),
            audio_answers=frozen_mapping(data.get("audioAnswers")),
            violations=unparsed.parse(data, "violations", Violation.from_dict),
            resume=ResumePoint.from_dict(resume) if isinstance(resume, Mapping) else None,
            extra=collect_extra(data, cls._KNOWN),
            unparsed=unparsed.frozen(),
            **{attr: data.get(wire) for wire, attr in cls._OPTIONAL},
        )
