"""
Module: core.models.exam

Purpose:
    The Test aggregate: an immutable tree Test → Version → Section →
    Question, plus the Target and Assignment leaves hanging off it.
    The aggregate is always updated as one unit through the path lens
    (core.utils.lens); nothing in this module mutates.

Key Classes:
    - Test, Version, Section, Question: Aggregate nodes
    - Target, Assignment: Deployment metadata
    - TestStatus, SectionType, QuestionType, System: Wire enums

Dependencies:
    - dataclasses (std)
    - core.utils.serialization

Used By:
    - core.models.snapshot.StoreSnapshot
    - repository.tests.TestRepository
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping, Optional, Tuple, Union

from ..utils.serialization import (
    EMPTY,
    UnparsedItems,
    collect_extra,
    freeze,
    merge_extra,
    merge_unparsed,
    optional_mapping,
    parse_enum,
    parse_number,
    require_id,
    string_tuple,
    thaw,
)

Number = Union[int, float]


class TestStatus(str, Enum):
    """Publication state of a Test."""
    DRAFT = "Draft"
    PUBLISHED = "Published"

    def __str__(self) -> str:
        return self.value


class System(str, Enum):
    """Curriculum system a version or assignment targets."""
    KR = "KR"
    US = "US"
    UK = "UK"

    def __str__(self) -> str:
        return self.value


class SectionType(str, Enum):
    LISTENING = "Listening"
    READING = "Reading"
    SPEAKING = "Speaking"
    WRITING = "Writing"
    INSTRUCTION = "Instruction"
    PASSAGE = "Passage"
    CUSTOM = "Custom"

    def __str__(self) -> str:
        return self.value


class QuestionType(str, Enum):
    MCQ = "MCQ"
    SHORT = "Short"
    SPEAKING = "Speaking"
    WRITING = "Writing"
    INSTRUCTION = "Instruction"
    PASSAGE = "Passage"

    def __str__(self) -> str:
        return self.value


# ─────────────────────────────────────────────────────────────────────────────
# Leaves
# ─────────────────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class Target:
    """A curriculum system plus the grades within it, e.g. KR / ["중1"]."""

    system: Union[System, str]
    grades: Tuple[str, ...] = ()
    extra: Mapping[str, Any] = field(default_factory=lambda: EMPTY)

    _KNOWN = ("system", "grades")

    def to_dict(self) -> dict:
        return merge_extra({"system": str(self.system), "grades": list(self.grades)}, self.extra)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Target:
        return cls(
            system=parse_enum(System, data["system"]),
            grades=string_tuple(data.get("grades")),
            extra=collect_extra(data, cls._KNOWN),
        )


@dataclass(frozen=True)
class Assignment:
    """A scheduled availability window of a Test for one system's grades."""

    id: str
    system: Union[System, str]
    grades: Tuple[str, ...]
    start_at: str
    end_at: str
    created_at: str
    extra: Mapping[str, Any] = field(default_factory=lambda: EMPTY)

    _KNOWN = ("id", "system", "grades", "startAt", "endAt", "createdAt")

    def to_dict(self) -> dict:
        d = {
            "id": self.id,
            "system": str(self.system),
            "grades": list(self.grades),
            "startAt": self.start_at,
            "endAt": self.end_at,
            "createdAt": self.created_at,
        }
        return merge_extra(d, self.extra)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Assignment:
        return cls(
            id=require_id(data, "Assignment"),
            system=parse_enum(System, data["system"]),
            grades=string_tuple(data.get("grades")),
            start_at=str(data.get("startAt", "")),
            end_at=str(data.get("endAt", "")),
            created_at=str(data.get("createdAt", "")),
            extra=collect_extra(data, cls._KNOWN),
        )


@dataclass(frozen=True)
class Question:
    """
    A single question inside a Section.

    Type-specific fields (writingSettings, passageId, passageContent,
    isInstructionOnly, ...) are carried in ``extra`` under their wire names.

    Attributes:
        id: Globally unique id
        type: Question type (an unknown wire value is kept as a plain str)
        points: Score weight (opaque to this package)
        created_at: ISO timestamp
        prompt: Question text
        choices: MCQ options
        answer: Answer key (index, string or list of strings)
        extra: Unknown or type-specific wire fields
    """

    id: str
    type: Union[QuestionType, str]
    points: Number
    created_at: str
    prompt: Optional[str] = None
    choices: Optional[Tuple[str, ...]] = None
    answer: Any = None
    extra: Mapping[str, Any] = field(default_factory=lambda: EMPTY)

    _KNOWN = ("id", "type", "prompt", "choices", "answer", "points", "createdAt")

    def to_dict(self) -> dict:
        d: dict[str, Any] = {"id": self.id, "type": str(self.type)}
        if self.prompt is not None:
            d["prompt"] = self.prompt
        if self.choices is not None:
            d["choices"] = list(self.choices)
        if self.answer is not None:
            d["answer"] = thaw(self.answer)
        d["points"] = self.points
        d["createdAt"] = self.created_at
        return merge_extra(d, self.extra)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Question:
        choices = data.get("choices")
        return cls(
            id=require_id(data, "Question"),
            type=parse_enum(QuestionType, data["type"]),
            points=parse_number(data.get("points", 0)),
            created_at=str(data.get("createdAt", "")),
            prompt=data.get("prompt"),
            choices=string_tuple(choices) if isinstance(choices, list) else None,
            answer=freeze(data.get("answer")),
            extra=collect_extra(data, cls._KNOWN),
        )


# ─────────────────────────────────────────────────────────────────────────────
# Branches
# ─────────────────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class Section:
    """A timed block of questions within a Version."""

    id: str
    label: str
    type: Union[SectionType, str]
    time_limit: Number
    created_at: str
    questions: Tuple[Question, ...] = ()
    settings: Optional[Mapping[str, Any]] = None
    extra: Mapping[str, Any] = field(default_factory=lambda: EMPTY)
    # wire key -> raw children that did not parse, written back on save
    unparsed: Mapping[str, Tuple[Any, ...]] = field(default_factory=lambda: EMPTY)

    _KNOWN = ("id", "label", "type", "timeLimit", "settings", "questions", "createdAt")

    @property
    def total_points(self) -> Number:
        return sum(q.points for q in self.questions)

    def to_dict(self) -> dict:
        d: dict[str, Any] = {
            "id": self.id,
            "label": self.label,
            "type": str(self.type),
            "timeLimit": self.time_limit,
        }
        if self.settings is not None:
            d["settings"] = thaw(self.settings)
        d["questions"] = [q.to_dict() for q in self.questions]
        d["createdAt"] = self.created_at
        return merge_extra(merge_unparsed(d, self.unparsed), self.extra)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Section:
        unparsed = UnparsedItems()
        return cls(
            id=require_id(data, "Section"),
            label=str(data.get("label", "")),
            type=parse_enum(SectionType, data["type"]),
            time_limit=parse_number(data.get("timeLimit", 0)),
            created_at=str(data.get("createdAt", "")),
            questions=unparsed.parse(data, "questions", Question.from_dict),
            settings=optional_mapping(data.get("settings")),
            extra=collect_extra(data, cls._KNOWN),
            unparsed=unparsed.frozen(),
        )


@dataclass(frozen=True)
class Version:
    """One deliverable variant of a Test, aimed at a set of targets."""

    id: str
    created_at: str
    targets: Tuple[Target, ...] = ()
    sections: Tuple[Section, ...] = ()
    exam_options: Optional[Mapping[str, Any]] = None
    extra: Mapping[str, Any] = field(default_factory=lambda: EMPTY)
    unparsed: Mapping[str, Tuple[Any, ...]] = field(default_factory=lambda: EMPTY)

    _KNOWN = ("id", "targets", "sections", "examOptions", "createdAt")

    def to_dict(self) -> dict:
        d: dict[str, Any] = {
            "id": self.id,
            "targets": [t.to_dict() for t in self.targets],
            "sections": [s.to_dict() for s in self.sections],
        }
        if self.exam_options is not None:
            d["examOptions"] = thaw(self.exam_options)
        d["createdAt"] = self.created_at
        return merge_extra(merge_unparsed(d, self.unparsed), self.extra)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Version:
        unparsed = UnparsedItems()
        return cls(
            id=require_id(data, "Version"),
            created_at=str(data.get("createdAt", "")),
            targets=unparsed.parse(data, "targets", Target.from_dict),
            sections=unparsed.parse(data, "sections", Section.from_dict),
            exam_options=optional_mapping(data.get("examOptions")),
            extra=collect_extra(data, cls._KNOWN),
            unparsed=unparsed.frozen(),
        )


@dataclass(frozen=True)
class Test:
    """
    Root of the exam aggregate.

    Invariants:
        - Version, Section and Question ids are unique across the store
        - A cloned Test starts as DRAFT with no assignments
        - Children that fail to parse stay in ``unparsed`` (at every level)
          and are written back after the parsed ones

    Example:
        >>> t = Test(id="t1", name="Quiz1", status=TestStatus.DRAFT,
        ...          created_at="2026-01-01T00:00:00.000Z")
        >>> t.question_count
        0
    """

    id: str
    name: str
    status: Union[TestStatus, str]
    created_at: str
    description: Optional[str] = None
    versions: Tuple[Version, ...] = ()
    assignments: Tuple[Assignment, ...] = ()
    extra: Mapping[str, Any] = field(default_factory=lambda: EMPTY)
    unparsed: Mapping[str, Tuple[Any, ...]] = field(default_factory=lambda: EMPTY)

    _KNOWN = ("id", "name", "description", "status", "versions", "assignments", "createdAt")

    @property
    def section_count(self) -> int:
        return sum(len(v.sections) for v in self.versions)

    @property
    def question_count(self) -> int:
        return sum(len(s.questions) for v in self.versions for s in v.sections)

    def to_dict(self) -> dict:
        d: dict[str, Any] = {"id": self.id, "name": self.name}
        if self.description is not None:
            d["description"] = self.description
        d["status"] = str(self.status)
        d["versions"] = [v.to_dict() for v in self.versions]
        if self.assignments:
            d["assignments"] = [a.to_dict() for a in self.assignments]
        d["createdAt"] = self.created_at
        return merge_extra(merge_unparsed(d, self.unparsed), self.extra)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Test:
        unparsed = UnparsedItems()
        return cls(
            id=require_id(data, "Test"),
            name=str(data.get("name", "")),
            status=parse_enum(TestStatus, data.get("status", TestStatus.DRAFT.value)),
            created_at=str(data.get("createdAt", "")),
            description=data.get("description"),
            versions=unparsed.parse(data, "versions", Version.from_dict),
            assignments=unparsed.parse(data, "assignments", Assignment.from_dict),
            extra=collect_extra(data, cls._KNOWN),
            unparsed=unparsed.frozen(),
        )
