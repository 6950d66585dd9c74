"""Reusable question bank items."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping, Optional, Tuple, Union

from ..utils.serialization import (
    EMPTY,
    collect_extra,
    freeze,
    merge_extra,
    parse_enum,
    parse_number,
    require_id,
    string_tuple,
    thaw,
)
from .exam import Number, Question, QuestionType


class Difficulty(str, Enum):
    EASY = "Easy"
    MEDIUM = "Medium"
    HARD = "Hard"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class QuestionBankItem:
    """
    A question kept outside any Test, tagged for search.

    Copying an item into a Section always creates a fresh Question id
    (see ``as_question``), so bank items and section questions never share
    ids.
    """

    id: str
    type: Union[QuestionType, str]
    points: Number
    created_at: str
    prompt: Optional[str] = None
    choices: Optional[Tuple[str, ...]] = None
    answer: Any = None
    tags: Tuple[str, ...] = ()
    difficulty: Union[Difficulty, str] = Difficulty.MEDIUM
    category: Optional[str] = None
    extra: Mapping[str, Any] = field(default_factory=lambda: EMPTY)

    _KNOWN = (
        "id", "type", "prompt", "choices", "answer", "points", "createdAt",
        "tags", "difficulty", "category",
    )

    def as_question(self, question_id: str, created_at: str) -> Question:
        """Copy the question fields into a new section Question."""
        return Question(
            id=question_id,
            type=self.type,
            points=self.points,
            created_at=created_at,
            prompt=self.prompt,
            choices=self.choices,
            answer=self.answer,
        )

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
        d["tags"] = list(self.tags)
        d["difficulty"] = str(self.difficulty)
        if self.category is not None:
            d["category"] = self.category
        return merge_extra(d, self.extra)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> QuestionBankItem:
        choices = data.get("choices")
        return cls(
            id=require_id(data, "QuestionBankItem"),
            type=parse_enum(QuestionType, data["type"]),
            points=parse_number(data.get("points", 0)),
            created_at=str(data.get("createdAt", "")),
            prompt=data.get("prompt"),
            choices=string_tuple(choices) if isinstance(choices, list) else None,
            answer=freeze(data.get("answer")),
            tags=string_tuple(data.get("tags")),
            difficulty=parse_enum(Difficulty, data.get("difficulty", Difficulty.MEDIUM.value)),
            category=data.get("category"),
            extra=collect_extra(data, cls._KNOWN),
        )
