"""
Core Models Package

Immutable data models for everything the Store holds.

All models are frozen dataclasses with ``to_dict()`` / ``from_dict()`` for
the camelCase wire form. Updates always build new instances (see
core.utils.lens), so a model handed out by the Store is safe to keep.

| Wire entity | Model |
|-------------|-------|
| tests[] | `Test` → `Version` → `Section` → `Question` |
| attempts[] | `Attempt` |
| questionBank[] | `QuestionBankItem` |
| scoringProfiles[] | `ScoringProfile` |
"""

from .exam import (
    Assignment,
    Question,
    QuestionType,
    Section,
    SectionType,
    System,
    Target,
    Test,
    TestStatus,
    Version,
)
from .attempt import Attempt, AttemptStatus, ResumePoint, Violation, ViolationType
from .bank import Difficulty, QuestionBankItem
from .scoring import (
    SEEDED_PROFILE_ID,
    MCQConfig,
    ScoringProfile,
    ShortAnswerConfig,
    SpeakingRubricItem,
    create_default_scoring_profile,
    normalize_default,
)
from .snapshot import FORMAT_VERSION, Collection, StoreSnapshot

__all__ = [
    "Assignment",
    "Question",
    "QuestionType",
    "Section",
    "SectionType",
    "System",
    "Target",
    "Test",
    "TestStatus",
    "Version",
    "Attempt",
    "AttemptStatus",
    "ResumePoint",
    "Violation",
    "ViolationType",
    "Difficulty",
    "QuestionBankItem",
    "SEEDED_PROFILE_ID",
    "MCQConfig",
    "ScoringProfile",
    "ShortAnswerConfig",
    "SpeakingRubricItem",
    "create_default_scoring_profile",
    "normalize_default",
    "FORMAT_VERSION",
    "Collection",
    "StoreSnapshot",
]
