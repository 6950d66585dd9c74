"""
Module: repository.tests

Purpose:
    Path-addressed CRUD over the Test aggregate:

        Test
        ├── versions[]  → sections[] → questions[]
        └── assignments[]

    Every nested operation names its target by an explicit id path and
    goes through the path lens, so only the nodes along that path are
    rebuilt and every sibling keeps its identity.

Key Classes:
    - TestRepository
    - AvailableAssignment: Result row of get_available_assignments()

Contract:
    - A missing id at any depth returns False / None, never raises
    - Each successful operation persists once and notifies once
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from typing import Any, List, Mapping, Optional, Sequence, Tuple, Union

from ..core.models import (
    Assignment,
    Collection,
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
from ..core.utils.lens import get_at_path, remove_by_id, set_at_path, update_children
from ..core.utils.serialization import EMPTY, freeze, optional_mapping, string_tuple
from ..core.utils.timestamps import parse_iso
from .base import Repository, apply_changes

logger = logging.getLogger(__name__)

TargetLike = Union[Target, Mapping[str, Any]]

# name -> (label, type, time limit in minutes) per section
TEMPLATES = {
    "English Diagnostic": (
        ("Listening", SectionType.LISTENING, 20),
        ("Reading", SectionType.READING, 25),
        ("Speaking (Interview)", SectionType.SPEAKING, 10),
    ),
}

COPY_SUFFIX = " (copy)"

# window of get_recently_used_question_prompts()
RECENT_USE_DAYS = 90


@dataclass(frozen=True)
class AvailableAssignment:
    test: Test
    assignment: Assignment
    version: Optional[Version] = None


def _version(version_id: str):
    return (("versions", version_id),)


def _section(version_id: str, section_id: str):
    return (("versions", version_id), ("sections", section_id))


def _to_target(target: TargetLike) -> Target:
    if isinstance(target, Target):
        return target
    return Target.from_dict(target)


class TestRepository(Repository):
    """CRUD over tests, versions, sections, questions and assignments."""

    # ─────────────────────────────────────────────────────────────────────
    # Tests
    # ─────────────────────────────────────────────────────────────────────

    def list_tests(self) -> List[Test]:
        """All tests, newest first."""
        return sorted(self.store.get_tests(), key=lambda t: t.created_at, reverse=True)

    def get_test(self, test_id: str) -> Optional[Test]:
        return next((t for t in self.store.get_tests() if t.id == test_id), None)

    def create_test(self, name: str, description: Optional[str] = None) -> Test:
        test = Test(
            id=self.new_id(),
            name=name,
            description=description,
            status=TestStatus.DRAFT,
            created_at=self.now(),
        )
        self._prepend(test)
        return test

    def _prepend(self, test: Test) -> None:
        self.store.mutate(lambda s: s.with_collection(Collection.TESTS, (test,) + s.tests))

    def update_test(self, test_id: str, name: str, description: Optional[str] = None) -> bool:
        return self._update(test_id, lambda t: replace(t, name=name, description=description))

    def delete_test(self, test_id: str) -> bool:
        return self.store.remove_item(Collection.TESTS, test_id)

    def update_test_status(self, test_id: str, status: Union[TestStatus, str]) -> bool:
        status = TestStatus(status)
        return self._update(test_id, lambda t: replace(t, status=status))

    def _update(self, test_id: str, update) -> bool:
        return self.store.update_item(Collection.TESTS, test_id, update)

    # ─────────────────────────────────────────────────────────────────────
    # Versions
    # ─────────────────────────────────────────────────────────────────────

    def add_version(self, test_id: str, targets: Sequence[TargetLike]) -> bool:
        """Prepend a new Version with no sections. False if the test is unknown."""
        version = Version(
            id=self.new_id(),
            created_at=self.now(),
            targets=tuple(_to_target(t) for t in targets),
        )
        return self._update(test_id, lambda t: replace(t, versions=(version,) + t.versions))

    def update_exam_options(self, test_id: str, version_id: str, options: Optional[Mapping[str, Any]]) -> bool:
        frozen = optional_mapping(options)
        return self._update(
            test_id,
            lambda t: set_at_path(t, _version(version_id), lambda v: replace(v, exam_options=frozen)),
        )

    def apply_template(self, test_id: str, version_id: str, template_name: str) -> bool:
        """
        Replace a version's sections with a named template's empty sections.

        Returns False for an unknown template (the version is left as is).
        """
        template = TEMPLATES.get(template_name)
        if template is None:
            logger.warning(f"Unknown section template: {template_name!r}")
            return False
        created_at = self.now()
        sections = tuple(
            Section(id=self.new_id(), label=label, type=kind, time_limit=limit, created_at=created_at)
            for label, kind, limit in template
        )
        return self._update(
            test_id,
            lambda t: set_at_path(t, _version(version_id), lambda v: replace(v, sections=sections)),
        )

    # ─────────────────────────────────────────────────────────────────────
    # Sections
    # ─────────────────────────────────────────────────────────────────────

    def add_section(
        self,
        test_id: str,
        version_id: str,
        label: str,
        type: Union[SectionType, str],
        time_limit: Union[int, float],
        settings: Optional[Mapping[str, Any]] = None,
    ) -> bool:
        section = Section(
            id=self.new_id(),
            label=label,
            type=SectionType(type),
            time_limit=time_limit,
            created_at=self.now(),
            settings=optional_mapping(settings),
        )
        return self._update(
            test_id,
            lambda t: update_children(t, _version(version_id), "sections", lambda ss: ss + (section,)),
        )

    def update_section(self, test_id: str, version_id: str, section_id: str, **changes: Any) -> bool:
        """
        Update section attributes (label, type, time_limit, settings, ...).

        Raises:
            ValueError: If a change names the id, created_at or an unknown attribute
        """
        coerce = {"type": SectionType, "settings": freeze}
        return self._update(
            test_id,
            lambda t: set_at_path(
                t, _section(version_id, section_id), lambda s: apply_changes(s, changes, coerce)
            ),
        )

    def delete_section(self, test_id: str, version_id: str, section_id: str) -> bool:
        return self._update(
            test_id,
            lambda t: update_children(t, _version(version_id), "sections", lambda ss: remove_by_id(ss, section_id)),
        )

    # ─────────────────────────────────────────────────────────────────────
    # Questions
    # ─────────────────────────────────────────────────────────────────────

    def add_question(
        self,
        test_id: str,
        version_id: str,
        section_id: str,
        type: Union[QuestionType, str],
        points: Union[int, float],
        prompt: Optional[str] = None,
        choices: Optional[Sequence[str]] = None,
        answer: Any = None,
        extra: Optional[Mapping[str, Any]] = None,
    ) -> bool:
        """
        Append a question to a section.

        ``extra`` carries type-specific wire fields such as writingSettings,
        passageId, passageContent or isInstructionOnly.
        """
        question = Question(
            id=self.new_id(),
            type=QuestionType(type),
            points=points,
            created_at=self.now(),
            prompt=prompt,
            choices=string_tuple(choices) if choices is not None else None,
            answer=freeze(answer),
            extra=freeze(extra) if extra else EMPTY,
        )
        return self._update(
            test_id,
            lambda t: update_children(
                t, _section(version_id, section_id), "questions", lambda qs: qs + (question,)
            ),
        )

    def update_question(
        self, test_id: str, version_id: str, section_id: str, question_id: str, **changes: Any
    ) -> bool:
        """
        Update question attributes (type, prompt, choices, answer, points, extra).

        Raises:
            ValueError: If a change names the id, created_at or an unknown attribute
        """
        coerce = {"type": QuestionType, "choices": string_tuple, "answer": freeze}
        path = _section(version_id, section_id) + (("questions", question_id),)
        return self._update(test_id, lambda t: set_at_path(t, path, lambda q: apply_changes(q, changes, coerce)))

    def delete_question(self, test_id: str, version_id: str, section_id: str, question_id: str) -> bool:
        return self._update(
            test_id,
            lambda t: update_children(
                t, _section(version_id, section_id), "questions", lambda qs: remove_by_id(qs, question_id)
            ),
        )

    def reorder_questions(
        self, test_id: str, version_id: str, section_id: str, ordered_ids: Sequence[str]
    ) -> bool:
        """
        Reorder a section's questions.

        Ids not in the section are dropped first (a stale id from a question
        deleted meanwhile is harmless). What remains must be a permutation of
        the current question ids (no duplicates, none missing); anything else
        leaves the order unchanged and returns False.
        """
        ordered_ids = list(ordered_ids)

        def _reorder(questions: Tuple[Question, ...]) -> Optional[Tuple[Question, ...]]:
            by_id = {q.id: q for q in questions}
            filtered = [qid for qid in ordered_ids if qid in by_id]
            if len(filtered) != len(questions) or len(set(filtered)) != len(filtered):
                logger.debug(f"Rejected reorder of section {section_id}: not a permutation")
                return None
            return tuple(by_id[qid] for qid in filtered)

        return self._update(
            test_id,
            lambda t: update_children(t, _section(version_id, section_id), "questions", _reorder),
        )

    def add_questions_from_bank(
        self, test_id: str, version_id: str, section_id: str, item_ids: Sequence[str]
    ) -> bool:
        """
        Copy question bank items into a section, each with a fresh question id.

        Items are appended in bank order. False if the path is missing or no
        requested item exists.
        """
        wanted = set(item_ids)
        created_at = self.now()
        copies = tuple(
            item.as_question(self.new_id(), created_at)
            for item in self.store.get_question_bank()
            if item.id in wanted
        )
        if not copies:
            return False
        return self._update(
            test_id,
            lambda t: update_children(
                t, _section(version_id, section_id), "questions", lambda qs: qs + copies
            ),
        )

    def add_generated_speaking_questions(
        self,
        test_id: str,
        version_id: str,
        section_id: str,
        questions: Sequence[Mapping[str, Any]],
    ) -> bool:
        """
        Append a batch of generated questions to a section in one mutation.

        Each entry carries type (default Speaking), prompt, choices, answer
        and points; ids and timestamps are assigned here. False if the path
        is missing or ``questions`` is empty.
        """
        created_at = self.now()
        generated = tuple(
            Question(
                id=self.new_id(),
                type=QuestionType(q.get("type", QuestionType.SPEAKING)),
                points=q.get("points", 1),
                created_at=created_at,
                prompt=q.get("prompt"),
                choices=string_tuple(q["choices"]) if q.get("choices") is not None else None,
                answer=freeze(q.get("answer")),
            )
            for q in questions
        )
        if not generated:
            return False
        return self._update(
            test_id,
            lambda t: update_children(
                t, _section(version_id, section_id), "questions", lambda qs: qs + generated
            ),
        )

    # ─────────────────────────────────────────────────────────────────────
    # Cloning
    # ─────────────────────────────────────────────────────────────────────

    def clone_test(self, test_id: str) -> Optional[Test]:
        """
        Deep-copy a test as an editable draft.

        Versions, sections and questions get fresh ids and timestamps; the
        copy is a Draft without assignments and its name gains " (copy)".
        Raw children that did not parse are not carried over.
        """
        original = self.get_test(test_id)
        if original is None:
            return None

        now = self.now()
        versions = tuple(
            replace(
                version,
                id=self.new_id(),
                created_at=now,
                sections=tuple(
                    replace(
                        section,
                        id=self.new_id(),
                        created_at=now,
                        questions=tuple(
                            replace(q, id=self.new_id(), created_at=now) for q in section.questions
                        ),
                        unparsed=EMPTY,
                    )
                    for section in version.sections
                ),
                unparsed=EMPTY,
            )
            for version in original.versions
        )
        clone = replace(
            original,
            id=self.new_id(),
            name=f"{original.name}{COPY_SUFFIX}",
            status=TestStatus.DRAFT,
            created_at=now,
            versions=versions,
            assignments=(),
            unparsed=EMPTY,
        )
        self._prepend(clone)
        return clone

    # ─────────────────────────────────────────────────────────────────────
    # Assignments
    # ─────────────────────────────────────────────────────────────────────

    def add_assignment(
        self,
        test_id: str,
        system: Union[System, str],
        grades: Sequence[str],
        start_at: str,
        end_at: str,
    ) -> bool:
        assignment = Assignment(
            id=self.new_id(),
            system=System(system),
            grades=string_tuple(grades),
            start_at=start_at,
            end_at=end_at,
            created_at=self.now(),
        )
        return self._update(test_id, lambda t: replace(t, assignments=t.assignments + (assignment,)))

    def update_assignment(self, test_id: str, assignment_id: str, **changes: Any) -> bool:
        """Update system, grades, start_at or end_at of an assignment."""
        coerce = {"system": System, "grades": string_tuple}
        return self._update(
            test_id,
            lambda t: set_at_path(
                t, (("assignments", assignment_id),), lambda a: apply_changes(a, changes, coerce)
            ),
        )

    def delete_assignment(self, test_id: str, assignment_id: str) -> bool:
        return self._update(
            test_id,
            lambda t: update_children(t, (), "assignments", lambda a: remove_by_id(a, assignment_id)),
        )

    def get_available_assignments(
        self,
        system: Union[System, str],
        grade: str,
        now: Optional[datetime] = None,
    ) -> List[AvailableAssignment]:
        """
        Published tests with an assignment open to ``system``/``grade`` now.

        The matching version is the first whose targets include the system.
        Results are sorted by test name.
        """
        system = System(system)
        moment = now or self.store.clock()
        results = []
        for test in self.store.get_tests():
            if test.status is not TestStatus.PUBLISHED:
                continue
            for assignment in test.assignments:
                if assignment.system is not system or grade not in assignment.grades:
                    continue
                start, end = parse_iso(assignment.start_at), parse_iso(assignment.end_at)
                if start is None or end is None or not start <= moment <= end:
                    continue
                version = next(
                    (v for v in test.versions if any(t.system is system for t in v.targets)),
                    None,
                )
                results.append(AvailableAssignment(test, assignment, version))
        return sorted(results, key=lambda r: r.test.name)

    def get_question(
        self, test_id: str, version_id: str, section_id: str, question_id: str
    ) -> Optional[Question]:
        test = self.get_test(test_id)
        if test is None:
            return None
        return get_at_path(test, _section(version_id, section_id) + (("questions", question_id),))

    def get_recently_used_question_prompts(self, days: int = RECENT_USE_DAYS) -> List[str]:
        """
        Speaking prompts from versions taken in the last ``days`` days.

        Each attempt started within the window is resolved to its test
        version; every Speaking question prompt there is collected once, in
        first-seen order. Attempts whose start time cannot be parsed count as
        recent.
        """
        cutoff = self.store.clock() - timedelta(days=days)
        tests = {t.id: t for t in self.store.get_tests()}
        prompts: List[str] = []
        for attempt in self.store.get_attempts():
            started = parse_iso(attempt.started_at)
            if started is not None and started < cutoff:
                continue
            test = tests.get(attempt.test_id)
            version = get_at_path(test, _version(attempt.version_id)) if test is not None else None
            if version is None:
                continue
            for section in version.sections:
                for question in section.questions:
                    if question.type is not QuestionType.SPEAKING or not question.prompt:
                        continue
                    if question.prompt not in prompts:
                        prompts.append(question.prompt)
        return prompts
