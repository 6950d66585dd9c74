"""
Module: repository.attempts

Purpose:
    Attempt lifecycle: creation, answers, proctoring events, resume points,
    submission and review. Score fields are opaque; review sums the manual
    speaking scores only when the caller gives no total.

Key Classes:
    - AttemptRepository
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Any, List, Mapping, Optional, Sequence, Union

from ..core.models import (
    Attempt,
    AttemptStatus,
    Collection,
    ResumePoint,
    Violation,
    ViolationType,
)
from ..core.utils.serialization import EMPTY, freeze, thaw
from ..errors import AttemptNotFoundError
from .base import Repository, apply_changes, with_extra

logger = logging.getLogger(__name__)

REVIEW_PENDING = "pending"
REVIEW_COMPLETED = "completed"


class AttemptRepository(Repository):
    def list_attempts(self) -> List[Attempt]:
        """All attempts, most recently started first."""
        return sorted(self.store.get_attempts(), key=lambda a: a.started_at, reverse=True)

    def get_attempt(self, attempt_id: str) -> Optional[Attempt]:
        return next((a for a in self.store.get_attempts() if a.id == attempt_id), None)

    def create_attempt(
        self,
        test_id: str,
        version_id: str,
        layout: Optional[Mapping[str, Any]] = None,
    ) -> Attempt:
        """Start an in-progress attempt, optionally with a precomputed layout."""
        attempt = Attempt(
            id=self.new_id(),
            test_id=test_id,
            version_id=version_id,
            started_at=self.now(),
            status=AttemptStatus.IN_PROGRESS,
            extra=freeze({"layout": layout}) if layout is not None else EMPTY,
        )
        self.store.add_item(Collection.ATTEMPTS, attempt)
        return attempt

    def delete_attempt(self, attempt_id: str) -> bool:
        return self.store.remove_item(Collection.ATTEMPTS, attempt_id)

    def _update(self, attempt_id: str, update) -> bool:
        return self.store.update_item(Collection.ATTEMPTS, attempt_id, update)

    def update_candidate_info(self, attempt_id: str, candidate: Mapping[str, Any]) -> bool:
        return self._update(attempt_id, lambda a: with_extra(a, candidate=candidate))

    def update_attempt_status(self, attempt_id: str, status: Union[AttemptStatus, str]) -> bool:
        status = AttemptStatus(status)
        return self._update(attempt_id, lambda a: replace(a, status=status))

    def save_answer(self, attempt_id: str, question_id: str, response: Any) -> bool:
        return self._update(
            attempt_id,
            lambda a: replace(a, answers=freeze({**a.answers, question_id: response})),
        )

    def save_audio_answer(self, attempt_id: str, question_id: str, audio_ref: str) -> bool:
        return self._update(
            attempt_id,
            lambda a: replace(a, audio_answers=freeze({**a.audio_answers, question_id: audio_ref})),
        )

    def submit_attempt(self, attempt_id: str, auto_total: float, max_total: float) -> bool:
        """Mark submitted and pending review; the final total starts at the auto total."""
        submitted_at = self.now()
        return self._update(
            attempt_id,
            lambda a: replace(
                a,
                status=AttemptStatus.SUBMITTED,
                review_status=REVIEW_PENDING,
                submitted_at=submitted_at,
                auto_total=auto_total,
                max_total=max_total,
                final_total=auto_total,
            ),
        )

    def review_attempt(
        self,
        attempt_id: str,
        speaking_reviews: Sequence[Mapping[str, Any]],
        rubrics: Optional[Mapping[str, Any]] = None,
        human_total: Optional[float] = None,
    ) -> bool:
        """
        Record a human review.

        Args:
            attempt_id: Attempt to review
            speaking_reviews: Review documents, each with a ``manualScore``
            rubrics: Rubric scores per question (opaque)
            human_total: Explicit human total; defaults to the sum of manualScore

        Returns:
            False if the attempt is unknown
        """
        reviews = [thaw(r) for r in speaking_reviews]
        if human_total is None:
            human_total = sum(r.get("manualScore", 0) or 0 for r in reviews)

        def _review(a: Attempt) -> Attempt:
            reviewed = replace(
                a,
                review_status=REVIEW_COMPLETED,
                human_total=human_total,
                final_total=(a.auto_total or 0) + human_total,
            )
            if rubrics is None:
                return with_extra(reviewed, speakingReviews=reviews)
            return with_extra(reviewed, speakingReviews=reviews, rubric=rubrics)

        return self._update(attempt_id, _review)

    def get_submitted_attempts(self) -> List[Attempt]:
        """Submitted attempts, most recently submitted first."""
        submitted = [a for a in self.store.get_attempts() if a.status is AttemptStatus.SUBMITTED]
        return sorted(submitted, key=lambda a: a.submitted_at or "", reverse=True)

    def record_violation(
        self,
        attempt_id: str,
        type: Union[ViolationType, str],
        details: Optional[str] = None,
    ) -> bool:
        violation = Violation(at=self.now(), type=ViolationType(type), details=details)
        return self._update(attempt_id, lambda a: replace(a, violations=a.violations + (violation,)))

    def save_resume_progress(
        self,
        attempt_id: str,
        section_index: int,
        question_index: int,
        remaining_seconds: int,
    ) -> bool:
        resume = ResumePoint(
            section_index=section_index,
            question_index=question_index,
            remaining_seconds=remaining_seconds,
            saved_at=self.now(),
        )
        return self._update(attempt_id, lambda a: replace(a, resume=resume))

    def save_preflight_results(self, attempt_id: str, preflight: Mapping[str, Any]) -> bool:
        """Store device check results (mic, record, play, net, checkedAt)."""
        return self._update(attempt_id, lambda a: with_extra(a, preflight=preflight))

    def update_attempt_data(self, attempt_id: str, **changes: Any) -> Attempt:
        """
        Apply arbitrary attribute changes and return the updated attempt.

        Raises:
            AttemptNotFoundError: If the attempt does not exist, or vanished
                between the update and the read-back
            ValueError: If a change names a protected or unknown attribute
        """
        coerce = {"status": AttemptStatus, "answers": freeze, "audio_answers": freeze}
        if not self._update(attempt_id, lambda a: apply_changes(a, changes, coerce)):
            raise AttemptNotFoundError(attempt_id)
        updated = self.get_attempt(attempt_id)
        if updated is None:
            raise AttemptNotFoundError(attempt_id)
        return updated
