"""Question bank CRUD plus JSON export/import."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from numbers import Number
from typing import Any, List, Mapping, Optional, Sequence, Union

from ..core.models import FORMAT_VERSION, Collection, Difficulty, QuestionBankItem, QuestionType
from ..core.schemas import ValidationError, validate_question_bank_document
from ..core.utils.serialization import freeze, string_tuple
from .base import Repository, apply_changes

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BankImportResult:
    success: bool
    message: str
    imported: int = 0


class QuestionBankRepository(Repository):
    def list_items(self) -> List[QuestionBankItem]:
        return self.store.get_question_bank()

    def get_item(self, item_id: str) -> Optional[QuestionBankItem]:
        return next((i for i in self.store.get_question_bank() if i.id == item_id), None)

    def add_item(
        self,
        type: Union[QuestionType, str],
        points: Union[int, float],
        prompt: Optional[str] = None,
        choices: Optional[Sequence[str]] = None,
        answer: Any = None,
        tags: Sequence[str] = (),
        difficulty: Union[Difficulty, str] = Difficulty.MEDIUM,
        category: Optional[str] = None,
    ) -> QuestionBankItem:
        item = QuestionBankItem(
            id=self.new_id(),
            type=QuestionType(type),
            points=points,
            created_at=self.now(),
            prompt=prompt,
            choices=string_tuple(choices) if choices is not None else None,
            answer=freeze(answer),
            tags=string_tuple(tags),
            difficulty=Difficulty(difficulty),
            category=category,
        )
        self.store.add_item(Collection.QUESTION_BANK, item)
        return item

    def update_item(self, item_id: str, **changes: Any) -> bool:
        """
        Update item attributes. id and created_at cannot change.

        Raises:
            ValueError: If a change names a protected or unknown attribute
        """
        coerce = {
            "type": QuestionType,
            "difficulty": Difficulty,
            "choices": string_tuple,
            "tags": string_tuple,
            "answer": freeze,
        }
        return self.store.update_item(
            Collection.QUESTION_BANK, item_id, lambda i: apply_changes(i, changes, coerce)
        )

    def delete_item(self, item_id: str) -> bool:
        return self.store.remove_item(Collection.QUESTION_BANK, item_id)

    def export_question_bank(self) -> str:
        document = {
            "version": FORMAT_VERSION,
            "timestamp": self.now(),
            "questions": [i.to_dict() for i in self.store.get_question_bank()],
        }
        return json.dumps(document, indent=2, ensure_ascii=False)

    def import_question_bank(self, json_data: str) -> BankImportResult:
        """
        Append questions from an export document.

        Every imported question gets a new id and timestamp, so importing
        the same file twice yields duplicates by content, never by id.
        Questions without a type, a prompt or numeric points are skipped.
        All accepted questions are added in a single mutation.
        """
        try:
            document = json.loads(json_data)
            validate_question_bank_document(document)
        except ValueError as e:
            logger.warning(f"Question bank import failed, not valid JSON: {e}")
            return BankImportResult(False, "Import failed: the file is not valid JSON.")
        except ValidationError as e:
            logger.warning(f"Question bank import rejected: {e}")
            return BankImportResult(False, "Invalid data format: questions must be an array.")

        created_at = self.now()
        items = []
        for index, raw in enumerate(document["questions"]):
            item = self._parse_import(raw, created_at)
            if item is None:
                logger.debug(f"Skipping question {index}: missing type, prompt or points")
                continue
            items.append(item)

        if items:
            self.store.mutate(
                lambda s: s.with_collection(Collection.QUESTION_BANK, s.question_bank + tuple(items))
            )
        logger.info(f"Imported {len(items)} question bank item(s)")
        return BankImportResult(True, f"Imported {len(items)} question(s).", len(items))

    def _parse_import(self, raw: Any, created_at: str) -> Optional[QuestionBankItem]:
        if not isinstance(raw, Mapping):
            return None
        points = raw.get("points")
        if not raw.get("type") or not raw.get("prompt"):
            return None
        if isinstance(points, bool) or not isinstance(points, Number):
            return None
        data = dict(raw)
        data.update(
            id=self.new_id(),
            createdAt=created_at,
            tags=raw.get("tags") or [],
            difficulty=raw.get("difficulty") or Difficulty.MEDIUM.value,
        )
        try:
            return QuestionBankItem.from_dict(data)
        except (KeyError, TypeError, ValueError) as e:
            logger.debug(f"Skipping malformed question: {e}")
            return None
