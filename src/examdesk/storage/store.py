"""
Module: storage.store

Purpose:
    The in-memory document store. Holds the current StoreSnapshot, hands
    out copies of its collections, applies mutations as whole-snapshot
    replacements, persists through StorePersistence and notifies
    subscribers.

Key Classes:
    - Store: Snapshot holder, mutation entry point and notification bus
    - ImportResult: Outcome of import_data()

Invariants:
    - Every successful mutation persists exactly once and notifies exactly once
    - A failed persist does not roll back the in-memory snapshot
    - Accessors return fresh lists; the models inside are immutable

Used By:
    - repository.*, backup.manager, migration.reconciler, app.DataCore
"""

from __future__ import annotations

import json
import logging
import threading
from dataclasses import dataclass
from typing import Any, Callable, Iterable, List, Optional

from ..core.models import (
    FORMAT_VERSION,
    Attempt,
    Collection,
    QuestionBankItem,
    ScoringProfile,
    StoreSnapshot,
    Test,
)
from ..core.schemas import ValidationError, validate_export_document
from ..core.utils.lens import find_index, remove_by_id
from ..core.utils.serialization import UnparsedItems
from ..core.utils.timestamps import to_iso
from .persistence import StorePersistence

logger = logging.getLogger(__name__)

Listener = Callable[[], None]
Mutation = Callable[[StoreSnapshot], Optional[StoreSnapshot]]


@dataclass(frozen=True)
class ImportResult:
    success: bool
    message: str


class Store:
    """
    Single in-memory snapshot backed by a durable medium.

    Mutations are serialized with a re-entrant lock so that the background
    autosave and backup timers never observe a half-replaced snapshot.
    Listeners run on the mutating thread after the lock is released.

    Example:
        >>> store = Store(StorePersistence(MemoryStorage()))
        >>> unsubscribe = store.subscribe(lambda: print("changed"))
        >>> store.add_item(Collection.QUESTION_BANK, item)
        changed
        True
    """

    def __init__(self, persistence: StorePersistence, snapshot: Optional[StoreSnapshot] = None):
        self.persistence = persistence
        self.clock = persistence.clock
        self._lock = threading.RLock()
        self._listeners: List[Listener] = []
        self._snapshot = snapshot if snapshot is not None else persistence.load()

    # ─────────────────────────────────────────────────────────────────────
    # Accessors
    # ─────────────────────────────────────────────────────────────────────

    @property
    def snapshot(self) -> StoreSnapshot:
        return self._snapshot

    def get_tests(self) -> List[Test]:
        return list(self._snapshot.tests)

    def get_attempts(self) -> List[Attempt]:
        return list(self._snapshot.attempts)

    def get_question_bank(self) -> List[QuestionBankItem]:
        return list(self._snapshot.question_bank)

    def get_scoring_profiles(self) -> List[ScoringProfile]:
        return list(self._snapshot.scoring_profiles)

    def get_default_scoring_profile(self) -> Optional[ScoringProfile]:
        return next((p for p in self._snapshot.scoring_profiles if p.is_default), None)

    def get_collection(self, collection: Collection) -> List[Any]:
        return list(self._snapshot.get(collection))

    # ─────────────────────────────────────────────────────────────────────
    # Subscribers
    # ─────────────────────────────────────────────────────────────────────

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """
        Register ``listener`` to be called after every mutation.

        Returns:
            A callable that removes the listener (safe to call twice)
        """
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def _notify(self) -> None:
        with self._lock:
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener()
            except Exception:
                logger.exception(f"Store listener {listener!r} failed")

    # ─────────────────────────────────────────────────────────────────────
    # Mutation
    # ─────────────────────────────────────────────────────────────────────

    def mutate(self, fn: Mutation) -> bool:
        """
        Apply ``fn`` to the current snapshot.

        ``fn`` returns the replacement snapshot, or None to leave the store
        untouched. On replacement the store persists once and notifies once.

        Returns:
            True if the snapshot was replaced
        """
        with self._lock:
            updated = fn(self._snapshot)
            if updated is None:
                return False
            self._snapshot = updated
            self.persistence.save(updated)
        self._notify()
        return True

    def add_item(self, collection: Collection, item: Any) -> bool:
        return self.mutate(lambda s: s.with_collection(collection, s.get(collection) + (item,)))

    def update_item(self, collection: Collection, item_id: str, update: Callable[[Any], Optional[Any]]) -> bool:
        """Replace one item through ``update``; False if the id is unknown or update returns None."""
        def _apply(s: StoreSnapshot) -> Optional[StoreSnapshot]:
            items = s.get(collection)
            index = find_index(items, item_id)
            if index is None:
                return None
            new_item = update(items[index])
            if new_item is None:
                return None
            return s.with_collection(collection, items[:index] + (new_item,) + items[index + 1:])

        return self.mutate(_apply)

    def remove_item(self, collection: Collection, item_id: str) -> bool:
        def _apply(s: StoreSnapshot) -> Optional[StoreSnapshot]:
            remaining = remove_by_id(s.get(collection), item_id)
            return None if remaining is None else s.with_collection(collection, remaining)

        return self.mutate(_apply)

    def set_collection(self, collection: Collection, items: Iterable[Any]) -> bool:
        items = tuple(items)
        return self.mutate(lambda s: s.with_collection(collection, items))

    def replace_snapshot(self, snapshot: StoreSnapshot) -> bool:
        """Swap in a whole snapshot (restore, recovery)."""
        return self.mutate(lambda _s: snapshot)

    # ─────────────────────────────────────────────────────────────────────
    # Lifecycle
    # ─────────────────────────────────────────────────────────────────────

    def save(self) -> bool:
        """Persist the current snapshot without notifying (autosave, teardown)."""
        with self._lock:
            return self.persistence.save(self._snapshot)

    def reload(self) -> None:
        """Re-read the snapshot from the durable medium and notify."""
        with self._lock:
            self._snapshot = self.persistence.load()
        self._notify()

    def clear_all(self) -> None:
        """
        Reset to defaults and remove the stored data keys.

        Backup entries, backup settings and the migration marker are kept.
        """
        with self._lock:
            self._snapshot = self.persistence.default_snapshot()
            self.persistence.clear()
        logger.info("Cleared all store data")
        self._notify()

    # ─────────────────────────────────────────────────────────────────────
    # Export / import
    # ─────────────────────────────────────────────────────────────────────

    def export_data(self) -> str:
        """Export tests and attempts as an indented JSON document."""
        payload = self._snapshot.to_payload()
        document = {
            "version": FORMAT_VERSION,
            "timestamp": to_iso(self.clock()),
            "data": {
                "tests": payload["tests"],
                "attempts": payload["attempts"],
            },
        }
        return json.dumps(document, indent=2, ensure_ascii=False)

    def import_data(self, json_data: str) -> ImportResult:
        """
        Replace tests and attempts from an export document.

        The question bank and scoring profiles are left untouched.
        """
        try:
            document = json.loads(json_data)
        except (TypeError, ValueError) as e:
            logger.warning(f"Import failed, not valid JSON: {e}")
            return ImportResult(False, "Import failed: the file is not valid JSON.")

        try:
            validate_export_document(document)
        except ValidationError as e:
            logger.warning(f"Import rejected: {e} (at {e.path or '<root>'})")
            return ImportResult(False, "Invalid data format: data.tests and data.attempts must be arrays.")

        data = document["data"]
        unparsed = UnparsedItems()
        tests = unparsed.parse(data, "tests", Test.from_dict)
        attempts = unparsed.parse(data, "attempts", Attempt.from_dict)
        kept = unparsed.frozen()

        def _import(snapshot: StoreSnapshot) -> StoreSnapshot:
            return (
                snapshot.with_collection(Collection.TESTS, tests)
                .with_collection(Collection.ATTEMPTS, attempts)
                .with_unparsed(Collection.TESTS, kept.get("tests", ()))
                .with_unparsed(Collection.ATTEMPTS, kept.get("attempts", ()))
            )

        self.mutate(_import)
        logger.info(f"Imported {len(tests)} tests and {len(attempts)} attempts")
        return ImportResult(True, f"Imported {len(tests)} tests and {len(attempts)} attempts.")

    def get_data_stats(self) -> dict[str, int]:
        """Counts across the store, including nested test structure."""
        snapshot = self._snapshot
        versions = [v for t in snapshot.tests for v in t.versions]
        sections = [s for v in versions for s in v.sections]
        return {
            "tests": len(snapshot.tests),
            "attempts": len(snapshot.attempts),
            "question_bank": len(snapshot.question_bank),
            "scoring_profiles": len(snapshot.scoring_profiles),
            "versions": len(versions),
            "sections": len(sections),
            "questions": sum(len(s.questions) for s in sections),
            "assignments": sum(len(t.assignments) for t in snapshot.tests),
        }
