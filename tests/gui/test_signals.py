"""
Unit tests for the Qt bridge on Store notifications.
"""

import pytest

pytest.importorskip("PySide6")

from examdesk.gui import StoreSignals  # noqa: E402
from examdesk.repository.bank import QuestionBankRepository  # noqa: E402


class TestStoreSignals:
    def test_changed_when_store_mutates_then_emitted_once(self, store, ids):
        signals = StoreSignals(store)
        received = []
        signals.changed.connect(lambda: received.append(1))

        QuestionBankRepository(store, ids).add_item("MCQ", 1, prompt="Q")

        assert received == [1]

    def test_detach_when_called_then_no_more_emissions(self, store, ids):
        signals = StoreSignals(store)
        received = []
        signals.changed.connect(lambda: received.append(1))

        signals.detach()
        QuestionBankRepository(store, ids).add_item("MCQ", 1, prompt="Q")

        assert received == []
