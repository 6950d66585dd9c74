"""Qt bridge for Store change notifications.

Widgets connect to ``StoreSignals.changed`` instead of subscribing to the
Store directly, so notifications raised on timer threads are delivered on
the GUI thread through Qt's queued connections.
"""
from __future__ import annotations

from typing import Optional

from PySide6.QtCore import QObject, Signal

from ..storage.store import Store


class StoreSignals(QObject):
    """Re-emits every Store mutation as a Qt signal.

    Usage:
        signals = StoreSignals(core.store)
        signals.changed.connect(self._refresh)
        ...
        signals.detach()
    """

    # Emitted after every successful Store mutation
    changed = Signal()

    def __init__(self, store: Store, parent: Optional[QObject] = None) -> None:
        super().__init__(parent)
        self._unsubscribe = store.subscribe(self.changed.emit)

    def detach(self) -> None:
        """Stop forwarding notifications. Safe to call twice."""
        self._unsubscribe()
