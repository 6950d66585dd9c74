"""
Shared plumbing for the repositories.

Every repository works on one injected Store and takes its time and ids
from injectable sources so tests can pin them.
"""

from __future__ import annotations

from dataclasses import fields, replace
from typing import Any, Mapping, Optional

from ..core.utils.ids import IdFactory, new_id
from ..core.utils.serialization import EMPTY, freeze
from ..core.utils.timestamps import to_iso
from ..storage.store import Store

# Never changed by an update
PROTECTED_FIELDS = frozenset({"id", "created_at", "unparsed"})


class Repository:
    def __init__(self, store: Store, id_factory: IdFactory = new_id):
        self.store = store
        self.new_id = id_factory

    def now(self) -> str:
        return to_iso(self.store.clock())


def apply_changes(obj: Any, changes: Mapping[str, Any], coerce: Optional[Mapping[str, Any]] = None) -> Any:
    """
    Return ``obj`` with ``changes`` applied through dataclasses.replace.

    Args:
        obj: Frozen dataclass instance
        changes: Attribute name -> new value
        coerce: Attribute name -> callable converting the raw value
            (e.g. ``{"type": QuestionType}``)

    Raises:
        ValueError: If a change targets a protected or unknown attribute
    """
    known = {f.name for f in fields(obj)}
    for name in changes:
        if name in PROTECTED_FIELDS:
            raise ValueError(f"{name} cannot be changed")
        if name not in known:
            raise ValueError(f"{type(obj).__name__} has no attribute {name!r}")

    coerce = coerce or {}
    converted = {
        name: coerce[name](value) if name in coerce and value is not None else value
        for name, value in changes.items()
    }
    if "extra" in converted:
        converted["extra"] = freeze(converted["extra"]) if converted["extra"] else EMPTY
    return replace(obj, **converted)


def with_extra(obj: Any, **values: Any) -> Any:
    """Return ``obj`` with wire-named keys set in its ``extra`` mapping."""
    merged = dict(obj.extra)
    merged.update(values)
    return replace(obj, extra=freeze(merged))
