"""
Module: core.utils.lens

Purpose:
    Path-addressed reads and copy-on-write updates over trees of frozen
    dataclasses. A path is a sequence of ``(attribute, id)`` steps, each
    selecting the child with that id from a tuple-valued attribute:

        test
        └── ("versions", version_id)
            └── ("sections", section_id)
                └── ("questions", question_id)

    Updates rebuild only the nodes along the path. Every sibling keeps its
    original identity, so unchanged subtrees are shared between snapshots.

Key Functions:
    - find_index(): Linear scan of a tuple for an id
    - get_at_path(): Resolve a path, None if any segment is missing
    - set_at_path(): Replace the node at a path through an update function
    - update_children(): Replace a tuple attribute of the node at a path

Used By:
    - repository.tests: every nested Test mutation
    - repository.attempts / repository.scoring (single-step paths)
"""

from __future__ import annotations

from dataclasses import replace
from typing import Any, Callable, Optional, Sequence, Tuple

Step = Tuple[str, str]
Path = Sequence[Step]


def find_index(items: Sequence[Any], item_id: str) -> Optional[int]:
    """Return the index of the item whose ``id`` equals item_id, or None."""
    for index, item in enumerate(items):
        if getattr(item, "id", None) == item_id:
            return index
    return None


def get_at_path(root: Any, path: Path) -> Optional[Any]:
    """
    Resolve ``path`` starting at ``root``.

    Returns:
        The addressed node, or None if any segment is missing
    """
    node = root
    for attr, item_id in path:
        children = getattr(node, attr, None)
        if children is None:
            return None
        index = find_index(children, item_id)
        if index is None:
            return None
        node = children[index]
    return node


def set_at_path(root: Any, path: Path, update: Callable[[Any], Optional[Any]]) -> Optional[Any]:
    """
    Apply ``update`` to the node at ``path`` and rebuild the ancestors.

    Args:
        root: Frozen dataclass at the top of the path
        path: Steps leading to the target node (empty means root itself)
        update: Receives the target, returns its replacement or None to abort

    Returns:
        New root, or None when a segment is missing or update aborted.
        The original tree is never modified.
    """
    if not path:
        return update(root)

    attr, item_id = path[0]
    children = getattr(root, attr, None)
    if children is None:
        return None
    index = find_index(children, item_id)
    if index is None:
        return None

    new_child = set_at_path(children[index], path[1:], update)
    if new_child is None:
        return None
    new_children = children[:index] + (new_child,) + children[index + 1:]
    return replace(root, **{attr: new_children})


def update_children(
    root: Any,
    path: Path,
    attr: str,
    update: Callable[[Tuple[Any, ...]], Optional[Tuple[Any, ...]]],
) -> Optional[Any]:
    """
    Replace the tuple attribute ``attr`` of the node at ``path``.

    ``update`` receives the current children tuple and returns a new tuple,
    or None to abort. Used for append/remove/reorder at any depth.
    """
    def _apply(node: Any) -> Optional[Any]:
        new_children = update(tuple(getattr(node, attr)))
        if new_children is None:
            return None
        return replace(node, **{attr: new_children})

    return set_at_path(root, path, _apply)


def remove_by_id(items: Tuple[Any, ...], item_id: str) -> Optional[Tuple[Any, ...]]:
    """Return ``items`` without item_id, or None when it was not present."""
    index = find_index(items, item_id)
    if index is None:
        return None
    return items[:index] + items[index + 1:]
