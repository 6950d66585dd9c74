"""
Serialization Utilities

Helpers shared by the model ``to_dict()`` / ``from_dict()`` methods.

Wire documents are plain JSON (dicts, lists, scalars). Models hold them
frozen: nested dicts become read-only mappings and lists become tuples, so
a model handed out by the Store cannot be mutated in place. ``thaw()``
reverses this when writing back to JSON.

Unknown wire keys are never dropped. ``collect_extra()`` gathers them into
the model's ``extra`` mapping so a load/save cycle is lossless. Likewise,
list items that fail to parse are kept raw by ``UnparsedItems`` and
appended back to their list by ``merge_unparsed()``.
"""

from __future__ import annotations

import logging
import math
from enum import Enum
from types import MappingProxyType
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Tuple, Type, TypeVar, Union

logger = logging.getLogger(__name__)

T = TypeVar("T")
E = TypeVar("E", bound=Enum)

EMPTY: Mapping[str, Any] = MappingProxyType({})


def freeze(value: Any) -> Any:
    """Recursively convert dicts to read-only mappings and lists to tuples."""
    if isinstance(value, Mapping):
        return MappingProxyType({k: freeze(v) for k, v in value.items()})
    if isinstance(value, (list, tuple)):
        return tuple(freeze(v) for v in value)
    return value


def thaw(value: Any) -> Any:
    """Inverse of freeze(): produce JSON-compatible dicts and lists."""
    if isinstance(value, Mapping):
        return {k: thaw(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [thaw(v) for v in value]
    if hasattr(value, "to_dict"):
        return value.to_dict()
    return value


def frozen_mapping(value: Any) -> Mapping[str, Any]:
    """Freeze a mapping field, treating anything that is not a mapping as empty."""
    if isinstance(value, Mapping):
        return freeze(value)
    return EMPTY


def optional_mapping(value: Any) -> Optional[Mapping[str, Any]]:
    if isinstance(value, Mapping):
        return freeze(value)
    return None


def string_tuple(value: Any) -> Tuple[str, ...]:
    if isinstance(value, (list, tuple)):
        return tuple(str(v) for v in value)
    return ()


def collect_extra(data: Mapping[str, Any], known: Iterable[str]) -> Mapping[str, Any]:
    """Return the keys of ``data`` not listed in ``known``, frozen."""
    known_set = set(known)
    extra = {k: v for k, v in data.items() if k not in known_set}
    return freeze(extra) if extra else EMPTY


def merge_extra(payload: dict[str, Any], extra: Mapping[str, Any]) -> dict[str, Any]:
    """Append extra keys to a to_dict() payload without overriding known keys."""
    for key, value in extra.items():
        if key not in payload:
            payload[key] = thaw(value)
    return payload


def require_id(data: Mapping[str, Any], kind: str) -> str:
    """Return the ``id`` of a wire document, raising ValueError when absent."""
    item_id = data.get("id")
    if not isinstance(item_id, str) or not item_id:
        raise ValueError(f"{kind} is missing an id")
    return item_id


def parse_enum(enum_cls: Type[E], value: Any) -> Union[E, str]:
    """
    Return the member of ``enum_cls`` valued ``value``.

    An unknown non-empty string is returned unchanged so values written by
    newer versions survive a load/save cycle.

    Raises:
        ValueError: If ``value`` is neither a member value nor a string
    """
    try:
        return enum_cls(value)
    except ValueError:
        if isinstance(value, str) and value:
            logger.debug(f"Keeping unknown {enum_cls.__name__} value {value!r}")
            return value
        raise


def parse_number(value: Any) -> Union[int, float]:
    """
    Return ``value`` as an int or float.

    Numeric strings ("30", "2.5") are converted.

    Raises:
        ValueError: If ``value`` is not a number or a numeric string
    """
    if isinstance(value, bool):
        raise ValueError(f"Expected a number, got {value!r}")
    if isinstance(value, (int, float)):
        return value
    if isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            pass
        else:
            if math.isfinite(number):
                return int(number) if number.is_integer() and "." not in value else number
    raise ValueError(f"Expected a number, got {value!r}")


def deserialize_items(
    items: Any,
    parse: Callable[[Mapping[str, Any]], T],
    label: str,
    rejected: Optional[List[Any]] = None,
) -> Tuple[T, ...]:
    """
    Parse a list of wire documents, skipping malformed entries.

    Any malformed item is logged and left out rather than failing the whole
    collection. When ``rejected`` is given, left-out items are appended to
    it unchanged (frozen) so the caller can write them back.

    Args:
        items: Raw JSON value expected to be a list of objects
        parse: Model ``from_dict`` callable
        label: Collection name for log messages
        rejected: Optional list collecting the raw items that did not parse

    Returns:
        Tuple of parsed models (empty if ``items`` is not a list)
    """
    if not isinstance(items, (list, tuple)):
        if items is not None:
            logger.warning(f"Ignoring {label}: expected a list, got {type(items).__name__}")
        return ()

    action = "Skipping" if rejected is None else "Keeping unparsed"
    parsed = []
    for index, item in enumerate(items):
        if not isinstance(item, Mapping):
            logger.warning(f"{action} {label}[{index}]: not an object")
        else:
            try:
                parsed.append(parse(item))
                continue
            except (KeyError, TypeError, ValueError) as e:
                logger.warning(f"{action} malformed {label}[{index}]: {e}")
        if rejected is not None:
            rejected.append(freeze(item))
    return tuple(parsed)


class UnparsedItems:
    """
    Collects list items that failed to parse, keyed by wire name.

    Usage:
        unparsed = UnparsedItems()
        versions = unparsed.parse(data, "versions", Version.from_dict)
        ...
        return cls(..., versions=versions, unparsed=unparsed.frozen())
    """

    def __init__(self) -> None:
        self._items: Dict[str, Tuple[Any, ...]] = {}

    def parse(
        self,
        data: Mapping[str, Any],
        key: str,
        parse: Callable[[Mapping[str, Any]], T],
        label: Optional[str] = None,
    ) -> Tuple[T, ...]:
        rejected: List[Any] = []
        parsed = deserialize_items(data.get(key), parse, label or key, rejected)
        if rejected:
            self._items[key] = tuple(rejected)
        return parsed

    def frozen(self) -> Mapping[str, Tuple[Any, ...]]:
        return MappingProxyType(dict(self._items)) if self._items else EMPTY


def merge_unparsed(payload: dict[str, Any], unparsed: Mapping[str, Tuple[Any, ...]]) -> dict[str, Any]:
    """Append kept raw items after the parsed ones in each wire list."""
    for key, items in unparsed.items():
        payload[key] = list(payload.get(key) or []) + [thaw(i) for i in items]
    return payload


def unparsed_ids(items: Iterable[Any]) -> set[str]:
    """Ids of raw items that carry a string id."""
    return {i.get("id") for i in items if isinstance(i, Mapping) and isinstance(i.get("id"), str)}
