"""
Module: storage.keyvalue

Purpose:
    The durable key-value medium: string keys to string (JSON) values,
    enumerable, with an optional size quota. Everything else in examdesk
    reads and writes through this interface.

Key Classes:
    - KeyValueStorage: Abstract interface
    - MemoryStorage: In-process dict (tests, scratch stores)
    - DirectoryStorage: One file per key under a data directory

Key Functions:
    - calculate_directory_size(): Bytes used under a directory
    - format_size(): Human-readable byte counts

Dependencies:
    - portalocker: Cross-platform file locking for DirectoryStorage writes

Used By:
    - storage.persistence, backup.manager, backup.settings, migration.scanner
"""

from __future__ import annotations

import logging
import tempfile
import threading
from abc import ABC, abstractmethod
from contextlib import contextmanager
from pathlib import Path
from typing import Dict, Iterator, List, Optional
from urllib.parse import quote, unquote

import portalocker

from ..errors import StorageError, StorageQuotaExceeded

logger = logging.getLogger(__name__)

ENTRY_SUFFIX = ".entry"
LOCK_FILE_NAME = ".lock"


def _entry_size(value: str) -> int:
    return len(value.encode("utf-8"))


class KeyValueStorage(ABC):
    """
    Abstract durable key-value medium.

    Implementations raise StorageError for I/O failures and
    StorageQuotaExceeded when a write would take usage past ``max_bytes``.
    A failed write leaves the previous value in place.
    """

    def __init__(self, max_bytes: Optional[int] = None):
        if max_bytes is not None and max_bytes < 0:
            raise ValueError(f"max_bytes must be non-negative: {max_bytes}")
        self.max_bytes = max_bytes

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        """Return the stored value, or None when the key is absent."""

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        """Store ``value`` under ``key``, replacing any previous value."""

    @abstractmethod
    def remove(self, key: str) -> None:
        """Delete ``key``. Removing an absent key is not an error."""

    @abstractmethod
    def keys(self) -> List[str]:
        """All stored keys, sorted."""

    @abstractmethod
    def usage_bytes(self) -> int:
        """Bytes currently used by stored values."""

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and self.get(key) is not None

    def _check_quota(self, key: str, value: str, previous: Optional[str]) -> None:
        if self.max_bytes is None:
            return
        projected = self.usage_bytes() - (_entry_size(previous) if previous is not None else 0) + _entry_size(value)
        if projected > self.max_bytes:
            raise StorageQuotaExceeded(
                f"Writing {key!r} needs {projected} bytes, quota is {self.max_bytes}",
                key=key,
            )


class MemoryStorage(KeyValueStorage):
    """
    Dict-backed storage.

    Example:
        >>> storage = MemoryStorage()
        >>> storage.set("k", "v")
        >>> storage.get("k")
        'v'
    """

    def __init__(self, max_bytes: Optional[int] = None, initial: Optional[Dict[str, str]] = None):
        super().__init__(max_bytes)
        self._data: Dict[str, str] = dict(initial or {})
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        with self._lock:
            self._check_quota(key, value, self._data.get(key))
            self._data[key] = value

    def remove(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)

    def keys(self) -> List[str]:
        with self._lock:
            return sorted(self._data)

    def usage_bytes(self) -> int:
        return sum(_entry_size(v) for v in self._data.values())


class DirectoryStorage(KeyValueStorage):
    """
    Storage with one file per key under ``root``.

    File names are the percent-encoded key plus ``.entry``. Writes go to a
    temp file in the same directory and are moved into place, under an
    exclusive portalocker lock on ``root/.lock``.
    """

    def __init__(self, root: Path, max_bytes: Optional[int] = None):
        super().__init__(max_bytes)
        self.root = Path(root)
        try:
            self.root.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageError(f"Cannot create storage directory {self.root}: {e}") from e
        self._lock_path = self.root / LOCK_FILE_NAME

    def _path(self, key: str) -> Path:
        return self.root / f"{quote(key, safe='')}{ENTRY_SUFFIX}"

    @contextmanager
    def _locked(self) -> Iterator[None]:
        with open(self._lock_path, "a", encoding="utf-8") as f:
            portalocker.lock(f, portalocker.LOCK_EX)
            try:
                yield
            finally:
                portalocker.unlock(f)

    def get(self, key: str) -> Optional[str]:
        try:
            return self._path(key).read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as e:
            raise StorageError(f"Failed to read {key!r}: {e}", key=key) from e

    def set(self, key: str, value: str) -> None:
        path = self._path(key)
        try:
            with self._locked():
                self._check_quota(key, value, self.get(key))
                with tempfile.NamedTemporaryFile(
                    mode="w",
                    encoding="utf-8",
                    suffix=".tmp",
                    dir=self.root,
                    delete=False,
                ) as f:
                    f.write(value)
                    temp_path = Path(f.name)
                try:
                    temp_path.replace(path)
                except OSError:
                    temp_path.unlink(missing_ok=True)
                    raise
        except OSError as e:
            raise StorageError(f"Failed to write {key!r}: {e}", key=key) from e

    def remove(self, key: str) -> None:
        try:
            with self._locked():
                self._path(key).unlink(missing_ok=True)
        except OSError as e:
            raise StorageError(f"Failed to remove {key!r}: {e}", key=key) from e

    def keys(self) -> List[str]:
        return sorted(
            unquote(p.name[: -len(ENTRY_SUFFIX)])
            for p in self.root.glob(f"*{ENTRY_SUFFIX}")
        )

    def usage_bytes(self) -> int:
        return calculate_directory_size(self.root)


def calculate_directory_size(path: Path) -> int:
    """Calculate total size of directory in bytes.

    Args:
        path: Directory path to calculate size for.

    Returns:
        Total size in bytes, or 0 if path doesn't exist or on error.
    """
    total = 0
    try:
        for entry in Path(path).rglob("*"):
            if entry.is_file():
                try:
                    total += entry.stat().st_size
                except OSError:
                    # File vanished between listing and stat
                    continue
    except OSError as e:
        logger.debug(f"Could not scan {path}: {e}")
    return total


def format_size(bytes_size: float) -> str:
    """Format bytes to human-readable string (e.g., '1.2 MB')."""
    for unit in ["B", "KB", "MB", "GB"]:
        if bytes_size < 1024.0:
            return f"{bytes_size:.1f} {unit}"
        bytes_size /= 1024.0
    return f"{bytes_size:.1f} TB"
