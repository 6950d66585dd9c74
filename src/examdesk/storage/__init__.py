"""
Storage Package

The durable key-value medium, the persistence adapter and the Store.
"""

from .keyvalue import DirectoryStorage, KeyValueStorage, MemoryStorage
from .persistence import StorePersistence
from .store import ImportResult, Store

__all__ = [
    "DirectoryStorage",
    "KeyValueStorage",
    "MemoryStorage",
    "StorePersistence",
    "ImportResult",
    "Store",
]
