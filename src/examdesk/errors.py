"""
Exception hierarchy for examdesk.

Expected conditions (missing ids, failed validation of caller input) are
reported through return values. These exceptions cover the remaining cases.
"""

from __future__ import annotations


class ExamdeskError(Exception):
    """Base class for all examdesk errors."""


class StorageError(ExamdeskError):
    """The durable medium failed to read or write an entry."""

    def __init__(self, message: str, key: str = ""):
        super().__init__(message)
        self.key = key


class StorageQuotaExceeded(StorageError):
    """A write would exceed the configured storage quota."""


class RepositoryError(ExamdeskError):
    """Base class for repository failures that must propagate."""


class AttemptNotFoundError(RepositoryError):
    """An attempt id vanished in the middle of a multi-step operation."""

    def __init__(self, attempt_id: str):
        super().__init__(f"Attempt not found: {attempt_id}")
        self.attempt_id = attempt_id


class InvalidLegacyDataError(ExamdeskError):
    """Legacy data holds no non-empty array and cannot be merged."""
