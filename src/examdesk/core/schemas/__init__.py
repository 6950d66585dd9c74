"""
Schemas Package

JSON schema definitions and validation utilities.
"""

from .validator import (
    validate_export_document,
    validate_backup_entry,
    validate_question_bank_document,
    ValidationError,
)

__all__ = [
    "validate_export_document",
    "validate_backup_entry",
    "validate_question_bank_document",
    "ValidationError",
]
