"""
Schema Validation Utilities

Validates wire documents against the JSON schemas in this directory.

Three documents cross a trust boundary and get validated:
- The export/import document (``export.schema.json``), supplied by a user
- Backup entries (``backup.schema.json``), read back from the durable medium
- The question bank export (``question_bank.schema.json``)

Everything else is parsed leniently by the model ``from_dict()`` methods.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import jsonschema

# Load schemas lazily
_SCHEMAS: dict[str, dict] = {}


def _load_schema(name: str) -> dict:
    """Load a schema from the schemas directory."""
    if name not in _SCHEMAS:
        schema_path = Path(__file__).parent / f"{name}.schema.json"
        if not schema_path.exists():
            raise FileNotFoundError(f"Schema not found: {schema_path}")
        with open(schema_path, "r", encoding="utf-8") as f:
            _SCHEMAS[name] = json.load(f)
    return _SCHEMAS[name]


class ValidationError(Exception):
    """Raised when data fails schema validation."""

    def __init__(self, message: str, path: str = "", errors: list[str] | None = None):
        super().__init__(message)
        self.path = path
        self.errors = errors or []


def _validate(data: Any, schema_name: str) -> None:
    schema = _load_schema(schema_name)
    validator = jsonschema.Draft7Validator(schema)
    errors = sorted(validator.iter_errors(data), key=lambda e: list(e.absolute_path))
    if errors:
        first = errors[0]
        raise ValidationError(
            f"Schema validation failed: {first.message}",
            path=".".join(str(p) for p in first.absolute_path),
            errors=[e.message for e in errors],
        )


def validate_export_document(data: Any) -> None:
    """
    Validate an export/import document.

    ``data.tests`` and ``data.attempts`` must both be arrays of objects.

    Raises:
        ValidationError: If data is invalid
    """
    _validate(data, "export")


def validate_backup_entry(data: Any) -> None:
    """
    Validate a parsed backup entry.

    Raises:
        ValidationError: If a collection is present but not an array
    """
    _validate(data, "backup")


def validate_question_bank_document(data: Any) -> None:
    """
    Validate a question bank export document.

    Only the envelope is checked (``questions`` must be an array); each
    question is screened individually on import.

    Raises:
        ValidationError: If data is invalid
    """
    _validate(data, "question_bank")
