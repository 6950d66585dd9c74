"""
examdesk Core Package

Data models, schema validation and the small utilities (path lens,
serialization, timestamps) shared by the storage, backup, migration and
repository layers. Nothing in this package touches the durable medium.
"""

from .models import StoreSnapshot, Collection, Test, Attempt, QuestionBankItem, ScoringProfile

__all__ = [
    "StoreSnapshot",
    "Collection",
    "Test",
    "Attempt",
    "QuestionBankItem",
    "ScoringProfile",
]
