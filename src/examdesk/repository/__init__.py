"""
Repository Package

Path-addressed, immutable CRUD over the Store's collections. Each
repository takes the Store it works on; none of them keeps state of its own.
"""

from .attempts import AttemptRepository
from .bank import BankImportResult, QuestionBankRepository
from .scoring import ScoringProfileRepository
from .tests import AvailableAssignment, TestRepository

__all__ = [
    "AttemptRepository",
    "BankImportResult",
    "QuestionBankRepository",
    "ScoringProfileRepository",
    "AvailableAssignment",
    "TestRepository",
]
