"""
Migration Package

Discovery and conservative merge of data left by earlier storage formats.
"""

from .detectors import DEFAULT_DETECTORS, Detector
from .reconciler import MergeStrategy, merge_by_id, merge_legacy_data
from .runner import LegacyMigration
from .scanner import LegacyCandidate, LegacyScanner

__all__ = [
    "DEFAULT_DETECTORS",
    "Detector",
    "MergeStrategy",
    "merge_by_id",
    "merge_legacy_data",
    "LegacyMigration",
    "LegacyCandidate",
    "LegacyScanner",
]
