"""
Durable-medium key layout.

These names are part of the stored format; existing data is found by them,
so they never change.
"""

CANONICAL_KEY = "app_store_v1"

# Per-collection mirrors kept for older readers, keyed by wire collection name
LEGACY_KEYS = {
    "tests": "tn_academy_tests",
    "attempts": "tn_academy_attempts",
    "questionBank": "tn_academy_question_bank",
    "scoringProfiles": "tn_academy_scoring_profiles",
}

BACKUP_PREFIX = "app_backup_v1:"
BACKUP_LOCK_KEY = "app_backup_lock"
BACKUP_SETTINGS_KEY = "app_backup_settings"
MIGRATION_MARKER_KEY = "app_store_migration_v1_done"
