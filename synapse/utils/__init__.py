"""
Utility modules for Synapse.

This module contains utility functions:
- validation: JSON Schema validation of stored rows
- persistence: Record store with unique constraints and transactions
- progress: Analytics and leaderboard helpers
- log: Loguru sink configuration
"""

from .validation import (
    SchemaValidator,
    ValidationResult,
    get_table_validator,
    validate_record,
)
from .persistence import (
    RecordStore,
    get_store,
    utc_now_iso,
)
from .progress import (
    accuracy,
    activity_calendar,
    activity_intensity,
    aggregate_leaderboard,
    score_summary,
)
from .log import configure_logging

__all__ = [
    # Validation
    "SchemaValidator",
    "ValidationResult",
    "get_table_validator",
    "validate_record",
    # Persistence
    "RecordStore",
    "get_store",
    "utc_now_iso",
    # Progress
    "accuracy",
    "activity_calendar",
    "activity_intensity",
    "aggregate_leaderboard",
    "score_summary",
    # Logging
    "configure_logging",
]
