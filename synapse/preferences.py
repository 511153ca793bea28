"""
Per-user quiz preferences (default timer, difficulty, answer visibility, theme).
"""

from __future__ import annotations

from typing import Any, Optional

from loguru import logger

from .config import config
from .errors import ValidationError
from .models.context import UserContext
from .models.profile import UserPreferences
from .utils.persistence import RecordStore, get_store


def get_preferences(ctx: UserContext, store: Optional[RecordStore] = None) -> UserPreferences:
    """Stored preferences for the user, or defaults if none were saved."""
    store = store or get_store()
    row = store.find_one("user_preferences", user_id=ctx.user_id)
    if row is None:
        return UserPreferences(user_id=ctx.user_id)
    return UserPreferences.from_row(row)


def save_preferences(
    ctx: UserContext,
    store: Optional[RecordStore] = None,
    **changes: Any,
) -> UserPreferences:
    """
    Update some preference fields, keeping the rest.

    Raises:
        ValidationError: On unknown fields, a non-positive time limit or an
            unknown difficulty
    """
    store = store or get_store()
    current = get_preferences(ctx, store).to_row()

    unknown = set(changes) - (set(current) - {"user_id"})
    if unknown:
        raise ValidationError(f"Unknown preference fields: {sorted(unknown)}")

    time_limit = changes.get("default_time_limit")
    if time_limit is not None and (not isinstance(time_limit, int) or time_limit <= 0):
        raise ValidationError("default_time_limit must be a positive number of minutes")

    difficulty = changes.get("preferred_difficulty")
    if difficulty is not None and difficulty not in config.quiz.difficulty_levels:
        raise ValidationError(
            f"preferred_difficulty must be one of {config.quiz.difficulty_levels}"
        )

    current.update(changes)
    row = store.upsert("user_preferences", current, on_conflict=("user_id",))
    logger.debug(f"Saved preferences for {ctx.user_id}")
    return UserPreferences.from_row(row)
