"""
Data models for collaborative study rooms.

This module contains the pure domain logic (no storage, no network):
- Room, Document, Quiz, Question records
- Attempt state machine (NotStarted / InProgress / Completed)
- Mode policy (study / challenge / exam)
- User stats, preferences and the achievement catalog
- UserContext passed into every manager call
"""

from .attempt import (
    AttemptState,
    Completed,
    InProgress,
    NotStarted,
    Transition,
    compute_score,
    score_attempt,
)
from .context import UserContext
from .mode_policy import ModePolicy, RoomMode, effective_time_limit, resolve_policy
from .profile import (
    ACHIEVEMENTS,
    Achievement,
    UserPreferences,
    UserStats,
    calculate_level,
    calculate_quiz_xp,
    next_streak,
)
from .quiz import Document, Question, Quiz, Room

__all__ = [
    # Attempts
    "AttemptState",
    "NotStarted",
    "InProgress",
    "Completed",
    "Transition",
    "compute_score",
    "score_attempt",
    # Context
    "UserContext",
    # Mode policy
    "ModePolicy",
    "RoomMode",
    "effective_time_limit",
    "resolve_policy",
    # Profile & gamification arithmetic
    "ACHIEVEMENTS",
    "Achievement",
    "UserPreferences",
    "UserStats",
    "calculate_level",
    "calculate_quiz_xp",
    "next_streak",
    # Records
    "Room",
    "Document",
    "Quiz",
    "Question",
]
