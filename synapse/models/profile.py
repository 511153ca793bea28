"""
Learner stats, preferences and the achievement catalog.

This module provides the pure gamification arithmetic:
- Level from cumulative XP
- XP earned for a completed quiz
- Streak continuation across calendar days
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Any, Dict, Literal, Optional

from ..config import config

AchievementCategory = Literal["milestone", "performance", "streak", "speed"]


@dataclass
class UserStats:
    """
    Per-user gamification stats (the ``profiles`` row).

    Attributes:
        user_id: Profile id
        username: Display handle
        xp: Cumulative XP (>= 0)
        level: Derived from xp, floor(xp / 100) + 1
        streak_days: Consecutive days with a completed quiz
        last_activity_date: ISO date of the last completed quiz
        total_quizzes_completed: Lifetime completed attempts
        total_questions_answered: Lifetime questions in completed attempts
        total_correct_answers: Lifetime correct answers
    """

    user_id: str
    username: str = ""
    xp: int = 0
    level: int = 1
    streak_days: int = 0
    last_activity_date: Optional[str] = None
    total_quizzes_completed: int = 0
    total_questions_answered: int = 0
    total_correct_answers: int = 0

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "UserStats":
        # Nullable counters come back as None from the backend
        return cls(
            user_id=row["id"],
            username=row.get("username") or "",
            xp=row.get("xp") or 0,
            level=row.get("level") or 1,
            streak_days=row.get("streak_days") or 0,
            last_activity_date=row.get("last_activity_date"),
            total_quizzes_completed=row.get("total_quizzes_completed") or 0,
            total_questions_answered=row.get("total_questions_answered") or 0,
            total_correct_answers=row.get("total_correct_answers") or 0,
        )

    def to_row(self) -> Dict[str, Any]:
        return {
            "id": self.user_id,
            "username": self.username,
            "xp": self.xp,
            "level": self.level,
            "streak_days": self.streak_days,
            "last_activity_date": self.last_activity_date,
            "total_quizzes_completed": self.total_quizzes_completed,
            "total_questions_answered": self.total_questions_answered,
            "total_correct_answers": self.total_correct_answers,
        }

    @property
    def accuracy(self) -> int:
        """Lifetime percentage of correct answers, rounded."""
        if not self.total_questions_answered:
            return 0
        return round(100 * self.total_correct_answers / self.total_questions_answered)


@dataclass
class UserPreferences:
    """Per-user quiz preferences."""

    user_id: str
    default_time_limit: Optional[int] = None
    preferred_difficulty: Optional[str] = None
    show_answers_immediately: bool = False
    theme: Optional[str] = None

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "UserPreferences":
        return cls(
            user_id=row["user_id"],
            default_time_limit=row.get("default_time_limit"),
            preferred_difficulty=row.get("preferred_difficulty"),
            show_answers_immediately=bool(row.get("show_answers_immediately")),
            theme=row.get("theme"),
        )

    def to_row(self) -> Dict[str, Any]:
        return {
            "user_id": self.user_id,
            "default_time_limit": self.default_time_limit,
            "preferred_difficulty": self.preferred_difficulty,
            "show_answers_immediately": self.show_answers_immediately,
            "theme": self.theme,
        }


@dataclass(frozen=True)
class Achievement:
    """A one-time-awardable milestone. The trigger lives in code."""

    id: str
    name: str
    description: str
    category: AchievementCategory
    xp_reward: int
    requirement_value: Optional[int] = None
    icon: str = field(default="trophy", compare=False)

    def to_row(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "category": self.category,
            "xp_reward": self.xp_reward,
            "requirement_value": self.requirement_value,
            "icon": self.icon,
        }


ACHIEVEMENTS: Dict[str, Achievement] = {
    a.id: a
    for a in (
        Achievement("first_quiz", "First Steps", "Complete your first quiz",
                    "milestone", 25, 1, "footprints"),
        Achievement("quiz_master_10", "Quiz Enthusiast", "Complete 10 quizzes",
                    "milestone", 100, 10, "book-open"),
        Achievement("quiz_master_50", "Quiz Master", "Complete 50 quizzes",
                    "milestone", 500, 50, "crown"),
        Achievement("perfect_score", "Perfectionist", "Score 100% on a quiz",
                    "performance", 50, 100, "star"),
        Achievement("streak_3", "On Fire", "Keep a 3-day streak",
                    "streak", 30, 3, "flame"),
        Achievement("streak_7", "Week Warrior", "Keep a 7-day streak",
                    "streak", 75, 7, "calendar"),
        Achievement("streak_30", "Unstoppable", "Keep a 30-day streak",
                    "streak", 300, 30, "zap"),
        Achievement("quick_learner", "Quick Learner", "Finish a quiz in under 2 minutes",
                    "speed", 40, 120, "timer"),
    )
}


def calculate_level(xp: int, xp_per_level: Optional[int] = None) -> int:
    """
    Level is a deterministic function of cumulative XP.

    Example:
        >>> calculate_level(249), calculate_level(250), calculate_level(300)
        (3, 3, 4)
    """
    xp_per_level = xp_per_level or config.gamification.xp_per_level
    return max(0, xp) // xp_per_level + 1


def calculate_quiz_xp(correct_answers: int, score: int) -> int:
    """XP for one completed quiz, before achievement rewards."""
    settings = config.gamification
    xp = settings.xp_per_quiz + correct_answers * settings.xp_per_correct
    if score == 100:
        xp += settings.xp_perfect_bonus
    return xp


def next_streak(streak_days: int, last_activity_date: Optional[str], today: date) -> int:
    """
    Streak after completing a quiz today.

    Yesterday continues the streak, today leaves it unchanged, anything else
    (older or never) restarts it at 1.
    """
    if not last_activity_date:
        return 1
    last = date.fromisoformat(last_activity_date)
    if last == today - timedelta(days=1):
        return streak_days + 1
    if last == today:
        return streak_days
    return 1
