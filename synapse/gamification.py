"""
Gamification Engine - XP, levels, streaks and achievements.

Turns one completed attempt into profile changes. Everything a completion
touches (profile stats, earned achievements, daily activity) is written in a
single store transaction, so a failure leaves no partial update behind.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from loguru import logger

from .config import config
from .models.context import UserContext
from .models.profile import (
    ACHIEVEMENTS,
    Achievement,
    UserStats,
    calculate_level,
    calculate_quiz_xp,
    next_streak,
)
from .utils.persistence import RecordStore, get_store


@dataclass
class GamificationResult:
    """
    Outcome of recording one quiz completion.

    Attributes:
        base_xp: XP from the quiz itself (participation, correct answers, perfect bonus)
        achievement_xp: XP from achievements unlocked by this completion
        level_up: Whether the level increased
        new_level: Level after the update
        new_achievements: Achievements unlocked by this completion
        streak_days: Streak after the update
    """

    base_xp: int
    achievement_xp: int
    level_up: bool
    new_level: int
    new_achievements: List[Achievement] = field(default_factory=list)
    streak_days: int = 0

    @property
    def xp_earned(self) -> int:
        return self.base_xp + self.achievement_xp

    def to_dict(self) -> Dict[str, Any]:
        return {
            "xp_earned": self.xp_earned,
            "level_up": self.level_up,
            "new_level": self.new_level,
            "new_achievements": [a.to_row() for a in self.new_achievements],
            "streak_days": self.streak_days,
        }


def xp_progress(xp: int) -> Dict[str, float]:
    """
    XP within the current level.

    Returns:
        Dict with current (xp into the level), max (xp per level) and the
        unrounded percentage of the level completed
    """
    per_level = config.gamification.xp_per_level
    current = max(0, xp) % per_level
    return {
        "current": current,
        "max": per_level,
        "percentage": current / per_level * 100,
    }


def qualifying_achievements(
    stats: UserStats,
    score: int,
    duration_seconds: Optional[float],
) -> List[str]:
    """
    Achievement ids whose trigger holds for the post-completion stats.

    Already-earned ids are not filtered here.
    """
    quick_threshold = config.gamification.quick_learner_seconds
    triggers = {
        "first_quiz": stats.total_quizzes_completed >= 1,
        "quiz_master_10": stats.total_quizzes_completed >= 10,
        "quiz_master_50": stats.total_quizzes_completed >= 50,
        "perfect_score": score == 100,
        "streak_3": stats.streak_days >= 3,
        "streak_7": stats.streak_days >= 7,
        "streak_30": stats.streak_days >= 30,
        # A zero duration means the start time was unknown
        "quick_learner": bool(duration_seconds) and duration_seconds < quick_threshold,
    }
    return [achievement_id for achievement_id, hit in triggers.items() if hit]


class GamificationEngine:
    """
    Applies quiz outcomes to user profiles.

    Usage:
        engine = GamificationEngine(store)
        result = engine.record_quiz_completion(ctx, correct=5, total=5, score=100,
                                               started_at=started)
        print(result.xp_earned, result.new_level)
    """

    def __init__(self, store: Optional[RecordStore] = None):
        self.store = store or get_store()
        self._seed_achievements()

    def _seed_achievements(self) -> None:
        """Make sure the static catalog exists in the achievements table."""
        with self.store.transaction():
            for achievement in ACHIEVEMENTS.values():
                if self.store.get("achievements", achievement.id) is None:
                    self.store.insert("achievements", achievement.to_row())

    # ==================== Reads ====================

    def get_stats(self, ctx: UserContext) -> UserStats:
        """Load the user's stats, creating a default profile on first use."""
        row = self.store.get("profiles", ctx.user_id)
        if row is None:
            stats = UserStats(user_id=ctx.user_id, username=ctx.user_id)
            row = self.store.insert("profiles", stats.to_row())
            logger.debug(f"Created profile for {ctx.user_id}")
        return UserStats.from_row(row)

    def earned_achievements(self, ctx: UserContext) -> Dict[str, str]:
        """Map of achievement id to earned_at for the user."""
        return {
            row["achievement_id"]: row["earned_at"]
            for row in self.store.select("user_achievements", user_id=ctx.user_id)
        }

    def catalog(self, ctx: UserContext) -> List[Dict[str, Any]]:
        """All achievements, each with ``earned`` and ``earned_at`` for the user."""
        earned = self.earned_achievements(ctx)
        return [
            {
                **achievement.to_row(),
                "earned": achievement.id in earned,
                "earned_at": earned.get(achievement.id),
            }
            for achievement in ACHIEVEMENTS.values()
        ]

    def daily_activity(self, ctx: UserContext) -> List[dict]:
        """Activity calendar rows for the user, oldest first."""
        return self.store.select("daily_activity", order_by="activity_date", user_id=ctx.user_id)

    # ==================== Writes ====================

    def record_quiz_completion(
        self,
        ctx: UserContext,
        correct_answers: int,
        total_questions: int,
        score: int,
        started_at: Optional[datetime] = None,
    ) -> GamificationResult:
        """
        Apply one completed quiz to the user's profile.

        Args:
            ctx: Acting user and clock
            correct_answers: Number of correct answers
            total_questions: Number of questions in the quiz
            score: Percentage score (0-100)
            started_at: Attempt start time, for the speed achievement

        Returns:
            GamificationResult with XP earned (including achievement rewards),
            level change and newly unlocked achievements
        """
        now = ctx.now()
        today = ctx.today()
        duration = (now - started_at).total_seconds() if started_at else None

        with self.store.transaction():
            old = self.get_stats(ctx)
            base_xp = calculate_quiz_xp(correct_answers, score)

            new = UserStats.from_row(old.to_row())
            new.total_quizzes_completed += 1
            new.total_questions_answered += total_questions
            new.total_correct_answers += correct_answers
            new.streak_days = next_streak(old.streak_days, old.last_activity_date, today)
            new.last_activity_date = today.isoformat()

            already_earned = self.earned_achievements(ctx)
            unlocked: List[Achievement] = []
            for achievement_id in qualifying_achievements(new, score, duration):
                if achievement_id in already_earned:
                    continue
                self.store.insert(
                    "user_achievements",
                    {
                        "user_id": ctx.user_id,
                        "achievement_id": achievement_id,
                        "earned_at": now.isoformat(),
                    },
                )
                unlocked.append(ACHIEVEMENTS[achievement_id])

            achievement_xp = sum(a.xp_reward for a in unlocked)
            new.xp = old.xp + base_xp + achievement_xp
            new.level = calculate_level(new.xp)
            self.store.update("profiles", ctx.user_id, new.to_row())

            self._record_daily_activity(ctx, today.isoformat(), base_xp + achievement_xp,
                                        total_questions, correct_answers)

        result = GamificationResult(
            base_xp=base_xp,
            achievement_xp=achievement_xp,
            level_up=new.level > old.level,
            new_level=new.level,
            new_achievements=unlocked,
            streak_days=new.streak_days,
        )

        logger.info(
            f"{ctx.user_id} earned {result.xp_earned} XP "
            f"(level {new.level}, streak {new.streak_days})"
        )
        for achievement in unlocked:
            logger.info(f"{ctx.user_id} unlocked achievement '{achievement.id}'")
        return result

    def _record_daily_activity(
        self,
        ctx: UserContext,
        activity_date: str,
        xp_earned: int,
        questions_answered: int,
        correct_answers: int,
    ) -> dict:
        existing = self.store.find_one(
            "daily_activity", user_id=ctx.user_id, activity_date=activity_date
        ) or {}
        return self.store.upsert(
            "daily_activity",
            {
                "user_id": ctx.user_id,
                "activity_date": activity_date,
                "quizzes_completed": existing.get("quizzes_completed", 0) + 1,
                "xp_earned": existing.get("xp_earned", 0) + xp_earned,
                "questions_answered": existing.get("questions_answered", 0) + questions_answered,
                "correct_answers": existing.get("correct_answers", 0) + correct_answers,
            },
            on_conflict=("user_id", "activity_date"),
        )
