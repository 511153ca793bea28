"""
Progress analytics helpers for dashboards and leaderboards.

Provides:
- Score summary statistics over completed attempts
- Lifetime accuracy
- Activity calendar intensity buckets
- Room leaderboard aggregation
"""

from __future__ import annotations

import math
from collections import defaultdict
from datetime import date, timedelta
from typing import Dict, Iterable, List, Mapping, Optional

import numpy as np


def score_summary(scores: Iterable[Optional[int]]) -> Dict[str, float]:
    """
    Summary statistics for attempt scores.

    Missing scores (None) count as 0, matching the dashboard average.

    Args:
        scores: Percentage scores (0-100)

    Returns:
        Dict with average (rounded int), median, min, max, std_dev, count

    Example:
        >>> score_summary([80, 100, 60])["average"]
        80
    """
    values = np.array([s or 0 for s in scores], dtype=float)
    if values.size == 0:
        return {
            "average": 0,
            "median": 0.0,
            "min": 0.0,
            "max": 0.0,
            "std_dev": 0.0,
            "count": 0,
        }

    return {
        "average": int(np.floor(values.mean() + 0.5)),
        "median": round(float(np.median(values)), 2),
        "min": round(float(values.min()), 2),
        "max": round(float(values.max()), 2),
        "std_dev": round(float(values.std()), 2),
        "count": int(values.size),
    }


def accuracy(correct_answers: int, questions_answered: int) -> int:
    """Percentage of correct answers, 0 when nothing was answered."""
    return math.floor(100 * correct_answers / max(questions_answered, 1) + 0.5)


def activity_intensity(quizzes: int) -> int:
    """
    Calendar shade (0-4) for a day with the given number of quizzes.

    0 quizzes -> 0, 1 -> 1, 2-3 -> 2, 4-5 -> 3, more -> 4.
    """
    if quizzes <= 0:
        return 0
    if quizzes == 1:
        return 1
    if quizzes <= 3:
        return 2
    if quizzes <= 5:
        return 3
    return 4


def activity_calendar(
    activity_rows: Iterable[Mapping],
    today: date,
    weeks: int = 12,
) -> List[Dict]:
    """
    Day-by-day activity for the last ``weeks`` weeks, oldest first.

    Args:
        activity_rows: ``daily_activity`` rows for one user
        today: Last day of the calendar
        weeks: Number of weeks to cover

    Returns:
        One dict per day: date, quizzes, xp, accuracy, intensity
    """
    by_date = {row["activity_date"]: row for row in activity_rows}
    # Start on the Sunday that begins the first week, like a contribution grid
    first = today - timedelta(days=(weeks - 1) * 7)
    first -= timedelta(days=(first.weekday() + 1) % 7)

    days = []
    for offset in range((today - first).days + 1):
        day = first + timedelta(days=offset)
        row = by_date.get(day.isoformat(), {})
        quizzes = row.get("quizzes_completed", 0)
        days.append(
            {
                "date": day.isoformat(),
                "quizzes": quizzes,
                "xp": row.get("xp_earned", 0),
                "accuracy": accuracy(row.get("correct_answers", 0), row.get("questions_answered", 0)),
                "intensity": activity_intensity(quizzes),
            }
        )
    return days


def aggregate_leaderboard(
    attempts: Iterable[Mapping],
    usernames: Optional[Mapping[str, str]] = None,
) -> List[Dict]:
    """
    Sum completed-attempt scores per user.

    Args:
        attempts: ``quiz_attempts`` rows (only completed ones are counted)
        usernames: user_id -> display name ("Unknown" when missing)

    Returns:
        Entries sorted by total score, highest first, each with user_id,
        username, total_score and quizzes_completed

    Example:
        >>> aggregate_leaderboard([
        ...     {"user_id": "a", "status": "completed", "score": 80},
        ...     {"user_id": "a", "status": "completed", "score": 90},
        ...     {"user_id": "b", "status": "completed", "score": 100},
        ... ], {"a": "ana"})[0]["total_score"]
        170
    """
    usernames = usernames or {}
    totals: Dict[str, int] = defaultdict(int)
    counts: Dict[str, int] = defaultdict(int)
    for attempt in attempts:
        if attempt.get("status") != "completed":
            continue
        totals[attempt["user_id"]] += attempt.get("score") or 0
        counts[attempt["user_id"]] += 1

    # Ties fall back to user_id order
    ranked = sorted(totals, key=lambda user_id: (-totals[user_id], user_id))
    return [
        {
            "user_id": user_id,
            "username": usernames.get(user_id) or "Unknown",
            "total_score": totals[user_id],
            "quizzes_completed": counts[user_id],
        }
        for user_id in ranked
    ]
