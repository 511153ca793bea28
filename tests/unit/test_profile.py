"""
Unit tests for profile arithmetic: levels, quiz XP and streaks.
"""

import unittest
from datetime import date

from synapse.models.profile import (
    ACHIEVEMENTS,
    UserPreferences,
    UserStats,
    calculate_level,
    calculate_quiz_xp,
    next_streak,
)

TODAY = date(2024, 3, 15)


class TestLevels(unittest.TestCase):
    def test_level_examples(self):
        self.assertEqual(calculate_level(0), 1)
        self.assertEqual(calculate_level(99), 1)
        self.assertEqual(calculate_level(100), 2)
        self.assertEqual(calculate_level(249), 3)
        self.assertEqual(calculate_level(250), 3)
        self.assertEqual(calculate_level(300), 4)

    def test_level_is_monotonic(self):
        levels = [calculate_level(xp) for xp in range(0, 1000, 7)]
        self.assertEqual(levels, sorted(levels))


class TestQuizXp(unittest.TestCase):
    def test_perfect_five_question_quiz(self):
        self.assertEqual(calculate_quiz_xp(5, 100), 125)

    def test_partial_quiz_has_no_bonus(self):
        self.assertEqual(calculate_quiz_xp(3, 60), 55)

    def test_zero_correct_still_earns_participation(self):
        self.assertEqual(calculate_quiz_xp(0, 0), 25)


class TestStreak(unittest.TestCase):
    def test_first_activity_starts_streak(self):
        self.assertEqual(next_streak(0, None, TODAY), 1)

    def test_yesterday_continues(self):
        self.assertEqual(next_streak(4, "2024-03-14", TODAY), 5)

    def test_same_day_unchanged(self):
        self.assertEqual(next_streak(4, "2024-03-15", TODAY), 4)

    def test_gap_resets(self):
        self.assertEqual(next_streak(9, "2024-03-10", TODAY), 1)

    def test_month_boundary(self):
        self.assertEqual(next_streak(2, "2024-02-29", date(2024, 3, 1)), 3)


class TestRows(unittest.TestCase):
    def test_stats_from_row_treats_null_counters_as_zero(self):
        stats = UserStats.from_row({"id": "u1", "username": "ana", "xp": None, "level": None})
        self.assertEqual(stats.xp, 0)
        self.assertEqual(stats.level, 1)
        self.assertEqual(stats.accuracy, 0)

    def test_accuracy(self):
        stats = UserStats(user_id="u1", total_questions_answered=8, total_correct_answers=6)
        self.assertEqual(stats.accuracy, 75)

    def test_preferences_defaults(self):
        prefs = UserPreferences.from_row({"user_id": "u1"})
        self.assertFalse(prefs.show_answers_immediately)
        self.assertIsNone(prefs.default_time_limit)

    def test_catalog_ids(self):
        self.assertEqual(
            set(ACHIEVEMENTS),
            {
                "first_quiz",
                "quiz_master_10",
                "quiz_master_50",
                "perfect_score",
                "streak_3",
                "streak_7",
                "streak_30",
                "quick_learner",
            },
        )
