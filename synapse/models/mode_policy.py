"""
Mode Policy - maps a room's mode and the user's preferences to quiz behaviour.

Pure functions, no side effects:

    mode       timer                  feedback   retakes   review
    study      quiz limit only        immediate  yes       yes
    challenge  quiz limit or default  none       yes       yes
    exam       quiz limit only        none       one       if show_answers_immediately
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from ..errors import ValidationError
from .profile import UserPreferences


class RoomMode(str, Enum):
    """Room modes controlling timer, feedback and retake rules."""

    STUDY = "study"
    CHALLENGE = "challenge"
    EXAM = "exam"

    @classmethod
    def parse(cls, value: "RoomMode | str") -> "RoomMode":
        try:
            return cls(value)
        except ValueError:
            raise ValidationError(
                f"Unknown room mode '{value}', expected one of "
                f"{[m.value for m in cls]}",
                code="INVALID_MODE",
            ) from None


@dataclass(frozen=True)
class ModePolicy:
    """
    Behavioural flags for one quiz attempt.

    Attributes:
        mode: Room mode the policy was derived from
        time_limit_minutes: Effective time limit (None = untimed)
        immediate_feedback: Show correctness right after each selection
        per_question_lock: UI should disable re-selection after the first answer
        retake_allowed: More than one completed attempt is permitted
        review_allowed: Full answer review after completion
        leaderboard_enabled: Scores are aggregated at room level
    """

    mode: RoomMode
    time_limit_minutes: Optional[int]
    immediate_feedback: bool
    per_question_lock: bool
    retake_allowed: bool
    review_allowed: bool
    leaderboard_enabled: bool

    @property
    def timer_active(self) -> bool:
        return self.time_limit_minutes is not None


def effective_time_limit(
    mode: RoomMode | str,
    quiz_time_limit: Optional[int],
    preferences: Optional[UserPreferences] = None,
) -> Optional[int]:
    """
    Resolve the time limit in minutes.

    The quiz's own limit always wins. Only challenge mode falls back to the
    user's default; otherwise the attempt is untimed.
    """
    mode = RoomMode.parse(mode)
    if quiz_time_limit:
        return quiz_time_limit
    if mode is RoomMode.CHALLENGE and preferences and preferences.default_time_limit:
        return preferences.default_time_limit
    return None


def resolve_policy(
    mode: RoomMode | str,
    quiz_time_limit: Optional[int] = None,
    preferences: Optional[UserPreferences] = None,
) -> ModePolicy:
    """
    Build the policy for a quiz in a room of the given mode.

    Args:
        mode: Room mode
        quiz_time_limit: Quiz's own time limit in minutes, if any
        preferences: User preferences (defaults apply when None)

    Raises:
        ValidationError: If the mode is unknown
    """
    mode = RoomMode.parse(mode)
    preferences = preferences or UserPreferences(user_id="")
    time_limit = effective_time_limit(mode, quiz_time_limit, preferences)

    if mode is RoomMode.STUDY:
        return ModePolicy(
            mode=mode,
            time_limit_minutes=time_limit,
            immediate_feedback=True,
            per_question_lock=True,
            retake_allowed=True,
            review_allowed=True,
            leaderboard_enabled=False,
        )

    if mode is RoomMode.CHALLENGE:
        return ModePolicy(
            mode=mode,
            time_limit_minutes=time_limit,
            immediate_feedback=False,
            per_question_lock=False,
            retake_allowed=True,
            review_allowed=True,
            leaderboard_enabled=True,
        )

    return ModePolicy(
        mode=mode,
        time_limit_minutes=time_limit,
        immediate_feedback=False,
        per_question_lock=False,
        retake_allowed=False,
        review_allowed=bool(preferences.show_answers_immediately),
        leaderboard_enabled=False,
    )
