"""
Quiz attempt state machine.

An attempt is one of three explicit states:

    NotStarted --start--> InProgress --select_answer--> InProgress
                                     --submit/time up--> Completed

Transitions are pure functions returning a ``Transition``: either the next
state or the error that blocked it. Nothing here touches storage; the
attempt manager persists the states these functions produce.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import ClassVar, Dict, Mapping, Optional, Sequence, Tuple, Union

from ..errors import AttemptBlocked, Conflict, SynapseError
from .mode_policy import ModePolicy
from .quiz import Question


@dataclass(frozen=True)
class NotStarted:
    """No attempt row exists yet for this (user, quiz)."""

    quiz_id: str
    status: ClassVar[str] = "not_started"


@dataclass(frozen=True)
class InProgress:
    """Answers are being collected."""

    attempt_id: str
    quiz_id: str
    started_at: datetime
    answers: Dict[str, str] = field(default_factory=dict)
    status: ClassVar[str] = "in_progress"


@dataclass(frozen=True)
class Completed:
    """Terminal state for one attempt row."""

    attempt_id: str
    quiz_id: str
    started_at: datetime
    completed_at: datetime
    answers: Dict[str, str]
    score: int
    correct_count: int
    total_questions: int
    status: ClassVar[str] = "completed"

    @property
    def duration_seconds(self) -> float:
        return (self.completed_at - self.started_at).total_seconds()


AttemptState = Union[NotStarted, InProgress, Completed]


@dataclass(frozen=True)
class Transition:
    """Outcome of a guarded transition: the next state, or why it was refused."""

    state: Optional[AttemptState] = None
    error: Optional[SynapseError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap(self) -> AttemptState:
        """Return the new state or raise the blocking error."""
        if self.error is not None:
            raise self.error
        return self.state


def _invalid(state: AttemptState, action: str) -> Transition:
    return Transition(
        error=Conflict(
            f"Cannot {action} an attempt that is {state.status}",
            code="INVALID_TRANSITION",
        )
    )


# ==================== Transitions ====================


def start_attempt(
    state: AttemptState,
    attempt_id: str,
    now: datetime,
    policy: ModePolicy,
    has_completed_attempt: bool = False,
) -> Transition:
    """
    Begin a new attempt.

    Allowed from NotStarted, and from Completed (a new row) when the policy
    permits retakes.

    Args:
        state: Latest known state for this (user, quiz)
        attempt_id: Id for the new attempt row
        now: Start time
        policy: Mode policy for the quiz
        has_completed_attempt: Whether any completed attempt exists
    """
    if isinstance(state, InProgress):
        return _invalid(state, "start")

    if not policy.retake_allowed and (has_completed_attempt or isinstance(state, Completed)):
        return Transition(
            error=AttemptBlocked(
                f"Only one attempt is allowed in {policy.mode.value} mode"
            )
        )

    return Transition(state=InProgress(attempt_id=attempt_id, quiz_id=state.quiz_id, started_at=now))


def select_answer(state: AttemptState, question_id: str, answer: str) -> Transition:
    """
    Record (or overwrite) the answer to one question.

    The answer is accepted as-is; it is not checked against the options.
    """
    if not isinstance(state, InProgress):
        return _invalid(state, "answer")

    answers = dict(state.answers)
    answers[question_id] = answer
    return Transition(
        state=InProgress(
            attempt_id=state.attempt_id,
            quiz_id=state.quiz_id,
            started_at=state.started_at,
            answers=answers,
        )
    )


def submit_attempt(state: AttemptState, questions: Sequence[Question], now: datetime) -> Transition:
    """Score the collected answers and complete the attempt."""
    if not isinstance(state, InProgress):
        return _invalid(state, "submit")

    correct, score = score_attempt(questions, state.answers)
    return Transition(
        state=Completed(
            attempt_id=state.attempt_id,
            quiz_id=state.quiz_id,
            started_at=state.started_at,
            completed_at=now,
            answers=dict(state.answers),
            score=score,
            correct_count=correct,
            total_questions=len(questions),
        )
    )


# ==================== Scoring & timing ====================


def compute_score(correct_count: int, total_questions: int) -> int:
    """
    Percentage score rounded half up, in [0, 100].

    A quiz with no questions scores 0.
    """
    if total_questions <= 0:
        return 0
    return int(math.floor(100 * correct_count / total_questions + 0.5))


def score_attempt(questions: Sequence[Question], answers: Mapping[str, str]) -> Tuple[int, int]:
    """
    Count exact matches and compute the score.

    Unanswered questions count as incorrect.

    Returns:
        (correct_count, score)
    """
    correct = sum(1 for q in questions if q.is_correct(answers.get(q.id)))
    return correct, compute_score(correct, len(questions))


def seconds_remaining(
    started_at: datetime,
    time_limit_minutes: Optional[int],
    now: datetime,
) -> Optional[int]:
    """Whole seconds left before time is up (never negative), or None if untimed."""
    if not time_limit_minutes:
        return None
    elapsed = (now - started_at).total_seconds()
    return max(0, math.floor(time_limit_minutes * 60 - elapsed))


# ==================== Row mapping ====================


def _parse_ts(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


def state_from_row(row: Optional[dict], quiz_id: str) -> AttemptState:
    """Rebuild the state of a ``quiz_attempts`` row (None means NotStarted)."""
    if row is None or row["status"] == NotStarted.status:
        return NotStarted(quiz_id=quiz_id)

    answers = dict(row.get("answers") or {})
    if row["status"] == InProgress.status:
        return InProgress(
            attempt_id=row["id"],
            quiz_id=row["quiz_id"],
            started_at=_parse_ts(row["started_at"]),
            answers=answers,
        )

    total = row.get("total_questions") or 0
    score = row.get("score") or 0
    return Completed(
        attempt_id=row["id"],
        quiz_id=row["quiz_id"],
        started_at=_parse_ts(row["started_at"]),
        completed_at=_parse_ts(row["completed_at"]),
        answers=answers,
        score=score,
        correct_count=row.get("correct_count", round(score * total / 100)),
        total_questions=total,
    )


def state_to_row(state: Union[InProgress, Completed], user_id: str) -> dict:
    """Columns of the ``quiz_attempts`` row for a started or completed state."""
    row = {
        "id": state.attempt_id,
        "user_id": user_id,
        "quiz_id": state.quiz_id,
        "status": state.status,
        "answers": dict(state.answers),
        "started_at": state.started_at.isoformat(),
        "completed_at": None,
        "score": None,
    }
    if isinstance(state, Completed):
        row.update(
            {
                "completed_at": state.completed_at.isoformat(),
                "score": state.score,
                "correct_count": state.correct_count,
                "total_questions": state.total_questions,
            }
        )
    return row
