"""
Quiz Attempt Manager - lifecycle of one user's attempt at one quiz.

Wraps the pure transitions in ``models.attempt`` with persistence:

    start -> select_answer* -> submit | time_up

Each step is written to the record store immediately. Completion is a
compare-and-set on the attempt row (only an ``in_progress`` row can be
completed) followed by the gamification update, both inside one
transaction, so a timer-driven and a manual submit cannot both award XP.

Presence (who is taking which quiz right now) is kept in ``active_sessions``
alongside the attempt.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

from loguru import logger

from .config import config
from .errors import Conflict, NotFound
from .gamification import GamificationEngine, GamificationResult
from .models.attempt import (
    AttemptState,
    Completed,
    InProgress,
    seconds_remaining,
    select_answer as select_answer_transition,
    start_attempt,
    state_from_row,
    state_to_row,
    submit_attempt,
)
from .models.context import UserContext
from .models.mode_policy import ModePolicy, resolve_policy
from .models.quiz import Question, Quiz, Room
from .preferences import get_preferences
from .utils.persistence import ID_PREFIXES, RecordStore, get_store


@dataclass
class AnswerFeedback:
    """Per-question feedback, only produced when the policy allows it."""

    question_id: str
    is_correct: bool
    correct_answer: str
    explanation: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "question_id": self.question_id,
            "is_correct": self.is_correct,
            "correct_answer": self.correct_answer,
            "explanation": self.explanation,
        }


@dataclass
class AnswerResult:
    state: InProgress
    feedback: Optional[AnswerFeedback] = None


@dataclass
class SubmissionResult:
    """Completed attempt plus the gamification outcome it produced."""

    state: Completed
    rewards: GamificationResult

    def to_dict(self) -> Dict[str, Any]:
        return {
            "attempt_id": self.state.attempt_id,
            "score": self.state.score,
            "correct_count": self.state.correct_count,
            "total_questions": self.state.total_questions,
            **self.rewards.to_dict(),
        }


@dataclass
class TimerStatus:
    """
    Remaining time on a timed attempt.

    Attributes:
        seconds_remaining: Whole seconds left (0 once time is up)
        warning: Inside the final-minute warning window
        expired: No time left
    """

    seconds_remaining: int
    warning: bool
    expired: bool


class QuizAttemptManager:
    """
    Start, answer, submit and review quiz attempts.

    Usage:
        manager = QuizAttemptManager(store)
        attempt = manager.start(ctx, quiz_id)
        manager.select_answer(ctx, attempt.attempt_id, question_id, "Paris")
        result = manager.submit(ctx, attempt.attempt_id)
        print(result.state.score, result.rewards.xp_earned)
    """

    def __init__(
        self,
        store: Optional[RecordStore] = None,
        gamification: Optional[GamificationEngine] = None,
    ):
        self.store = store or get_store()
        self.gamification = gamification or GamificationEngine(self.store)

    # ==================== Lookups ====================

    def load_quiz(self, quiz_id: str) -> Tuple[Quiz, Room, List[Question]]:
        """
        Load a quiz with its room and ordered questions.

        Raises:
            NotFound: If the quiz or its room does not exist
        """
        quiz_row = self.store.get("quizzes", quiz_id)
        if quiz_row is None:
            raise NotFound(f"Quiz {quiz_id} not found")
        room_row = self.store.get("rooms", quiz_row["room_id"])
        if room_row is None:
            raise NotFound(f"Room {quiz_row['room_id']} not found")

        questions = [
            Question.from_row(row)
            for row in self.store.select("questions", order_by="order_index", quiz_id=quiz_id)
        ]
        return Quiz.from_row(quiz_row), Room.from_row(room_row), questions

    def policy_for(self, ctx: UserContext, quiz_id: str) -> ModePolicy:
        """Mode policy for this user taking this quiz."""
        quiz, room, _ = self.load_quiz(quiz_id)
        return resolve_policy(
            room.mode,
            quiz_time_limit=quiz.time_limit_minutes,
            preferences=get_preferences(ctx, self.store),
        )

    def current_state(self, ctx: UserContext, quiz_id: str) -> AttemptState:
        """
        Latest state for (user, quiz).

        An in-progress attempt wins over completed ones; otherwise the most
        recently started attempt is returned.
        """
        rows = self.store.select(
            "quiz_attempts", order_by="started_at", user_id=ctx.user_id, quiz_id=quiz_id
        )
        in_progress = [r for r in rows if r["status"] == InProgress.status]
        if in_progress:
            return state_from_row(in_progress[-1], quiz_id)
        return state_from_row(rows[-1] if rows else None, quiz_id)

    def attempts(self, ctx: UserContext, quiz_id: str) -> List[AttemptState]:
        """All of the user's attempts at a quiz, oldest first."""
        rows = self.store.select(
            "quiz_attempts", order_by="started_at", user_id=ctx.user_id, quiz_id=quiz_id
        )
        return [state_from_row(row, quiz_id) for row in rows]

    def _own_attempt(self, ctx: UserContext, attempt_id: str) -> dict:
        row = self.store.get("quiz_attempts", attempt_id)
        # Other users' attempts are indistinguishable from missing ones
        if row is None or row["user_id"] != ctx.user_id:
            raise NotFound(f"Attempt {attempt_id} not found")
        return row

    # ==================== Lifecycle ====================

    def start(self, ctx: UserContext, quiz_id: str) -> InProgress:
        """
        Start a new attempt.

        Raises:
            NotFound: Unknown quiz
            AttemptBlocked: Exam mode and a completed attempt already exists
            Conflict: An attempt is already in progress
        """
        quiz, _, questions = self.load_quiz(quiz_id)
        policy = self.policy_for(ctx, quiz_id)

        with self.store.transaction():
            state = self.current_state(ctx, quiz_id)
            has_completed = self.store.count(
                "quiz_attempts", user_id=ctx.user_id, quiz_id=quiz_id, status=Completed.status
            ) > 0

            new_state = start_attempt(
                state,
                f"{ID_PREFIXES['quiz_attempts']}-{uuid.uuid4()}",
                ctx.now(),
                policy,
                has_completed_attempt=has_completed,
            ).unwrap()

            row = state_to_row(new_state, ctx.user_id)
            row["total_questions"] = len(questions)
            self.store.insert("quiz_attempts", row)
            self._touch_session(ctx, quiz, new_state, current_question=0)

        logger.info(f"{ctx.user_id} started quiz {quiz_id} ({policy.mode.value} mode)")
        return new_state

    def select_answer(
        self,
        ctx: UserContext,
        attempt_id: str,
        question_id: str,
        answer: str,
    ) -> AnswerResult:
        """
        Record the answer to one question, overwriting any earlier choice.

        Returns:
            AnswerResult with the new state, and feedback when the mode shows
            correctness immediately

        Raises:
            NotFound: Unknown attempt or question not in this quiz
            Conflict: Attempt is not in progress
        """
        row = self._own_attempt(ctx, attempt_id)
        quiz, _, questions = self.load_quiz(row["quiz_id"])
        question = next((q for q in questions if q.id == question_id), None)
        if question is None:
            raise NotFound(f"Question {question_id} is not part of quiz {quiz.id}")

        state = state_from_row(row, quiz.id)
        new_state = select_answer_transition(state, question_id, answer).unwrap()

        updated = self.store.update(
            "quiz_attempts",
            attempt_id,
            {"answers": dict(new_state.answers)},
            where={"status": InProgress.status},
        )
        if updated is None:
            raise Conflict("Attempt was completed before the answer was saved", code="INVALID_TRANSITION")

        self._touch_session(
            ctx, quiz, new_state, current_question=question.order_index, create=False
        )

        feedback = None
        if self.policy_for(ctx, quiz.id).immediate_feedback:
            feedback = AnswerFeedback(
                question_id=question_id,
                is_correct=question.is_correct(answer),
                correct_answer=question.correct_answer,
                explanation=question.explanation,
            )
        return AnswerResult(state=new_state, feedback=feedback)

    def submit(self, ctx: UserContext, attempt_id: str) -> SubmissionResult:
        """
        Score the attempt, complete it and apply gamification.

        Raises:
            NotFound: Unknown attempt
            Conflict: ALREADY_SUBMITTED if the attempt was already completed
        """
        with self.store.transaction():
            row = self._own_attempt(ctx, attempt_id)
            if row["status"] == Completed.status:
                raise Conflict("Attempt has already been submitted", code="ALREADY_SUBMITTED")

            _, _, questions = self.load_quiz(row["quiz_id"])
            state = state_from_row(row, row["quiz_id"])
            completed = submit_attempt(state, questions, ctx.now()).unwrap()

            updated = self.store.update(
                "quiz_attempts",
                attempt_id,
                state_to_row(completed, ctx.user_id),
                where={"status": InProgress.status},
            )
            if updated is None:
                raise Conflict("Attempt has already been submitted", code="ALREADY_SUBMITTED")

            rewards = self.gamification.record_quiz_completion(
                ctx,
                correct_answers=completed.correct_count,
                total_questions=completed.total_questions,
                score=completed.score,
                started_at=completed.started_at,
            )
            self.store.delete("active_sessions", user_id=ctx.user_id, quiz_id=completed.quiz_id)

        logger.info(
            f"{ctx.user_id} completed quiz {completed.quiz_id}: "
            f"{completed.correct_count}/{completed.total_questions} ({completed.score}%)"
        )
        return SubmissionResult(state=completed, rewards=rewards)

    def time_up(self, ctx: UserContext, attempt_id: str) -> SubmissionResult:
        """Submit with whatever answers have been collected."""
        logger.info(f"Time is up for attempt {attempt_id}")
        return self.submit(ctx, attempt_id)

    def abandon(self, ctx: UserContext, attempt_id: str) -> None:
        """Drop the presence record. The attempt itself stays in progress."""
        row = self._own_attempt(ctx, attempt_id)
        self.store.delete("active_sessions", user_id=ctx.user_id, quiz_id=row["quiz_id"])
        logger.debug(f"{ctx.user_id} left attempt {attempt_id}")

    # ==================== Timer ====================

    def time_remaining(self, ctx: UserContext, attempt_id: str) -> Optional[TimerStatus]:
        """Timer status for an in-progress attempt, or None if it is untimed."""
        row = self._own_attempt(ctx, attempt_id)
        state = state_from_row(row, row["quiz_id"])
        if not isinstance(state, InProgress):
            raise Conflict(f"Attempt is {state.status}", code="INVALID_TRANSITION")

        policy = self.policy_for(ctx, row["quiz_id"])
        remaining = seconds_remaining(state.started_at, policy.time_limit_minutes, ctx.now())
        if remaining is None:
            return None
        return TimerStatus(
            seconds_remaining=remaining,
            warning=0 < remaining <= config.quiz.timer_warning_seconds,
            expired=remaining == 0,
        )

    def check_timer(self, ctx: UserContext, attempt_id: str) -> Optional[SubmissionResult]:
        """
        Auto-submit the attempt once its time has run out.

        Returns None while time remains, for untimed attempts, and for
        attempts that were already submitted.
        """
        row = self._own_attempt(ctx, attempt_id)
        if row["status"] == Completed.status:
            return None
        status = self.time_remaining(ctx, attempt_id)
        if status is None or not status.expired:
            return None
        return self.time_up(ctx, attempt_id)

    # ==================== Review ====================

    def review(self, ctx: UserContext, attempt_id: str) -> List[Dict[str, Any]]:
        """
        Questions with correct answers and the user's choices.

        Raises:
            Conflict: Attempt not completed, or review hidden in this mode
        """
        row = self._own_attempt(ctx, attempt_id)
        state = state_from_row(row, row["quiz_id"])
        if not isinstance(state, Completed):
            raise Conflict("Only completed attempts can be reviewed", code="INVALID_TRANSITION")
        if not self.policy_for(ctx, state.quiz_id).review_allowed:
            raise Conflict("Answer review is not available for this quiz", code="REVIEW_HIDDEN")

        _, _, questions = self.load_quiz(state.quiz_id)
        return [
            {
                "question_id": q.id,
                "question_text": q.question_text,
                "options": q.options,
                "selected_answer": state.answers.get(q.id),
                "correct_answer": q.correct_answer,
                "is_correct": q.is_correct(state.answers.get(q.id)),
                "explanation": q.explanation,
            }
            for q in questions
        ]

    # ==================== Presence ====================

    def _touch_session(
        self,
        ctx: UserContext,
        quiz: Quiz,
        state: InProgress,
        current_question: int,
        create: bool = True,
    ) -> Optional[dict]:
        existing = self.store.find_one("active_sessions", user_id=ctx.user_id, quiz_id=quiz.id)
        if existing is None and not create:
            return None
        return self.store.upsert(
            "active_sessions",
            {
                "user_id": ctx.user_id,
                "quiz_id": quiz.id,
                "room_id": quiz.room_id,
                "current_question": current_question,
                "answers_count": len(state.answers),
                "started_at": state.started_at.isoformat(),
                "last_activity": ctx.now().isoformat(),
            },
            on_conflict=("user_id", "quiz_id"),
        )

    def active_users(self, ctx: UserContext, quiz_id: str) -> List[dict]:
        """Other users currently taking the quiz, with their progress."""
        return [
            row
            for row in self.store.select("active_sessions", order_by="started_at", quiz_id=quiz_id)
            if row["user_id"] != ctx.user_id
        ]
