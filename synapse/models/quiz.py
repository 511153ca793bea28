"""
Room, document, quiz and question records.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Dict, List, Literal, Optional

Difficulty = Literal["easy", "medium", "hard"]
QuestionType = Literal["multiple_choice", "true_false"]
MemberRole = Literal["owner", "member"]


@dataclass
class Room:
    """A shared study space joined by code."""

    id: str
    name: str
    code: str
    mode: str
    owner_id: str
    leaderboard_enabled: bool = False
    created_at: Optional[str] = None

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "Room":
        return cls(
            id=row["id"],
            name=row["name"],
            code=row["code"],
            mode=row["mode"],
            owner_id=row["owner_id"],
            leaderboard_enabled=row.get("leaderboard_enabled", False),
            created_at=row.get("created_at"),
        )


@dataclass
class Document:
    """Raw study material uploaded to a room."""

    id: str
    room_id: str
    uploaded_by: str
    name: str
    content: str = ""
    created_at: Optional[str] = None

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "Document":
        return cls(
            id=row["id"],
            room_id=row["room_id"],
            uploaded_by=row["uploaded_by"],
            name=row["name"],
            content=row.get("content") or "",
            created_at=row.get("created_at"),
        )


@dataclass
class Quiz:
    """
    A quiz belonging to one room, optionally derived from one document.

    Immutable once its questions have been generated.
    """

    id: str
    room_id: str
    title: str
    difficulty: Difficulty = "medium"
    description: Optional[str] = None
    time_limit_minutes: Optional[int] = None
    document_id: Optional[str] = None
    created_by: Optional[str] = None
    created_at: Optional[str] = None

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "Quiz":
        return cls(
            id=row["id"],
            room_id=row["room_id"],
            title=row["title"],
            difficulty=row.get("difficulty", "medium"),
            description=row.get("description"),
            time_limit_minutes=row.get("time_limit_minutes"),
            document_id=row.get("document_id"),
            created_by=row.get("created_by"),
            created_at=row.get("created_at"),
        )


@dataclass
class Question:
    """
    A single quiz question.

    ``correct_answer`` is expected to be one of ``options``; this is not
    enforced, so a malformed question can be impossible to answer correctly.
    """

    id: str
    quiz_id: str
    question_text: str
    question_type: QuestionType
    options: List[str] = field(default_factory=list)
    correct_answer: str = ""
    explanation: Optional[str] = None
    order_index: int = 0

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "Question":
        options = row.get("options") or []
        # Rows written by older clients store options as a JSON string
        if isinstance(options, str):
            options = json.loads(options)
        return cls(
            id=row["id"],
            quiz_id=row["quiz_id"],
            question_text=row["question_text"],
            question_type=row["question_type"],
            options=list(options),
            correct_answer=row["correct_answer"],
            explanation=row.get("explanation"),
            order_index=row.get("order_index", 0),
        )

    def is_answerable(self) -> bool:
        """Whether the correct answer appears among the options."""
        return self.correct_answer in self.options

    def is_correct(self, answer: Optional[str]) -> bool:
        """Exact, case-sensitive comparison against the stored answer."""
        return answer is not None and answer == self.correct_answer
