"""
Room Service - study rooms, membership, documents and quiz creation.

Rooms are joined by a short code. Members upload study documents, and any
member can turn a document into a quiz through the generation client.
"""

from __future__ import annotations

import secrets
from typing import Dict, List, Optional, Tuple

from loguru import logger

from .agents.quiz_generator import QuizGenerationClient
from .config import config
from .errors import Conflict, NotFound, ValidationError
from .models.context import UserContext
from .models.mode_policy import RoomMode
from .models.quiz import Document, Question, Quiz, Room
from .utils.persistence import RecordStore, get_store
from .utils.progress import aggregate_leaderboard

# Attempts at finding an unused room code before giving up
MAX_CODE_ATTEMPTS = 10


def generate_room_code(length: Optional[int] = None, alphabet: Optional[str] = None) -> str:
    """Random join code; the alphabet leaves out I, O, 0 and 1."""
    length = length or config.quiz.room_code_length
    alphabet = alphabet or config.quiz.room_code_alphabet
    return "".join(secrets.choice(alphabet) for _ in range(length))


class RoomService:
    """
    Create and join rooms, upload documents, build quizzes.

    Usage:
        rooms = RoomService(store)
        room = rooms.create_room(ctx, "Biology 101", mode="challenge")
        doc = rooms.upload_document(ctx, room.id, "cells.txt", text)
        quiz, questions = rooms.generate_quiz(ctx, room.id, doc.id, difficulty="easy")
    """

    def __init__(
        self,
        store: Optional[RecordStore] = None,
        generator: Optional[QuizGenerationClient] = None,
    ):
        self.store = store or get_store()
        self._generator = generator

    @property
    def generator(self) -> QuizGenerationClient:
        if self._generator is None:
            self._generator = QuizGenerationClient()
        return self._generator

    # ==================== Rooms ====================

    def create_room(
        self,
        ctx: UserContext,
        name: str,
        mode: RoomMode | str = RoomMode.STUDY,
        leaderboard_enabled: Optional[bool] = None,
    ) -> Room:
        """
        Create a room owned by the caller.

        Args:
            ctx: Acting user
            name: Room name
            mode: study | challenge | exam
            leaderboard_enabled: Defaults to True for challenge rooms only

        Raises:
            ValidationError: Empty name or unknown mode
        """
        mode = RoomMode.parse(mode)
        if not name or not name.strip():
            raise ValidationError("Room name is required")
        if leaderboard_enabled is None:
            leaderboard_enabled = mode is RoomMode.CHALLENGE

        with self.store.transaction():
            row = self._insert_with_unique_code(
                {
                    "name": name.strip(),
                    "mode": mode.value,
                    "owner_id": ctx.user_id,
                    "leaderboard_enabled": leaderboard_enabled,
                }
            )
            self.store.insert(
                "room_members",
                {"room_id": row["id"], "user_id": ctx.user_id, "role": "owner"},
            )

        logger.info(f"{ctx.user_id} created {mode.value} room '{row['name']}' ({row['code']})")
        return Room.from_row(row)

    def _insert_with_unique_code(self, room: dict) -> dict:
        for _ in range(MAX_CODE_ATTEMPTS):
            code = generate_room_code()
            if self.store.find_one("rooms", code=code) is None:
                return self.store.insert("rooms", {**room, "code": code})
        raise Conflict("Could not allocate a unique room code", code="CODE_EXHAUSTED")

    def join_room(self, ctx: UserContext, code: str) -> Room:
        """
        Join a room by its code (case-insensitive).

        Raises:
            NotFound: No room has this code
            Conflict: ALREADY_MEMBER if the caller is already in the room
        """
        normalized = (code or "").strip().upper()
        row = self.store.find_one("rooms", code=normalized)
        if row is None:
            raise NotFound("Room not found. Check the code and try again.")

        if self.is_member(row["id"], ctx.user_id):
            raise Conflict("You're already a member of this room", code="ALREADY_MEMBER")

        self.store.insert(
            "room_members",
            {"room_id": row["id"], "user_id": ctx.user_id, "role": "member"},
        )
        logger.info(f"{ctx.user_id} joined room {row['code']}")
        return Room.from_row(row)

    def get_room(self, room_id: str) -> Room:
        row = self.store.get("rooms", room_id)
        if row is None:
            raise NotFound(f"Room {room_id} not found")
        return Room.from_row(row)

    def rooms_for(self, ctx: UserContext) -> List[Room]:
        """Rooms the caller belongs to."""
        memberships = self.store.select("room_members", user_id=ctx.user_id)
        return [self.get_room(m["room_id"]) for m in memberships]

    def members(self, room_id: str) -> List[dict]:
        return self.store.select("room_members", order_by="created_at", room_id=room_id)

    def is_member(self, room_id: str, user_id: str) -> bool:
        return self.store.count("room_members", room_id=room_id, user_id=user_id) > 0

    def _require_member(self, ctx: UserContext, room_id: str) -> Room:
        room = self.get_room(room_id)
        if not self.is_member(room_id, ctx.user_id):
            raise NotFound(f"Room {room_id} not found")
        return room

    # ==================== Documents ====================

    def upload_document(self, ctx: UserContext, room_id: str, name: str, content: str) -> Document:
        """
        Store raw study text in a room.

        Raises:
            NotFound: Room missing or caller is not a member
            ValidationError: Empty content
        """
        self._require_member(ctx, room_id)
        if not content or not content.strip():
            raise ValidationError("Document content is required", code="MISSING_CONTENT")

        row = self.store.insert(
            "documents",
            {"room_id": room_id, "uploaded_by": ctx.user_id, "name": name, "content": content},
        )
        logger.info(f"{ctx.user_id} uploaded '{name}' ({len(content)} chars) to room {room_id}")
        return Document.from_row(row)

    def documents(self, room_id: str) -> List[Document]:
        return [
            Document.from_row(row)
            for row in self.store.select("documents", order_by="created_at", room_id=room_id)
        ]

    # ==================== Quizzes ====================

    def generate_quiz(
        self,
        ctx: UserContext,
        room_id: str,
        document_id: str,
        title: Optional[str] = None,
        difficulty: str = "medium",
        question_count: Optional[int] = None,
        time_limit_minutes: Optional[int] = None,
        description: Optional[str] = None,
    ) -> Tuple[Quiz, List[Question]]:
        """
        Create a quiz from a room document.

        The generation call happens before anything is written; the quiz and
        its questions are then inserted together.

        Raises:
            NotFound: Room or document missing, or caller is not a member
            ValidationError / RateLimited / QuotaExhausted / NetworkError:
                From the generation client
        """
        self._require_member(ctx, room_id)
        doc_row = self.store.get("documents", document_id)
        if doc_row is None or doc_row["room_id"] != room_id:
            raise NotFound(f"Document {document_id} not found")
        document = Document.from_row(doc_row)

        if difficulty not in config.quiz.difficulty_levels:
            difficulty = config.quiz.default_difficulty

        generated = self.generator.generate(
            document.content, difficulty=difficulty, question_count=question_count
        )

        with self.store.transaction():
            quiz_row = self.store.insert(
                "quizzes",
                {
                    "room_id": room_id,
                    "document_id": document.id,
                    "title": title or f"Quiz: {document.name}",
                    "description": description,
                    "difficulty": difficulty,
                    "time_limit_minutes": time_limit_minutes,
                    "created_by": ctx.user_id,
                },
            )
            questions = [
                Question.from_row(
                    self.store.insert(
                        "questions",
                        {
                            "quiz_id": quiz_row["id"],
                            "question_text": q.question,
                            "question_type": q.type,
                            "options": q.options,
                            "correct_answer": q.correct,
                            "explanation": q.explanation,
                            "order_index": index,
                        },
                    )
                )
                for index, q in enumerate(generated)
            ]

        quiz = Quiz.from_row(quiz_row)
        logger.info(f"Created quiz {quiz.id} with {len(questions)} questions in room {room_id}")
        return quiz, questions

    def quizzes(self, room_id: str) -> List[Quiz]:
        return [
            Quiz.from_row(row)
            for row in self.store.select("quizzes", order_by="created_at", room_id=room_id)
        ]

    # ==================== Leaderboard ====================

    def leaderboard(self, room_id: str) -> List[Dict]:
        """
        Total completed-attempt score per user across the room's quizzes.

        Raises:
            NotFound: Unknown room
            Conflict: LEADERBOARD_DISABLED if the room has no leaderboard
        """
        room = self.get_room(room_id)
        if not room.leaderboard_enabled:
            raise Conflict("Leaderboard is disabled for this room", code="LEADERBOARD_DISABLED")

        quiz_ids = {q.id for q in self.quizzes(room_id)}
        attempts = [
            row
            for row in self.store.select("quiz_attempts", status="completed")
            if row["quiz_id"] in quiz_ids
        ]
        usernames = {
            row["id"]: row.get("username")
            for row in self.store.select("profiles")
        }
        return aggregate_leaderboard(attempts, usernames)
