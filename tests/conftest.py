"""
Shared pytest fixtures and configuration for Synapse tests.

This file is automatically discovered by pytest and provides
fixtures available to all tests.
"""

import json
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path
from unittest.mock import Mock

import pytest

# Add project root to path for all tests
sys.path.insert(0, str(Path(__file__).parent.parent))

from langchain_core.messages import AIMessage

from synapse.models.context import UserContext
from synapse.utils.persistence import RecordStore


class FrozenClock:
    """Controllable clock for UserContext."""

    def __init__(self, start: datetime):
        self.current = start

    def __call__(self) -> datetime:
        return self.current

    def advance(self, seconds: float = 0, days: int = 0) -> datetime:
        self.current = self.current + timedelta(seconds=seconds, days=days)
        return self.current


SAMPLE_QUESTIONS = [
    {
        "question_text": "What is the capital of France?",
        "question_type": "multiple_choice",
        "options": ["Berlin", "Paris", "Rome", "Madrid"],
        "correct_answer": "Paris",
        "explanation": "Paris has been the capital since 987.",
    },
    {
        "question_text": "The Seine flows through Paris.",
        "question_type": "true_false",
        "options": ["True", "False"],
        "correct_answer": "True",
        "explanation": None,
    },
    {
        "question_text": "Which river flows through Rome?",
        "question_type": "multiple_choice",
        "options": ["Tiber", "Po", "Arno", "Danube"],
        "correct_answer": "Tiber",
        "explanation": None,
    },
    {
        "question_text": "Madrid is in Portugal.",
        "question_type": "true_false",
        "options": ["True", "False"],
        "correct_answer": "False",
        "explanation": None,
    },
    {
        "question_text": "Which city hosts the Brandenburg Gate?",
        "question_type": "multiple_choice",
        "options": ["Berlin", "Vienna", "Prague", "Warsaw"],
        "correct_answer": "Berlin",
        "explanation": None,
    },
]


@pytest.fixture
def clock():
    """Frozen clock starting at 2024-03-15 10:00 UTC."""
    return FrozenClock(datetime(2024, 3, 15, 10, 0, tzinfo=timezone.utc))


@pytest.fixture
def ctx(clock):
    return UserContext(user_id="user-alice", clock=clock)


@pytest.fixture
def other_ctx(clock):
    return UserContext(user_id="user-bob", clock=clock)


@pytest.fixture
def store():
    """Fresh in-memory record store."""
    return RecordStore()


@pytest.fixture
def make_quiz(store):
    """
    Factory inserting a room, a quiz and its questions directly.

    Returns:
        callable(mode="study", time_limit_minutes=None, questions=SAMPLE_QUESTIONS)
        -> (quiz_id, [question rows])
    """
    counter = {"n": 0}

    def _make(mode="study", time_limit_minutes=None, questions=None, owner_id="user-alice"):
        counter["n"] += 1
        room = store.insert(
            "rooms",
            {
                "name": f"Room {counter['n']}",
                "code": f"TESTR{'ABCDEFGH'[counter['n'] % 8]}",
                "mode": mode,
                "owner_id": owner_id,
                "leaderboard_enabled": mode == "challenge",
            },
        )
        quiz = store.insert(
            "quizzes",
            {
                "room_id": room["id"],
                "title": "Capitals",
                "difficulty": "easy",
                "time_limit_minutes": time_limit_minutes,
                "created_by": owner_id,
            },
        )
        rows = [
            store.insert("questions", {**q, "quiz_id": quiz["id"], "order_index": i})
            for i, q in enumerate(SAMPLE_QUESTIONS if questions is None else questions)
        ]
        return quiz["id"], rows

    return _make


def _llm_reply(payload) -> AIMessage:
    """AIMessage whose content is ``payload`` (JSON-encoded unless already a string)."""
    content = payload if isinstance(payload, str) else json.dumps(payload)
    return AIMessage(
        content=content,
        usage_metadata={"input_tokens": 120, "output_tokens": 80, "total_tokens": 200},
    )


@pytest.fixture
def llm_reply():
    """Factory building chat-model replies from a payload."""
    return _llm_reply


@pytest.fixture
def fake_llm():
    """Chat model stub replying with a valid five-question array."""
    llm = Mock()
    llm.invoke.return_value = _llm_reply(
        [
            {
                "question": q["question_text"],
                "type": q["question_type"],
                "options": q["options"],
                "correct": q["correct_answer"],
                "explanation": q["explanation"],
            }
            for q in SAMPLE_QUESTIONS
        ]
    )
    return llm


@pytest.fixture
def temp_schema_file(tmp_path):
    """
    Fixture providing a temporary schema file for testing.

    Returns:
        Path: Path to temporary schema file
    """
    schema = {
        "$schema": "http://json-schema.org/draft-07/schema#",
        "type": "object",
        "properties": {"test": {"type": "string"}},
        "required": ["test"],
    }

    schema_file = tmp_path / "test.schema.json"
    with open(schema_file, "w") as f:
        json.dump(schema, f)

    return schema_file


@pytest.fixture(autouse=True)
def reset_token_tracker():
    """
    Auto-fixture to reset token tracker before each test.

    This ensures tests don't interfere with each other.
    """
    from synapse.config import token_tracker

    token_tracker.reset()
    yield
    token_tracker.reset()


# Pytest hooks for better test output


def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line("markers", "unit: mark test as a unit test")
    config.addinivalue_line("markers", "integration: mark test as an integration test")
    config.addinivalue_line("markers", "slow: mark test as slow running")


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their location."""
    for item in items:
        if "unit" in str(item.fspath):
            item.add_marker(pytest.mark.unit)
        if "integration" in str(item.fspath):
            item.add_marker(pytest.mark.integration)
