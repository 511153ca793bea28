"""
Unit tests for the record store.

Tests CRUD, unique constraints, schema checks, conditional updates,
transactions and file persistence.
"""

import json

import pytest

from synapse.errors import Conflict, NotFound, ValidationError
from synapse.utils.persistence import RecordStore


def _room(**overrides):
    row = {
        "name": "Biology",
        "code": "ABCDEF",
        "mode": "study",
        "owner_id": "user-1",
        "leaderboard_enabled": False,
    }
    row.update(overrides)
    return row


class TestCrud:
    def test_insert_assigns_id_and_created_at(self, store):
        row = store.insert("rooms", _room())
        assert row["id"].startswith("room-")
        assert "created_at" in row
        assert store.get("rooms", row["id"]) == row

    def test_returned_rows_are_copies(self, store):
        row = store.insert("rooms", _room())
        row["name"] = "changed"
        assert store.get("rooms", row["id"])["name"] == "Biology"

    def test_select_filters_and_orders(self, store):
        store.insert("questions", {"quiz_id": "quiz-1", "question_text": "b", "question_type": "true_false",
                                   "options": ["True", "False"], "correct_answer": "True", "order_index": 1})
        store.insert("questions", {"quiz_id": "quiz-1", "question_text": "a", "question_type": "true_false",
                                   "options": ["True", "False"], "correct_answer": "True", "order_index": 0})
        store.insert("questions", {"quiz_id": "quiz-2", "question_text": "c", "question_type": "true_false",
                                   "options": ["True", "False"], "correct_answer": "True", "order_index": 0})

        rows = store.select("questions", order_by="order_index", quiz_id="quiz-1")
        assert [r["question_text"] for r in rows] == ["a", "b"]
        assert store.count("questions") == 3

    def test_delete_returns_count(self, store):
        store.insert("room_members", {"room_id": "r1", "user_id": "u1", "role": "owner"})
        store.insert("room_members", {"room_id": "r1", "user_id": "u2", "role": "member"})
        assert store.delete("room_members", room_id="r1") == 2
        assert store.delete("room_members", room_id="r1") == 0

    def test_update_missing_row(self, store):
        with pytest.raises(NotFound):
            store.update("rooms", "room-missing", {"name": "x"})

    def test_unknown_table(self, store):
        with pytest.raises(ValueError):
            store.select("widgets")


class TestConstraints:
    def test_duplicate_membership_conflicts(self, store):
        store.insert("room_members", {"room_id": "r1", "user_id": "u1", "role": "owner"})
        with pytest.raises(Conflict) as exc:
            store.insert("room_members", {"room_id": "r1", "user_id": "u1", "role": "member"})
        assert exc.value.code == "DUPLICATE"

    def test_duplicate_achievement_conflicts(self, store):
        row = {"user_id": "u1", "achievement_id": "first_quiz", "earned_at": "2024-03-15"}
        store.insert("user_achievements", row)
        with pytest.raises(Conflict):
            store.insert("user_achievements", dict(row))

    def test_schema_violation(self, store):
        with pytest.raises(ValidationError) as exc:
            store.insert("rooms", _room(code="abc"))
        assert exc.value.code == "INVALID_RECORD"

    def test_code_alphabet_excludes_ambiguous_characters(self, store):
        with pytest.raises(ValidationError):
            store.insert("rooms", _room(code="ABCDE0"))

    def test_validation_can_be_disabled(self):
        store = RecordStore(validate=False)
        assert store.insert("rooms", _room(code="abc"))["code"] == "abc"

    def test_upsert_updates_existing(self, store):
        store.upsert("user_preferences", {"user_id": "u1", "theme": "dark"}, on_conflict=("user_id",))
        store.upsert("user_preferences", {"user_id": "u1", "theme": "light"}, on_conflict=("user_id",))
        rows = store.select("user_preferences", user_id="u1")
        assert len(rows) == 1
        assert rows[0]["theme"] == "light"


class TestConditionalUpdate:
    def test_where_mismatch_returns_none(self, store):
        row = store.insert("quiz_attempts", {"user_id": "u1", "quiz_id": "q1", "status": "completed", "answers": {}})
        assert store.update("quiz_attempts", row["id"], {"score": 50}, where={"status": "in_progress"}) is None
        assert store.get("quiz_attempts", row["id"]).get("score") is None

    def test_where_match_updates(self, store):
        row = store.insert("quiz_attempts", {"user_id": "u1", "quiz_id": "q1", "status": "in_progress", "answers": {}})
        updated = store.update(
            "quiz_attempts", row["id"], {"status": "completed", "score": 80}, where={"status": "in_progress"}
        )
        assert updated["score"] == 80


class TestTransactions:
    def test_rollback_on_error(self, store):
        store.insert("rooms", _room())
        with pytest.raises(RuntimeError):
            with store.transaction():
                store.insert("rooms", _room(code="GHJKLM"))
                store.delete("rooms", code="ABCDEF")
                raise RuntimeError("fail")

        assert [r["code"] for r in store.select("rooms")] == ["ABCDEF"]

    def test_nested_transactions_join_outer(self, store):
        with pytest.raises(RuntimeError):
            with store.transaction():
                with store.transaction():
                    store.insert("rooms", _room())
                raise RuntimeError("fail")
        assert store.count("rooms") == 0


class TestFilePersistence:
    def test_round_trip_through_file(self, tmp_path):
        path = tmp_path / "store.json"
        store = RecordStore(path)
        row = store.insert("rooms", _room())

        reopened = RecordStore(path)
        assert reopened.get("rooms", row["id"]) == row

    def test_no_write_until_transaction_commits(self, tmp_path):
        path = tmp_path / "store.json"
        store = RecordStore(path)
        with store.transaction():
            store.insert("rooms", _room())
            assert not path.exists()
        data = json.loads(path.read_text(encoding="utf-8"))
        assert len(data["rooms"]) == 1
