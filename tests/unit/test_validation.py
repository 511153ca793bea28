"""
Unit tests for schema validation of stored rows.
"""

import pytest

from synapse.utils.validation import (
    SchemaValidator,
    ValidationResult,
    get_table_validator,
    validate_record,
)


class TestValidationResult:
    """Test suite for ValidationResult class."""

    def test_valid_result_is_truthy(self):
        assert bool(ValidationResult(valid=True, errors=[])) is True

    def test_invalid_result_is_falsy(self):
        assert bool(ValidationResult(valid=False, errors=["error"])) is False

    def test_str_lists_errors(self):
        result = ValidationResult(valid=False, errors=["first", "second"])
        assert "2 error(s)" in str(result)
        assert "first" in str(result)


class TestSchemaValidator:
    def test_custom_schema_file(self, temp_schema_file):
        validator = SchemaValidator(temp_schema_file)
        assert validator.validate({"test": "ok"}).valid
        result = validator.validate({})
        assert not result.valid
        assert "At 'root'" in result.errors[0]
        assert "validator=required" in result.errors[0]


class TestTableSchemas:
    def test_tables_without_schema_always_pass(self):
        assert get_table_validator("daily_activity") is None
        assert validate_record("daily_activity", {"anything": 1}).valid

    def test_question_requires_string_options(self):
        row = {
            "id": "q-1",
            "quiz_id": "quiz-1",
            "question_text": "?",
            "question_type": "multiple_choice",
            "options": ["A", 2],
            "correct_answer": "A",
            "order_index": 0,
        }
        result = validate_record("questions", row)
        assert not result.valid
        assert any("options -> 1" in e for e in result.errors)

    def test_attempt_score_bounds(self):
        row = {"id": "qa-1", "user_id": "u", "quiz_id": "q", "status": "completed",
               "answers": {}, "score": 101}
        assert not validate_record("quiz_attempts", row).valid
        row["score"] = 100
        assert validate_record("quiz_attempts", row).valid

    def test_profile_rejects_negative_xp(self):
        row = {"id": "u", "username": "ana", "xp": -5, "level": 1, "streak_days": 0}
        assert not validate_record("profiles", row).valid

    @pytest.mark.parametrize("status", ["not_started", "in_progress", "completed"])
    def test_attempt_statuses(self, status):
        row = {"id": "qa-1", "user_id": "u", "quiz_id": "q", "status": status, "answers": {}}
        assert validate_record("quiz_attempts", row).valid
