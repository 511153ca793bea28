"""
Unit tests for the Quiz Generation Client.

Tests prompt building, response parsing/normalization and upstream error
mapping. The chat model is always mocked.
"""

import json
import unittest
from unittest.mock import Mock

import httpx
import openai
import pytest

from synapse.agents.quiz_generator import (
    GeneratedQuestion,
    QuizGenerationClient,
    build_system_prompt,
    build_user_prompt,
    clamp_question_count,
    parse_quiz_response,
)
from synapse.config import token_tracker
from synapse.errors import NetworkError, QuotaExhausted, RateLimited, SynapseError, ValidationError


def _status_error(status: int) -> openai.APIStatusError:
    request = httpx.Request("POST", "https://gateway.test/v1/chat/completions")
    response = httpx.Response(status, request=request, json={"error": {"message": "upstream"}})
    return openai.APIStatusError("upstream", response=response, body=None)


class TestParseQuizResponse(unittest.TestCase):
    """Test JSON extraction and normalization."""

    def test_extracts_array_from_surrounding_text(self):
        reply = 'Sure! Here you go:\n```json\n[{"question": "Q?", "type": "true_false", ' \
                '"options": ["True", "False"], "correct": "True"}]\n```'
        questions = parse_quiz_response(reply)
        self.assertEqual(len(questions), 1)
        self.assertEqual(questions[0].type, "true_false")
        self.assertEqual(questions[0].correct, "True")

    def test_defaults_for_missing_fields(self):
        questions = parse_quiz_response('[{}, {"type": "essay"}]')
        first, second = questions
        self.assertEqual(first.question, "Question 1")
        self.assertEqual(second.question, "Question 2")
        self.assertEqual(first.type, "multiple_choice")
        self.assertEqual(second.type, "multiple_choice")
        self.assertEqual(first.options, ["A", "B", "C", "D"])
        self.assertEqual(first.correct, "Unknown")
        self.assertIsNone(first.explanation)

    def test_true_false_requires_exact_type(self):
        questions = parse_quiz_response('[{"type": "True_False"}, {"type": "true_false"}]')
        self.assertEqual([q.type for q in questions], ["multiple_choice", "true_false"])

    def test_correct_defaults_to_first_option(self):
        questions = parse_quiz_response('[{"options": ["Yes", "No"]}]')
        self.assertEqual(questions[0].correct, "Yes")

    def test_options_coerced_to_strings(self):
        questions = parse_quiz_response('[{"options": [1, 2, 3], "correct": 2}]')
        self.assertEqual(questions[0].options, ["1", "2", "3"])
        self.assertEqual(questions[0].correct, "2")

        questions = parse_quiz_response(
            '[{"question": 42, "type": "true_false", "options": ["True", "False"], "correct": "True"}]'
        )
        self.assertEqual(questions[0].question, "42")

    def test_explanation_passed_through(self):
        questions = parse_quiz_response('[{"explanation": "Because."}]')
        self.assertEqual(questions[0].explanation, "Because.")

    def test_no_array_is_parse_error(self):
        with self.assertRaises(ValidationError) as cm:
            parse_quiz_response("I cannot help with that.")
        self.assertEqual(cm.exception.code, "PARSE_ERROR")

    def test_invalid_json_is_parse_error(self):
        with self.assertRaises(ValidationError) as cm:
            parse_quiz_response("[{question: 'unquoted'}]")
        self.assertEqual(cm.exception.code, "PARSE_ERROR")

    def test_empty_array_is_empty_result(self):
        with self.assertRaises(ValidationError) as cm:
            parse_quiz_response("Nothing to ask: []")
        self.assertEqual(cm.exception.code, "EMPTY_RESULT")

    def test_wire_format_encodes_options(self):
        question = GeneratedQuestion("Q?", "multiple_choice", ["a", "b"], "a", "why")
        wire = question.to_wire()
        self.assertEqual(json.loads(wire["options"]), ["a", "b"])
        self.assertNotIn("explanation", wire)


class TestPrompts:
    def test_clamp_question_count(self):
        assert clamp_question_count(None) == 5
        assert clamp_question_count(1) == 5
        assert clamp_question_count(12) == 12
        assert clamp_question_count(100) == 25

    def test_unknown_difficulty_uses_medium_guidelines(self):
        assert build_system_prompt("legendary", 5) == build_system_prompt("medium", 5)
        assert "exactly 7 quiz questions" in build_system_prompt("hard", 7)

    def test_content_truncated(self):
        prompt = build_user_prompt("x" * 9000 + "TAIL", "easy", 5)
        assert "x" * 8000 in prompt
        assert "x" * 8001 not in prompt
        assert "TAIL" not in prompt
        assert "easy difficulty" in prompt


class TestQuizGenerationClient:
    """Test the client against a mocked chat model."""

    def test_generate_returns_normalized_questions(self, fake_llm):
        client = QuizGenerationClient(llm=fake_llm)
        questions = client.generate("Some study text", difficulty="easy", question_count=5)

        assert len(questions) == 5
        assert questions[0].correct == "Paris"
        fake_llm.invoke.assert_called_once()
        system, human = fake_llm.invoke.call_args.args[0]
        assert "exactly 5 quiz questions" in system.content
        assert "Some study text" in human.content

    def test_records_token_usage(self, fake_llm):
        QuizGenerationClient(llm=fake_llm).generate("text")
        assert token_tracker.total_tokens() == 200
        assert token_tracker.total_calls == 1

    def test_missing_content(self, fake_llm):
        with pytest.raises(ValidationError) as exc:
            QuizGenerationClient(llm=fake_llm).generate("   ")
        assert exc.value.status_code == 400
        fake_llm.invoke.assert_not_called()

    def test_empty_result(self, llm_reply):
        llm = Mock()
        llm.invoke.return_value = llm_reply([])
        with pytest.raises(ValidationError) as exc:
            QuizGenerationClient(llm=llm).generate("text")
        assert exc.value.code == "EMPTY_RESULT"

    def test_empty_reply_is_network_error(self, llm_reply):
        llm = Mock()
        llm.invoke.return_value = llm_reply("")
        with pytest.raises(NetworkError):
            QuizGenerationClient(llm=llm).generate("text")

    @pytest.mark.parametrize(
        "status, error_type, code",
        [
            (429, RateLimited, "RATE_LIMIT"),
            (402, QuotaExhausted, "CREDITS_EXHAUSTED"),
            (500, NetworkError, "AI_API_ERROR"),
        ],
    )
    def test_upstream_status_mapping(self, status, error_type, code):
        llm = Mock()
        llm.invoke.side_effect = _status_error(status)
        with pytest.raises(error_type) as exc:
            QuizGenerationClient(llm=llm).generate("text")
        assert exc.value.code == code
        assert llm.invoke.call_count == 1

    def test_connection_error_is_network_error(self):
        llm = Mock()
        llm.invoke.side_effect = openai.APIConnectionError(
            request=httpx.Request("POST", "https://gateway.test/v1/chat/completions")
        )
        with pytest.raises(NetworkError):
            QuizGenerationClient(llm=llm).generate("text")

    def test_missing_api_key(self):
        client = QuizGenerationClient(api_key="")
        with pytest.raises(SynapseError) as exc:
            client.generate("text")
        assert exc.value.code == "AI_NOT_CONFIGURED"
