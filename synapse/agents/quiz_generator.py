"""
Quiz Generation Client - turns raw study text into a question set.

Sends one chat-completion request to an OpenAI-compatible gateway, pulls the
JSON array out of the model's free text and normalizes each entry. There is
no retry and no re-query: a malformed reply surfaces as an error.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import openai
from langchain_core.messages import HumanMessage, SystemMessage
from langchain_core.prompts import PromptTemplate
from langchain_openai import ChatOpenAI
from loguru import logger

from ..config import config, token_tracker
from ..errors import NetworkError, QuotaExhausted, RateLimited, SynapseError, ValidationError

# Greedy: first "[" to last "]" in the reply
JSON_ARRAY_PATTERN = re.compile(r"\[[\s\S]*\]")

DEFAULT_OPTIONS = ["A", "B", "C", "D"]

DIFFICULTY_GUIDELINES = {
    "easy": (
        "Create straightforward questions that test basic recall and understanding. "
        "Answers should be clearly indicated in the source material."
    ),
    "medium": (
        "Create questions that require comprehension and connecting ideas. "
        "Some inference may be needed."
    ),
    "hard": (
        "Create challenging questions requiring analysis, synthesis, and critical "
        "evaluation of the material."
    ),
}


SYSTEM_PROMPT = PromptTemplate(
    input_variables=["question_count", "guideline"],
    template="""You are a quiz generator for educational content.

Task: Create exactly {question_count} quiz questions from the provided text.

Guidelines:
- Mix question types: primarily multiple choice (4 options), with some true/false
- {guideline}
- Questions must be answerable from the provided content
- All options should be plausible; exactly one is correct
- Avoid ambiguous or trick questions
- Write clear, direct questions

Output format: JSON array with this structure for each question:
{{
  "question": "Question text",
  "type": "multiple_choice" or "true_false",
  "options": ["A", "B", "C", "D"] or ["True", "False"],
  "correct": "The correct answer exactly as in options",
  "explanation": "One sentence on why the answer is correct"
}}""",
)

USER_PROMPT = PromptTemplate(
    input_variables=["question_count", "difficulty", "content"],
    template="""Based on the following document content, generate {question_count} quiz questions at {difficulty} difficulty level:

---
{content}
---

Return only the JSON array.""",
)


@dataclass
class GeneratedQuestion:
    """
    One normalized question from the model.

    Attributes:
        question: Question text
        type: "multiple_choice" or "true_false"
        options: Ordered option list
        correct: Correct answer, expected to be one of the options
        explanation: Optional explanation
    """

    question: str
    type: str
    options: List[str]
    correct: str
    explanation: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "question": self.question,
            "type": self.type,
            "options": self.options,
            "correct": self.correct,
            "explanation": self.explanation,
        }

    def to_wire(self) -> Dict[str, Any]:
        """Shape returned by POST /generate-quiz (options as a JSON string)."""
        return {
            "question": self.question,
            "type": self.type,
            "options": json.dumps(self.options),
            "correct": self.correct,
        }


# ==================== Prompt & parsing helpers ====================


def clamp_question_count(count: Optional[int]) -> int:
    """Clamp the requested count into the configured range."""
    settings = config.quiz
    if count is None:
        return settings.default_questions
    return max(settings.min_questions, min(settings.max_questions, int(count)))


def build_system_prompt(difficulty: str, question_count: int) -> str:
    guideline = DIFFICULTY_GUIDELINES.get(difficulty, DIFFICULTY_GUIDELINES["medium"])
    return SYSTEM_PROMPT.format(question_count=question_count, guideline=guideline)


def build_user_prompt(content: str, difficulty: str, question_count: int) -> str:
    return USER_PROMPT.format(
        question_count=question_count,
        difficulty=difficulty,
        content=content[: config.quiz.max_content_chars],
    )


def normalize_question(raw: Any, index: int) -> GeneratedQuestion:
    """
    Coerce one model entry to the known shape, substituting defaults.

    Args:
        raw: Parsed JSON entry (anything; non-dicts get all defaults)
        index: Position in the array, used for the default question text
    """
    entry = raw if isinstance(raw, dict) else {}

    raw_options = entry.get("options")
    has_options = isinstance(raw_options, list)
    options = [str(opt) for opt in raw_options] if has_options else list(DEFAULT_OPTIONS)

    correct = entry.get("correct")
    if not correct:
        correct = options[0] if has_options and options else "Unknown"

    explanation = entry.get("explanation")

    return GeneratedQuestion(
        question=str(entry.get("question") or f"Question {index + 1}"),
        type="true_false" if entry.get("type") == "true_false" else "multiple_choice",
        options=options,
        correct=str(correct),
        explanation=str(explanation) if explanation else None,
    )


def parse_quiz_response(ai_response: str) -> List[GeneratedQuestion]:
    """
    Extract and normalize the question array from a model reply.

    Raises:
        ValidationError: PARSE_ERROR if no JSON array can be parsed,
            EMPTY_RESULT if the array is empty
    """
    match = JSON_ARRAY_PATTERN.search(ai_response or "")
    if not match:
        raise ValidationError("No JSON array found in AI response", code="PARSE_ERROR")

    try:
        questions = json.loads(match.group(0))
    except json.JSONDecodeError as e:
        raise ValidationError(
            f"Failed to parse quiz questions from AI response: {e}", code="PARSE_ERROR"
        ) from e

    if not isinstance(questions, list) or len(questions) == 0:
        raise ValidationError("AI returned no questions", code="EMPTY_RESULT")

    normalized = [normalize_question(q, i) for i, q in enumerate(questions)]

    unanswerable = [i + 1 for i, q in enumerate(normalized) if q.correct not in q.options]
    if unanswerable:
        logger.warning(
            f"Questions {unanswerable} have a correct answer missing from their options"
        )

    return normalized


# ==================== Client ====================


class QuizGenerationClient:
    """
    Generates quiz questions through an OpenAI-compatible chat API.

    Usage:
        client = QuizGenerationClient()
        questions = client.generate(text, difficulty="easy", question_count=10)
    """

    def __init__(
        self,
        llm: Optional[Any] = None,
        model_name: Optional[str] = None,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        temperature: Optional[float] = None,
    ):
        """
        Initialize the client.

        Args:
            llm: Pre-built chat model (anything with ``invoke(messages)``)
            model_name: Model id (default: config.model.model_name)
            base_url: Gateway base URL (default: config.model.base_url)
            api_key: Gateway key (default: config.model.api_key)
            temperature: Sampling temperature (default: config.model.temperature)
        """
        self.model_name = model_name or config.model.model_name
        self.base_url = base_url or config.model.base_url
        self.api_key = api_key if api_key is not None else config.model.api_key
        self.temperature = config.model.temperature if temperature is None else temperature
        self._llm = llm

    @property
    def llm(self):
        """Chat model, built on first use so a missing key fails per request."""
        if self._llm is None:
            if not self.api_key:
                raise SynapseError("AI API key is not configured", code="AI_NOT_CONFIGURED")
            self._llm = ChatOpenAI(
                model=self.model_name,
                temperature=self.temperature,
                api_key=self.api_key,
                base_url=self.base_url,
                timeout=config.model.request_timeout,
                max_retries=0,
            )
        return self._llm

    def generate(
        self,
        content: str,
        difficulty: str = "medium",
        question_count: Optional[int] = None,
    ) -> List[GeneratedQuestion]:
        """
        Generate a question set from raw text.

        Args:
            content: Study text (truncated to the configured budget)
            difficulty: "easy" | "medium" | "hard" (others use medium guidelines)
            question_count: Desired number of questions (clamped)

        Returns:
            Normalized questions, in model order

        Raises:
            ValidationError: Missing content, PARSE_ERROR or EMPTY_RESULT
            RateLimited: Upstream returned 429
            QuotaExhausted: Upstream returned 402
            NetworkError: Any other upstream failure
        """
        if not content or not content.strip():
            raise ValidationError("Document content is required", code="MISSING_CONTENT")

        count = clamp_question_count(question_count)
        messages = [
            SystemMessage(content=build_system_prompt(difficulty, count)),
            HumanMessage(content=build_user_prompt(content, difficulty, count)),
        ]

        logger.info(f"Generating {count} {difficulty} questions with {self.model_name}")
        response = self._invoke(messages)

        ai_response = getattr(response, "content", "") or ""
        if not ai_response:
            raise NetworkError("No response from AI")

        self._track_usage(response)
        questions = parse_quiz_response(ai_response)
        logger.info(f"Successfully generated {len(questions)} questions")
        return questions

    def _invoke(self, messages):
        """Single upstream call with HTTP status mapped to domain errors."""
        try:
            return self.llm.invoke(messages)
        except openai.APIStatusError as e:
            if e.status_code == 429:
                logger.warning("AI gateway rate limit hit")
                raise RateLimited("Rate limit exceeded. Please try again in a moment.") from e
            if e.status_code == 402:
                logger.warning("AI gateway credits exhausted")
                raise QuotaExhausted("AI credits exhausted. Please add credits to continue.") from e
            logger.error(f"AI gateway error ({e.status_code}): {e.message}")
            raise NetworkError("Failed to generate quiz questions") from e
        except openai.APIError as e:
            logger.error(f"AI gateway request failed: {e}")
            raise NetworkError("Failed to generate quiz questions") from e

    @staticmethod
    def _track_usage(response) -> None:
        usage = getattr(response, "usage_metadata", None)
        if config.logging.log_tokens and isinstance(usage, dict):
            token_tracker.add_tokens(
                input_tokens=usage.get("input_tokens", 0),
                output_tokens=usage.get("output_tokens", 0),
            )
