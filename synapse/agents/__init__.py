"""
AI agents for Synapse.

This package contains:
- QuizGenerationClient: Turns study text into normalized quiz questions
"""

from .quiz_generator import (
    GeneratedQuestion,
    QuizGenerationClient,
    clamp_question_count,
    parse_quiz_response,
)

__all__ = [
    "GeneratedQuestion",
    "QuizGenerationClient",
    "clamp_question_count",
    "parse_quiz_response",
]
