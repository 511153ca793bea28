"""
Configuration management for Synapse.

This module centralizes all configuration settings following 12-factor app principles:
- Secrets loaded from environment variables
- Sensible defaults for development
- Single source of truth for all settings
- Thread-safe token tracking
"""

import os
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()


# Provider presets for OpenAI-compatible chat-completion gateways
PROVIDER_BASE_URLS = {
    "lovable": "https://ai.gateway.lovable.dev/v1",
    "openai": "https://api.openai.com/v1",
    "groq": "https://api.groq.com/openai/v1",
}

PROVIDER_DEFAULT_MODELS = {
    "lovable": "google/gemini-3-flash-preview",
    "openai": "gpt-4o-mini",
    "groq": "llama-3.1-70b-versatile",
}


def _provider() -> str:
    return os.getenv("AI_PROVIDER", "lovable")


def _api_key() -> str:
    # The built-in gateway has its own key; other providers share AI_API_KEY
    if _provider() == "lovable":
        return os.getenv("LOVABLE_API_KEY", "")
    return os.getenv("AI_API_KEY", "")


@dataclass
class ModelConfig:
    """LLM gateway configuration (OpenAI-compatible API)."""

    provider: str = field(default_factory=_provider)
    api_key: str = field(default_factory=_api_key)
    base_url: Optional[str] = field(
        default_factory=lambda: os.getenv("AI_BASE_URL")
        or PROVIDER_BASE_URLS.get(_provider())
    )
    model_name: str = field(
        default_factory=lambda: os.getenv("AI_MODEL")
        or PROVIDER_DEFAULT_MODELS.get(_provider(), "gpt-4o-mini")
    )

    temperature: float = 0.7
    request_timeout: float = field(
        default_factory=lambda: float(os.getenv("REQUEST_TIMEOUT", "60.0"))
    )


@dataclass
class QuizConfig:
    """Quiz generation and room settings."""

    difficulty_levels: tuple = ("easy", "medium", "hard")
    default_difficulty: str = "medium"

    # Generation budget
    max_content_chars: int = 8000
    min_questions: int = 5
    max_questions: int = 25
    default_questions: int = 5

    # Room join codes (no 0/O/1/I to avoid misreads)
    room_code_alphabet: str = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"
    room_code_length: int = 6

    # Timer warning threshold before auto-submit
    timer_warning_seconds: int = 60


@dataclass
class GamificationConfig:
    """XP economy constants."""

    xp_per_level: int = 100
    xp_per_quiz: int = 25
    xp_per_correct: int = 10
    xp_perfect_bonus: int = 50
    quick_learner_seconds: int = 120


@dataclass
class PathConfig:
    """File system paths - single source of truth for all directories."""

    package_root: Path = field(default_factory=lambda: Path(__file__).parent)
    data_dir: Path = field(
        default_factory=lambda: Path(
            os.getenv("SYNAPSE_DATA_DIR", Path(__file__).parent.parent / "data")
        )
    )

    store_file: Path = field(init=False)
    logs_dir: Path = field(init=False)
    schemas_dir: Path = field(init=False)

    def __post_init__(self):
        """Initialize computed paths."""
        self.data_dir = Path(self.data_dir)
        self.store_file = self.data_dir / "store.json"
        self.logs_dir = self.data_dir / "logs"
        self.schemas_dir = self.package_root / "schemas"

    def prepare_filesystem(self):
        """
        Create directories if they don't exist.

        Separated from __post_init__ to avoid side-effects on import.
        Call this explicitly from your app entrypoint.
        """
        for directory in [self.data_dir, self.logs_dir]:
            directory.mkdir(parents=True, exist_ok=True)


@dataclass
class LoggingConfig:
    """Logging and metrics configuration with env-driven pricing."""

    log_level: str = field(default_factory=lambda: os.getenv("LOG_LEVEL", "INFO"))
    log_to_file: bool = field(
        default_factory=lambda: os.getenv("LOG_TO_FILE", "false").lower() == "true"
    )
    log_tokens: bool = True

    cost_per_1k_input: float = field(
        default_factory=lambda: float(os.getenv("COST_PER_1K_INPUT", "0.0015"))
    )
    cost_per_1k_output: float = field(
        default_factory=lambda: float(os.getenv("COST_PER_1K_OUTPUT", "0.0020"))
    )


class Config:
    """
    Main configuration class. Singleton pattern.

    Usage:
        from synapse.config import config

        api_key = config.model.api_key
        budget = config.quiz.max_content_chars

        # Prepare filesystem (call once at startup)
        config.prepare_fs()
    """

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance.paths = PathConfig()
            cls._instance.model = ModelConfig()
            cls._instance.quiz = QuizConfig()
            cls._instance.gamification = GamificationConfig()
            cls._instance.logging = LoggingConfig()
        return cls._instance

    def prepare_fs(self):
        """Prepare filesystem (create directories). Call once at startup."""
        self.paths.prepare_filesystem()

    def validate(self) -> list[str]:
        """
        Validate configuration and return list of errors.

        Returns:
            List of error messages (empty if valid)
        """
        errors = []

        if not self.model.api_key:
            key_name = "LOVABLE_API_KEY" if self.model.provider == "lovable" else "AI_API_KEY"
            errors.append(f"{key_name} not set in environment")

        if self.model.provider not in PROVIDER_BASE_URLS and not self.model.base_url:
            errors.append(
                f"Unknown AI_PROVIDER '{self.model.provider}' requires AI_BASE_URL"
            )

        if not (0 <= self.model.temperature <= 2):
            errors.append(f"temperature must be in [0, 2], got {self.model.temperature}")

        if self.model.request_timeout <= 0:
            errors.append(f"request_timeout must be > 0, got {self.model.request_timeout}")

        if self.quiz.max_content_chars <= 0:
            errors.append(
                f"max_content_chars must be > 0, got {self.quiz.max_content_chars}"
            )

        if not (1 <= self.quiz.min_questions <= self.quiz.max_questions):
            errors.append(
                f"question count range invalid: [{self.quiz.min_questions}, {self.quiz.max_questions}]"
            )

        if not (self.quiz.min_questions <= self.quiz.default_questions <= self.quiz.max_questions):
            errors.append(
                f"default_questions ({self.quiz.default_questions}) outside "
                f"[{self.quiz.min_questions}, {self.quiz.max_questions}]"
            )

        if self.gamification.xp_per_level <= 0:
            errors.append(
                f"xp_per_level must be > 0, got {self.gamification.xp_per_level}"
            )

        if not self.paths.schemas_dir.exists():
            errors.append(f"Schemas directory not found: {self.paths.schemas_dir}")

        return errors


# Global config instance
config = Config()


class TokenTracker:
    """
    Thread-safe tracker for token usage and estimated costs.

    Usage:
        from synapse.config import token_tracker

        token_tracker.add_tokens(input_tokens=100, output_tokens=50)
        print(token_tracker.summary())
    """

    def __init__(self):
        self._lock = threading.Lock()
        self.input_tokens = 0
        self.output_tokens = 0
        self.total_calls = 0

    def add_tokens(self, input_tokens: int, output_tokens: int):
        """Add tokens from an API call (thread-safe)."""
        with self._lock:
            self.input_tokens += input_tokens
            self.output_tokens += output_tokens
            self.total_calls += 1

    def total_tokens(self) -> int:
        with self._lock:
            return self.input_tokens + self.output_tokens

    def estimated_cost(self) -> float:
        """Calculate estimated cost in USD (thread-safe)."""
        with self._lock:
            return self._cost(self.input_tokens, self.output_tokens)

    @staticmethod
    def _cost(input_tokens: int, output_tokens: int) -> float:
        input_cost = (input_tokens / 1000) * config.logging.cost_per_1k_input
        output_cost = (output_tokens / 1000) * config.logging.cost_per_1k_output
        return input_cost + output_cost

    def summary(self) -> str:
        """Get formatted summary of usage."""
        stats = self.get_stats()
        return (
            "Token Usage Summary:\n"
            f"  API Calls: {stats['calls']}\n"
            f"  Input Tokens: {stats['input_tokens']:,}\n"
            f"  Output Tokens: {stats['output_tokens']:,}\n"
            f"  Total Tokens: {stats['total_tokens']:,}\n"
            f"  Estimated Cost: ${stats['estimated_cost']:.4f}"
        )

    def reset(self):
        """Reset counters (thread-safe)."""
        with self._lock:
            self.input_tokens = 0
            self.output_tokens = 0
            self.total_calls = 0

    def get_stats(self) -> dict:
        """Get current stats as dict (thread-safe, no nested locking)."""
        with self._lock:
            input_tokens = self.input_tokens
            output_tokens = self.output_tokens
            total_calls = self.total_calls
            est_cost = self._cost(input_tokens, output_tokens)

        return {
            "calls": total_calls,
            "input_tokens": input_tokens,
            "output_tokens": output_tokens,
            "total_tokens": input_tokens + output_tokens,
            "estimated_cost": est_cost,
        }


# Global token tracker instance
token_tracker = TokenTracker()

