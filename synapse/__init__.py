"""
Synapse - collaborative study rooms with AI-generated quizzes.

Members of a room upload study material, generate quizzes from it, take them
under the room's mode rules (study, challenge, exam) and earn XP, levels,
streaks and achievements.
"""

from .attempt_manager import QuizAttemptManager
from .errors import (
    AttemptBlocked,
    Conflict,
    NetworkError,
    NotFound,
    QuotaExhausted,
    RateLimited,
    SynapseError,
    ValidationError,
)
from .gamification import GamificationEngine, GamificationResult
from .models.context import UserContext
from .rooms import RoomService

__version__ = "0.1.0"

__all__ = [
    "QuizAttemptManager",
    "GamificationEngine",
    "GamificationResult",
    "RoomService",
    "UserContext",
    # Errors
    "SynapseError",
    "ValidationError",
    "QuotaExhausted",
    "NotFound",
    "Conflict",
    "AttemptBlocked",
    "RateLimited",
    "NetworkError",
]
