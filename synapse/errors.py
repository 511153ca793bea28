"""
Error taxonomy for Synapse.

Every failure surfaced to a caller is a SynapseError subclass carrying a
machine-readable ``code`` and the HTTP status the API layer reports for it:

- ValidationError: malformed AI response, missing required field (400)
- QuotaExhausted: upstream AI credits exhausted (402)
- NotFound: room, quiz, attempt or document missing (404)
- Conflict: exam-mode retake, duplicate membership, invalid transition (409)
- RateLimited: upstream AI rate limit (429)
- NetworkError: generic upstream failure (500)
"""

from __future__ import annotations

from typing import Optional


class SynapseError(Exception):
    """Base class for all domain errors."""

    status_code: int = 500
    default_code: str = "INTERNAL_ERROR"

    def __init__(self, message: str, code: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code

    def to_dict(self) -> dict:
        return {"error": self.message, "code": self.code}

    def __repr__(self) -> str:
        return f"{type(self).__name__}(code={self.code!r}, message={self.message!r})"


class ValidationError(SynapseError):
    status_code = 400
    default_code = "VALIDATION_ERROR"


class QuotaExhausted(SynapseError):
    status_code = 402
    default_code = "CREDITS_EXHAUSTED"


class NotFound(SynapseError):
    status_code = 404
    default_code = "NOT_FOUND"


class Conflict(SynapseError):
    status_code = 409
    default_code = "CONFLICT"


class AttemptBlocked(Conflict):
    """Raised when exam mode forbids starting another attempt."""

    default_code = "ATTEMPT_BLOCKED"


class RateLimited(SynapseError):
    status_code = 429
    default_code = "RATE_LIMIT"


class NetworkError(SynapseError):
    status_code = 500
    default_code = "AI_API_ERROR"
