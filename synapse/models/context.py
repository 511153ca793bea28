"""
Explicit caller context passed into every manager and engine call.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Callable


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class UserContext:
    """
    The user on whose behalf an operation runs, plus the clock it runs against.

    Attributes:
        user_id: Authenticated user id
        clock: Returns the current timezone-aware time (UTC by default)
    """

    user_id: str
    clock: Callable[[], datetime] = field(default=utc_now, compare=False, repr=False)

    def now(self) -> datetime:
        return self.clock()

    def today(self) -> date:
        """Calendar day in UTC, used for streaks and daily activity."""
        return self.now().astimezone(timezone.utc).date()
