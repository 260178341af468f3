"""Day-streak models."""

from datetime import date
from enum import Enum

from pydantic import BaseModel, Field, model_validator


class StreakStatus(str, Enum):
    ACTIVE = "active"
    AT_RISK = "at-risk"
    BROKEN = "broken"


class StreakRecord(BaseModel):
    """Persisted streak state for one learner."""

    current_streak: int = Field(default=0, ge=0)
    longest_streak: int = Field(default=0, ge=0)
    total_practice_days: int = Field(default=0, ge=0)
    last_practice_date: date | None = None
    streak_start_date: date | None = None

    @model_validator(mode="after")
    def _longest_covers_current(self) -> "StreakRecord":
        if self.longest_streak < self.current_streak:
            raise ValueError("longest_streak must be >= current_streak")
        return self


class StreakMilestone(BaseModel):
    current: int
    next: int
    remaining: int


class StreakStats(BaseModel):
    """Read-only streak view; current_streak is 0 when the streak is broken."""

    current_streak: int
    longest_streak: int
    total_practice_days: int
    last_practice_date: date | None
    streak_start_date: date | None
    status: StreakStatus
    is_active_today: bool


class CalendarDay(BaseModel):
    date: date
    has_activity: bool
    activity_count: int = 0
    intensity: int = 0  # 0 none, 1, 2, 3 = three or more


class StreakOverview(BaseModel):
    stats: StreakStats
    calendar: list[CalendarDay]
    milestone: StreakMilestone
