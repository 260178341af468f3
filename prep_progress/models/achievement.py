"""Achievement models."""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class RequirementType(str, Enum):
    TESTS_COUNT = "tests_count"
    QUESTIONS_COUNT = "questions_count"
    ACCURACY = "accuracy"
    PERFECT_SCORE = "perfect_score"
    STREAK_DAYS = "streak_days"
    SECTIONS_COVERED = "sections_covered"
    CONSECUTIVE_DAYS = "consecutive_days"


class AchievementDefinition(BaseModel):
    """Static achievement rule."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    description: str | None = None
    icon: str | None = None
    category: str = "milestone"
    requirement_type: RequirementType
    requirement_value: float
    points: int = 10


class ProgressSnapshot(BaseModel):
    """Learner totals an achievement rule is evaluated against."""

    tests_completed: int = 0
    questions_answered: int = 0
    best_accuracy: float = 0.0
    current_streak: int = 0
    longest_streak: int = 0
    perfect_scores: int = 0
    sections_attempted: int = 0
    total_sections: int = 0
    average_accuracy: float = 0.0


class AchievementProgress(BaseModel):
    current: float
    target: float
    percentage: int


class AchievementStatus(BaseModel):
    """One row of the achievements board."""

    achievement: AchievementDefinition
    is_unlocked: bool
    unlocked_at: datetime | None = None
    progress: AchievementProgress


class AchievementBoard(BaseModel):
    achievements: list[AchievementStatus]
    total_points: int
    unlocked_count: int
    total_count: int


class AchievementCheckResult(BaseModel):
    new_achievements: list[AchievementDefinition] = Field(default_factory=list)
    points_earned: int = 0
