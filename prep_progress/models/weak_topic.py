"""Weak-topic scheduling models."""

from datetime import date, datetime
from enum import Enum

from pydantic import BaseModel, Field, model_validator


class WeaknessLevel(str, Enum):
    CRITICAL = "critical"
    MODERATE = "moderate"
    IMPROVING = "improving"

    @property
    def severity(self) -> int:
        """Sort rank; lower is more urgent."""
        return _SEVERITY[self]


_SEVERITY = {
    WeaknessLevel.CRITICAL: 0,
    WeaknessLevel.MODERATE: 1,
    WeaknessLevel.IMPROVING: 2,
}


class UpsertAction(str, Enum):
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"
    SKIP = "skip"


class AttemptOutcome(BaseModel):
    """A single answered question on a topic."""

    topic_id: str
    was_correct: bool


class TopicAggregate(BaseModel):
    """Lifetime answer counts for one topic."""

    topic_id: str
    total_attempts: int = Field(ge=0)
    correct_attempts: int = Field(ge=0)


class WeakTopicRecord(BaseModel):
    topic_id: str
    total_attempts: int = Field(ge=0)
    correct_attempts: int = Field(ge=0)
    accuracy_percentage: int = Field(ge=0, le=100)
    weakness_level: WeaknessLevel | None = None
    next_review_date: date | None = None
    last_practiced_at: datetime | None = None
    review_count: int = Field(default=0, ge=0)

    @model_validator(mode="after")
    def _check_invariants(self) -> "WeakTopicRecord":
        if self.correct_attempts > self.total_attempts:
            raise ValueError("correct_attempts cannot exceed total_attempts")
        if (self.weakness_level is None) != (self.next_review_date is None):
            raise ValueError("weakness_level and next_review_date must both be set or both be empty")
        return self


class WeakTopicUpdate(BaseModel):
    """What a write should do for one (learner, topic) key.

    ``record`` holds the new state for create/update and the removed state for
    delete; it is None for skip.
    """

    topic_id: str
    action: UpsertAction
    record: WeakTopicRecord | None = None
