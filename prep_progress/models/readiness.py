"""Exam readiness models."""

from datetime import date
from enum import Enum

from pydantic import BaseModel, Field


class ReadinessStatus(str, Enum):
    READY = "ready"
    ALMOST_READY = "almost-ready"
    GETTING_THERE = "getting-there"
    NOT_READY = "not-ready"


class SectionStatus(str, Enum):
    MASTERED = "mastered"
    PROFICIENT = "proficient"
    DEVELOPING = "developing"
    NEEDS_WORK = "needs-work"
    NOT_ATTEMPTED = "not-attempted"


class SectionStat(BaseModel):
    """Aggregated answers for one section."""

    section_id: str
    section_name: str = ""
    accuracy: float = 0.0
    questions_attempted: int = 0
    days_practiced: int = 0


class TestStats(BaseModel):
    """Aggregate test statistics for one learner, computed per request."""

    __test__ = False  # not a pytest class

    overall_accuracy: float = 0.0
    sections_practiced: int = 0
    total_sections: int = 0
    tests_completed: int = 0
    questions_answered: int = 0
    recent_accuracy_trend: float = 0.0
    section_stats: list[SectionStat] = Field(default_factory=list)
    exam_date: date | None = None


class ReadinessBreakdown(BaseModel):
    """Rounded contribution of each weighted factor."""

    accuracy: int
    coverage: int
    trend: int
    volume: int


class SectionReadiness(BaseModel):
    section_id: str
    section_name: str
    readiness: int
    accuracy: float
    questions_attempted: int
    not_attempted: bool
    status: SectionStatus


class ReadinessResult(BaseModel):
    overall: int
    status: ReadinessStatus
    breakdown: ReadinessBreakdown
    section_readiness: list[SectionReadiness]
    days_until_exam: int | None = None
