"""Results returned by the progress service."""

from pydantic import BaseModel, Field

from prep_progress.models.achievement import AchievementCheckResult
from prep_progress.models.streak import StreakRecord
from prep_progress.models.weak_topic import WeakTopicUpdate


class SubmissionResult(BaseModel):
    """Everything derived after a learner submits a session."""

    streak: StreakRecord
    weak_topics: list[WeakTopicUpdate] = Field(default_factory=list)
    achievements: AchievementCheckResult = Field(default_factory=AchievementCheckResult)
