"""Progress Service: derives dashboard signals from a learner's attempt history.

Called in-process after a session is submitted (write path) and whenever a
dashboard is rendered (read path). Streak and weak-topic writes raise
``DatabaseError`` for the caller to retry; the achievement step never fails
the submission.
"""

import logging
from datetime import date

from sqlalchemy.ext.asyncio import AsyncSession

from prep_progress.config import settings
from prep_progress.core.achievements import achievement_board, check_achievements, total_points
from prep_progress.core.dates import local_today
from prep_progress.core.readiness import compute_readiness
from prep_progress.core.streak import compute_calendar, compute_streak_status, rebuild_streak, streak_milestone
from prep_progress.db.models import utcnow
from prep_progress.db.repositories import achievement_repo, attempt_repo, streak_repo, weak_topic_repo
from prep_progress.models.achievement import AchievementBoard, AchievementCheckResult, ProgressSnapshot
from prep_progress.models.progress import SubmissionResult
from prep_progress.models.readiness import ReadinessResult
from prep_progress.models.streak import StreakOverview, StreakRecord
from prep_progress.models.weak_topic import AttemptOutcome, UpsertAction, WeakTopicUpdate

logger = logging.getLogger(__name__)


class ProgressService:
    """Orchestrates the readiness, streak, weak-topic and achievement components."""

    # ------------------------------------------------------------------
    # Submission (write path)
    # ------------------------------------------------------------------

    async def record_submission(
        self,
        user_id: str,
        db: AsyncSession,
        outcomes: list[AttemptOutcome],
        today: date | None = None,
    ) -> SubmissionResult:
        """Update everything a submitted session affects.

        *outcomes* describe answers that are already stored, one per answered
        question. Streak and weak-topic failures propagate; achievement
        failures are logged and yield an empty result.
        """
        today = today or local_today()
        streak = await self.record_activity(user_id, db, today)
        weak_topics = await self.record_topic_outcomes(user_id, db, outcomes, today)
        achievements = await self.check_and_unlock(user_id, db, today)
        return SubmissionResult(streak=streak, weak_topics=weak_topics, achievements=achievements)

    async def record_activity(
        self, user_id: str, db: AsyncSession, today: date | None = None
    ) -> StreakRecord:
        return await streak_repo.record_activity(db, user_id, today or local_today())

    async def record_topic_outcomes(
        self,
        user_id: str,
        db: AsyncSession,
        outcomes: list[AttemptOutcome],
        today: date | None = None,
    ) -> list[WeakTopicUpdate]:
        """Fold answers into tracked topics and start tracking newly weak ones.

        Tracked topics take each outcome as a delta. Untracked topics are
        evaluated once against their lifetime counts, which already include
        this session.
        """
        today = today or local_today()
        now = utcnow()
        changes: list[WeakTopicUpdate] = []
        untracked: list[str] = []

        for outcome in outcomes:
            change = await weak_topic_repo.apply_outcome(db, user_id, outcome, today, now)
            if change.action == UpsertAction.SKIP:
                if outcome.topic_id not in untracked:
                    untracked.append(outcome.topic_id)
            else:
                changes.append(change)

        if untracked:
            aggregates = await attempt_repo.get_topic_aggregates(db, user_id, topic_ids=untracked)
            for aggregate in aggregates:
                change = await weak_topic_repo.reconcile_topic(db, user_id, aggregate, today)
                if change.action != UpsertAction.SKIP:
                    changes.append(change)

        return changes

    async def reconcile_weak_topics(
        self, user_id: str, db: AsyncSession, today: date | None = None
    ) -> list[WeakTopicUpdate]:
        """Recompute every topic the user has answered from lifetime counts."""
        today = today or local_today()
        aggregates = await attempt_repo.get_topic_aggregates(db, user_id)
        changes = []
        for aggregate in aggregates:
            change = await weak_topic_repo.reconcile_topic(db, user_id, aggregate, today)
            if change.action != UpsertAction.SKIP:
                changes.append(change)
        logger.info(f"Reconciled {len(aggregates)} topics for user {user_id}, {len(changes)} changed")
        return changes

    # ------------------------------------------------------------------
    # Dashboard (read path)
    # ------------------------------------------------------------------

    async def get_readiness(
        self,
        user_id: str,
        db: AsyncSession,
        exam_date: date | None = None,
        today: date | None = None,
    ) -> ReadinessResult:
        stats = await attempt_repo.get_test_stats(db, user_id, exam_date=exam_date)
        return compute_readiness(stats, today=today or local_today())

    async def _current_streak_record(
        self, user_id: str, db: AsyncSession, today: date
    ) -> StreakRecord | None:
        record = await streak_repo.get_streak(db, user_id)
        if record is not None:
            return record
        # Learners with history from before streaks were stored
        dates = await attempt_repo.get_activity_dates(db, user_id)
        return rebuild_streak(dates, today)

    async def get_streak_overview(
        self,
        user_id: str,
        db: AsyncSession,
        today: date | None = None,
        window_days: int | None = None,
    ) -> StreakOverview:
        today = today or local_today()
        record = await self._current_streak_record(user_id, db, today)
        stats = compute_streak_status(record, today)
        dates = await attempt_repo.get_activity_dates(db, user_id)
        return StreakOverview(
            stats=stats,
            calendar=compute_calendar(dates, window_days or settings.streak_calendar_days, today),
            milestone=streak_milestone(stats.current_streak),
        )

    async def get_recommended_topics(
        self,
        user_id: str,
        db: AsyncSession,
        limit: int | None = None,
        today: date | None = None,
    ) -> list[str]:
        """Topic ids due for review, most severe and most overdue first."""
        return await weak_topic_repo.get_due_topic_ids(
            db, user_id, today or local_today(), limit or settings.recommended_topics_limit
        )

    async def get_progress_snapshot(
        self, user_id: str, db: AsyncSession, today: date | None = None
    ) -> ProgressSnapshot:
        today = today or local_today()
        counts = await attempt_repo.get_progress_counts(db, user_id)
        record = await self._current_streak_record(user_id, db, today)
        stats = compute_streak_status(record, today)
        return ProgressSnapshot(
            current_streak=stats.current_streak,
            longest_streak=stats.longest_streak,
            **counts,
        )

    async def get_achievement_board(
        self, user_id: str, db: AsyncSession, today: date | None = None
    ) -> AchievementBoard:
        progress = await self.get_progress_snapshot(user_id, db, today)
        definitions = await achievement_repo.get_definitions(db)
        unlocked = await achievement_repo.get_unlocked(db, user_id)
        return achievement_board(definitions, progress, unlocked)

    # ------------------------------------------------------------------
    # Achievements (non-critical)
    # ------------------------------------------------------------------

    async def check_and_unlock(
        self, user_id: str, db: AsyncSession, today: date | None = None
    ) -> AchievementCheckResult:
        """Unlock every achievement the user now qualifies for.

        Runs in a SAVEPOINT; any error rolls back only this step, is logged and
        returns an empty result.
        """
        if not settings.achievement_check_enabled:
            return AchievementCheckResult()

        try:
            async with db.begin_nested():
                progress = await self.get_progress_snapshot(user_id, db, today)
                definitions = await achievement_repo.get_definitions(db)
                unlocked = await achievement_repo.get_unlocked(db, user_id)
                candidates = check_achievements(progress, definitions, unlocked.keys())
                inserted = set(
                    await achievement_repo.insert_unlocks(db, user_id, [d.id for d in candidates])
                )
        except Exception:
            logger.warning(f"Achievement check failed for user {user_id}, continuing without unlocks", exc_info=True)
            return AchievementCheckResult()

        new_achievements = [d for d in candidates if d.id in inserted]
        for achievement in new_achievements:
            logger.info(f"User {user_id} unlocked achievement {achievement.name!r} (+{achievement.points})")
        return AchievementCheckResult(
            new_achievements=new_achievements,
            points_earned=total_points(new_achievements),
        )


# ---------------------------------------------------------------------------
# Module-level singleton
# ---------------------------------------------------------------------------
progress_service = ProgressService()
