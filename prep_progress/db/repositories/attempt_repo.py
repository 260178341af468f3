"""Read-only aggregates over submitted test attempts and their answers.

Only ``submitted`` attempts count toward any statistic. Timestamps are stored
as naive UTC and turned into calendar days in the configured zone.
"""

import logging
from datetime import date
from zoneinfo import ZoneInfo

from sqlalchemy import case, func, select
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from prep_progress.core.dates import resolve_timezone, to_local_date
from prep_progress.core.readiness import accuracy_trend
from prep_progress.db.exceptions import ConnectionError, DatabaseError
from prep_progress.db.models import Question, Section, TestAttempt, UserAnswer
from prep_progress.models.readiness import SectionStat, TestStats
from prep_progress.models.weak_topic import TopicAggregate

logger = logging.getLogger(__name__)

SUBMITTED = "submitted"


def _attempt_accuracy(correct: int, incorrect: int, unanswered: int) -> float | None:
    total = correct + incorrect + unanswered
    if total == 0:
        return None
    return correct / total * 100


def _answered_accuracy(correct: int, incorrect: int) -> float | None:
    answered = correct + incorrect
    if answered == 0:
        return None
    return correct / answered * 100


async def _submitted_attempts(db: AsyncSession, user_id: str) -> list:
    result = await db.execute(
        select(
            TestAttempt.correct_answers,
            TestAttempt.incorrect_answers,
            TestAttempt.unanswered,
            TestAttempt.started_at,
            TestAttempt.submitted_at,
        )
        .where(TestAttempt.user_id == user_id, TestAttempt.status == SUBMITTED)
        .order_by(TestAttempt.submitted_at.desc())
    )
    return list(result.all())


async def _count_sections(db: AsyncSession) -> int:
    result = await db.execute(select(func.count()).select_from(Section))
    return result.scalar_one()


async def get_test_stats(
    db: AsyncSession,
    user_id: str,
    tz: str | ZoneInfo | None = None,
    trend_window: int = 10,
    exam_date: date | None = None,
) -> TestStats:
    """Assemble readiness inputs for a user from attempts and answers.

    Every section is listed, in display order, including ones the user has
    not attempted yet.
    """
    try:
        zone = resolve_timezone(tz)
        attempts = await _submitted_attempts(db, user_id)

        accuracies = [
            a for a in (_attempt_accuracy(r.correct_answers, r.incorrect_answers, r.unanswered) for r in attempts)
            if a is not None
        ]
        overall_accuracy = sum(accuracies) / len(accuracies) if accuracies else 0.0
        questions_answered = sum(r.correct_answers + r.incorrect_answers for r in attempts)

        sections_result = await db.execute(
            select(Section.id, Section.name).order_by(Section.display_order, Section.name)
        )
        sections = list(sections_result.all())

        answers_result = await db.execute(
            select(Question.section_id, UserAnswer.is_correct, UserAnswer.created_at)
            .select_from(UserAnswer)
            .join(Question, UserAnswer.question_id == Question.id)
            .join(TestAttempt, UserAnswer.attempt_id == TestAttempt.id)
            .where(TestAttempt.user_id == user_id, TestAttempt.status == SUBMITTED)
        )

        # Aggregate per section in Python so days are bucketed in the user's zone
        attempted: dict[str, int] = {}
        correct: dict[str, int] = {}
        days: dict[str, set[date]] = {}
        for section_id, is_correct, created_at in answers_result.all():
            attempted[section_id] = attempted.get(section_id, 0) + 1
            correct[section_id] = correct.get(section_id, 0) + (1 if is_correct else 0)
            days.setdefault(section_id, set()).add(to_local_date(created_at, zone))

        section_stats = []
        for section_id, name in sections:
            count = attempted.get(section_id, 0)
            section_stats.append(SectionStat(
                section_id=section_id,
                section_name=name,
                accuracy=correct.get(section_id, 0) / count * 100 if count else 0.0,
                questions_attempted=count,
                days_practiced=len(days.get(section_id, ())),
            ))

        return TestStats(
            overall_accuracy=overall_accuracy,
            sections_practiced=sum(1 for s in section_stats if s.questions_attempted > 0),
            total_sections=len(sections),
            tests_completed=len(attempts),
            questions_answered=questions_answered,
            recent_accuracy_trend=accuracy_trend(accuracies, window=trend_window),
            section_stats=section_stats,
            exam_date=exam_date,
        )
    except OperationalError as e:
        logger.error(f"Database connection error in get_test_stats for user {user_id}: {e}")
        raise ConnectionError("Database connection failed") from e
    except Exception as e:
        logger.error(f"Unexpected error getting test stats for user {user_id}: {e}")
        raise DatabaseError(f"Failed to get test stats: {e}") from e


async def get_activity_dates(
    db: AsyncSession,
    user_id: str,
    tz: str | ZoneInfo | None = None,
) -> list[date]:
    """One local calendar day per submitted attempt, newest first.

    A day repeats once per attempt submitted on it.
    """
    try:
        zone = resolve_timezone(tz)
        attempts = await _submitted_attempts(db, user_id)
        return [to_local_date(r.submitted_at or r.started_at, zone) for r in attempts]
    except OperationalError as e:
        logger.error(f"Database connection error in get_activity_dates for user {user_id}: {e}")
        raise ConnectionError("Database connection failed") from e
    except Exception as e:
        logger.error(f"Unexpected error getting activity dates for user {user_id}: {e}")
        raise DatabaseError(f"Failed to get activity dates: {e}") from e


async def get_progress_counts(db: AsyncSession, user_id: str) -> dict:
    """Lifetime totals used for achievements.

    Returns dict with keys: tests_completed, questions_answered, best_accuracy,
    perfect_scores, average_accuracy, sections_attempted, total_sections
    """
    try:
        attempts = await _submitted_attempts(db, user_id)

        best = [
            a for a in (_answered_accuracy(r.correct_answers, r.incorrect_answers) for r in attempts)
            if a is not None
        ]
        overall = [
            a for a in (_attempt_accuracy(r.correct_answers, r.incorrect_answers, r.unanswered) for r in attempts)
            if a is not None
        ]
        perfect = sum(
            1 for r in attempts
            if r.incorrect_answers == 0 and r.unanswered == 0 and r.correct_answers > 0
        )

        sections_result = await db.execute(
            select(func.count(func.distinct(Question.section_id)))
            .select_from(UserAnswer)
            .join(Question, UserAnswer.question_id == Question.id)
            .join(TestAttempt, UserAnswer.attempt_id == TestAttempt.id)
            .where(TestAttempt.user_id == user_id, TestAttempt.status == SUBMITTED)
        )

        return {
            "tests_completed": len(attempts),
            "questions_answered": sum(r.correct_answers + r.incorrect_answers for r in attempts),
            "best_accuracy": max(best) if best else 0.0,
            "perfect_scores": perfect,
            "average_accuracy": sum(overall) / len(overall) if overall else 0.0,
            "sections_attempted": sections_result.scalar_one(),
            "total_sections": await _count_sections(db),
        }
    except OperationalError as e:
        logger.error(f"Database connection error in get_progress_counts for user {user_id}: {e}")
        raise ConnectionError("Database connection failed") from e
    except Exception as e:
        logger.error(f"Unexpected error getting progress counts for user {user_id}: {e}")
        raise DatabaseError(f"Failed to get progress counts: {e}") from e


async def get_topic_aggregates(
    db: AsyncSession,
    user_id: str,
    topic_ids: list[str] | None = None,
) -> list[TopicAggregate]:
    """Lifetime answered/correct counts per topic.

    Unanswered questions (``is_correct`` is NULL) are not attempts.
    """
    try:
        stmt = (
            select(
                Question.topic_id,
                func.count(UserAnswer.id).label("total"),
                func.sum(case((UserAnswer.is_correct.is_(True), 1), else_=0)).label("correct"),
            )
            .select_from(UserAnswer)
            .join(Question, UserAnswer.question_id == Question.id)
            .join(TestAttempt, UserAnswer.attempt_id == TestAttempt.id)
            .where(
                TestAttempt.user_id == user_id,
                TestAttempt.status == SUBMITTED,
                Question.topic_id.is_not(None),
                UserAnswer.is_correct.is_not(None),
            )
            .group_by(Question.topic_id)
            .order_by(Question.topic_id)
        )
        if topic_ids is not None:
            if not topic_ids:
                return []
            stmt = stmt.where(Question.topic_id.in_(topic_ids))

        result = await db.execute(stmt)
        return [
            TopicAggregate(topic_id=row.topic_id, total_attempts=row.total, correct_attempts=row.correct or 0)
            for row in result.all()
        ]
    except OperationalError as e:
        logger.error(f"Database connection error in get_topic_aggregates for user {user_id}: {e}")
        raise ConnectionError("Database connection failed") from e
    except Exception as e:
        logger.error(f"Unexpected error getting topic aggregates for user {user_id}: {e}")
        raise DatabaseError(f"Failed to get topic aggregates: {e}") from e
