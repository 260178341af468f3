"""Repository for per-learner weak topics.

Writes are conditional: inserts go through ``ON CONFLICT DO NOTHING`` on the
(user, topic) key and updates/deletes only apply while the row still holds
the counts they were computed from. A write that loses a race re-reads and
recomputes.
"""

import logging
import uuid
from collections.abc import Callable
from datetime import date, datetime

from sqlalchemy import case, delete, select, update
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from prep_progress.config import settings
from prep_progress.core import weak_topics as weak_topic_logic
from prep_progress.db.dialect import conflict_insert
from prep_progress.db.exceptions import (
    ConcurrentUpdateError,
    ConnectionError,
    DatabaseError,
    DuplicateRecordError,
)
from prep_progress.db.models import WeakTopic, utcnow
from prep_progress.models.weak_topic import (
    AttemptOutcome,
    TopicAggregate,
    UpsertAction,
    WeakTopicRecord,
    WeakTopicUpdate,
    WeaknessLevel,
)

logger = logging.getLogger(__name__)

_COLUMNS = (
    WeakTopic.topic_id,
    WeakTopic.total_attempts,
    WeakTopic.correct_attempts,
    WeakTopic.accuracy_percentage,
    WeakTopic.weakness_level,
    WeakTopic.next_review_date,
    WeakTopic.last_practiced_at,
    WeakTopic.review_count,
)

_SEVERITY_ORDER = case(
    {level.value: level.severity for level in WeaknessLevel},
    value=WeakTopic.weakness_level,
    else_=len(WeaknessLevel),
)


def _to_record(row) -> WeakTopicRecord:
    return WeakTopicRecord(
        topic_id=row.topic_id,
        total_attempts=row.total_attempts,
        correct_attempts=row.correct_attempts,
        accuracy_percentage=row.accuracy_percentage,
        weakness_level=row.weakness_level,
        next_review_date=row.next_review_date,
        last_practiced_at=row.last_practiced_at,
        review_count=row.review_count,
    )


def _values(record: WeakTopicRecord) -> dict:
    return {
        "total_attempts": record.total_attempts,
        "correct_attempts": record.correct_attempts,
        "accuracy_percentage": record.accuracy_percentage,
        "weakness_level": record.weakness_level.value if record.weakness_level else None,
        "next_review_date": record.next_review_date,
        "last_practiced_at": record.last_practiced_at,
        "review_count": record.review_count,
    }


def _matches(user_id: str, expected: WeakTopicRecord) -> tuple:
    """WHERE clause pinning a row to the state it was read in."""
    return (
        WeakTopic.user_id == user_id,
        WeakTopic.topic_id == expected.topic_id,
        WeakTopic.total_attempts == expected.total_attempts,
        WeakTopic.correct_attempts == expected.correct_attempts,
        WeakTopic.review_count == expected.review_count,
    )


async def _read(db: AsyncSession, user_id: str, topic_id: str) -> WeakTopicRecord | None:
    result = await db.execute(
        select(*_COLUMNS).where(WeakTopic.user_id == user_id, WeakTopic.topic_id == topic_id)
    )
    row = result.first()
    return _to_record(row) if row is not None else None


async def _write(db: AsyncSession, user_id: str, existing: WeakTopicRecord | None, change: WeakTopicUpdate) -> bool:
    """Apply *change*; False when another writer got there first."""
    if change.action == UpsertAction.SKIP:
        return True

    if change.action == UpsertAction.CREATE:
        now = utcnow()
        stmt = (
            conflict_insert(db, WeakTopic)
            .values(
                id=str(uuid.uuid4()),
                user_id=user_id,
                topic_id=change.topic_id,
                identified_at=now,
                updated_at=now,
                **_values(change.record),
            )
            .on_conflict_do_nothing(index_elements=["user_id", "topic_id"])
            .returning(WeakTopic.id)
        )
        result = await db.execute(stmt)
        return result.first() is not None

    if change.action == UpsertAction.UPDATE:
        stmt = (
            update(WeakTopic)
            .where(*_matches(user_id, existing))
            .values(updated_at=utcnow(), **_values(change.record))
            .execution_options(synchronize_session=False)
        )
    else:
        stmt = (
            delete(WeakTopic)
            .where(*_matches(user_id, existing))
            .execution_options(synchronize_session=False)
        )
    result = await db.execute(stmt)
    return result.rowcount == 1


async def _apply(
    db: AsyncSession,
    user_id: str,
    topic_id: str,
    decide: Callable[[WeakTopicRecord | None], WeakTopicUpdate],
) -> WeakTopicUpdate:
    for attempt in range(1, settings.upsert_max_retries + 1):
        existing = await _read(db, user_id, topic_id)
        change = decide(existing)
        if await _write(db, user_id, existing, change):
            if change.action != UpsertAction.SKIP:
                logger.info(f"Weak topic {topic_id} for user {user_id}: {change.action.value}")
            return change
        logger.info(f"Weak topic write for user {user_id} topic {topic_id} lost a race (attempt {attempt}), retrying")

    raise ConcurrentUpdateError(
        f"Weak topic update for user {user_id} topic {topic_id} did not settle after {settings.upsert_max_retries} attempts"
    )


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------


async def get_weak_topic(db: AsyncSession, user_id: str, topic_id: str) -> WeakTopicRecord | None:
    """Get one weak-topic record, or None if the topic is not tracked."""
    try:
        return await _read(db, user_id, topic_id)
    except OperationalError as e:
        logger.error(f"Database connection error in get_weak_topic for user {user_id}: {e}")
        raise ConnectionError("Database connection failed") from e
    except Exception as e:
        logger.error(f"Unexpected error getting weak topic {topic_id} for user {user_id}: {e}")
        raise DatabaseError(f"Failed to get weak topic: {e}") from e


async def list_weak_topics(db: AsyncSession, user_id: str) -> list[WeakTopicRecord]:
    """All tracked topics for a user, most severe first."""
    try:
        result = await db.execute(
            select(*_COLUMNS)
            .where(WeakTopic.user_id == user_id)
            .order_by(_SEVERITY_ORDER, WeakTopic.accuracy_percentage.asc())
        )
        return [_to_record(row) for row in result.all()]
    except OperationalError as e:
        logger.error(f"Database connection error in list_weak_topics for user {user_id}: {e}")
        raise ConnectionError("Database connection failed") from e
    except Exception as e:
        logger.error(f"Unexpected error listing weak topics for user {user_id}: {e}")
        raise DatabaseError(f"Failed to list weak topics: {e}") from e


async def get_due_topic_ids(db: AsyncSession, user_id: str, today: date, limit: int) -> list[str]:
    """Topics due for review on or before *today*.

    Ordered by severity (critical first), then oldest due date first.
    """
    try:
        result = await db.execute(
            select(WeakTopic.topic_id)
            .where(
                WeakTopic.user_id == user_id,
                WeakTopic.weakness_level.is_not(None),
                WeakTopic.next_review_date <= today,
            )
            .order_by(_SEVERITY_ORDER, WeakTopic.next_review_date.asc(), WeakTopic.topic_id)
            .limit(limit)
        )
        return list(result.scalars().all())
    except OperationalError as e:
        logger.error(f"Database connection error in get_due_topic_ids for user {user_id}: {e}")
        raise ConnectionError("Database connection failed") from e
    except Exception as e:
        logger.error(f"Unexpected error getting due topics for user {user_id}: {e}")
        raise DatabaseError(f"Failed to get due topics: {e}") from e


# ---------------------------------------------------------------------------
# Writes
# ---------------------------------------------------------------------------


async def apply_outcome(
    db: AsyncSession,
    user_id: str,
    outcome: AttemptOutcome,
    today: date,
    now: datetime | None = None,
) -> WeakTopicUpdate:
    """Count one answered question against the user's record for its topic."""
    now = now or utcnow()
    try:
        return await _apply(
            db,
            user_id,
            outcome.topic_id,
            lambda existing: weak_topic_logic.upsert(existing, outcome, today, now),
        )
    except DatabaseError:
        raise
    except IntegrityError as e:
        logger.error(f"Integrity error applying outcome for user {user_id} topic {outcome.topic_id}: {e}")
        raise DuplicateRecordError("Weak topic update failed due to constraint violation") from e
    except OperationalError as e:
        logger.error(f"Database connection error in apply_outcome for user {user_id}: {e}")
        raise ConnectionError("Database connection failed") from e
    except Exception as e:
        logger.error(f"Unexpected error applying outcome for user {user_id} topic {outcome.topic_id}: {e}")
        raise DatabaseError(f"Failed to apply outcome: {e}") from e


async def reconcile_topic(
    db: AsyncSession,
    user_id: str,
    aggregate: TopicAggregate,
    today: date,
) -> WeakTopicUpdate:
    """Bring the user's record for a topic in line with lifetime counts."""
    try:
        return await _apply(
            db,
            user_id,
            aggregate.topic_id,
            lambda existing: weak_topic_logic.reconcile(existing, aggregate, today),
        )
    except DatabaseError:
        raise
    except IntegrityError as e:
        logger.error(f"Integrity error reconciling topic {aggregate.topic_id} for user {user_id}: {e}")
        raise DuplicateRecordError("Weak topic reconcile failed due to constraint violation") from e
    except OperationalError as e:
        logger.error(f"Database connection error in reconcile_topic for user {user_id}: {e}")
        raise ConnectionError("Database connection failed") from e
    except Exception as e:
        logger.error(f"Unexpected error reconciling topic {aggregate.topic_id} for user {user_id}: {e}")
        raise DatabaseError(f"Failed to reconcile topic: {e}") from e
