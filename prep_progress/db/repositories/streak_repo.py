"""Repository for per-learner practice streaks."""

import logging
import uuid
from datetime import date

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from prep_progress.config import settings
from prep_progress.core import streak as streak_logic
from prep_progress.db.dialect import conflict_insert
from prep_progress.db.exceptions import (
    ConcurrentUpdateError,
    ConnectionError,
    DatabaseError,
    DuplicateRecordError,
)
from prep_progress.db.models import PracticeStreak, utcnow
from prep_progress.models.streak import StreakRecord

logger = logging.getLogger(__name__)

_COLUMNS = (
    PracticeStreak.current_streak,
    PracticeStreak.longest_streak,
    PracticeStreak.total_practice_days,
    PracticeStreak.last_practice_date,
    PracticeStreak.streak_start_date,
)


async def _read(db: AsyncSession, user_id: str) -> StreakRecord | None:
    # Column select: the identity map may hold a row another writer changed
    result = await db.execute(select(*_COLUMNS).where(PracticeStreak.user_id == user_id))
    row = result.first()
    if row is None:
        return None
    return StreakRecord(
        current_streak=row.current_streak,
        longest_streak=row.longest_streak,
        total_practice_days=row.total_practice_days,
        last_practice_date=row.last_practice_date,
        streak_start_date=row.streak_start_date,
    )


async def get_streak(db: AsyncSession, user_id: str) -> StreakRecord | None:
    """Get the stored streak for a user, or None before the first activity."""
    try:
        return await _read(db, user_id)
    except OperationalError as e:
        logger.error(f"Database connection error in get_streak for user {user_id}: {e}")
        raise ConnectionError("Database connection failed") from e
    except Exception as e:
        logger.error(f"Unexpected error getting streak for user {user_id}: {e}")
        raise DatabaseError(f"Failed to get streak: {e}") from e


async def _try_insert(db: AsyncSession, user_id: str, record: StreakRecord) -> bool:
    now = utcnow()
    stmt = (
        conflict_insert(db, PracticeStreak)
        .values(
            id=str(uuid.uuid4()),
            user_id=user_id,
            created_at=now,
            updated_at=now,
            **record.model_dump(),
        )
        .on_conflict_do_nothing(index_elements=["user_id"])
        .returning(PracticeStreak.id)
    )
    result = await db.execute(stmt)
    return result.first() is not None


async def _try_swap(db: AsyncSession, user_id: str, expected: StreakRecord, record: StreakRecord) -> bool:
    stmt = (
        update(PracticeStreak)
        .where(
            PracticeStreak.user_id == user_id,
            PracticeStreak.current_streak == expected.current_streak,
            PracticeStreak.longest_streak == expected.longest_streak,
            PracticeStreak.total_practice_days == expected.total_practice_days,
            PracticeStreak.last_practice_date.is_not_distinct_from(expected.last_practice_date),
        )
        .values(updated_at=utcnow(), **record.model_dump())
        .execution_options(synchronize_session=False)
    )
    result = await db.execute(stmt)
    return result.rowcount == 1


async def record_activity(db: AsyncSession, user_id: str, today: date) -> StreakRecord:
    """Count one qualifying activity on *today* for the user.

    Read, compute, then write conditionally on the row still matching what was
    read. A lost race re-reads and tries again, so two devices submitting at
    once both land on the same record.
    """
    try:
        for attempt in range(1, settings.upsert_max_retries + 1):
            existing = await _read(db, user_id)
            record = streak_logic.record_activity(existing, today)

            if existing is None:
                if await _try_insert(db, user_id, record):
                    logger.info(f"Started streak for user {user_id} on {today}")
                    return record
            elif record == existing:
                return existing
            elif await _try_swap(db, user_id, existing, record):
                return record

            logger.info(f"Streak write for user {user_id} lost a race (attempt {attempt}), retrying")

        raise ConcurrentUpdateError(f"Streak update for user {user_id} did not settle after {settings.upsert_max_retries} attempts")
    except DatabaseError:
        raise
    except IntegrityError as e:
        logger.error(f"Integrity error recording activity for user {user_id}: {e}")
        raise DuplicateRecordError("Streak update failed due to constraint violation") from e
    except OperationalError as e:
        logger.error(f"Database connection error in record_activity for user {user_id}: {e}")
        raise ConnectionError("Database connection failed") from e
    except Exception as e:
        logger.error(f"Unexpected error recording activity for user {user_id}: {e}")
        raise DatabaseError(f"Failed to record activity: {e}") from e
