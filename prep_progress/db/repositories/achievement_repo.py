"""Repository for achievement definitions and per-learner unlocks."""

import logging
import uuid
from datetime import datetime

from pydantic import ValidationError
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from prep_progress.db.dialect import conflict_insert
from prep_progress.db.exceptions import ConnectionError, DatabaseError, DuplicateRecordError
from prep_progress.db.models import Achievement, UserAchievement, utcnow
from prep_progress.models.achievement import AchievementDefinition

logger = logging.getLogger(__name__)


async def get_definitions(db: AsyncSession) -> list[AchievementDefinition]:
    """All achievement definitions, skipping rows with an unknown requirement type."""
    try:
        result = await db.execute(
            select(Achievement).order_by(Achievement.category, Achievement.requirement_value, Achievement.name)
        )
        definitions = []
        for row in result.scalars().all():
            try:
                definitions.append(AchievementDefinition.model_validate(row))
            except ValidationError:
                logger.warning(f"Skipping achievement {row.id} with unsupported requirement type {row.requirement_type!r}")
        return definitions
    except OperationalError as e:
        logger.error(f"Database connection error in get_definitions: {e}")
        raise ConnectionError("Database connection failed") from e
    except Exception as e:
        logger.error(f"Unexpected error getting achievement definitions: {e}")
        raise DatabaseError(f"Failed to get achievement definitions: {e}") from e


async def get_unlocked(db: AsyncSession, user_id: str) -> dict[str, datetime]:
    """Map of achievement id to unlock time for a user."""
    try:
        result = await db.execute(
            select(UserAchievement.achievement_id, UserAchievement.unlocked_at)
            .where(UserAchievement.user_id == user_id)
        )
        return {row.achievement_id: row.unlocked_at for row in result.all()}
    except OperationalError as e:
        logger.error(f"Database connection error in get_unlocked for user {user_id}: {e}")
        raise ConnectionError("Database connection failed") from e
    except Exception as e:
        logger.error(f"Unexpected error getting unlocked achievements for user {user_id}: {e}")
        raise DatabaseError(f"Failed to get unlocked achievements: {e}") from e


async def insert_unlocks(db: AsyncSession, user_id: str, achievement_ids: list[str]) -> list[str]:
    """Record unlocks, ignoring any the user already has.

    Returns:
        Ids actually inserted by this call. Running it twice for the same
        event inserts nothing the second time.
    """
    if not achievement_ids:
        return []
    try:
        inserted = []
        now = utcnow()
        for achievement_id in dict.fromkeys(achievement_ids):
            stmt = (
                conflict_insert(db, UserAchievement)
                .values(id=str(uuid.uuid4()), user_id=user_id, achievement_id=achievement_id, unlocked_at=now)
                .on_conflict_do_nothing(index_elements=["user_id", "achievement_id"])
                .returning(UserAchievement.achievement_id)
            )
            result = await db.execute(stmt)
            if result.first() is not None:
                inserted.append(achievement_id)
        return inserted
    except DatabaseError:
        raise
    except IntegrityError as e:
        logger.error(f"Integrity error inserting unlocks for user {user_id}: {e}")
        raise DuplicateRecordError("Achievement unlock failed due to constraint violation") from e
    except OperationalError as e:
        logger.error(f"Database connection error in insert_unlocks for user {user_id}: {e}")
        raise ConnectionError("Database connection failed") from e
    except Exception as e:
        logger.error(f"Unexpected error inserting unlocks for user {user_id}: {e}")
        raise DatabaseError(f"Failed to insert unlocks: {e}") from e
