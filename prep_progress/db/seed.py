"""Default achievement rule table."""

import logging
import uuid

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from prep_progress.db.exceptions import ConnectionError, DatabaseError, DuplicateRecordError
from prep_progress.db.models import Achievement

logger = logging.getLogger(__name__)

# (name, description, icon, category, requirement_type, requirement_value, points)
DEFAULT_ACHIEVEMENTS: list[tuple[str, str, str, str, str, int, int]] = [
    # Milestones
    ("First Steps", "Complete your first test", "🎯", "milestone", "tests_count", 1, 10),
    ("Getting Started", "Complete 10 tests", "📝", "milestone", "tests_count", 10, 25),
    ("Dedicated Learner", "Complete 50 tests", "📚", "milestone", "tests_count", 50, 50),
    ("Century Club", "Complete 100 tests", "💯", "milestone", "tests_count", 100, 100),
    ("Question Master", "Answer 100 questions", "❓", "milestone", "questions_count", 100, 20),
    ("Question Expert", "Answer 500 questions", "❗", "milestone", "questions_count", 500, 50),
    ("Question Legend", "Answer 1,000 questions", "⚡", "milestone", "questions_count", 1000, 100),
    # Performance
    ("Perfect Score", "Score 100% on a test", "⭐", "performance", "perfect_score", 1, 50),
    ("High Achiever", "Score 90% or higher on a test", "🏆", "performance", "accuracy", 90, 30),
    ("Solid Performer", "Score 75% or higher on a test", "🎓", "performance", "accuracy", 75, 75),
    # Streaks
    ("Week Warrior", "Maintain a 7-day study streak", "🔥", "streak", "streak_days", 7, 25),
    ("Month Master", "Maintain a 30-day study streak", "🔥", "streak", "streak_days", 30, 75),
    ("Streak Legend", "Maintain a 100-day study streak", "🔥", "streak", "streak_days", 100, 200),
    # Coverage
    ("Explorer", "Attempt all available sections", "🗂️", "coverage", "sections_covered", 100, 40),
    ("Consistent Learner", "Practice every day for a week", "📅", "coverage", "consecutive_days", 7, 30),
]


async def seed_default_achievements(db: AsyncSession) -> int:
    """Insert the default rule table if no achievements exist yet.

    Returns:
        Number of definitions inserted (0 when the table was already populated).
    """
    try:
        result = await db.execute(select(func.count()).select_from(Achievement))
        if result.scalar_one() > 0:
            return 0

        for name, description, icon, category, requirement_type, requirement_value, points in DEFAULT_ACHIEVEMENTS:
            db.add(Achievement(
                id=str(uuid.uuid4()),
                name=name,
                description=description,
                icon=icon,
                category=category,
                requirement_type=requirement_type,
                requirement_value=requirement_value,
                points=points,
            ))
        await db.flush()
        logger.info(f"Seeded {len(DEFAULT_ACHIEVEMENTS)} default achievements")
        return len(DEFAULT_ACHIEVEMENTS)
    except IntegrityError as e:
        logger.error(f"Integrity error seeding achievements: {e}")
        raise DuplicateRecordError("Achievement seed failed due to constraint violation") from e
    except OperationalError as e:
        logger.error(f"Database connection error in seed_default_achievements: {e}")
        raise ConnectionError("Database connection failed") from e
    except Exception as e:
        logger.error(f"Unexpected error seeding achievements: {e}")
        raise DatabaseError(f"Failed to seed achievements: {e}") from e
