"""Tests for the practice streak repository."""

from datetime import date, timedelta
from unittest.mock import AsyncMock, patch

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError

from prep_progress.db.exceptions import ConcurrentUpdateError, ConnectionError, DatabaseError
from prep_progress.db.models import PracticeStreak
from prep_progress.db.repositories import streak_repo

D = date(2026, 10, 19)


async def test_no_streak_before_first_activity(db, test_user):
    assert await streak_repo.get_streak(db, test_user.id) is None


async def test_first_activity_creates_record(db, test_user):
    record = await streak_repo.record_activity(db, test_user.id, D)

    assert record.current_streak == 1
    stored = await streak_repo.get_streak(db, test_user.id)
    assert stored == record


async def test_same_day_counts_once(db, test_user):
    await streak_repo.record_activity(db, test_user.id, D)
    await streak_repo.record_activity(db, test_user.id, D)

    stored = await streak_repo.get_streak(db, test_user.id)
    assert stored.current_streak == 1
    assert stored.total_practice_days == 1


async def test_consecutive_days_then_break(db, test_user):
    for offset in range(3):
        await streak_repo.record_activity(db, test_user.id, D + timedelta(days=offset))

    stored = await streak_repo.get_streak(db, test_user.id)
    assert stored.current_streak == 3
    assert stored.streak_start_date == D

    later = D + timedelta(days=6)
    record = await streak_repo.record_activity(db, test_user.id, later)
    assert record.current_streak == 1
    assert record.longest_streak == 3
    assert record.total_practice_days == 4
    assert record.streak_start_date == later
    assert await streak_repo.get_streak(db, test_user.id) == record


async def test_lost_insert_race_retries_as_update(db, test_user):
    """Another device created the row between our read and insert."""
    await streak_repo.record_activity(db, test_user.id, D - timedelta(days=1))

    real_read = streak_repo._read
    calls = []

    async def stale_first_read(session, user_id):
        calls.append(user_id)
        if len(calls) == 1:
            return None
        return await real_read(session, user_id)

    with patch.object(streak_repo, "_read", side_effect=stale_first_read):
        record = await streak_repo.record_activity(db, test_user.id, D)

    assert len(calls) == 2
    assert record.current_streak == 2
    count = await db.execute(select(func.count()).select_from(PracticeStreak))
    assert count.scalar_one() == 1
    assert (await streak_repo.get_streak(db, test_user.id)).current_streak == 2


async def test_lost_update_race_rereads(db, test_user):
    """A stale read does not overwrite a newer row."""
    await streak_repo.record_activity(db, test_user.id, D - timedelta(days=2))
    await streak_repo.record_activity(db, test_user.id, D - timedelta(days=1))
    stale = (await streak_repo.get_streak(db, test_user.id)).model_copy(
        update={"current_streak": 1, "longest_streak": 1, "total_practice_days": 1, "last_practice_date": D - timedelta(days=2)}
    )

    real_read = streak_repo._read
    calls = []

    async def stale_first_read(session, user_id):
        calls.append(user_id)
        if len(calls) == 1:
            return stale
        return await real_read(session, user_id)

    with patch.object(streak_repo, "_read", side_effect=stale_first_read):
        record = await streak_repo.record_activity(db, test_user.id, D)

    assert len(calls) == 2
    assert record.current_streak == 3
    assert record.total_practice_days == 3


async def test_gives_up_after_max_retries(db, test_user):
    await streak_repo.record_activity(db, test_user.id, D - timedelta(days=1))

    with patch.object(streak_repo, "_try_swap", AsyncMock(return_value=False)) as swap:
        with pytest.raises(ConcurrentUpdateError):
            await streak_repo.record_activity(db, test_user.id, D)

    assert swap.await_count == 3


async def test_connection_failure_is_a_database_error():
    failure = OperationalError("SELECT 1", {}, Exception("server closed the connection"))
    mock_db = AsyncMock()
    mock_db.execute.side_effect = failure

    with pytest.raises(ConnectionError) as exc_info:
        await streak_repo.record_activity(mock_db, "user-1", D)

    assert isinstance(exc_info.value, DatabaseError)
    assert exc_info.value.__cause__ is failure
