"""Shared test fixtures for the progress engine tests."""

import uuid
from datetime import datetime

import pytest
import pytest_asyncio
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from prep_progress.db.models import Base, Question, Section, TestAttempt, Topic, User, UserAnswer


# Use an in-memory SQLite database for tests.
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

engine = create_async_engine(TEST_DATABASE_URL, echo=False)
TestSessionFactory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


# pysqlite's own transaction handling breaks SAVEPOINT; emit BEGIN ourselves.
@event.listens_for(engine.sync_engine, "connect")
def _set_sqlite_pragma(dbapi_connection, connection_record):
    dbapi_connection.isolation_level = None
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


@event.listens_for(engine.sync_engine, "begin")
def _do_begin(conn):
    conn.exec_driver_sql("BEGIN")


@pytest_asyncio.fixture
async def db() -> AsyncSession:
    """Create tables and yield a fresh async session for each test."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with TestSessionFactory() as session:
        yield session

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest_asyncio.fixture
async def test_user(db: AsyncSession) -> User:
    """Create and return a test user."""
    user = User(
        id=str(uuid.uuid4()),
        email="learner@example.com",
        name="Test Learner",
    )
    db.add(user)
    await db.flush()
    return user


@pytest_asyncio.fixture
async def catalog(db: AsyncSession) -> dict:
    """Two sections with two topics each and five questions per topic.

    Returns dict with keys: sections, topics, questions (questions keyed by topic id)
    """
    sections = []
    topics = []
    questions: dict[str, list[Question]] = {}
    for order, section_name in enumerate(["Quantitative", "Verbal"]):
        section = Section(id=str(uuid.uuid4()), name=section_name, display_order=order)
        db.add(section)
        sections.append(section)
        for topic_name in ("A", "B"):
            topic = Topic(id=str(uuid.uuid4()), section_id=section.id, name=f"{section_name} {topic_name}")
            db.add(topic)
            topics.append(topic)
            questions[topic.id] = [
                Question(id=str(uuid.uuid4()), section_id=section.id, topic_id=topic.id)
                for _ in range(5)
            ]
            db.add_all(questions[topic.id])
    await db.flush()
    return {"sections": sections, "topics": topics, "questions": questions}


@pytest.fixture
def add_attempt(db: AsyncSession, test_user: User):
    """Factory that stores an attempt with its answers.

    ``answers`` is a list of (question, is_correct) pairs; is_correct None
    means the question was left unanswered.
    """

    async def _add(
        answers: list[tuple[Question, bool | None]],
        submitted_at: datetime | None = None,
        status: str = "submitted",
        user: User | None = None,
    ) -> TestAttempt:
        submitted_at = submitted_at or datetime(2026, 10, 19, 12, 0)
        attempt = TestAttempt(
            id=str(uuid.uuid4()),
            user_id=(user or test_user).id,
            status=status,
            correct_answers=sum(1 for _, ok in answers if ok is True),
            incorrect_answers=sum(1 for _, ok in answers if ok is False),
            unanswered=sum(1 for _, ok in answers if ok is None),
            started_at=submitted_at,
            submitted_at=submitted_at if status == "submitted" else None,
        )
        db.add(attempt)
        for question, ok in answers:
            db.add(UserAnswer(
                id=str(uuid.uuid4()),
                attempt_id=attempt.id,
                question_id=question.id,
                selected_option=None if ok is None else 1,
                is_correct=ok,
                time_spent=30,
                created_at=submitted_at,
            ))
        await db.flush()
        return attempt

    return _add
