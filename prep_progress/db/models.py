"""SQLAlchemy ORM models."""

from datetime import date, datetime, timezone

from sqlalchemy import Boolean, CheckConstraint, Date, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


def utcnow() -> datetime:
    """Current UTC time as a naive datetime (the storage convention)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


class User(Base):
    """Learner account (owned by the auth layer, read here for foreign keys)."""

    __tablename__ = "users"

    id: Mapped[str] = mapped_column(UUID(as_uuid=False), primary_key=True)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)

    attempts: Mapped[list["TestAttempt"]] = relationship(back_populates="user", cascade="all, delete-orphan")
    streak: Mapped["PracticeStreak | None"] = relationship(back_populates="user", uselist=False, cascade="all, delete-orphan")
    weak_topics: Mapped[list["WeakTopic"]] = relationship(back_populates="user", cascade="all, delete-orphan")
    achievements: Mapped[list["UserAchievement"]] = relationship(back_populates="user", cascade="all, delete-orphan")


class Section(Base):
    """Top-level exam section (e.g. Mathematics, Reasoning)."""

    __tablename__ = "sections"

    id: Mapped[str] = mapped_column(UUID(as_uuid=False), primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    display_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    topics: Mapped[list["Topic"]] = relationship(back_populates="section", cascade="all, delete-orphan")


class Topic(Base):
    """Sub-category within a section (e.g. Algebra)."""

    __tablename__ = "topics"

    id: Mapped[str] = mapped_column(UUID(as_uuid=False), primary_key=True)
    section_id: Mapped[str] = mapped_column(UUID(as_uuid=False), ForeignKey("sections.id", ondelete="CASCADE"), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)

    section: Mapped["Section"] = relationship(back_populates="topics")


class Question(Base):
    """Question reference row; only the section/topic mapping is used here."""

    __tablename__ = "questions"

    id: Mapped[str] = mapped_column(UUID(as_uuid=False), primary_key=True)
    section_id: Mapped[str] = mapped_column(UUID(as_uuid=False), ForeignKey("sections.id", ondelete="CASCADE"), nullable=False)
    topic_id: Mapped[str | None] = mapped_column(UUID(as_uuid=False), ForeignKey("topics.id", ondelete="SET NULL"), nullable=True)

    section: Mapped["Section"] = relationship()
    topic: Mapped["Topic | None"] = relationship()


class TestAttempt(Base):
    """One test or practice session taken by a learner."""

    __tablename__ = "test_attempts"

    id: Mapped[str] = mapped_column(UUID(as_uuid=False), primary_key=True)
    user_id: Mapped[str] = mapped_column(UUID(as_uuid=False), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="in_progress")  # in_progress, submitted
    correct_answers: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    incorrect_answers: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    unanswered: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    started_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    submitted_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    user: Mapped["User"] = relationship(back_populates="attempts")
    answers: Mapped[list["UserAnswer"]] = relationship(back_populates="attempt", cascade="all, delete-orphan")


class UserAnswer(Base):
    """Per-question answer inside an attempt."""

    __tablename__ = "user_answers"

    id: Mapped[str] = mapped_column(UUID(as_uuid=False), primary_key=True)
    attempt_id: Mapped[str] = mapped_column(UUID(as_uuid=False), ForeignKey("test_attempts.id", ondelete="CASCADE"), nullable=False)
    question_id: Mapped[str] = mapped_column(UUID(as_uuid=False), ForeignKey("questions.id", ondelete="CASCADE"), nullable=False)
    selected_option: Mapped[int | None] = mapped_column(Integer, nullable=True)
    is_correct: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    time_spent: Mapped[int] = mapped_column(Integer, nullable=False, default=0)  # seconds
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)

    attempt: Mapped["TestAttempt"] = relationship(back_populates="answers")
    question: Mapped["Question"] = relationship()


class PracticeStreak(Base):
    """Per-learner day streak."""

    __tablename__ = "practice_streaks"
    __table_args__ = (
        CheckConstraint("longest_streak >= current_streak", name="ck_practice_streaks_longest"),
    )

    id: Mapped[str] = mapped_column(UUID(as_uuid=False), primary_key=True)
    user_id: Mapped[str] = mapped_column(UUID(as_uuid=False), ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False)
    current_streak: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    longest_streak: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_practice_days: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_practice_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    streak_start_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, onupdate=utcnow)

    user: Mapped["User"] = relationship(back_populates="streak")


class WeakTopic(Base):
    """Per-learner weak topic scheduled for spaced review."""

    __tablename__ = "weak_topics"
    __table_args__ = (
        UniqueConstraint("user_id", "topic_id"),
        CheckConstraint("correct_attempts <= total_attempts", name="ck_weak_topics_correct"),
        CheckConstraint(
            "(weakness_level IS NULL) = (next_review_date IS NULL)",
            name="ck_weak_topics_level_schedule",
        ),
    )

    id: Mapped[str] = mapped_column(UUID(as_uuid=False), primary_key=True)
    user_id: Mapped[str] = mapped_column(UUID(as_uuid=False), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    topic_id: Mapped[str] = mapped_column(UUID(as_uuid=False), ForeignKey("topics.id", ondelete="CASCADE"), nullable=False)
    total_attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    correct_attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    accuracy_percentage: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    weakness_level: Mapped[str | None] = mapped_column(String(20), nullable=True)  # critical, moderate, improving
    next_review_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    last_practiced_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    review_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    identified_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, onupdate=utcnow)

    user: Mapped["User"] = relationship(back_populates="weak_topics")


class Achievement(Base):
    """Achievement definition (reference data)."""

    __tablename__ = "achievements"

    id: Mapped[str] = mapped_column(UUID(as_uuid=False), primary_key=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    icon: Mapped[str | None] = mapped_column(String(50), nullable=True)
    category: Mapped[str] = mapped_column(String(30), nullable=False, default="milestone")
    requirement_type: Mapped[str] = mapped_column(String(30), nullable=False)
    requirement_value: Mapped[int] = mapped_column(Integer, nullable=False)
    points: Mapped[int] = mapped_column(Integer, nullable=False, default=10)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)


class UserAchievement(Base):
    """Append-only unlock row, one per (learner, achievement)."""

    __tablename__ = "user_achievements"
    __table_args__ = (
        UniqueConstraint("user_id", "achievement_id"),
    )

    id: Mapped[str] = mapped_column(UUID(as_uuid=False), primary_key=True)
    user_id: Mapped[str] = mapped_column(UUID(as_uuid=False), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    achievement_id: Mapped[str] = mapped_column(UUID(as_uuid=False), ForeignKey("achievements.id", ondelete="CASCADE"), nullable=False)
    unlocked_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)

    user: Mapped["User"] = relationship(back_populates="achievements")
