"""Weak-topic classification and spaced-repetition scheduling.

Classification is an ordered rule table; the first rule whose sample size and
accuracy ceiling match decides the level. A topic that is not weak is not
scheduled, and once it reaches the mastery threshold its record is removed
instead of being kept with an empty level.
"""

from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone

from prep_progress.core.numeric import percentage
from prep_progress.models.weak_topic import (
    AttemptOutcome,
    TopicAggregate,
    UpsertAction,
    WeakTopicRecord,
    WeakTopicUpdate,
    WeaknessLevel,
)

MASTERY_THRESHOLD = 75


@dataclass(frozen=True)
class WeaknessRule:
    min_attempts: int
    accuracy_ceiling: int  # exclusive
    level: WeaknessLevel


WEAKNESS_RULES: tuple[WeaknessRule, ...] = (
    WeaknessRule(5, 40, WeaknessLevel.CRITICAL),
    WeaknessRule(5, 60, WeaknessLevel.MODERATE),
    WeaknessRule(5, 75, WeaknessLevel.IMPROVING),
    WeaknessRule(3, 50, WeaknessLevel.MODERATE),
)

REVIEW_INTERVAL_DAYS = {
    WeaknessLevel.CRITICAL: 1,
    WeaknessLevel.MODERATE: 3,
    WeaknessLevel.IMPROVING: 7,
}

# Correct answers on a topic reviewed more than this many times earn an extra day
BONUS_AFTER_REVIEWS = 2
BONUS_DAYS = 1


def accuracy_percentage(total_attempts: int, correct_attempts: int) -> int:
    return percentage(correct_attempts, total_attempts)


def classify(total_attempts: int, correct_attempts: int) -> WeaknessLevel | None:
    """Weakness level for the given counts, or None if not weak or too few attempts."""
    accuracy = accuracy_percentage(total_attempts, correct_attempts)
    for rule in WEAKNESS_RULES:
        if total_attempts >= rule.min_attempts and accuracy < rule.accuracy_ceiling:
            return rule.level
    return None


def review_interval(level: WeaknessLevel, bonus: bool = False) -> int:
    return REVIEW_INTERVAL_DAYS[level] + (BONUS_DAYS if bonus else 0)


def next_review_date(level: WeaknessLevel | None, today: date, bonus: bool = False) -> date | None:
    if level is None:
        return None
    return today + timedelta(days=review_interval(level, bonus))


def interval_description(days: int) -> str:
    if days <= 0:
        return "Today"
    if days == 1:
        return "Tomorrow"
    if days < 7:
        return f"In {days} days"
    if days < 14:
        return "In 1 week"
    if days < 30:
        return f"In {days // 7} weeks"
    if days < 60:
        return "In 1 month"
    return "In 2 months"


# ---------------------------------------------------------------------------
# Transitions
# ---------------------------------------------------------------------------


def _decide(
    topic_id: str,
    existing: WeakTopicRecord | None,
    total: int,
    correct: int,
    today: date,
    bonus: bool,
    practiced_at: datetime | None,
    review_count: int,
) -> WeakTopicUpdate:
    accuracy = accuracy_percentage(total, correct)
    level = classify(total, correct)

    if level is None:
        if existing is None:
            return WeakTopicUpdate(topic_id=topic_id, action=UpsertAction.SKIP)
        if accuracy >= MASTERY_THRESHOLD:
            return WeakTopicUpdate(topic_id=topic_id, action=UpsertAction.DELETE, record=existing)

    record = WeakTopicRecord(
        topic_id=topic_id,
        total_attempts=total,
        correct_attempts=correct,
        accuracy_percentage=accuracy,
        weakness_level=level,
        next_review_date=next_review_date(level, today, bonus),
        last_practiced_at=practiced_at,
        review_count=review_count,
    )
    action = UpsertAction.CREATE if existing is None else UpsertAction.UPDATE
    return WeakTopicUpdate(topic_id=topic_id, action=action, record=record)


def upsert(
    existing: WeakTopicRecord | None,
    outcome: AttemptOutcome,
    today: date,
    now: datetime | None = None,
) -> WeakTopicUpdate:
    """Fold one answered question into a topic's record.

    Counts the attempt on top of *existing* and reschedules. Without an
    existing record the single attempt is below every sample-size gate, so the
    result is ``skip``; new records come from ``reconcile`` over lifetime
    aggregates.
    """
    now = now or datetime.now(timezone.utc).replace(tzinfo=None)
    base_total = existing.total_attempts if existing else 0
    base_correct = existing.correct_attempts if existing else 0
    total = base_total + 1
    correct = min(base_correct + (1 if outcome.was_correct else 0), total)

    bonus = (
        existing is not None
        and outcome.was_correct
        and existing.review_count > BONUS_AFTER_REVIEWS
    )
    review_count = existing.review_count + 1 if existing else 0

    return _decide(outcome.topic_id, existing, total, correct, today, bonus, now, review_count)


def reconcile(
    existing: WeakTopicRecord | None,
    aggregate: TopicAggregate,
    today: date,
) -> WeakTopicUpdate:
    """Recompute a topic's record from its lifetime answer counts.

    Review count and last-practiced time are carried over unchanged and no
    adaptive bonus applies.
    """
    total = aggregate.total_attempts
    correct = min(aggregate.correct_attempts, total)
    return _decide(
        aggregate.topic_id,
        existing,
        total,
        correct,
        today,
        bonus=False,
        practiced_at=existing.last_practiced_at if existing else None,
        review_count=existing.review_count if existing else 0,
    )
