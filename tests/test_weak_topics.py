"""Tests for weak-topic classification and scheduling."""

from datetime import date, datetime, timedelta

import pytest
from pydantic import ValidationError

from prep_progress.core.weak_topics import (
    accuracy_percentage,
    classify,
    interval_description,
    next_review_date,
    reconcile,
    upsert,
)
from prep_progress.models.weak_topic import (
    AttemptOutcome,
    TopicAggregate,
    UpsertAction,
    WeakTopicRecord,
    WeaknessLevel,
)

TODAY = date(2026, 10, 19)
NOW = datetime(2026, 10, 19, 12, 0)


def _record(total: int, correct: int, level: WeaknessLevel | None, review_count: int = 0) -> WeakTopicRecord:
    return WeakTopicRecord(
        topic_id="topic-1",
        total_attempts=total,
        correct_attempts=correct,
        accuracy_percentage=accuracy_percentage(total, correct),
        weakness_level=level,
        next_review_date=TODAY if level else None,
        review_count=review_count,
    )


class TestClassify:
    @pytest.mark.parametrize(
        "total,correct,expected",
        [
            (6, 2, WeaknessLevel.CRITICAL),
            (5, 1, WeaknessLevel.CRITICAL),
            (5, 2, WeaknessLevel.MODERATE),
            (10, 5, WeaknessLevel.MODERATE),
            (5, 3, WeaknessLevel.IMPROVING),
            (10, 7, WeaknessLevel.IMPROVING),
            (4, 3, None),
            (5, 4, None),
            (20, 15, None),
            (3, 1, WeaknessLevel.MODERATE),
            (4, 1, WeaknessLevel.MODERATE),
            (4, 2, None),
            (3, 2, None),
            (2, 0, None),
            (1, 0, None),
            (0, 0, None),
        ],
    )
    def test_rule_table(self, total, correct, expected):
        assert classify(total, correct) == expected

    def test_boundary_uses_rounded_accuracy(self):
        # 39.5% rounds up to 40, which is no longer critical
        assert accuracy_percentage(200, 79) == 40
        assert classify(200, 79) == WeaknessLevel.MODERATE


class TestSchedule:
    def test_intervals(self):
        assert next_review_date(WeaknessLevel.CRITICAL, TODAY) == TODAY + timedelta(days=1)
        assert next_review_date(WeaknessLevel.MODERATE, TODAY) == TODAY + timedelta(days=3)
        assert next_review_date(WeaknessLevel.IMPROVING, TODAY) == TODAY + timedelta(days=7)
        assert next_review_date(WeaknessLevel.IMPROVING, TODAY, bonus=True) == TODAY + timedelta(days=8)
        assert next_review_date(None, TODAY) is None

    @pytest.mark.parametrize(
        "days,expected",
        [
            (1, "Tomorrow"),
            (3, "In 3 days"),
            (7, "In 1 week"),
            (13, "In 1 week"),
            (21, "In 3 weeks"),
            (45, "In 1 month"),
            (90, "In 2 months"),
        ],
    )
    def test_interval_description(self, days, expected):
        assert interval_description(days) == expected


class TestUpsert:
    def test_missing_record_single_attempt_is_skipped(self):
        change = upsert(None, AttemptOutcome(topic_id="topic-1", was_correct=False), TODAY, NOW)
        assert change.action == UpsertAction.SKIP
        assert change.record is None

    def test_update_recounts_and_reschedules(self):
        existing = _record(5, 2, WeaknessLevel.MODERATE, review_count=1)
        change = upsert(existing, AttemptOutcome(topic_id="topic-1", was_correct=False), TODAY, NOW)

        assert change.action == UpsertAction.UPDATE
        assert change.record.total_attempts == 6
        assert change.record.correct_attempts == 2
        assert change.record.accuracy_percentage == 33
        assert change.record.weakness_level == WeaknessLevel.CRITICAL
        assert change.record.next_review_date == TODAY + timedelta(days=1)
        assert change.record.review_count == 2
        assert change.record.last_practiced_at == NOW

    def test_recovery_past_mastery_deletes(self):
        existing = _record(4, 3, WeaknessLevel.MODERATE)
        change = upsert(existing, AttemptOutcome(topic_id="topic-1", was_correct=True), TODAY, NOW)

        assert change.action == UpsertAction.DELETE
        assert change.record == existing

    def test_not_weak_below_mastery_is_kept_unscheduled(self):
        existing = _record(3, 1, WeaknessLevel.MODERATE)
        change = upsert(existing, AttemptOutcome(topic_id="topic-1", was_correct=True), TODAY, NOW)

        # 2/4 = 50%: not weak on a small sample, but not mastered either
        assert change.action == UpsertAction.UPDATE
        assert change.record.weakness_level is None
        assert change.record.next_review_date is None

    def test_bonus_day_for_correct_answer_after_repeated_reviews(self):
        existing = _record(9, 5, WeaknessLevel.MODERATE, review_count=3)
        change = upsert(existing, AttemptOutcome(topic_id="topic-1", was_correct=True), TODAY, NOW)

        assert change.record.weakness_level == WeaknessLevel.IMPROVING
        assert change.record.next_review_date == TODAY + timedelta(days=8)

    def test_no_bonus_after_few_reviews(self):
        existing = _record(9, 5, WeaknessLevel.MODERATE, review_count=2)
        change = upsert(existing, AttemptOutcome(topic_id="topic-1", was_correct=True), TODAY, NOW)
        assert change.record.next_review_date == TODAY + timedelta(days=7)

    def test_no_bonus_for_wrong_answer(self):
        existing = _record(9, 5, WeaknessLevel.MODERATE, review_count=5)
        change = upsert(existing, AttemptOutcome(topic_id="topic-1", was_correct=False), TODAY, NOW)
        assert change.record.weakness_level == WeaknessLevel.MODERATE
        assert change.record.next_review_date == TODAY + timedelta(days=3)


class TestReconcile:
    def test_creates_when_first_evaluation_is_weak(self):
        change = reconcile(None, TopicAggregate(topic_id="topic-1", total_attempts=6, correct_attempts=2), TODAY)

        assert change.action == UpsertAction.CREATE
        assert change.record.weakness_level == WeaknessLevel.CRITICAL
        assert change.record.next_review_date == TODAY + timedelta(days=1)
        assert change.record.review_count == 0

    def test_skips_when_not_weak_and_untracked(self):
        change = reconcile(None, TopicAggregate(topic_id="topic-1", total_attempts=10, correct_attempts=9), TODAY)
        assert change.action == UpsertAction.SKIP

    def test_deletes_mastered_topic(self):
        existing = _record(4, 1, WeaknessLevel.MODERATE)
        change = reconcile(existing, TopicAggregate(topic_id="topic-1", total_attempts=5, correct_attempts=4), TODAY)
        assert change.action == UpsertAction.DELETE

    def test_keeps_review_count_and_practice_time(self):
        existing = _record(5, 1, WeaknessLevel.CRITICAL, review_count=4).model_copy(
            update={"last_practiced_at": NOW}
        )
        change = reconcile(existing, TopicAggregate(topic_id="topic-1", total_attempts=8, correct_attempts=4), TODAY)

        assert change.action == UpsertAction.UPDATE
        assert change.record.weakness_level == WeaknessLevel.MODERATE
        assert change.record.review_count == 4
        assert change.record.last_practiced_at == NOW
        # No adaptive bonus on a full recompute
        assert change.record.next_review_date == TODAY + timedelta(days=3)


class TestWeakTopicRecord:
    def test_level_without_date_rejected(self):
        with pytest.raises(ValidationError):
            WeakTopicRecord(
                topic_id="t", total_attempts=5, correct_attempts=1, accuracy_percentage=20,
                weakness_level=WeaknessLevel.CRITICAL, next_review_date=None,
            )

    def test_correct_above_total_rejected(self):
        with pytest.raises(ValidationError):
            WeakTopicRecord(topic_id="t", total_attempts=2, correct_attempts=3, accuracy_percentage=100)

    def test_severity_order(self):
        levels = sorted(WeaknessLevel, key=lambda level: level.severity)
        assert levels == [WeaknessLevel.CRITICAL, WeaknessLevel.MODERATE, WeaknessLevel.IMPROVING]
