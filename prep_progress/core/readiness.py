"""Exam readiness scoring.

A 0-100 composite of four weighted factors:

    accuracy  40   overall accuracy
    coverage  30   share of sections practiced
    trend     20   recent accuracy trend, centred on 10 for a flat trend
    volume    10   tests completed, saturating at 50

Every function here is total: missing, negative or non-finite inputs are
clamped so a learner with no history still gets a well-formed zero view.
"""

from datetime import date

from prep_progress.core.dates import days_between, local_today
from prep_progress.core.numeric import clamp, finite, round_half_up
from prep_progress.models.readiness import (
    ReadinessBreakdown,
    ReadinessResult,
    ReadinessStatus,
    SectionReadiness,
    SectionStat,
    SectionStatus,
    TestStats,
)

ACCURACY_WEIGHT = 0.4
COVERAGE_WEIGHT = 30
TREND_MIDPOINT = 10
TREND_MAX = 20
VOLUME_WEIGHT = 10
VOLUME_SATURATION_TESTS = 50

SECTION_ACCURACY_WEIGHT = 0.7
SECTION_VOLUME_WEIGHT = 30
SECTION_VOLUME_SATURATION = 100

# (minimum score, status), checked top to bottom
OVERALL_BANDS: list[tuple[int, ReadinessStatus]] = [
    (80, ReadinessStatus.READY),
    (60, ReadinessStatus.ALMOST_READY),
    (40, ReadinessStatus.GETTING_THERE),
]

# (minimum accuracy, minimum questions, status)
SECTION_BANDS: list[tuple[float, int, SectionStatus]] = [
    (85, 50, SectionStatus.MASTERED),
    (75, 30, SectionStatus.PROFICIENT),
    (60, 20, SectionStatus.DEVELOPING),
]

READINESS_LABELS = {
    ReadinessStatus.READY: "Ready for Exam",
    ReadinessStatus.ALMOST_READY: "Almost Ready",
    ReadinessStatus.GETTING_THERE: "Getting There",
    ReadinessStatus.NOT_READY: "Keep Practicing",
}


# ---------------------------------------------------------------------------
# Overall score
# ---------------------------------------------------------------------------


def accuracy_score(overall_accuracy: float) -> float:
    return clamp(finite(overall_accuracy), 0, 100) * ACCURACY_WEIGHT


def coverage_score(sections_practiced: int, total_sections: int) -> float:
    total = finite(total_sections)
    if total <= 0:
        return 0.0
    practiced = clamp(finite(sections_practiced), 0, total)
    return practiced / total * COVERAGE_WEIGHT


def trend_score(recent_accuracy_trend: float) -> float:
    # A flat trend still contributes the midpoint
    return clamp(TREND_MIDPOINT + finite(recent_accuracy_trend), 0, TREND_MAX)


def volume_score(tests_completed: int) -> float:
    completed = max(finite(tests_completed), 0)
    return min(completed / VOLUME_SATURATION_TESTS, 1) * VOLUME_WEIGHT


def overall_status(score: int) -> ReadinessStatus:
    for minimum, status in OVERALL_BANDS:
        if score >= minimum:
            return status
    return ReadinessStatus.NOT_READY


def readiness_label(status: ReadinessStatus) -> str:
    return READINESS_LABELS[ReadinessStatus(status)]


# ---------------------------------------------------------------------------
# Sections
# ---------------------------------------------------------------------------


def section_status(accuracy: float, questions_attempted: int) -> SectionStatus:
    """Band a section; each band needs an accuracy floor and a sample size."""
    attempted = int(max(finite(questions_attempted), 0))
    if attempted == 0:
        return SectionStatus.NOT_ATTEMPTED
    accuracy = finite(accuracy)
    for min_accuracy, min_questions, status in SECTION_BANDS:
        if accuracy >= min_accuracy and attempted >= min_questions:
            return status
    return SectionStatus.NEEDS_WORK


def compute_section_readiness(stat: SectionStat) -> SectionReadiness:
    attempted = int(max(finite(stat.questions_attempted), 0))
    accuracy = clamp(finite(stat.accuracy), 0, 100)

    if attempted == 0:
        readiness = 0
    else:
        readiness = round_half_up(
            accuracy * SECTION_ACCURACY_WEIGHT
            + min(attempted / SECTION_VOLUME_SATURATION, 1) * SECTION_VOLUME_WEIGHT
        )

    return SectionReadiness(
        section_id=stat.section_id,
        section_name=stat.section_name,
        readiness=readiness,
        accuracy=accuracy,
        questions_attempted=attempted,
        not_attempted=attempted == 0,
        status=section_status(accuracy, attempted),
    )


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def compute_readiness(stats: TestStats, today: date | None = None) -> ReadinessResult:
    """Score exam readiness from aggregate statistics. Never raises on data."""
    accuracy = accuracy_score(stats.overall_accuracy)
    coverage = coverage_score(stats.sections_practiced, stats.total_sections)
    trend = trend_score(stats.recent_accuracy_trend)
    volume = volume_score(stats.tests_completed)

    overall = int(clamp(round_half_up(accuracy + coverage + trend + volume), 0, 100))

    days_until_exam = None
    if stats.exam_date is not None:
        days_until_exam = days_between(stats.exam_date, today or local_today())

    return ReadinessResult(
        overall=overall,
        status=overall_status(overall),
        breakdown=ReadinessBreakdown(
            accuracy=round_half_up(accuracy),
            coverage=round_half_up(coverage),
            trend=round_half_up(trend),
            volume=round_half_up(volume),
        ),
        section_readiness=[compute_section_readiness(s) for s in stats.section_stats],
        days_until_exam=days_until_exam,
    )


def accuracy_trend(accuracies: list[float], window: int = 10) -> float:
    """Recent-minus-previous average accuracy in percentage points.

    ``accuracies`` are per-test accuracies, newest first. The latest *window*
    tests are compared with up to *window* tests before them; with no earlier
    tests to compare against the trend is flat.
    """
    values = [finite(a) for a in accuracies]
    if window < 1 or len(values) <= window:
        return 0.0
    recent = values[:window]
    previous = values[window:window * 2]
    return sum(recent) / len(recent) - sum(previous) / len(previous)
