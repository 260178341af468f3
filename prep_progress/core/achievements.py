"""Rule-based achievement evaluation.

Each requirement type maps to one extractor that reads the metric it needs
from a ``ProgressSnapshot``; a definition unlocks when that metric reaches its
``requirement_value``. Evaluation is pure. Persisting unlocks is the
repository's job and is safe to repeat.
"""

from collections.abc import Callable, Iterable, Mapping
from datetime import datetime

from prep_progress.core.numeric import clamp, finite, round_half_up
from prep_progress.models.achievement import (
    AchievementBoard,
    AchievementDefinition,
    AchievementProgress,
    AchievementStatus,
    ProgressSnapshot,
    RequirementType,
)


def _sections_covered(progress: ProgressSnapshot) -> float:
    if progress.total_sections <= 0:
        return 0.0
    return progress.sections_attempted / progress.total_sections * 100


METRICS: dict[RequirementType, Callable[[ProgressSnapshot], float]] = {
    RequirementType.TESTS_COUNT: lambda p: p.tests_completed,
    RequirementType.QUESTIONS_COUNT: lambda p: p.questions_answered,
    RequirementType.ACCURACY: lambda p: p.best_accuracy,
    RequirementType.PERFECT_SCORE: lambda p: p.perfect_scores,
    # Reaching a length once is enough, even if the streak broke since
    RequirementType.STREAK_DAYS: lambda p: max(p.current_streak, p.longest_streak),
    RequirementType.SECTIONS_COVERED: _sections_covered,
    RequirementType.CONSECUTIVE_DAYS: lambda p: p.current_streak,
}


def current_value(definition: AchievementDefinition, progress: ProgressSnapshot) -> float:
    return finite(METRICS[definition.requirement_type](progress))


def is_unlocked(definition: AchievementDefinition, progress: ProgressSnapshot) -> bool:
    return current_value(definition, progress) >= definition.requirement_value


def check_achievements(
    progress: ProgressSnapshot,
    definitions: Iterable[AchievementDefinition],
    already_unlocked_ids: Iterable[str],
) -> list[AchievementDefinition]:
    """Definitions that qualify now and are not yet unlocked, in input order."""
    seen = set(already_unlocked_ids)
    newly_unlocked = []
    for definition in definitions:
        if definition.id in seen:
            continue
        if is_unlocked(definition, progress):
            newly_unlocked.append(definition)
            seen.add(definition.id)
    return newly_unlocked


def compute_progress(definition: AchievementDefinition, progress: ProgressSnapshot) -> int:
    """Percentage toward *definition*, 0-100."""
    target = finite(definition.requirement_value)
    if target <= 0:
        return 100
    return int(clamp(round_half_up(current_value(definition, progress) / target * 100), 0, 100))


def total_points(definitions: Iterable[AchievementDefinition]) -> int:
    return sum(d.points for d in definitions)


def achievement_board(
    definitions: Iterable[AchievementDefinition],
    progress: ProgressSnapshot,
    unlocked: Mapping[str, datetime],
) -> AchievementBoard:
    """Every definition with its unlock state and progress.

    *unlocked* maps achievement id to unlock time for this learner.
    """
    rows = []
    for definition in definitions:
        rows.append(AchievementStatus(
            achievement=definition,
            is_unlocked=definition.id in unlocked,
            unlocked_at=unlocked.get(definition.id),
            progress=AchievementProgress(
                current=current_value(definition, progress),
                target=definition.requirement_value,
                percentage=compute_progress(definition, progress),
            ),
        ))

    earned = [row.achievement for row in rows if row.is_unlocked]
    return AchievementBoard(
        achievements=rows,
        total_points=total_points(earned),
        unlocked_count=len(earned),
        total_count=len(rows),
    )
