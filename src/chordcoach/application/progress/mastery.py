"""
Mastery classification.

Maps an item's current level and recent performance to its next level:

    NEW -> LEARNING -> FAMILIAR -> MASTERED

Promotion is automatic; demotion only happens through ``demote``.
"""

from dataclasses import dataclass
from typing import Sequence

from chordcoach.domain.constants import (
    FAMILIAR_ACCURACY_THRESHOLD,
    MASTERED_ACCURACY_THRESHOLD,
    MASTERED_RESPONSE_TIME_THRESHOLD,
    MASTERY_WINDOW_SIZE,
    RESPONSE_TIME_WINDOW_SIZE,
)
from chordcoach.domain.progress.models import AttemptRecord, MasteryLevel

from .windowed_stats import recent_accuracy, recent_response_time


@dataclass(frozen=True)
class MasteryRules:
    """Thresholds for mastery promotion. Defaults come from ``domain.constants``."""

    window_size: int = MASTERY_WINDOW_SIZE
    response_time_window_size: int = RESPONSE_TIME_WINDOW_SIZE
    familiar_accuracy: float = FAMILIAR_ACCURACY_THRESHOLD
    mastered_accuracy: float = MASTERED_ACCURACY_THRESHOLD
    mastered_response_time_ms: float = MASTERED_RESPONSE_TIME_THRESHOLD


DEFAULT_MASTERY_RULES = MasteryRules()


def _has_enough_history(
    total_attempts: int, attempts: Sequence[AttemptRecord], rules: MasteryRules
) -> bool:
    # The window is emptied on demotion, so lifetime count alone is not enough.
    return total_attempts >= rules.window_size and len(attempts) >= rules.window_size


def _qualifies_familiar(
    total_attempts: int, attempts: Sequence[AttemptRecord], rules: MasteryRules
) -> bool:
    if not _has_enough_history(total_attempts, attempts, rules):
        return False
    return recent_accuracy(attempts, rules.window_size) >= rules.familiar_accuracy


def _qualifies_mastered(
    total_attempts: int, attempts: Sequence[AttemptRecord], rules: MasteryRules
) -> bool:
    if not _has_enough_history(total_attempts, attempts, rules):
        return False
    accuracy = recent_accuracy(attempts, rules.window_size)
    response_time = recent_response_time(attempts, rules.response_time_window_size)
    return (
        accuracy >= rules.mastered_accuracy
        and response_time <= rules.mastered_response_time_ms
    )


def classify(
    current: MasteryLevel,
    attempts: Sequence[AttemptRecord],
    total_attempts: int,
    rules: MasteryRules = DEFAULT_MASTERY_RULES,
) -> MasteryLevel:
    """
    Compute the next mastery level after an attempt has been recorded.

    Never lowers the level and never raises.

    Args:
        current: Level before the attempt.
        attempts: Rolling window of recent attempts, oldest first.
        total_attempts: Lifetime attempt count, including the new one.
        rules: Promotion thresholds.
    """
    if current is MasteryLevel.NEW:
        if total_attempts > 0:
            return MasteryLevel.LEARNING
        return MasteryLevel.NEW

    if current is MasteryLevel.LEARNING:
        if not _qualifies_familiar(total_attempts, attempts, rules):
            return MasteryLevel.LEARNING
        current = MasteryLevel.FAMILIAR

    if current is MasteryLevel.FAMILIAR:
        if _qualifies_mastered(total_attempts, attempts, rules):
            return MasteryLevel.MASTERED
        return MasteryLevel.FAMILIAR

    if current is MasteryLevel.MASTERED:
        return MasteryLevel.MASTERED

    return current


def demoted_level(current: MasteryLevel) -> MasteryLevel:
    """MASTERED steps back to FAMILIAR; every other level is left alone."""
    if current is MasteryLevel.MASTERED:
        return MasteryLevel.FAMILIAR
    return current
