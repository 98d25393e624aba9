"""
Progress engine: pure state transitions on ``LearningProgress``.

Every function here takes a progress value and returns a new one; nothing is
mutated and nothing raises on bad numeric input. Persistence belongs to the
caller (see ``ProgressService``).
"""

import math
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Any, Mapping

from chordcoach.domain.constants import MAX_RESPONSE_TIME_PENALTY_MS, RECENT_ATTEMPTS_CAPACITY
from chordcoach.domain.progress.models import (
    AttemptRecord,
    Direction,
    DirectionStats,
    LearningProgress,
)

from .mastery import DEFAULT_MASTERY_RULES, MasteryRules, classify, demoted_level
from .scheduler import (
    DEFAULT_SCHEDULER_PARAMS,
    SchedulerParams,
    SrsState,
    adjust_quality_for_tries,
    quality_from_attempt,
    schedule,
)


@dataclass(frozen=True)
class AttemptEvent:
    """One answer to be recorded against an item."""

    correct: bool
    response_time_ms: Any
    timestamp: datetime
    direction: Direction | None = None
    suppress_mastery_update: bool = False
    tries: int = 1


@dataclass(frozen=True)
class DemoteEvent:
    """Learner asked to re-practice a mastered item."""

    timestamp: datetime


Event = AttemptEvent | DemoteEvent


def clamp_response_time(value: Any, ceiling: float = MAX_RESPONSE_TIME_PENALTY_MS) -> int:
    """
    Coerce a raw response time to a usable integer number of milliseconds.

    Negative, NaN, infinite or non-numeric values become 0; values above
    ``ceiling`` are capped so one distracted answer cannot block mastery.
    """
    try:
        ms = float(value)
    except (TypeError, ValueError):
        return 0
    if not math.isfinite(ms) or ms < 0:
        return 0
    return int(round(min(ms, ceiling)))


def _running_average(current: int, new_value: int, count: int) -> int:
    if count <= 1:
        return new_value
    return int(round((current * (count - 1) + new_value) / count))


def _tally_direction(
    confidence: Mapping[Direction, DirectionStats],
    direction: Direction,
    correct: bool,
    response_time_ms: int,
    now: datetime,
) -> dict[Direction, DirectionStats]:
    current = confidence.get(direction, DirectionStats())
    attempts = current.attempts + 1
    updated = DirectionStats(
        attempts=attempts,
        correct=current.correct + (1 if correct else 0),
        average_time_ms=_running_average(current.average_time_ms, response_time_ms, attempts),
        last_practiced=now,
    )
    tallies = dict(confidence)
    tallies[direction] = updated
    return tallies


def record_attempt(
    progress: LearningProgress,
    correct: bool,
    response_time_ms: Any,
    now: datetime,
    direction: Direction | None = None,
    suppress_mastery_update: bool = False,
    tries: int = 1,
    rules: MasteryRules = DEFAULT_MASTERY_RULES,
    params: SchedulerParams = DEFAULT_SCHEDULER_PARAMS,
) -> LearningProgress:
    """
    Record one timed answer and return the updated progress.

    Order of effects: rolling window, lifetime counters, direction tally,
    SRS fields, then mastery level (skipped when ``suppress_mastery_update``).

    Args:
        progress: Current state of the item.
        correct: Whether the answer was right.
        response_time_ms: Raw response time; clamped before use.
        now: Time of the answer.
        direction: Optional movement tag for character items.
        suppress_mastery_update: Leave ``mastery_level`` untouched (guided practice).
        tries: Number of tries the learner needed (word chords).
        rules: Mastery thresholds.
        params: Scheduler tuning.
    """
    rt = clamp_response_time(response_time_ms, params.slow_response_time_ms)
    correct = bool(correct)

    record = AttemptRecord(correct=correct, response_time_ms=rt, timestamp=now, direction=direction)
    window = (progress.recent_attempts + (record,))[-RECENT_ATTEMPTS_CAPACITY:]

    total = progress.total_attempts + 1
    correct_total = progress.correct_attempts + (1 if correct else 0)

    confidence = progress.direction_confidence
    if direction is not None:
        confidence = _tally_direction(confidence, direction, correct, rt, now)

    quality = adjust_quality_for_tries(quality_from_attempt(correct, rt, params), tries)
    srs = schedule(
        SrsState(
            interval=progress.interval,
            ease_factor=progress.ease_factor,
            repetitions=progress.repetitions,
        ),
        quality,
        now,
        mastery_level=progress.mastery_level,
        params=params,
    )

    level = progress.mastery_level
    if not suppress_mastery_update:
        level = classify(level, window, total, rules)

    return replace(
        progress,
        total_attempts=total,
        correct_attempts=correct_total,
        recent_attempts=window,
        direction_confidence=confidence,
        interval=srs.interval,
        ease_factor=srs.ease_factor,
        repetitions=srs.repetitions,
        next_review_date=srs.next_review_date,
        last_attempt_date=now,
        last_correct_date=now if correct else progress.last_correct_date,
        mastery_level=level,
    )


def demote(progress: LearningProgress, now: datetime) -> LearningProgress:
    """
    Step a MASTERED item back to FAMILIAR so it can be re-practiced.

    The rolling window is emptied so mastery has to be re-earned, and the item
    becomes due immediately. Any other level is returned unchanged.
    """
    level = demoted_level(progress.mastery_level)
    if level is progress.mastery_level:
        return progress

    due = now
    if progress.last_attempt_date is not None and progress.last_attempt_date > now:
        due = progress.last_attempt_date

    return replace(progress, mastery_level=level, recent_attempts=(), next_review_date=due)


def transition(
    progress: LearningProgress,
    event: Event,
    rules: MasteryRules = DEFAULT_MASTERY_RULES,
    params: SchedulerParams = DEFAULT_SCHEDULER_PARAMS,
) -> LearningProgress:
    """Apply one event to a progress value."""
    if isinstance(event, AttemptEvent):
        return record_attempt(
            progress,
            event.correct,
            event.response_time_ms,
            event.timestamp,
            direction=event.direction,
            suppress_mastery_update=event.suppress_mastery_update,
            tries=event.tries,
            rules=rules,
            params=params,
        )
    if isinstance(event, DemoteEvent):
        return demote(progress, event.timestamp)
    raise TypeError(f"Unsupported progress event: {type(event).__name__}")
