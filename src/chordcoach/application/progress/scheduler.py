"""
SM-2 family spaced-repetition scheduler.

Pure computation: given the outcome of one attempt and the item's current
SRS state, returns the next interval, ease factor, repetition count and
review date.

    q < 3   -> repetitions = 0, interval = 1 day
    q >= 3  -> repetitions += 1, interval = 1, 6, then round(interval * ease)
    ease    = max(1.3, ease + (0.1 - (5 - q) * (0.08 + (5 - q) * 0.02)))
"""

import math
from dataclasses import dataclass
from datetime import datetime, timedelta

from chordcoach.domain.constants import (
    DEFAULT_EASE_FACTOR,
    FAILED_QUALITY,
    FIRST_INTERVAL_DAYS,
    LAPSE_INTERVAL_DAYS,
    MAX_INTERVAL_DAYS,
    MASTERED_RESPONSE_TIME_THRESHOLD,
    MAX_RESPONSE_TIME_PENALTY_MS,
    MIN_EASE_FACTOR,
    PERFECT_QUALITY,
    SECOND_INTERVAL_DAYS,
    SUCCESS_QUALITY,
)
from chordcoach.domain.progress.models import MasteryLevel


@dataclass(frozen=True)
class SchedulerParams:
    """
    Tuning constants for the scheduler.

    The caps are disabled (None) by default so the classic SM-2 shape is kept.
    """

    default_ease_factor: float = DEFAULT_EASE_FACTOR
    min_ease_factor: float = MIN_EASE_FACTOR
    max_ease_factor: float | None = None
    failed_quality: float = FAILED_QUALITY
    success_quality: float = SUCCESS_QUALITY
    fast_response_time_ms: float = MASTERED_RESPONSE_TIME_THRESHOLD
    slow_response_time_ms: float = MAX_RESPONSE_TIME_PENALTY_MS
    first_interval_days: float = FIRST_INTERVAL_DAYS
    second_interval_days: float = SECOND_INTERVAL_DAYS
    lapse_interval_days: float = LAPSE_INTERVAL_DAYS
    max_interval_mastered: float | None = None
    max_interval_learning: float | None = None


DEFAULT_SCHEDULER_PARAMS = SchedulerParams()


@dataclass(frozen=True)
class SrsState:
    """
    SRS fields of one item.

    ``next_review_date`` is output only: ``schedule`` derives it from ``now``
    and the new interval and never reads the incoming value.
    """

    interval: float
    ease_factor: float
    repetitions: int
    next_review_date: datetime | None = None


def quality_from_attempt(
    correct: bool,
    response_time_ms: float,
    params: SchedulerParams = DEFAULT_SCHEDULER_PARAMS,
) -> float:
    """
    Derive an SM-2 quality score (0-5) from one attempt.

    Wrong answers score ``failed_quality``. Fast correct answers score 5; slower
    ones slide linearly from 4 down to 3 at ``slow_response_time_ms``.
    """
    if not correct:
        return params.failed_quality

    if response_time_ms <= params.fast_response_time_ms:
        return float(PERFECT_QUALITY)

    span = params.slow_response_time_ms - params.fast_response_time_ms
    if span <= 0:
        return float(params.success_quality)

    ratio = min(1.0, (response_time_ms - params.fast_response_time_ms) / span)
    return (params.success_quality + 1) - ratio


def adjust_quality_for_tries(quality: float, tries: int) -> float:
    """
    Word chords that needed several tries lose one quality point per extra try,
    never dropping a passing answer below 3.
    """
    if tries > 1 and quality > SUCCESS_QUALITY:
        return max(float(SUCCESS_QUALITY), quality - (tries - 1))
    return quality


def next_ease_factor(
    ease_factor: float, quality: float, params: SchedulerParams = DEFAULT_SCHEDULER_PARAMS
) -> float:
    miss = PERFECT_QUALITY - quality
    ease = ease_factor + (0.1 - miss * (0.08 + miss * 0.02))
    if not math.isfinite(ease):
        ease = params.default_ease_factor
    ease = max(params.min_ease_factor, ease)
    if params.max_ease_factor is not None:
        ease = min(params.max_ease_factor, ease)
    return ease


def _interval_cap(level: MasteryLevel, params: SchedulerParams) -> float | None:
    if level is MasteryLevel.MASTERED:
        return params.max_interval_mastered
    return params.max_interval_learning


def schedule(
    state: SrsState,
    quality: float,
    now: datetime,
    mastery_level: MasteryLevel = MasteryLevel.LEARNING,
    params: SchedulerParams = DEFAULT_SCHEDULER_PARAMS,
) -> SrsState:
    """
    Apply one SM-2 step.

    The interval multiplication uses the ease factor from *before* this step.

    Args:
        state: Current SRS fields.
        quality: Score from ``quality_from_attempt``.
        now: Time of the attempt; the review date is ``now + interval days``.
        mastery_level: Level used to pick the optional interval cap.
        params: Tuning constants.
    """
    ease_factor = state.ease_factor
    if not math.isfinite(ease_factor):
        ease_factor = params.default_ease_factor

    if quality < params.success_quality:
        repetitions = 0
        interval = params.lapse_interval_days
    else:
        repetitions = state.repetitions + 1
        if repetitions == 1:
            interval = params.first_interval_days
        elif repetitions == 2:
            interval = params.second_interval_days
        else:
            grown = state.interval * ease_factor
            if math.isfinite(grown) and grown >= 0:
                interval = float(round(min(grown, MAX_INTERVAL_DAYS)))
            else:
                # Unusable prior interval: restart the ladder at its second step
                interval = params.second_interval_days

    cap = _interval_cap(mastery_level, params)
    if cap is not None:
        interval = min(interval, cap)
    interval = min(max(0.0, interval), MAX_INTERVAL_DAYS)

    return SrsState(
        interval=interval,
        ease_factor=next_ease_factor(ease_factor, quality, params),
        repetitions=repetitions,
        next_review_date=now + timedelta(days=interval),
    )
