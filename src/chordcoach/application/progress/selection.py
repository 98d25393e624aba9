"""
Adaptive session selection.

Picks which items a training session should present next:
1. Due items ordered by urgency (heavily overdue first, then hardest first)
2. Weighted random draws that favour failing, overdue and barely-seen items
3. A coarse weak/moderate/strong confidence label for dashboards
"""

import logging
import random
from datetime import datetime
from enum import Enum
from typing import Sequence

from chordcoach.domain.constants import (
    HEAVILY_OVERDUE_SECONDS,
    MODERATE_MAX_RESPONSE_TIME_MS,
    MODERATE_MIN_ACCURACY,
    MODERATE_MIN_ATTEMPTS,
    RESPONSE_TIME_WINDOW_SIZE,
    SELECTION_FAILED_MULTIPLIER,
    SELECTION_LOW_ATTEMPT_BONUS,
    SELECTION_LOW_ATTEMPT_THRESHOLD,
    SELECTION_MIN_BASE_WEIGHT,
    SELECTION_OVERDUE_BOOST_PER_DAY,
    STRONG_MAX_RESPONSE_TIME_MS,
    STRONG_MIN_ACCURACY,
    STRONG_MIN_ATTEMPTS,
)
from chordcoach.domain.progress.models import LearningProgress

from .windowed_stats import recent_response_time

logger = logging.getLogger(__name__)


class ConfidenceLevel(str, Enum):
    WEAK = "weak"
    MODERATE = "moderate"
    STRONG = "strong"


def _overdue_seconds(progress: LearningProgress, now: datetime) -> float:
    if progress.next_review_date is None:
        return 0.0
    return (now - progress.next_review_date).total_seconds()


def next_items_to_review(
    due_items: Sequence[LearningProgress], count: int, now: datetime
) -> list[LearningProgress]:
    """
    Order due items for review and keep the first ``count``.

    Items more than a day overdue come first; within each group lower ease
    (harder items) comes first.
    """
    if count <= 0:
        return []

    def priority(p: LearningProgress) -> tuple[int, float]:
        heavily_overdue = _overdue_seconds(p, now) > HEAVILY_OVERDUE_SECONDS
        return (0 if heavily_overdue else 1, p.ease_factor)

    return sorted(due_items, key=priority)[:count]


def selection_weight(progress: LearningProgress, now: datetime) -> float:
    """Higher weight means more likely to be drawn."""
    weight = SELECTION_MIN_BASE_WEIGHT
    weight += (1 - progress.accuracy) * SELECTION_FAILED_MULTIPLIER

    overdue_hours = max(0.0, _overdue_seconds(progress, now) / 3600)
    weight += (overdue_hours / 24) * SELECTION_OVERDUE_BOOST_PER_DAY

    if progress.total_attempts < SELECTION_LOW_ATTEMPT_THRESHOLD:
        weight += SELECTION_LOW_ATTEMPT_BONUS

    return weight


def weighted_selection(
    items: Sequence[LearningProgress],
    count: int,
    now: datetime,
    rng: random.Random | None = None,
) -> list[LearningProgress]:
    """
    Draw ``count`` distinct items, weighted by ``selection_weight``.

    When there are no more items than requested, all of them are returned
    in their original order.
    """
    if len(items) <= count:
        return list(items)

    rng = rng or random.Random()
    remaining = [(item, selection_weight(item, now)) for item in items]
    selected: list[LearningProgress] = []

    while len(selected) < count and remaining:
        total = sum(w for _, w in remaining)
        pick = rng.random() * total
        index = len(remaining) - 1
        for i, (_, w) in enumerate(remaining):
            pick -= w
            if pick <= 0:
                index = i
                break
        selected.append(remaining.pop(index)[0])

    logger.debug(f"Weighted selection drew {len(selected)} of {len(items)} items")
    return selected


def confidence_level(progress: LearningProgress) -> ConfidenceLevel:
    """
    Coarse confidence label from lifetime accuracy and recent speed.

    A missing speed measurement (no attempts) never counts as fast.
    """
    if progress.total_attempts < MODERATE_MIN_ATTEMPTS:
        return ConfidenceLevel.WEAK

    avg_time = recent_response_time(progress.recent_attempts, RESPONSE_TIME_WINDOW_SIZE)
    if not progress.recent_attempts:
        avg_time = float("inf")

    if (
        progress.total_attempts >= STRONG_MIN_ATTEMPTS
        and progress.accuracy >= STRONG_MIN_ACCURACY
        and avg_time <= STRONG_MAX_RESPONSE_TIME_MS
    ):
        return ConfidenceLevel.STRONG

    if progress.accuracy >= MODERATE_MIN_ACCURACY and avg_time <= MODERATE_MAX_RESPONSE_TIME_MS:
        return ConfidenceLevel.MODERATE

    return ConfidenceLevel.WEAK
