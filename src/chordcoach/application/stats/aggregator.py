"""
Progress stats aggregator.

Rolls up every item into learned/mastered counts per type and runs the
daily practice-streak state machine. This is a pure computation module
with no I/O.
"""

import math
from dataclasses import replace
from datetime import date, datetime, tzinfo
from typing import Any, Iterable
from zoneinfo import ZoneInfo

from chordcoach.domain.progress.models import (
    ItemType,
    LearningProgress,
    MasteryLevel,
    ProgressStats,
)

UTC = ZoneInfo("UTC")


def clamp_duration_ms(value: Any) -> int:
    """Whole milliseconds; NaN, infinite, negative or non-numeric input counts as 0."""
    try:
        ms = float(value)
    except (TypeError, ValueError):
        return 0
    if not math.isfinite(ms) or ms < 0:
        return 0
    return int(round(ms))


class ProgressStatsAggregator:
    """
    Computes derived stats from ``LearningProgress`` collections.

    Stateless and side-effect free. Calendar days are evaluated in ``tz``.
    """

    def __init__(self, tz: tzinfo = UTC):
        self.tz = tz

    def rollup(
        self, items: Iterable[LearningProgress], stats: ProgressStats | None = None
    ) -> ProgressStats:
        """
        Recount learned and mastered items per type.

        Streak and practice-time fields are carried over from ``stats``.
        """
        learned = {t: 0 for t in ItemType}
        mastered = {t: 0 for t in ItemType}

        for item in items:
            if item.total_attempts > 0:
                learned[item.item_type] += 1
            if item.mastery_level is MasteryLevel.MASTERED:
                mastered[item.item_type] += 1

        return replace(stats or ProgressStats(), learned_counts=learned, mastered_counts=mastered)

    def _calendar_day(self, instant: datetime) -> date:
        if instant.tzinfo is None:
            instant = instant.replace(tzinfo=UTC)
        return instant.astimezone(self.tz).date()

    def close_session(
        self, stats: ProgressStats, practice_time_ms: Any, now: datetime
    ) -> ProgressStats:
        """
        Account for a finished practice session.

        Streak rules, by calendar day relative to the last practice:
        none -> 1, same day -> unchanged, next day -> +1, longer gap -> 1.
        """
        practice_time_ms = clamp_duration_ms(practice_time_ms)

        if stats.last_practice_date is None:
            streak = 1
        else:
            gap = (self._calendar_day(now) - self._calendar_day(stats.last_practice_date)).days
            if gap <= 0:
                streak = max(1, stats.current_streak)
            elif gap == 1:
                streak = stats.current_streak + 1
            else:
                streak = 1

        return replace(
            stats,
            total_practice_time_ms=stats.total_practice_time_ms + practice_time_ms,
            current_streak=streak,
            longest_streak=max(stats.longest_streak, streak),
            last_practice_date=now,
        )
