from dataclasses import replace
from datetime import datetime, timedelta, timezone

import pytest

from chordcoach.application.stats.aggregator import ProgressStatsAggregator
from chordcoach.domain.progress.models import (
    ItemType,
    LearningProgress,
    MasteryLevel,
    ProgressStats,
)

NOON = datetime(2024, 3, 10, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def agg():
    return ProgressStatsAggregator()


def practiced(item_id, item_type, level=MasteryLevel.LEARNING, total=3):
    return replace(
        LearningProgress.create(item_id, item_type),
        total_attempts=total,
        correct_attempts=total,
        mastery_level=level,
    )


class TestRollup:
    def test_counts_every_type(self, agg):
        items = [
            practiced("a", ItemType.CHARACTER),
            practiced("b", ItemType.CHARACTER, MasteryLevel.MASTERED),
            practiced("ab", ItemType.POWER_CHORD, MasteryLevel.FAMILIAR),
            LearningProgress.create("the", ItemType.WORD),
        ]
        stats = agg.rollup(items)

        assert stats.learned_counts == {
            ItemType.CHARACTER: 2,
            ItemType.POWER_CHORD: 1,
            ItemType.WORD: 0,
        }
        assert stats.mastered_counts[ItemType.CHARACTER] == 1
        assert stats.mastered_counts[ItemType.WORD] == 0
        assert stats.total_learned == 3
        assert stats.total_mastered == 1

    def test_streak_fields_carry_over(self, agg):
        previous = ProgressStats(current_streak=4, longest_streak=9, total_practice_time_ms=5)
        stats = agg.rollup([], previous)
        assert stats.current_streak == 4
        assert stats.longest_streak == 9
        assert stats.total_practice_time_ms == 5


class TestStreak:
    def test_first_session_starts_streak(self, agg):
        stats = agg.close_session(ProgressStats(), 1000, NOON)
        assert stats.current_streak == 1
        assert stats.longest_streak == 1
        assert stats.last_practice_date == NOON
        assert stats.total_practice_time_ms == 1000

    def test_same_day_is_unchanged(self, agg):
        stats = agg.close_session(ProgressStats(), 1000, NOON)
        stats = agg.close_session(stats, 500, NOON + timedelta(hours=6))
        assert stats.current_streak == 1
        assert stats.total_practice_time_ms == 1500

    def test_consecutive_days_extend(self, agg):
        stats = agg.close_session(ProgressStats(), 0, NOON)
        stats = agg.close_session(stats, 0, NOON + timedelta(days=1))
        assert stats.current_streak == 2
        assert stats.longest_streak == 2

    def test_calendar_day_not_24_hours(self, agg):
        late = datetime(2024, 3, 10, 23, 50, tzinfo=timezone.utc)
        stats = agg.close_session(ProgressStats(), 0, late)
        stats = agg.close_session(stats, 0, late + timedelta(minutes=20))
        assert stats.current_streak == 2

    def test_gap_resets_but_keeps_longest(self, agg):
        previous = ProgressStats(current_streak=5, longest_streak=5, last_practice_date=NOON)
        stats = agg.close_session(previous, 0, NOON + timedelta(days=3))
        assert stats.current_streak == 1
        assert stats.longest_streak == 5

    def test_longest_tracks_current(self, agg):
        previous = ProgressStats(current_streak=7, longest_streak=3, last_practice_date=NOON)
        stats = agg.close_session(previous, 0, NOON + timedelta(days=1))
        assert stats.current_streak == 8
        assert stats.longest_streak == 8

    def test_negative_practice_time_ignored(self, agg):
        stats = agg.close_session(ProgressStats(total_practice_time_ms=10), -50, NOON)
        assert stats.total_practice_time_ms == 10

    @pytest.mark.parametrize("bad", [float("nan"), float("inf"), float("-inf"), "x", None])
    def test_non_finite_practice_time_counts_as_zero(self, agg, bad):
        stats = agg.close_session(ProgressStats(total_practice_time_ms=10), bad, NOON)
        assert stats.total_practice_time_ms == 10
        assert stats.current_streak == 1

    def test_fractional_practice_time_rounds(self, agg):
        assert agg.close_session(ProgressStats(), 1499.6, NOON).total_practice_time_ms == 1500

    def test_timezone_shifts_the_day(self):
        # 23:30 UTC on the 10th is already the 11th in Tokyo
        tokyo = ProgressStatsAggregator(tz=timezone(timedelta(hours=9)))
        utc = ProgressStatsAggregator()
        first = datetime(2024, 3, 10, 1, 0, tzinfo=timezone.utc)
        second = datetime(2024, 3, 10, 23, 30, tzinfo=timezone.utc)

        via_tokyo = tokyo.close_session(tokyo.close_session(ProgressStats(), 0, first), 0, second)
        via_utc = utc.close_session(utc.close_session(ProgressStats(), 0, first), 0, second)

        assert via_tokyo.current_streak == 2
        assert via_utc.current_streak == 1
