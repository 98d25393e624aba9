"""
Domain models for learner progress.

These are pure data structures with no I/O or external dependencies.
Every model is immutable; state changes produce new values.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Mapping

from chordcoach.domain.constants import DEFAULT_EASE_FACTOR


class ItemType(str, Enum):
    """Kind of learnable item. Values are the persisted tags."""

    CHARACTER = "character"
    POWER_CHORD = "powerChord"
    WORD = "word"


class MasteryLevel(str, Enum):
    """
    Four-stage classification of a learner's command of one item.

    The ordering exists for display and sorting only; transition rules
    live in the mastery classifier.
    """

    NEW = "new"
    LEARNING = "learning"
    FAMILIAR = "familiar"
    MASTERED = "mastered"

    @property
    def rank(self) -> int:
        return _MASTERY_RANK[self]


_MASTERY_RANK = {
    MasteryLevel.NEW: 0,
    MasteryLevel.LEARNING: 1,
    MasteryLevel.FAMILIAR: 2,
    MasteryLevel.MASTERED: 3,
}


class Direction(str, Enum):
    """Physical movement that produces a character on a chorded key."""

    UP = "up"
    DOWN = "down"
    LEFT = "left"
    RIGHT = "right"
    PRESS = "press"


ALL_DIRECTIONS: tuple[Direction, ...] = (
    Direction.UP,
    Direction.DOWN,
    Direction.LEFT,
    Direction.RIGHT,
    Direction.PRESS,
)


@dataclass(frozen=True)
class AttemptRecord:
    """
    One timed answer.

    Attributes:
        correct: Whether the answer was right.
        response_time_ms: Non-negative response time in milliseconds.
        timestamp: When the answer was given (timezone-aware).
        direction: Movement tag, only meaningful for characters.
    """

    correct: bool
    response_time_ms: int
    timestamp: datetime
    direction: Direction | None = None


@dataclass(frozen=True)
class DirectionStats:
    """
    Lightweight accuracy/speed tally for one direction.

    Telemetry only: it never gates mastery transitions.
    """

    attempts: int = 0
    correct: int = 0
    average_time_ms: int = 0
    last_practiced: datetime | None = None

    @property
    def accuracy(self) -> float:
        if self.attempts == 0:
            return 0.0
        return self.correct / self.attempts


def default_direction_confidence(item_type: ItemType) -> dict[Direction, DirectionStats]:
    """Characters track every direction from the start; other items track none."""
    if item_type is ItemType.CHARACTER:
        return {d: DirectionStats() for d in ALL_DIRECTIONS}
    return {}


def normalize_item_id(item_id: str) -> str:
    return item_id.strip().lower()


def chord_key(chars: str) -> str:
    """Build the canonical id of a power chord: its characters, lowercased and sorted."""
    return "".join(sorted(normalize_item_id(chars)))


@dataclass(frozen=True)
class LearningProgress:
    """
    Full learning state of one ``(item_id, item_type)`` pair.

    This is the aggregate the engine transitions on every attempt. It is
    never mutated in place; see ``chordcoach.application.progress.engine``.
    """

    item_id: str
    item_type: ItemType

    # Lifetime counters
    total_attempts: int = 0
    correct_attempts: int = 0

    # Rolling window, oldest first
    recent_attempts: tuple[AttemptRecord, ...] = ()

    mastery_level: MasteryLevel = MasteryLevel.NEW
    direction_confidence: Mapping[Direction, DirectionStats] = field(default_factory=dict)

    # SRS fields
    interval: float = 0.0  # days
    ease_factor: float = DEFAULT_EASE_FACTOR
    repetitions: int = 0
    next_review_date: datetime | None = None
    last_attempt_date: datetime | None = None
    last_correct_date: datetime | None = None

    @classmethod
    def create(cls, item_id: str, item_type: ItemType) -> "LearningProgress":
        return cls(
            item_id=normalize_item_id(item_id),
            item_type=item_type,
            direction_confidence=default_direction_confidence(item_type),
        )

    @property
    def key(self) -> tuple[ItemType, str]:
        return (self.item_type, normalize_item_id(self.item_id))

    @property
    def accuracy(self) -> float:
        """Lifetime accuracy; 0 when the item was never attempted."""
        if self.total_attempts == 0:
            return 0.0
        return self.correct_attempts / self.total_attempts

    @property
    def has_practiced(self) -> bool:
        return self.total_attempts > 0

    @property
    def is_new(self) -> bool:
        return self.mastery_level is MasteryLevel.NEW

    @property
    def is_mastered(self) -> bool:
        return self.mastery_level is MasteryLevel.MASTERED

    def is_due(self, now: datetime) -> bool:
        """Due items have been attempted and their review date has passed."""
        if self.total_attempts == 0 or self.next_review_date is None:
            return False
        return self.next_review_date <= now

    def days_since_last_practice(self, now: datetime) -> int | None:
        if self.last_attempt_date is None:
            return None
        return max(0, (now - self.last_attempt_date).days)

    def weakest_direction(self) -> Direction | None:
        """
        Direction most in need of practice.

        Unpracticed directions win outright; otherwise the lowest accuracy.
        """
        weakest: Direction | None = None
        lowest = 1.0
        for direction, stats in self.direction_confidence.items():
            if stats.attempts == 0:
                return direction
            if stats.accuracy < lowest:
                lowest = stats.accuracy
                weakest = direction
        return weakest

    def __str__(self) -> str:
        return (
            f"LearningProgress({self.item_id}, {self.item_type.value}, "
            f"mastery={self.mastery_level.value})"
        )


@dataclass(frozen=True)
class ProgressStats:
    """
    Global rollup of learner progress plus practice-streak state.

    Counts are keyed by item type. ``last_practice_date`` is the instant the
    last practice session was closed.
    """

    learned_counts: Mapping[ItemType, int] = field(default_factory=dict)
    mastered_counts: Mapping[ItemType, int] = field(default_factory=dict)
    total_practice_time_ms: int = 0
    current_streak: int = 0
    longest_streak: int = 0
    last_practice_date: datetime | None = None

    @property
    def total_learned(self) -> int:
        return sum(self.learned_counts.values())

    @property
    def total_mastered(self) -> int:
        return sum(self.mastered_counts.values())
