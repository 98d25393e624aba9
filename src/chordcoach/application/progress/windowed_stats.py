"""
Trailing-window statistics over recent attempts.

This is a pure computation module with no I/O.
"""

from typing import Sequence

from chordcoach.domain.constants import MASTERY_WINDOW_SIZE, RESPONSE_TIME_WINDOW_SIZE
from chordcoach.domain.progress.models import AttemptRecord


def _tail(attempts: Sequence[AttemptRecord], window: int) -> Sequence[AttemptRecord]:
    if window <= 0:
        return ()
    return attempts[-window:]


def recent_accuracy(
    attempts: Sequence[AttemptRecord], window: int = MASTERY_WINDOW_SIZE
) -> float:
    """
    Fraction correct among the last ``window`` attempts.

    Returns 0.0 when there is nothing to measure.
    """
    recent = _tail(attempts, window)
    if not recent:
        return 0.0
    return sum(1 for a in recent if a.correct) / len(recent)


def recent_response_time(
    attempts: Sequence[AttemptRecord], window: int = RESPONSE_TIME_WINDOW_SIZE
) -> float:
    """
    Mean response time (ms) among the last ``window`` attempts.

    Returns 0.0 when empty; callers treat that as "not yet measurable".
    """
    recent = _tail(attempts, window)
    if not recent:
        return 0.0
    return sum(a.response_time_ms for a in recent) / len(recent)
