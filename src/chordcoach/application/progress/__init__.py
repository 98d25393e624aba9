# Application Progress Package
from .engine import AttemptEvent, DemoteEvent, demote, record_attempt, transition
from .mastery import MasteryRules, classify
from .scheduler import SchedulerParams, quality_from_attempt, schedule
from .selection import ConfidenceLevel, confidence_level, next_items_to_review, weighted_selection
from .windowed_stats import recent_accuracy, recent_response_time

__all__ = [
    "AttemptEvent",
    "ConfidenceLevel",
    "DemoteEvent",
    "MasteryRules",
    "SchedulerParams",
    "classify",
    "confidence_level",
    "demote",
    "next_items_to_review",
    "quality_from_attempt",
    "recent_accuracy",
    "recent_response_time",
    "record_attempt",
    "schedule",
    "transition",
    "weighted_selection",
]
