# Domain Progress Package
from .models import (
    ALL_DIRECTIONS,
    AttemptRecord,
    Direction,
    DirectionStats,
    ItemType,
    LearningProgress,
    MasteryLevel,
    ProgressStats,
    chord_key,
    normalize_item_id,
)
from .ports import ProgressStore

__all__ = [
    "ALL_DIRECTIONS",
    "AttemptRecord",
    "Direction",
    "DirectionStats",
    "ItemType",
    "LearningProgress",
    "MasteryLevel",
    "ProgressStats",
    "ProgressStore",
    "chord_key",
    "normalize_item_id",
]
