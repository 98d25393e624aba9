"""
Ports (interfaces) for progress persistence.

These define the contract that infrastructure adapters must implement.
Application services depend on these abstractions, not concrete implementations.
"""

from abc import ABC, abstractmethod
from datetime import datetime

from .models import ItemType, LearningProgress, ProgressStats


class ProgressStore(ABC):
    """
    Port for per-item progress persistence.

    Every item is keyed by ``(item_type, item_id.lower())``.

    Implementations:
        - InMemoryProgressStore: Process-local dictionaries, used by tests and the server.
        - JsonFileProgressStore: A single JSON document on local disk.
    """

    @abstractmethod
    def get(self, item_id: str, item_type: ItemType) -> LearningProgress | None:
        """Return the stored progress, or None if the item was never seen."""

    @abstractmethod
    def get_or_create(self, item_id: str, item_type: ItemType) -> LearningProgress:
        """
        Return the stored progress, creating a NEW one if absent.

        A created item is immediately visible to subsequent ``get`` calls.
        """

    @abstractmethod
    def put(self, progress: LearningProgress) -> None:
        """Upsert a progress value."""

    @abstractmethod
    def all_by_type(self, item_type: ItemType) -> list[LearningProgress]:
        pass

    @abstractmethod
    def all(self) -> list[LearningProgress]:
        pass

    @abstractmethod
    def clear(self, item_type: ItemType) -> None:
        """Drop every item of one type."""

    @abstractmethod
    def clear_all(self) -> None:
        """Drop every item and reset stats."""

    @abstractmethod
    def load_stats(self) -> ProgressStats:
        pass

    @abstractmethod
    def save_stats(self, stats: ProgressStats) -> None:
        pass

    def due_for_review(self, item_type: ItemType, now: datetime) -> list[LearningProgress]:
        """
        Items with at least one attempt whose review date is at or before ``now``.
        """
        return [p for p in self.all_by_type(item_type) if p.is_due(now)]

    def weak(self, item_type: ItemType, accuracy_threshold: float) -> list[LearningProgress]:
        """
        Attempted items with lifetime accuracy strictly below the threshold,
        weakest first.
        """
        weak = [
            p
            for p in self.all_by_type(item_type)
            if p.total_attempts > 0 and p.accuracy < accuracy_threshold
        ]
        return sorted(weak, key=lambda p: p.accuracy)
