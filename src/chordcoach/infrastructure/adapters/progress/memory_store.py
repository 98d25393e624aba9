"""
In-memory progress store.

Implements ProgressStore with plain dictionaries. Used by tests, by the
HTTP server when no data file is wanted, and as the base of the JSON store.

Every read and write goes through one re-entrant lock, so a single store can
be shared by request threads writing different items.
"""

import logging
import threading

from chordcoach.domain.progress.models import (
    ItemType,
    LearningProgress,
    ProgressStats,
    normalize_item_id,
)
from chordcoach.domain.progress.ports import ProgressStore

logger = logging.getLogger(__name__)

Key = tuple[ItemType, str]


class InMemoryProgressStore(ProgressStore):
    """Keeps every item in a dict keyed by ``(item_type, lowercased item_id)``."""

    def __init__(self) -> None:
        self._items: dict[Key, LearningProgress] = {}
        self._stats = ProgressStats()
        self._lock = threading.RLock()

    @staticmethod
    def _key(item_id: str, item_type: ItemType) -> Key:
        return (ItemType(item_type), normalize_item_id(item_id))

    def get(self, item_id: str, item_type: ItemType) -> LearningProgress | None:
        with self._lock:
            return self._items.get(self._key(item_id, item_type))

    def get_or_create(self, item_id: str, item_type: ItemType) -> LearningProgress:
        key = self._key(item_id, item_type)
        with self._lock:
            existing = self._items.get(key)
            if existing is not None:
                return existing

            created = LearningProgress.create(key[1], key[0])
            self._items[key] = created
            self._on_change()
            return created

    def put(self, progress: LearningProgress) -> None:
        with self._lock:
            self._items[self._key(progress.item_id, progress.item_type)] = progress
            self._on_change()

    def all_by_type(self, item_type: ItemType) -> list[LearningProgress]:
        item_type = ItemType(item_type)
        with self._lock:
            return [p for (t, _), p in self._items.items() if t is item_type]

    def all(self) -> list[LearningProgress]:
        with self._lock:
            return list(self._items.values())

    def clear(self, item_type: ItemType) -> None:
        item_type = ItemType(item_type)
        with self._lock:
            self._items = {k: v for k, v in self._items.items() if k[0] is not item_type}
            self._on_change()
        logger.info(f"Cleared {item_type.value} progress")

    def clear_all(self) -> None:
        with self._lock:
            self._items.clear()
            self._stats = ProgressStats()
            self._on_change()
        logger.info("Cleared all progress")

    def load_stats(self) -> ProgressStats:
        with self._lock:
            return self._stats

    def save_stats(self, stats: ProgressStats) -> None:
        with self._lock:
            self._stats = stats
            self._on_change()

    def _on_change(self) -> None:
        """
        Hook for persistent subclasses; nothing to do in memory.

        Always called with ``self._lock`` held.
        """
