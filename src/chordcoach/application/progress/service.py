"""
Progress Service: application layer orchestrator.

Loads an item from the store, runs the pure engine over it, and persists the
result. Also serves the read-side queries (due, weak, stats) for dashboards
and session pickers.
"""

import logging
import random
import threading
from dataclasses import replace
from datetime import datetime, timezone
from typing import Any, Callable

from chordcoach.application.stats.aggregator import ProgressStatsAggregator, clamp_duration_ms
from chordcoach.domain.constants import DEFAULT_REVIEW_BATCH, DEFAULT_WEAK_THRESHOLD
from chordcoach.domain.progress.models import (
    Direction,
    ItemType,
    LearningProgress,
    ProgressStats,
    normalize_item_id,
)
from chordcoach.domain.progress.ports import ProgressStore
from chordcoach.infrastructure.adapters.progress.records import (
    build_document,
    check_version,
    parse_document,
)

from .engine import demote, record_attempt
from .mastery import DEFAULT_MASTERY_RULES, MasteryRules
from .scheduler import DEFAULT_SCHEDULER_PARAMS, SchedulerParams
from .selection import next_items_to_review, weighted_selection

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class ProgressService:
    """
    Application service for recording attempts and querying progress.

    Follows Dependency Inversion: depends on the ProgressStore abstraction,
    not concrete adapter implementations.

    Writes to one ``(item_type, item_id)`` are serialized with a per-item
    lock; reads are served from the last stored value without locking.
    """

    def __init__(
        self,
        store: ProgressStore,
        rules: MasteryRules = DEFAULT_MASTERY_RULES,
        params: SchedulerParams = DEFAULT_SCHEDULER_PARAMS,
        aggregator: ProgressStatsAggregator | None = None,
        clock: Clock = utc_now,
        weak_threshold: float = DEFAULT_WEAK_THRESHOLD,
        review_batch_size: int = DEFAULT_REVIEW_BATCH,
    ):
        """
        Args:
            store: The repository (port) holding progress.
            rules: Mastery thresholds.
            params: Scheduler tuning.
            aggregator: Optional custom aggregator; uses a UTC one if not provided.
            clock: Source of "now"; injectable for tests.
            weak_threshold: Default accuracy threshold for ``get_weak_items``.
            review_batch_size: Default limit for ``get_due_items``.
        """
        self._store = store
        self._rules = rules
        self._params = params
        self._agg = aggregator or ProgressStatsAggregator()
        self._clock = clock
        self.weak_threshold = weak_threshold
        self.review_batch_size = review_batch_size

        self._locks: dict[tuple[ItemType, str], threading.Lock] = {}
        self._locks_guard = threading.Lock()
        self._stats_lock = threading.Lock()

    @property
    def store(self) -> ProgressStore:
        return self._store

    def _lock_for(self, item_id: str, item_type: ItemType) -> threading.Lock:
        key = (ItemType(item_type), normalize_item_id(item_id))
        with self._locks_guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = self._locks[key] = threading.Lock()
            return lock

    def _load(self, item_id: str, item_type: ItemType) -> LearningProgress:
        progress = self._store.get_or_create(item_id, item_type)
        if progress.total_attempts == 0 and progress.ease_factor != self._params.default_ease_factor:
            progress = replace(progress, ease_factor=self._params.default_ease_factor)
        return progress

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def record_attempt(
        self,
        item_id: str,
        item_type: ItemType,
        correct: bool,
        response_time_ms: Any,
        direction: Direction | None = None,
        suppress_mastery_update: bool = False,
        tries: int = 1,
    ) -> LearningProgress:
        """
        Record one timed answer for an item and persist the result.

        Returns:
            The updated progress, as stored.
        """
        item_type = ItemType(item_type)
        with self._lock_for(item_id, item_type):
            before = self._load(item_id, item_type)
            after = record_attempt(
                before,
                correct,
                response_time_ms,
                self._clock(),
                direction=direction,
                suppress_mastery_update=suppress_mastery_update,
                tries=tries,
                rules=self._rules,
                params=self._params,
            )
            self._store.put(after)

        if after.mastery_level is not before.mastery_level:
            logger.info(
                f"{item_type.value} {after.item_id!r}: "
                f"{before.mastery_level.value} -> {after.mastery_level.value}"
            )
        return after

    def demote(self, item_id: str, item_type: ItemType) -> LearningProgress | None:
        """
        Step a mastered item back to FAMILIAR.

        Returns None for unknown items; other levels are returned unchanged.
        """
        item_type = ItemType(item_type)
        with self._lock_for(item_id, item_type):
            current = self._store.get(item_id, item_type)
            if current is None:
                return None
            updated = demote(current, self._clock())
            if updated is not current:
                self._store.put(updated)
                logger.info(f"Demoted {item_type.value} {updated.item_id!r} to familiar")
            return updated

    def close_session(self, practice_time_ms: Any) -> ProgressStats:
        """Add practice time and advance the daily streak."""
        practice_time_ms = clamp_duration_ms(practice_time_ms)
        with self._stats_lock:
            stats = self._agg.close_session(
                self._store.load_stats(), practice_time_ms, self._clock()
            )
            stats = self._agg.rollup(self._store.all(), stats)
            self._store.save_stats(stats)
        logger.info(
            f"Session closed: +{practice_time_ms}ms, "
            f"streak={stats.current_streak}"
        )
        return stats

    def reset(self, item_type: ItemType | None = None) -> None:
        if item_type is None:
            self._store.clear_all()
        else:
            self._store.clear(ItemType(item_type))

    def import_progress(self, doc: Any) -> int:
        """
        Merge an exported progress document into the store.

        Valid items are upserted; corrupt ones are skipped with a warning.
        Stored stats are replaced when the document carries a valid stats block.

        Returns:
            Number of items imported.

        Raises:
            UnsupportedFormatError: If the document version is unknown.
        """
        check_version(doc)
        parsed = parse_document(doc)
        for progress in parsed.items:
            with self._lock_for(progress.item_id, progress.item_type):
                self._store.put(progress)
        if parsed.stats is not None:
            with self._stats_lock:
                self._store.save_stats(parsed.stats)
        logger.info(f"Imported {len(parsed.items)} progress records ({parsed.skipped} skipped)")
        return len(parsed.items)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_progress(self, item_id: str, item_type: ItemType) -> LearningProgress | None:
        return self._store.get(item_id, ItemType(item_type))

    def get_due_items(
        self, item_type: ItemType, limit: int | None = None
    ) -> list[LearningProgress]:
        """Due items, most urgent first. ``limit`` defaults to ``review_batch_size``."""
        now = self._clock()
        due = self._store.due_for_review(ItemType(item_type), now)
        return next_items_to_review(due, self.review_batch_size if limit is None else limit, now)

    def get_weak_items(
        self, item_type: ItemType, threshold: float | None = None
    ) -> list[LearningProgress]:
        """Attempted items below the accuracy threshold, weakest first."""
        if threshold is None:
            threshold = self.weak_threshold
        return self._store.weak(ItemType(item_type), threshold)

    def select_items(
        self, item_type: ItemType, count: int, rng: random.Random | None = None
    ) -> list[LearningProgress]:
        """Weighted draw over every known item of a type, for adaptive sessions."""
        items = self._store.all_by_type(ItemType(item_type))
        return weighted_selection(items, count, self._clock(), rng)

    def get_stats(self) -> ProgressStats:
        """Current counts per type plus the stored streak and practice totals."""
        return self._agg.rollup(self._store.all(), self._store.load_stats())

    def export_progress(self) -> dict[str, Any]:
        """Every item and the current stats as one versioned, JSON-ready document."""
        return build_document(
            self._store.all(), self.get_stats(), exportDate=self._clock().isoformat()
        )
