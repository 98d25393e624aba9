"""
Progress Store Factory
Centralizes the logic for selecting the store adapter and wiring the service.
"""

import logging

from chordcoach.application.config import AppConfig
from chordcoach.application.progress.service import ProgressService
from chordcoach.application.stats.aggregator import ProgressStatsAggregator
from chordcoach.domain.progress.ports import ProgressStore
from chordcoach.infrastructure.adapters.progress.json_store import JsonFileProgressStore
from chordcoach.infrastructure.adapters.progress.memory_store import InMemoryProgressStore

logger = logging.getLogger(__name__)


def get_progress_store(config: AppConfig) -> ProgressStore:
    """
    Returns the appropriate ProgressStore implementation based on config.
    """
    if config.backend == "memory":
        logger.debug("Store: in-memory")
        return InMemoryProgressStore()

    logger.debug(f"Store: JSON file at {config.data_file}")
    return JsonFileProgressStore(config.data_file)


def get_progress_service(
    config: AppConfig, store: ProgressStore | None = None
) -> ProgressService:
    """
    Builds a ProgressService from config, with an optional pre-built store.
    """
    return ProgressService(
        store=store or get_progress_store(config),
        rules=config.mastery_rules(),
        params=config.scheduler_params(),
        aggregator=ProgressStatsAggregator(tz=config.timezone()),
        weak_threshold=config.weak_threshold,
        review_batch_size=config.review_batch_size,
    )
