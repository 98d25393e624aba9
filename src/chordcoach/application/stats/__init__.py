# Application Stats Package
from .aggregator import ProgressStatsAggregator, clamp_duration_ms

__all__ = ["ProgressStatsAggregator", "clamp_duration_ms"]
