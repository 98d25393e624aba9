"""
Persisted record shapes for progress data.

Pydantic models describe the on-disk form (camelCase keys, ISO-8601 dates)
and validate it on load. Conversion helpers map between these records and
the domain dataclasses, and between whole documents and item collections:

    {"version": 1, "progress": {"character": {"e": {...}}, ...}, "stats": {...}}
"""

import logging
import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Iterable

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel

from chordcoach.domain.constants import (
    DEFAULT_EASE_FACTOR,
    MIN_EASE_FACTOR,
    RECENT_ATTEMPTS_CAPACITY,
    STORE_FORMAT_VERSION,
)
from chordcoach.domain.progress.models import (
    AttemptRecord,
    Direction,
    DirectionStats,
    ItemType,
    LearningProgress,
    MasteryLevel,
    ProgressStats,
    normalize_item_id,
)

logger = logging.getLogger(__name__)


def _as_utc(v: datetime | None) -> datetime | None:
    if v is None:
        return None
    if v.tzinfo is None:
        return v.replace(tzinfo=timezone.utc)
    return v.astimezone(timezone.utc)


class _Record(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )


class AttemptRecordModel(_Record):
    correct: bool
    response_time_ms: int = 0
    timestamp: datetime
    direction: Direction | None = None

    @field_validator("response_time_ms", mode="before")
    @classmethod
    def clamp_time(cls, v: Any) -> Any:
        if isinstance(v, (int, float)) and (not math.isfinite(v) or v < 0):
            return 0
        return v

    @field_validator("timestamp")
    @classmethod
    def utc_timestamp(cls, v: datetime) -> datetime:
        return _as_utc(v)


class DirectionStatsModel(_Record):
    attempts: int = Field(default=0, ge=0)
    correct: int = Field(default=0, ge=0)
    average_time_ms: int = Field(default=0, ge=0)
    last_practiced: datetime | None = None

    @field_validator("last_practiced")
    @classmethod
    def utc_last_practiced(cls, v: datetime | None) -> datetime | None:
        return _as_utc(v)


class ProgressRecordModel(_Record):
    item_id: str = Field(min_length=1)
    item_type: ItemType
    total_attempts: int = Field(default=0, ge=0)
    correct_attempts: int = Field(default=0, ge=0)
    recent_attempts: list[AttemptRecordModel] = Field(default_factory=list)
    mastery_level: MasteryLevel = MasteryLevel.NEW
    direction_confidence: dict[Direction, DirectionStatsModel] = Field(default_factory=dict)
    interval: float = Field(default=0.0, ge=0, allow_inf_nan=False)
    ease_factor: float = Field(default=DEFAULT_EASE_FACTOR, allow_inf_nan=False)
    repetitions: int = Field(default=0, ge=0)
    next_review_date: datetime | None = None
    last_attempt_date: datetime | None = None
    last_correct_date: datetime | None = None

    @field_validator("recent_attempts")
    @classmethod
    def cap_window(cls, v: list[AttemptRecordModel]) -> list[AttemptRecordModel]:
        return v[-RECENT_ATTEMPTS_CAPACITY:]

    @field_validator("ease_factor")
    @classmethod
    def floor_ease(cls, v: float) -> float:
        return max(MIN_EASE_FACTOR, v)

    @field_validator("next_review_date", "last_attempt_date", "last_correct_date")
    @classmethod
    def utc_dates(cls, v: datetime | None) -> datetime | None:
        return _as_utc(v)

    @model_validator(mode="after")
    def check_counters(self) -> "ProgressRecordModel":
        if self.correct_attempts > self.total_attempts:
            raise ValueError(
                f"correctAttempts ({self.correct_attempts}) exceeds "
                f"totalAttempts ({self.total_attempts})"
            )
        return self


class ProgressStatsModel(_Record):
    learned_counts: dict[ItemType, int] = Field(default_factory=dict)
    mastered_counts: dict[ItemType, int] = Field(default_factory=dict)
    total_practice_time_ms: int = Field(default=0, ge=0)
    current_streak: int = Field(default=0, ge=0)
    longest_streak: int = Field(default=0, ge=0)
    last_practice_date: datetime | None = None

    @field_validator("last_practice_date")
    @classmethod
    def utc_last_practice(cls, v: datetime | None) -> datetime | None:
        return _as_utc(v)


# ---------------------------------------------------------------------------
# Conversion
# ---------------------------------------------------------------------------


def progress_to_record(progress: LearningProgress) -> dict[str, Any]:
    """Serialize a progress value to its JSON-ready persisted form."""
    model = ProgressRecordModel(
        item_id=progress.item_id,
        item_type=progress.item_type,
        total_attempts=progress.total_attempts,
        correct_attempts=progress.correct_attempts,
        recent_attempts=[
            AttemptRecordModel(
                correct=a.correct,
                response_time_ms=a.response_time_ms,
                timestamp=a.timestamp,
                direction=a.direction,
            )
            for a in progress.recent_attempts
        ],
        mastery_level=progress.mastery_level,
        direction_confidence={
            d: DirectionStatsModel(
                attempts=s.attempts,
                correct=s.correct,
                average_time_ms=s.average_time_ms,
                last_practiced=s.last_practiced,
            )
            for d, s in progress.direction_confidence.items()
        },
        interval=progress.interval,
        ease_factor=progress.ease_factor,
        repetitions=progress.repetitions,
        next_review_date=progress.next_review_date,
        last_attempt_date=progress.last_attempt_date,
        last_correct_date=progress.last_correct_date,
    )
    return model.model_dump(mode="json", by_alias=True)


def progress_from_record(data: Any) -> LearningProgress:
    """
    Rehydrate a progress value from its persisted form.

    Raises:
        pydantic.ValidationError: If the record is missing required fields or corrupt.
    """
    model = ProgressRecordModel.model_validate(data)
    return LearningProgress(
        item_id=normalize_item_id(model.item_id),
        item_type=model.item_type,
        total_attempts=model.total_attempts,
        correct_attempts=model.correct_attempts,
        recent_attempts=tuple(
            AttemptRecord(
                correct=a.correct,
                response_time_ms=a.response_time_ms,
                timestamp=a.timestamp,
                direction=a.direction,
            )
            for a in model.recent_attempts
        ),
        mastery_level=model.mastery_level,
        direction_confidence={
            d: DirectionStats(
                attempts=s.attempts,
                correct=s.correct,
                average_time_ms=s.average_time_ms,
                last_practiced=s.last_practiced,
            )
            for d, s in model.direction_confidence.items()
        },
        interval=model.interval,
        ease_factor=model.ease_factor,
        repetitions=model.repetitions,
        next_review_date=model.next_review_date,
        last_attempt_date=model.last_attempt_date,
        last_correct_date=model.last_correct_date,
    )


def stats_to_record(stats: ProgressStats) -> dict[str, Any]:
    model = ProgressStatsModel(
        learned_counts=dict(stats.learned_counts),
        mastered_counts=dict(stats.mastered_counts),
        total_practice_time_ms=stats.total_practice_time_ms,
        current_streak=stats.current_streak,
        longest_streak=stats.longest_streak,
        last_practice_date=stats.last_practice_date,
    )
    return model.model_dump(mode="json", by_alias=True)


def stats_from_record(data: Any) -> ProgressStats:
    model = ProgressStatsModel.model_validate(data)
    return ProgressStats(
        learned_counts=model.learned_counts,
        mastered_counts=model.mastered_counts,
        total_practice_time_ms=model.total_practice_time_ms,
        current_streak=model.current_streak,
        longest_streak=model.longest_streak,
        last_practice_date=model.last_practice_date,
    )


# ---------------------------------------------------------------------------
# Documents
# ---------------------------------------------------------------------------

SUPPORTED_FORMAT_VERSIONS = (STORE_FORMAT_VERSION,)


class UnsupportedFormatError(ValueError):
    """Raised when a document carries a version this codec cannot read."""


@dataclass
class ParsedDocument:
    items: list[LearningProgress] = field(default_factory=list)
    stats: ProgressStats | None = None
    skipped: int = 0


def build_document(
    items: Iterable[LearningProgress], stats: ProgressStats, **extra: Any
) -> dict[str, Any]:
    """Serialize items and stats into one versioned, JSON-ready document."""
    progress: dict[str, dict[str, Any]] = {t.value: {} for t in ItemType}
    for item in items:
        progress[item.item_type.value][item.item_id] = progress_to_record(item)
    return {
        "version": STORE_FORMAT_VERSION,
        **extra,
        "progress": progress,
        "stats": stats_to_record(stats),
    }


def check_version(doc: Any) -> None:
    """
    Raises:
        UnsupportedFormatError: If ``doc`` is not an object or its version is unknown.
    """
    if not isinstance(doc, dict):
        raise UnsupportedFormatError("Progress document must be a JSON object")
    version = doc.get("version")
    if version not in SUPPORTED_FORMAT_VERSIONS:
        raise UnsupportedFormatError(f"Unsupported progress format version: {version!r}")


def parse_document(doc: dict[str, Any]) -> ParsedDocument:
    """
    Rehydrate every valid record of a document.

    Corrupt records, unknown type sections and records filed under the wrong
    type are skipped with a warning. A corrupt stats block yields ``stats=None``.
    """
    parsed = ParsedDocument()

    sections = doc.get("progress") or {}
    if not isinstance(sections, dict):
        logger.warning("Ignoring malformed 'progress' section")
        sections = {}

    for type_tag, records in sections.items():
        try:
            item_type = ItemType(type_tag)
        except ValueError:
            logger.warning(f"Skipping unknown item type section: {type_tag!r}")
            continue
        if not isinstance(records, dict):
            logger.warning(f"Skipping malformed {type_tag} section")
            continue

        for item_id, record in records.items():
            try:
                progress = progress_from_record(record)
            except ValidationError as e:
                parsed.skipped += 1
                logger.warning(
                    f"Skipping corrupt {type_tag} record {item_id!r}: "
                    f"{e.error_count()} validation error(s)"
                )
                continue
            if progress.item_type is not item_type:
                parsed.skipped += 1
                logger.warning(
                    f"Skipping {type_tag} record {item_id!r} tagged as "
                    f"{progress.item_type.value}"
                )
                continue
            parsed.items.append(progress)

    if "stats" in doc:
        try:
            parsed.stats = stats_from_record(doc["stats"])
        except ValidationError as e:
            logger.warning(f"Ignoring corrupt stats record: {e.error_count()} error(s)")

    return parsed
