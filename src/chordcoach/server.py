import logging
import threading
import time
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any

from fastapi import Depends, FastAPI, HTTPException, Query
from pydantic import BaseModel, Field

from chordcoach.application.config import resolve_config
from chordcoach.application.factory import get_progress_service
from chordcoach.application.progress.selection import confidence_level
from chordcoach.application.progress.service import ProgressService
from chordcoach.consts import VERSION
from chordcoach.domain.progress.models import (
    Direction,
    ItemType,
    LearningProgress,
    MasteryLevel,
    ProgressStats,
)
from chordcoach.infrastructure.adapters.progress.records import UnsupportedFormatError

# Setup logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("chordcoach.server")

_service: ProgressService | None = None
_service_lock = threading.Lock()


def get_service() -> ProgressService:
    """Process-wide service, built lazily from config. Tests override this dependency."""
    global _service
    with _service_lock:
        if _service is None:
            _service = get_progress_service(resolve_config())
        return _service


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    logger.info(f"chordcoach server v{VERSION} starting up...")
    yield
    # Shutdown
    logger.info("chordcoach server shutting down...")


app = FastAPI(
    title="chordcoach",
    description="Mastery and spaced-repetition progress API for chorded keyboard training.",
    version=VERSION,
    lifespan=lifespan,
)

start_time = time.time()


# ---------------------------------------------------------------------------
# Schemas
# ---------------------------------------------------------------------------


class HealthResponse(BaseModel):
    status: str
    version: str
    uptime_seconds: float


class AttemptRequest(BaseModel):
    correct: bool
    response_time_ms: float = 0
    direction: Direction | None = None
    suppress_mastery_update: bool = False
    tries: int = Field(default=1, ge=1)


class ProgressResponse(BaseModel):
    item_id: str
    item_type: ItemType
    mastery_level: MasteryLevel
    confidence: str
    total_attempts: int
    correct_attempts: int
    accuracy: float
    interval: float
    ease_factor: float
    repetitions: int
    next_review_date: datetime | None
    last_attempt_date: datetime | None
    last_correct_date: datetime | None
    weakest_direction: Direction | None

    @classmethod
    def from_progress(cls, p: LearningProgress) -> "ProgressResponse":
        return cls(
            item_id=p.item_id,
            item_type=p.item_type,
            mastery_level=p.mastery_level,
            confidence=confidence_level(p).value,
            total_attempts=p.total_attempts,
            correct_attempts=p.correct_attempts,
            accuracy=p.accuracy,
            interval=p.interval,
            ease_factor=p.ease_factor,
            repetitions=p.repetitions,
            next_review_date=p.next_review_date,
            last_attempt_date=p.last_attempt_date,
            last_correct_date=p.last_correct_date,
            weakest_direction=p.weakest_direction(),
        )


class StatsResponse(BaseModel):
    learned_counts: dict[ItemType, int]
    mastered_counts: dict[ItemType, int]
    total_practice_time_ms: int
    current_streak: int
    longest_streak: int
    last_practice_date: datetime | None

    @classmethod
    def from_stats(cls, s: ProgressStats) -> "StatsResponse":
        return cls(
            learned_counts=dict(s.learned_counts),
            mastered_counts=dict(s.mastered_counts),
            total_practice_time_ms=s.total_practice_time_ms,
            current_streak=s.current_streak,
            longest_streak=s.longest_streak,
            last_practice_date=s.last_practice_date,
        )


class SessionCloseRequest(BaseModel):
    practice_time_ms: int = 0


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------


@app.get("/health", response_model=HealthResponse)
async def health_check():
    """
    Simple health check to verify server is reachable.
    """
    return HealthResponse(status="ok", version=VERSION, uptime_seconds=time.time() - start_time)


@app.get("/version")
async def get_version():
    return {"version": VERSION}


@app.get("/stats", response_model=StatsResponse)
def get_stats(service: ProgressService = Depends(get_service)):
    return StatsResponse.from_stats(service.get_stats())


@app.post("/sessions/close", response_model=StatsResponse)
def close_session(req: SessionCloseRequest, service: ProgressService = Depends(get_service)):
    return StatsResponse.from_stats(service.close_session(req.practice_time_ms))


@app.get("/progress/{item_type}/due", response_model=list[ProgressResponse])
def get_due(
    item_type: ItemType,
    limit: int | None = Query(default=None, ge=1),
    service: ProgressService = Depends(get_service),
):
    return [ProgressResponse.from_progress(p) for p in service.get_due_items(item_type, limit)]


@app.get("/progress/{item_type}/weak", response_model=list[ProgressResponse])
def get_weak(
    item_type: ItemType,
    threshold: float | None = Query(default=None, ge=0, le=1),
    service: ProgressService = Depends(get_service),
):
    return [
        ProgressResponse.from_progress(p) for p in service.get_weak_items(item_type, threshold)
    ]


@app.get("/progress/{item_type}/{item_id}", response_model=ProgressResponse)
def get_progress(
    item_type: ItemType, item_id: str, service: ProgressService = Depends(get_service)
):
    progress = service.get_progress(item_id, item_type)
    if progress is None:
        raise HTTPException(status_code=404, detail=f"No progress for {item_type.value} {item_id!r}")
    return ProgressResponse.from_progress(progress)


@app.post("/progress/{item_type}/{item_id}/attempts", response_model=ProgressResponse)
def post_attempt(
    item_type: ItemType,
    item_id: str,
    req: AttemptRequest,
    service: ProgressService = Depends(get_service),
):
    """Record one timed attempt and return the updated progress."""
    progress = service.record_attempt(
        item_id,
        item_type,
        req.correct,
        req.response_time_ms,
        direction=req.direction,
        suppress_mastery_update=req.suppress_mastery_update,
        tries=req.tries,
    )
    return ProgressResponse.from_progress(progress)


@app.post("/progress/{item_type}/{item_id}/demote", response_model=ProgressResponse)
def post_demote(
    item_type: ItemType, item_id: str, service: ProgressService = Depends(get_service)
):
    progress = service.demote(item_id, item_type)
    if progress is None:
        raise HTTPException(status_code=404, detail=f"No progress for {item_type.value} {item_id!r}")
    return ProgressResponse.from_progress(progress)


@app.delete("/progress")
def clear_all(service: ProgressService = Depends(get_service)):
    logger.info("Clearing all progress via API")
    service.reset()
    return {"ok": True}


@app.delete("/progress/{item_type}")
def clear_type(item_type: ItemType, service: ProgressService = Depends(get_service)):
    logger.info(f"Clearing {item_type.value} progress via API")
    service.reset(item_type)
    return {"ok": True}


@app.get("/export")
def export_progress(service: ProgressService = Depends(get_service)):
    return service.export_progress()


@app.post("/import")
def import_progress(doc: dict[str, Any], service: ProgressService = Depends(get_service)):
    try:
        count = service.import_progress(doc)
    except UnsupportedFormatError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"imported": count}
