"""FastAPI surface over the tracking core for UI collaborators."""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from fastapi import Body, Depends, FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from trail_tracker.cache.redis_client import redis_ok
from trail_tracker.core.engine import build_tracker
from trail_tracker.core.models import BackupSummary, OpResult
from trail_tracker.core.session import SessionMachine
from trail_tracker.errors import AlreadyActive, InvalidPoint, NothingToStop, RestoreFailed

log = logging.getLogger(__name__)

app = FastAPI(title="Trail Tracker", version="0.1.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)


# ---------------------------------------------------------------------------
# Module-level tracker singleton (one session per device)
# ---------------------------------------------------------------------------
_tracker: Optional[SessionMachine] = None


def get_tracker() -> SessionMachine:
    global _tracker
    if _tracker is None:
        _tracker = build_tracker()
    return _tracker


_STATUS_BY_ERROR = {
    AlreadyActive.code: 409,
    NothingToStop.code: 409,
    InvalidPoint.code: 422,
    RestoreFailed.code: 422,
}


def _raise_for(result: OpResult) -> None:
    if result.ok:
        return
    if result.error is not None:
        status = _STATUS_BY_ERROR.get(result.error.code, 503)
        raise HTTPException(status_code=status, detail={"code": result.error.code, "message": result.error.message})
    raise HTTPException(status_code=409, detail={"code": "ignored", "message": result.reason})


# ---------------------------------------------------------------------------
# Request / Response models
# ---------------------------------------------------------------------------

class StateOut(BaseModel):
    state: str
    is_tracking: bool
    is_paused: bool
    total_distance_km: float
    elapsed_ms: float
    point_count: int
    crash_safe: bool


class SessionOut(StateOut):
    started_at: Optional[int] = None
    last_active_at: Optional[int] = None
    route_points: List[Dict[str, Any]] = []


class StopOut(StateOut):
    archived: Optional[str] = None
    finished_points: int = 0
    finished_distance_km: float = 0.0
    finished_elapsed_ms: float = 0.0


class AppendOut(BaseModel):
    accepted: bool
    reason: str = ""
    total_distance_km: float
    point_count: int


class TickIn(BaseModel):
    delta_ms: float = Field(..., ge=0)


class TickOut(BaseModel):
    counted: bool
    elapsed_ms: float


class BackupOut(BaseModel):
    summary: BackupSummary
    snapshot: Dict[str, Any]


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@app.get("/health")
def health(tracker: SessionMachine = Depends(get_tracker)):
    return {
        "status": "ok",
        "redis": redis_ok(),
        "backup_backend": tracker.backup.store.name,
        "crash_safe": tracker.crash_safe,
    }


@app.get("/session", response_model=SessionOut)
def get_session(tracker: SessionMachine = Depends(get_tracker)):
    session = tracker.session()
    return SessionOut(
        **tracker.stats(),
        started_at=session.started_at,
        last_active_at=session.last_active_at,
        route_points=[p.model_dump(mode="json") for p in session.route_points],
    )


@app.post("/session/start", response_model=StateOut)
def start_session(tracker: SessionMachine = Depends(get_tracker)):
    _raise_for(tracker.start())
    return StateOut(**tracker.stats())


@app.post("/session/toggle-pause", response_model=StateOut)
def toggle_pause(tracker: SessionMachine = Depends(get_tracker)):
    _raise_for(tracker.toggle_pause())
    return StateOut(**tracker.stats())


@app.post("/session/stop", response_model=StopOut)
def stop_session(tracker: SessionMachine = Depends(get_tracker)):
    result = tracker.stop()
    _raise_for(result)
    finished = result.value
    return StopOut(
        **tracker.stats(),
        archived=result.reason or None,
        finished_points=len(finished.route_points),
        finished_distance_km=finished.total_distance_km,
        finished_elapsed_ms=finished.elapsed_ms,
    )


@app.post("/session/points", response_model=AppendOut)
def append_point(point: Dict[str, Any] = Body(...), tracker: SessionMachine = Depends(get_tracker)):
    result = tracker.append_point(point)
    # Samples that arrive while paused/idle are dropped, not errors
    if result.error is not None:
        _raise_for(result)
    return AppendOut(
        accepted=result.ok,
        reason=result.reason,
        total_distance_km=tracker.get_total_distance(),
        point_count=len(tracker.get_route_data()),
    )


@app.post("/session/tick", response_model=TickOut)
def tick(req: TickIn, tracker: SessionMachine = Depends(get_tracker)):
    result = tracker.tick(req.delta_ms)
    return TickOut(counted=result.ok, elapsed_ms=tracker.get_elapsed_time())


@app.get("/backup", response_model=BackupOut)
def get_backup(tracker: SessionMachine = Depends(get_tracker)):
    snap = tracker.check_for_backup()
    if snap is None:
        raise HTTPException(status_code=404, detail="No unsaved route backup")
    return BackupOut(summary=snap.summary(), snapshot=snap.to_record())


@app.post("/backup/restore", response_model=StateOut)
def restore_backup(
    snapshot: Optional[Dict[str, Any]] = Body(default=None),
    tracker: SessionMachine = Depends(get_tracker),
):
    if snapshot is None:
        found = tracker.check_for_backup()
        if found is None:
            raise HTTPException(status_code=404, detail="No unsaved route backup")
        snapshot = found.to_record()
    _raise_for(tracker.restore_from_backup(snapshot))
    return StateOut(**tracker.stats())


@app.delete("/backup", status_code=204)
def discard_backup(tracker: SessionMachine = Depends(get_tracker)):
    result = tracker.clear_backup()
    if not result.ok:
        raise HTTPException(status_code=503, detail=result.reason)
    return None
