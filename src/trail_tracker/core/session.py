"""Tracking session state machine.

    idle --start--> tracking --toggle_pause--> paused --toggle_pause--> tracking
    tracking/paused --stop--> idle

Every inbound operation returns an ``OpResult``; a failed or ignored
operation leaves all state untouched. Nothing here changes state on its own.
"""
from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any, Callable, Dict, List, Optional

from trail_tracker.archive import Archiver
from trail_tracker.core.backup import BackupManager
from trail_tracker.core.models import (
    BackupSnapshot,
    OpResult,
    RoutePoint,
    Session,
    TrackingState,
    now_ms,
)
from trail_tracker.core.route import RouteStore
from trail_tracker.errors import AlreadyActive, NothingToStop, PersistenceUnavailable, TrackerError
from trail_tracker.sampling import LocationSource, NullSource

log = logging.getLogger(__name__)

# Sampling states of the attached location source
_STOPPED = "stopped"
_RUNNING = "running"
_SUSPENDED = "suspended"


def _point_kind(point: Any) -> Optional[str]:
    if isinstance(point, Mapping):
        return point.get("type")
    return getattr(point, "type", None)


class SessionMachine:
    def __init__(
        self,
        route: RouteStore,
        backup: BackupManager,
        source: Optional[LocationSource] = None,
        archiver: Optional[Archiver] = None,
        clock: Callable[[], int] = now_ms,
        suspend_sampling_on_pause: bool = False,
    ) -> None:
        self.route = route
        self.backup = backup
        self.source = source or NullSource()
        self.archiver = archiver
        self.clock = clock
        self.suspend_sampling_on_pause = suspend_sampling_on_pause

        self._state = TrackingState.IDLE
        self._sampling = _STOPPED
        self.started_at: Optional[int] = None
        self.last_active_at: Optional[int] = None

    # ---- queries --------------------------------------------------------

    @property
    def state(self) -> TrackingState:
        return self._state

    def get_state(self) -> TrackingState:
        return self._state

    def get_route_data(self) -> List[RoutePoint]:
        return self.route.get_route_data()

    def get_total_distance(self) -> float:
        return self.route.get_total_distance()

    def get_elapsed_time(self) -> float:
        return self.route.get_elapsed_time()

    @property
    def crash_safe(self) -> bool:
        return self.backup.crash_safe

    def session(self) -> Session:
        return Session(
            state=self._state,
            route_points=self.route.get_route_data(),
            total_distance_km=self.route.get_total_distance(),
            elapsed_ms=self.route.get_elapsed_time(),
            started_at=self.started_at,
            last_active_at=self.last_active_at,
        )

    def stats(self) -> Dict[str, Any]:
        return {
            "state": self._state.value,
            "is_tracking": self._state is TrackingState.TRACKING,
            "is_paused": self._state is TrackingState.PAUSED,
            "total_distance_km": self.route.get_total_distance(),
            "elapsed_ms": self.route.get_elapsed_time(),
            "point_count": self.route.point_count,
            "crash_safe": self.crash_safe,
        }

    # ---- transitions ----------------------------------------------------

    def start(self) -> OpResult:
        if self._state is not TrackingState.IDLE:
            return OpResult(False, AlreadyActive(f"session is {self._state.value}"))

        self.route.clear()
        self._state = TrackingState.TRACKING
        try:
            self.source.start(self._on_sample)
        except Exception as exc:
            log.error("Location source failed to start: %s", exc)
            self._state = TrackingState.IDLE
            return OpResult(False, reason=f"location source failed: {exc}")

        self._sampling = _RUNNING
        self.started_at = self.clock()
        self.last_active_at = self.started_at
        log.info("Tracking started at %d", self.started_at)
        return OpResult(True)

    def toggle_pause(self) -> OpResult:
        if self._state is TrackingState.TRACKING:
            return self._pause()
        if self._state is TrackingState.PAUSED:
            return self._resume()
        return OpResult(False, reason="not tracking")

    def pause(self) -> OpResult:
        if self._state is not TrackingState.TRACKING:
            return OpResult(False, reason=f"cannot pause while {self._state.value}")
        return self._pause()

    def resume(self) -> OpResult:
        if self._state is not TrackingState.PAUSED:
            return OpResult(False, reason=f"cannot resume while {self._state.value}")
        return self._resume()

    def _pause(self) -> OpResult:
        if self.suspend_sampling_on_pause and self._sampling == _RUNNING:
            self.source.suspend()
            self._sampling = _SUSPENDED
        self._state = TrackingState.PAUSED
        self.last_active_at = self.clock()
        self.backup.checkpoint("pause")
        log.info("Tracking paused")
        return OpResult(True)

    def _resume(self) -> OpResult:
        try:
            if self._sampling == _STOPPED:
                # Restored sessions come back without a running source
                self.source.start(self._on_sample)
            elif self._sampling == _SUSPENDED:
                self.source.resume(self._on_sample)
        except Exception as exc:
            log.error("Location source failed to resume: %s", exc)
            return OpResult(False, reason=f"location source failed: {exc}")

        self._sampling = _RUNNING
        self._state = TrackingState.TRACKING
        self.last_active_at = self.clock()
        self.backup.checkpoint("resume")
        log.info("Tracking resumed")
        return OpResult(True)

    def stop(self) -> OpResult:
        if self._state is TrackingState.IDLE:
            return OpResult(False, NothingToStop("no active session"))

        finished = self.session().model_copy(update={"state": TrackingState.IDLE})
        if self.archiver is not None:
            try:
                ref = self.archiver.archive(finished)
            except TrackerError as exc:
                # Backup slot still holds the route; stay in the current state
                log.warning("Archival failed, session kept open: %s", exc)
                return OpResult(False, exc)
            except Exception as exc:
                log.exception("Archiver raised unexpectedly, session kept open")
                return OpResult(False, PersistenceUnavailable(f"archival failed: {exc}"))
        else:
            ref = None

        if self._sampling != _STOPPED:
            self.source.stop()
            self._sampling = _STOPPED
        self.backup.discard()
        self.route.clear()
        self._state = TrackingState.IDLE
        self.started_at = None
        self.last_active_at = None
        log.info(
            "Tracking stopped: %d points, %.3f km, %d ms",
            len(finished.route_points), finished.total_distance_km, finished.elapsed_ms,
        )
        return OpResult(True, reason=ref or "", value=finished)

    # ---- events ---------------------------------------------------------

    def _on_sample(self, point: Any) -> OpResult:
        return self.append_point(point)

    def append_point(self, point: Any) -> OpResult:
        kind = _point_kind(point)
        if self._state is TrackingState.IDLE:
            log.debug("Discarding %s point while idle", kind)
            return OpResult(False, reason="discarded")
        if self._state is TrackingState.PAUSED and kind == "location":
            log.debug("Discarding location sample while paused")
            return OpResult(False, reason="discarded")

        try:
            result = self.route.append_point(point)
        except TrackerError as exc:
            log.debug("Rejected %s point: %s", kind, exc)
            return OpResult(False, exc)

        if self._state is TrackingState.TRACKING:
            self.last_active_at = self.clock()
        self.backup.checkpoint("point")
        return OpResult(True, value=result)

    def tick(self, delta_ms: float) -> OpResult:
        try:
            counted = self.route.tick(delta_ms, self._state)
        except (TypeError, ValueError) as exc:
            log.warning("Ignoring tick: %s", exc)
            return OpResult(False, reason=f"invalid delta: {delta_ms!r}")
        if not counted:
            return OpResult(False, reason=f"not tracking ({self._state.value})")
        self.backup.on_active_time(delta_ms)
        return OpResult(True)

    # ---- restore flow ---------------------------------------------------

    def check_for_backup(self) -> Optional[BackupSnapshot]:
        return self.backup.check_for_backup()

    def restore_from_backup(self, snapshot: Any) -> OpResult:
        """Rehydrate a session from *snapshot*, leaving it paused.

        The backup slot is left alone; a restore may follow a discard prompt
        that was shown but not yet acted on.
        """
        if self._state is not TrackingState.IDLE:
            return OpResult(False, AlreadyActive(f"cannot restore while {self._state.value}"))
        try:
            snap = self.backup.restore(snapshot)
        except TrackerError as exc:
            log.warning("Restore failed: %s", exc)
            return OpResult(False, exc)

        points = snap.route_data
        self._state = TrackingState.PAUSED
        self._sampling = _STOPPED
        self.started_at = points[0].timestamp if points else (snap.backup_time or self.clock())
        self.last_active_at = snap.backup_time or (points[-1].timestamp if points else self.started_at)
        log.info(
            "Restored route backup: %d points, %.2f km, %d ms (paused)",
            len(points), snap.total_distance_km, snap.elapsed_ms,
        )
        return OpResult(True, value=snap)

    def clear_backup(self) -> OpResult:
        if not self.backup.clear_backup():
            err = self.backup.writer.last_error
            log.warning("Backup slot could not be cleared: %s", err)
            return OpResult(False, err if isinstance(err, TrackerError) else None, reason="backup medium unavailable")
        log.info("Backup slot cleared")
        return OpResult(True)
