"""Checkpoint policy, snapshot validation and restore for in-progress sessions."""
from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any, Callable, Optional

from pydantic import ValidationError

from trail_tracker.core.models import BackupSnapshot, now_ms
from trail_tracker.core.route import RouteStore
from trail_tracker.errors import PersistenceUnavailable, RestoreFailed
from trail_tracker.storage.base import BackupStore
from trail_tracker.storage.writer import BackupWriter

log = logging.getLogger(__name__)


def parse_snapshot(raw: Any) -> BackupSnapshot:
    """Validate *raw* as a backup snapshot or raise ``RestoreFailed``.

    Well-formed means a mapping with a ``routeData`` list of valid points and
    numeric (or absent) ``totalDistance`` / ``elapsedTime``.
    """
    if isinstance(raw, BackupSnapshot):
        raw = raw.to_record()
    if not isinstance(raw, Mapping):
        raise RestoreFailed(f"backup is not a mapping ({type(raw).__name__})")
    if "routeData" not in raw and "route_data" not in raw:
        raise RestoreFailed("backup has no routeData")
    try:
        snap = BackupSnapshot.model_validate(dict(raw))
    except ValidationError as exc:
        raise RestoreFailed(f"backup failed validation: {exc.error_count()} error(s)") from exc

    stamps = [p.timestamp for p in snap.route_data]
    if any(b < a for a, b in zip(stamps, stamps[1:])):
        raise RestoreFailed("backup route points are out of order")
    return snap


class BackupManager:
    """Owns the single backup slot of a device.

    Checkpoints are handed to a ``BackupWriter`` and never block the caller.
    Reading the slot (``check_for_backup``) and clearing it on an explicit
    decision (``clear_backup``) wait for pending writes first.
    """

    def __init__(
        self,
        store: BackupStore,
        route: RouteStore,
        writer: Optional[BackupWriter] = None,
        checkpoint_interval_ms: float = 30000,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self.store = store
        self.route = route
        self.writer = writer or BackupWriter(store)
        self.checkpoint_interval_ms = checkpoint_interval_ms
        self.clock = clock
        self.checkpoints = 0
        self._since_checkpoint_ms = 0.0

    @property
    def crash_safe(self) -> bool:
        return self.writer.crash_safe

    # ---- checkpointing --------------------------------------------------

    def snapshot(self) -> BackupSnapshot:
        return BackupSnapshot(
            route_data=self.route.get_route_data(),
            total_distance_km=self.route.get_total_distance(),
            elapsed_ms=self.route.get_elapsed_time(),
            backup_time=self.clock(),
        )

    def checkpoint(self, reason: str) -> int:
        snap = self.snapshot()
        self._since_checkpoint_ms = 0.0
        self.checkpoints += 1
        seq = self.writer.submit_write(snap.to_record())
        log.debug(
            "Checkpoint #%d (%s): %d points, %.3f km, %d ms",
            seq, reason, len(snap.route_data), snap.total_distance_km, snap.elapsed_ms,
        )
        return seq

    def on_active_time(self, delta_ms: float) -> bool:
        """Account active time; checkpoints once the periodic interval is reached."""
        self._since_checkpoint_ms += delta_ms
        if self.checkpoint_interval_ms > 0 and self._since_checkpoint_ms >= self.checkpoint_interval_ms:
            self.checkpoint("timer")
            return True
        return False

    def discard(self) -> None:
        """Queue a clear of the slot behind any pending checkpoint."""
        self._since_checkpoint_ms = 0.0
        self.writer.submit_clear()

    # ---- restore flow ---------------------------------------------------

    def check_for_backup(self) -> Optional[BackupSnapshot]:
        self.writer.flush()
        try:
            raw = self.store.read()
        except PersistenceUnavailable as exc:
            log.warning("Cannot read backup slot (%s); treating as no backup", exc)
            return None
        if raw is None:
            return None
        try:
            snap = parse_snapshot(raw)
        except RestoreFailed as exc:
            log.warning("Ignoring malformed backup: %s", exc)
            return None
        log.info(
            "Found unsaved route backup: %d points, %.2f km",
            len(snap.route_data), snap.total_distance_km,
        )
        return snap

    def restore(self, snapshot: Any) -> BackupSnapshot:
        """Load *snapshot* into the route store; raises ``RestoreFailed``."""
        snap = parse_snapshot(snapshot)
        self.route.load(snap.route_data, snap.total_distance_km, snap.elapsed_ms)
        self._since_checkpoint_ms = 0.0
        return snap

    def clear_backup(self, timeout: Optional[float] = 5.0) -> bool:
        self.discard()
        self.writer.flush(timeout)
        return self.writer.crash_safe
