from __future__ import annotations

from typing import Callable, Optional

from trail_tracker.archive import Archiver
from trail_tracker.config import Settings
from trail_tracker.core.backup import BackupManager
from trail_tracker.core.models import now_ms
from trail_tracker.core.route import RouteStore
from trail_tracker.core.session import SessionMachine
from trail_tracker.sampling import LocationSource
from trail_tracker.storage.base import BackupStore
from trail_tracker.storage.writer import BackupWriter


def build_tracker(
    cfg: Optional[Settings] = None,
    store: Optional[BackupStore] = None,
    source: Optional[LocationSource] = None,
    archiver: Optional[Archiver] = None,
    clock: Callable[[], int] = now_ms,
) -> SessionMachine:
    """Wire a route store, backup slot, writer and state machine from settings.

    Explicit arguments win over settings, which is how tests inject an
    in-memory slot or a fake clock.
    """
    if cfg is None:
        from trail_tracker.config import settings as cfg

    if store is None:
        from trail_tracker.storage.factory import build_backup_store

        store = build_backup_store(cfg)
    if archiver is None:
        from trail_tracker.archive import JsonArchiver

        archiver = JsonArchiver(cfg.archive_dir)

    route = RouteStore()
    writer = BackupWriter(store, run_async=cfg.backup_async)
    backup = BackupManager(
        store,
        route,
        writer=writer,
        checkpoint_interval_ms=cfg.checkpoint_interval_ms,
        clock=clock,
    )
    return SessionMachine(
        route,
        backup,
        source=source,
        archiver=archiver,
        clock=clock,
        suspend_sampling_on_pause=cfg.suspend_sampling_on_pause,
    )
