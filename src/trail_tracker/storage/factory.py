from __future__ import annotations

import logging
from typing import Optional

from trail_tracker.config import Settings
from trail_tracker.storage.base import BackupStore

log = logging.getLogger(__name__)


def build_backup_store(cfg: Optional[Settings] = None) -> BackupStore:
    """
    Build the backup slot for ``cfg.backup_backend``:
      "redis"  -> Redis (falls back to file if unreachable)
      "file"   -> JSON file under backup_dir
      "memory" -> process-local, not crash-safe
      "auto"   -> redis when redis_url is set and reachable, else file
    """
    if cfg is None:
        from trail_tracker.config import settings as cfg

    backend = cfg.backup_backend.strip().lower() or "auto"

    # Local imports keep redis optional at import time
    from trail_tracker.storage.file_store import FileBackupStore
    from trail_tracker.storage.memory import MemoryBackupStore

    if backend == "memory":
        return MemoryBackupStore()

    if backend in ("redis", "auto"):
        from trail_tracker.cache.redis_client import get_redis

        client = get_redis(cfg.redis_url) if cfg.redis_url else None
        if client is not None:
            from trail_tracker.storage.redis_store import RedisBackupStore

            log.info("Backup slot: redis (device=%s)", cfg.device_id)
            return RedisBackupStore(client, cfg.device_id)
        if backend == "redis":
            log.warning("Redis backend requested but unavailable, using file backend")
    elif backend != "file":
        raise ValueError(f"Unknown backup backend: '{backend}' (supported: auto, redis, file, memory)")

    log.info("Backup slot: file %s (device=%s)", cfg.backup_dir, cfg.device_id)
    return FileBackupStore(cfg.backup_dir, cfg.device_id)
