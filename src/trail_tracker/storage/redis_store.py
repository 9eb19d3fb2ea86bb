"""Backup slot stored as a JSON string under a per-device Redis key."""
from __future__ import annotations

import json
import logging
from typing import Any, Dict, Optional

from redis.exceptions import RedisError

from trail_tracker.cache.keys import backup_slot
from trail_tracker.errors import PersistenceUnavailable
from trail_tracker.storage.base import BackupStore

log = logging.getLogger(__name__)


class RedisBackupStore(BackupStore):
    name = "redis"

    def __init__(self, client, device_id: str) -> None:
        self.client = client
        self.key = backup_slot(device_id)

    def read(self) -> Optional[Any]:
        try:
            raw = self.client.get(self.key)
        except RedisError as exc:
            raise PersistenceUnavailable(f"redis read failed: {exc}") from exc
        except UnicodeDecodeError:
            log.warning("Backup at %s is not valid UTF-8, ignoring it", self.key)
            return None
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except (TypeError, ValueError):
            log.warning("Backup at %s is not valid JSON, ignoring it", self.key)
            return None

    def write(self, record: Dict[str, Any]) -> None:
        try:
            # No expiry: the slot lives until the session is stopped or discarded
            self.client.set(self.key, json.dumps(record))
        except RedisError as exc:
            raise PersistenceUnavailable(f"redis write failed: {exc}") from exc

    def clear(self) -> None:
        try:
            self.client.delete(self.key)
        except RedisError as exc:
            raise PersistenceUnavailable(f"redis delete failed: {exc}") from exc
