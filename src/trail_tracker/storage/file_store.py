"""Backup slot stored as a JSON file, replaced atomically on every write."""
from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional

from trail_tracker.errors import PersistenceUnavailable
from trail_tracker.storage.base import BackupStore

log = logging.getLogger(__name__)


class FileBackupStore(BackupStore):
    name = "file"

    def __init__(self, backup_dir: str | Path, device_id: str) -> None:
        self._dir = Path(backup_dir)
        self._path = self._dir / f"{device_id}.backup.json"

    @property
    def path(self) -> Path:
        return self._path

    def read(self) -> Optional[Any]:
        try:
            if not self._path.exists():
                return None
            data = self._path.read_bytes()
        except OSError as exc:
            raise PersistenceUnavailable(f"cannot read {self._path}: {exc}") from exc
        try:
            text = data.decode("utf-8")
            if not text.strip():
                return None
            return json.loads(text)
        except (UnicodeDecodeError, json.JSONDecodeError):
            log.warning("Backup file %s is corrupted, ignoring it", self._path)
            return None

    def write(self, record: Dict[str, Any]) -> None:
        tmp = self._path.with_suffix(self._path.suffix + ".tmp")
        try:
            self._dir.mkdir(parents=True, exist_ok=True)
            with tmp.open("w", encoding="utf-8") as f:
                json.dump(record, f, ensure_ascii=False)
                f.flush()
                os.fsync(f.fileno())
            # A crash mid-write leaves the previous slot intact
            tmp.replace(self._path)
        except OSError as exc:
            raise PersistenceUnavailable(f"cannot write {self._path}: {exc}") from exc

    def clear(self) -> None:
        try:
            self._path.unlink(missing_ok=True)
        except OSError as exc:
            raise PersistenceUnavailable(f"cannot remove {self._path}: {exc}") from exc
