from __future__ import annotations

import copy
from typing import Any, Dict, Optional

from trail_tracker.storage.base import BackupStore


class MemoryBackupStore(BackupStore):
    """
    Process-local slot. Survives nothing, so it only makes sense for tests and
    for running the API without a writable medium.
    """

    name = "memory"

    def __init__(self, record: Optional[Dict[str, Any]] = None) -> None:
        self._record = copy.deepcopy(record)
        self.writes = 0

    def read(self) -> Optional[Any]:
        return copy.deepcopy(self._record)

    def write(self, record: Dict[str, Any]) -> None:
        self._record = copy.deepcopy(record)
        self.writes += 1

    def clear(self) -> None:
        self._record = None
