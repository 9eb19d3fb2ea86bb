from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Dict, Optional


class BackupStore(ABC):
    """One durable, keyed backup slot per device.

    ``read`` returns the raw record (validation is the caller's job) or
    ``None`` when the slot is empty. All methods raise
    ``PersistenceUnavailable`` when the medium cannot be used.
    """

    name = "base"

    @abstractmethod
    def read(self) -> Optional[Any]:
        raise NotImplementedError

    @abstractmethod
    def write(self, record: Dict[str, Any]) -> None:
        raise NotImplementedError

    @abstractmethod
    def clear(self) -> None:
        raise NotImplementedError
