"""Redis key naming conventions for the trail tracker."""
from __future__ import annotations

_PREFIX = "tt"


def backup_slot(device_id: str) -> str:
    """Key for the single in-progress backup of a device."""
    return f"{_PREFIX}:backup:{device_id}"
