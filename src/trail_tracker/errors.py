"""Error taxonomy for the tracking core.

The route store and the storage backends raise these; the session machine
catches them at its boundary and hands them back inside an ``OpResult``.
"""
from __future__ import annotations


class TrackerError(Exception):
    code = "tracker_error"

    def __init__(self, message: str = "") -> None:
        super().__init__(message or self.code)
        self.message = message or self.code


class AlreadyActive(TrackerError):
    """``start`` (or a restore) was requested while a session is live."""

    code = "already_active"


class NothingToStop(TrackerError):
    """``stop`` was requested while idle."""

    code = "nothing_to_stop"


class InvalidPoint(TrackerError):
    """A route point failed validation; nothing was appended."""

    code = "invalid_point"


class RestoreFailed(TrackerError):
    """A backup snapshot is structurally invalid."""

    code = "restore_failed"


class PersistenceUnavailable(TrackerError):
    """The backup medium cannot be read or written."""

    code = "persistence_unavailable"
