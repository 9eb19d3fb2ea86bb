from __future__ import annotations

from typing import Any, Dict, List

import pytest

from trail_tracker.archive import JsonArchiver
from trail_tracker.config import Settings
from trail_tracker.core.engine import build_tracker
from trail_tracker.sampling import LocationSource
from trail_tracker.storage.memory import MemoryBackupStore


class FakeClock:
    def __init__(self, start: int = 1_700_000_000_000) -> None:
        self.now = start

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> int:
        self.now += ms
        return self.now


class RecordingSource(LocationSource):
    def __init__(self) -> None:
        self.calls: List[str] = []
        self.sink = None

    def start(self, sink) -> None:
        self.calls.append("start")
        self.sink = sink

    def stop(self) -> None:
        self.calls.append("stop")
        self.sink = None

    def suspend(self) -> None:
        self.calls.append("suspend")

    def resume(self, sink) -> None:
        self.calls.append("resume")
        self.sink = sink


def loc(ts: int, lat: float = 45.0, lon: float = 7.0, **extra: Any) -> Dict[str, Any]:
    return {"type": "location", "lat": lat, "lon": lon, "timestamp": ts, **extra}


def photo(ts: int, ref: str = "img-1", **extra: Any) -> Dict[str, Any]:
    return {"type": "photo", "timestamp": ts, "image_ref": ref, **extra}


def note(ts: int, content: str = "bench by the river", **extra: Any) -> Dict[str, Any]:
    return {"type": "text", "timestamp": ts, "content": content, **extra}


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store() -> MemoryBackupStore:
    return MemoryBackupStore()


@pytest.fixture
def cfg(tmp_path) -> Settings:
    return Settings(
        backup_backend="memory",
        backup_dir=str(tmp_path / "backup"),
        archive_dir=str(tmp_path / "routes"),
        checkpoint_interval_ms=30000,
        backup_async=False,
    )


@pytest.fixture
def source() -> RecordingSource:
    return RecordingSource()


@pytest.fixture
def tracker(cfg, store, clock, source):
    return build_tracker(cfg, store=store, source=source, archiver=JsonArchiver(cfg.archive_dir), clock=clock)


@pytest.fixture
def make_tracker(cfg, clock):
    def _make(store=None, source=None, archiver=None, **overrides):
        c = cfg.model_copy(update=overrides) if overrides else cfg
        return build_tracker(
            c,
            store=store if store is not None else MemoryBackupStore(),
            source=source,
            archiver=archiver if archiver is not None else JsonArchiver(c.archive_dir),
            clock=clock,
        )

    return _make
