"""Archival of finished routes as JSON files."""
from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, List

from trail_tracker.core.models import Session, now_ms
from trail_tracker.errors import PersistenceUnavailable

log = logging.getLogger(__name__)


class Archiver(ABC):
    """Receives each finished session.

    ``archive`` returns a reference to the stored route and raises
    ``PersistenceUnavailable`` when the route could not be kept.
    """

    @abstractmethod
    def archive(self, session: Session) -> str:
        raise NotImplementedError


class JsonArchiver(Archiver):
    """Writes each completed session to ``<archive_dir>/route-<started_at>.json``."""

    def __init__(self, archive_dir: str | Path) -> None:
        self.archive_dir = Path(archive_dir)

    def archive(self, session: Session) -> str:
        started = session.started_at or now_ms()
        path = self.archive_dir / f"route-{started}.json"
        payload = {
            "routeData": [p.model_dump(mode="json") for p in session.route_points],
            "totalDistance": session.total_distance_km,
            "elapsedTime": session.elapsed_ms,
            "startedAt": session.started_at,
            "finishedAt": now_ms(),
        }
        try:
            self.archive_dir.mkdir(parents=True, exist_ok=True)
            tmp = path.with_suffix(".json.tmp")
            tmp.write_text(json.dumps(payload, indent=2), encoding="utf-8")
            tmp.replace(path)
        except OSError as exc:
            raise PersistenceUnavailable(f"cannot archive route to {path}: {exc}") from exc
        log.info("Archived route: %s (%d points)", path, len(session.route_points))
        return str(path)

    def list_routes(self) -> List[Dict[str, Any]]:
        """Summaries of archived routes, newest first. Unreadable files are skipped."""
        if not self.archive_dir.exists():
            return []
        out: List[Dict[str, Any]] = []
        for path in self.archive_dir.glob("route-*.json"):
            try:
                data = json.loads(path.read_text(encoding="utf-8"))
            except (OSError, ValueError):
                log.warning("Skipping unreadable archive %s", path)
                continue
            points = data.get("routeData") or []
            out.append(
                {
                    "file": path.name,
                    "started_at": data.get("startedAt"),
                    "finished_at": data.get("finishedAt"),
                    "points": len(points),
                    "photos": sum(1 for p in points if p.get("type") == "photo"),
                    "notes": sum(1 for p in points if p.get("type") == "text"),
                    "total_distance_km": data.get("totalDistance", 0.0),
                    "elapsed_ms": data.get("elapsedTime", 0.0),
                }
            )
        out.sort(key=lambda r: r.get("started_at") or 0, reverse=True)
        return out
