"""Route store: the ordered point log plus distance and active-time accounting."""
from __future__ import annotations

import logging
from math import atan2, cos, isfinite, radians, sin, sqrt
from typing import Any, Callable, List, Mapping, Optional, Sequence, Union

from pydantic import ValidationError

from trail_tracker.core.models import (
    AppendResult,
    LocationPoint,
    RouteEvent,
    RoutePoint,
    TrackingState,
    route_point_adapter,
)
from trail_tracker.errors import InvalidPoint

log = logging.getLogger(__name__)

EARTH_RADIUS_KM = 6371.0

RouteListener = Callable[[RouteEvent], None]


# ---------------------------------------------------------------------------
# Geo helpers
# ---------------------------------------------------------------------------

def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance in kilometres between two WGS-84 points."""
    lat1r, lon1r, lat2r, lon2r = map(radians, [lat1, lon1, lat2, lon2])
    dlat = lat2r - lat1r
    dlon = lon2r - lon1r
    a = sin(dlat / 2) ** 2 + cos(lat1r) * cos(lat2r) * sin(dlon / 2) ** 2
    return EARTH_RADIUS_KM * 2 * atan2(sqrt(a), sqrt(1 - a))


def coerce_point(point: Union[RoutePoint, Mapping[str, Any]]) -> RoutePoint:
    """Validate a raw mapping (or pass a model through) as a RoutePoint.

    Raises ``InvalidPoint`` for anything that is not a well-formed location,
    photo or text point.
    """
    if isinstance(point, Mapping):
        try:
            return route_point_adapter.validate_python(dict(point))
        except ValidationError as exc:
            raise InvalidPoint(f"invalid route point: {exc.error_count()} error(s)") from exc
    try:
        return route_point_adapter.validate_python(point.model_dump())
    except (AttributeError, ValidationError) as exc:
        raise InvalidPoint(f"invalid route point: {point!r}") from exc


# ---------------------------------------------------------------------------
# Store
# ---------------------------------------------------------------------------

class RouteStore:
    """Append-only point log with incremental metrics.

    Only consecutive ``location`` points contribute distance; photo and text
    points sit in the same ordered log but never break or join a leg.
    """

    def __init__(self) -> None:
        self._points: List[RoutePoint] = []
        self._total_distance_km = 0.0
        self._elapsed_ms = 0.0
        self._last_location: Optional[LocationPoint] = None
        self._listeners: List[RouteListener] = []

    # ---- observers ------------------------------------------------------

    def subscribe(self, listener: RouteListener) -> Callable[[], None]:
        """Register *listener*; returns a callable that removes it again."""
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def _emit(self, kind: str, point: Optional[RoutePoint] = None) -> None:
        event = RouteEvent(
            kind=kind,
            point=point,
            total_distance_km=self._total_distance_km,
            point_count=len(self._points),
        )
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                log.exception("Route listener failed on %s event", kind)

    # ---- mutation -------------------------------------------------------

    def append_point(self, point: Union[RoutePoint, Mapping[str, Any]]) -> AppendResult:
        p = coerce_point(point)

        if self._points and p.timestamp < self._points[-1].timestamp:
            raise InvalidPoint(
                f"timestamp {p.timestamp} is older than the last point ({self._points[-1].timestamp})"
            )

        leg_km = 0.0
        if isinstance(p, LocationPoint):
            if self._last_location is not None:
                prev = self._last_location
                leg_km = haversine_km(prev.lat, prev.lon, p.lat, p.lon)
            self._last_location = p

        self._points.append(p)
        self._total_distance_km += leg_km

        self._emit("point", p)
        return AppendResult(total_distance_km=self._total_distance_km, point_count=len(self._points))

    def tick(self, delta_ms: float, state: TrackingState) -> bool:
        """Add *delta_ms* of active time; only counts while tracking."""
        if not isfinite(delta_ms) or delta_ms < 0:
            raise ValueError(f"delta_ms must be a finite value >= 0, got {delta_ms}")
        if state is not TrackingState.TRACKING:
            return False
        self._elapsed_ms += delta_ms
        return True

    def clear(self) -> None:
        self._points = []
        self._total_distance_km = 0.0
        self._elapsed_ms = 0.0
        self._last_location = None
        self._emit("clear")

    def load(self, points: Sequence[RoutePoint], total_distance_km: float, elapsed_ms: float) -> None:
        """Replace the log wholesale, trusting the snapshot's metrics."""
        self._points = list(points)
        self._total_distance_km = float(total_distance_km)
        self._elapsed_ms = float(elapsed_ms)
        self._last_location = None
        for p in reversed(self._points):
            if isinstance(p, LocationPoint):
                self._last_location = p
                break
        self._emit("load")

    # ---- accessors ------------------------------------------------------

    def get_route_data(self) -> List[RoutePoint]:
        return list(self._points)

    def get_total_distance(self) -> float:
        return self._total_distance_km

    def get_elapsed_time(self) -> float:
        return self._elapsed_ms

    @property
    def point_count(self) -> int:
        return len(self._points)

    @property
    def last_timestamp(self) -> Optional[int]:
        return self._points[-1].timestamp if self._points else None
