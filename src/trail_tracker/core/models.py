from __future__ import annotations

import time
from dataclasses import dataclass
from enum import Enum
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator

from trail_tracker.errors import TrackerError


def now_ms() -> int:
    """Current Unix epoch time in milliseconds."""
    return int(time.time() * 1000)


class TrackingState(str, Enum):
    IDLE = "idle"
    TRACKING = "tracking"
    PAUSED = "paused"


# ---------------------------------------------------------------------------
# Route points
# ---------------------------------------------------------------------------

class LocationPoint(BaseModel):
    type: Literal["location"] = "location"
    lat: float = Field(..., ge=-90.0, le=90.0)
    lon: float = Field(..., ge=-180.0, le=180.0)
    altitude: Optional[float] = None  # metres
    accuracy: Optional[float] = None  # metres, as reported by the device
    timestamp: int  # epoch ms


class PhotoPoint(BaseModel):
    type: Literal["photo"] = "photo"
    timestamp: int
    image_ref: str  # opaque handle to the captured image, owned by the media layer
    caption: Optional[str] = None

    # Position at capture time, when a fix was available
    lat: Optional[float] = Field(default=None, ge=-90.0, le=90.0)
    lon: Optional[float] = Field(default=None, ge=-180.0, le=180.0)


class TextPoint(BaseModel):
    type: Literal["text"] = "text"
    timestamp: int
    content: str
    lat: Optional[float] = Field(default=None, ge=-90.0, le=90.0)
    lon: Optional[float] = Field(default=None, ge=-180.0, le=180.0)


RoutePoint = Annotated[
    Union[LocationPoint, PhotoPoint, TextPoint],
    Field(discriminator="type"),
]

route_point_adapter: TypeAdapter[RoutePoint] = TypeAdapter(RoutePoint)


def format_elapsed(milliseconds: float) -> str:
    """Render a duration as ``1h 2m 3s`` / ``2m 3s`` / ``3s``."""
    total = int(max(0.0, milliseconds) // 1000)
    hours = total // 3600
    minutes = (total % 3600) // 60
    seconds = total % 60
    if hours > 0:
        return f"{hours}h {minutes}m {seconds}s"
    if minutes > 0:
        return f"{minutes}m {seconds}s"
    return f"{seconds}s"


# ---------------------------------------------------------------------------
# Session + backup snapshot
# ---------------------------------------------------------------------------

class Session(BaseModel):
    """Read-only view of the live tracking context."""

    state: TrackingState = TrackingState.IDLE
    route_points: List[RoutePoint] = Field(default_factory=list)
    total_distance_km: float = 0.0
    elapsed_ms: float = 0.0
    started_at: Optional[int] = None
    last_active_at: Optional[int] = None


class BackupSummary(BaseModel):
    location_points: int
    photos: int
    notes: int
    total_distance_km: float
    elapsed_ms: float
    elapsed_text: str
    backup_time: int


class BackupSnapshot(BaseModel):
    """Last known good copy of an in-progress session.

    Serialized with the camelCase keys ``routeData``, ``totalDistance``,
    ``elapsedTime`` and ``backupTime``; missing numeric fields default to 0.
    """

    model_config = ConfigDict(populate_by_name=True)

    route_data: List[RoutePoint] = Field(..., alias="routeData")
    total_distance_km: float = Field(default=0.0, alias="totalDistance")
    elapsed_ms: float = Field(default=0.0, alias="elapsedTime")
    backup_time: int = Field(default=0, alias="backupTime")

    @field_validator("total_distance_km", "elapsed_ms", "backup_time", mode="before")
    @classmethod
    def _none_is_zero(cls, v: Any) -> Any:
        return 0 if v is None else v

    def to_record(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)

    def summary(self) -> BackupSummary:
        kinds = [p.type for p in self.route_data]
        return BackupSummary(
            location_points=kinds.count("location"),
            photos=kinds.count("photo"),
            notes=kinds.count("text"),
            total_distance_km=self.total_distance_km,
            elapsed_ms=self.elapsed_ms,
            elapsed_text=format_elapsed(self.elapsed_ms),
            backup_time=self.backup_time,
        )


# ---------------------------------------------------------------------------
# Operation results
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class OpResult:
    ok: bool
    error: Optional[TrackerError] = None
    reason: str = ""
    value: Any = None

    def __bool__(self) -> bool:
        return self.ok


@dataclass(frozen=True)
class AppendResult:
    total_distance_km: float
    point_count: int


@dataclass(frozen=True)
class RouteEvent:
    kind: str  # "point" | "clear" | "load"
    point: Optional[Any]
    total_distance_km: float
    point_count: int
