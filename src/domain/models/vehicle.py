from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping


@dataclass(frozen=True, slots=True)
class VehicleSnapshot:
    recorded_at_time: str
    lat: float
    lng: float
    distance_from_station_m: float
    velocity_kmh: float | None = None
    bearing: float | None = None
    line_ref: str | None = None
    operator_ref: str | None = None
    snapshot_id: int | None = None


@dataclass(frozen=True, slots=True)
class VehicleTrackingResponse:
    """Vehicle positions around a point, plus the records exactly as received."""

    success: bool
    query_timestamp: str
    vehicles: tuple[VehicleSnapshot, ...] = ()
    raw_records: tuple[Mapping[str, Any], ...] = ()
    error: str | None = None
