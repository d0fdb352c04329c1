from __future__ import annotations

import math
from typing import Iterable

from src.domain.models import GeoPoint, VehicleSnapshot

EARTH_RADIUS_M = 6371000.0


def haversine_distance_m(a: GeoPoint, b: GeoPoint) -> float:
    """Great-circle distance in meters.

    Every distance in the engine goes through this function so the matcher,
    the detector and location checks agree to the centimetre.
    """

    lat1 = math.radians(a.lat)
    lat2 = math.radians(b.lat)
    dlat = lat2 - lat1
    dlng = math.radians(b.lng - a.lng)

    s = (
        math.sin(dlat / 2.0) ** 2
        + math.cos(lat1) * math.cos(lat2) * math.sin(dlng / 2.0) ** 2
    )
    return 2.0 * EARTH_RADIUS_M * math.atan2(math.sqrt(s), math.sqrt(1.0 - s))


def nearest_vehicle(vehicles: Iterable[VehicleSnapshot]) -> VehicleSnapshot | None:
    """Closest snapshot to the station; the first one seen wins a tie."""

    best: VehicleSnapshot | None = None
    for v in vehicles:
        if best is None or v.distance_from_station_m < best.distance_from_station_m:
            best = v
    return best


def vehicles_within(
    vehicles: Iterable[VehicleSnapshot], radius_m: float
) -> tuple[VehicleSnapshot, ...]:
    return tuple(v for v in vehicles if v.distance_from_station_m <= radius_m)
