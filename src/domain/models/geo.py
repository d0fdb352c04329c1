from __future__ import annotations

from dataclasses import dataclass


def _check_coordinates(lat: float, lng: float) -> None:
    if not (-90.0 <= lat <= 90.0):
        raise ValueError(f"Invalid latitude: {lat}")
    if not (-180.0 <= lng <= 180.0):
        raise ValueError(f"Invalid longitude: {lng}")


@dataclass(frozen=True, slots=True)
class GeoPoint:
    lat: float
    lng: float

    def __post_init__(self) -> None:
        _check_coordinates(self.lat, self.lng)


@dataclass(frozen=True, slots=True)
class UserGps:
    """Best GPS fix captured on the reporting device.

    Sampling and selection of the fix happen upstream; this is the finished value.
    """

    lat: float
    lng: float
    accuracy_meters: float
    captured_at: str  # ISO-8601

    def __post_init__(self) -> None:
        _check_coordinates(self.lat, self.lng)

    @property
    def point(self) -> GeoPoint:
        return GeoPoint(lat=self.lat, lng=self.lng)


@dataclass(frozen=True, slots=True)
class StationData:
    """Reference stop all distances are measured against."""

    name: str
    code: str
    lat: float
    lng: float

    def __post_init__(self) -> None:
        _check_coordinates(self.lat, self.lng)

    @property
    def point(self) -> GeoPoint:
        return GeoPoint(lat=self.lat, lng=self.lng)
