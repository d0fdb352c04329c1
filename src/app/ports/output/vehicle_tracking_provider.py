from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime

from src.domain.models import VehicleSnapshot, VehicleTrackingResponse


class IVehicleTrackingProvider(ABC):
    """Port for an independent vehicle-position feed (SIRI VM mirror)."""

    @abstractmethod
    async def fetch_vehicles_near(
        self,
        lat: float,
        lng: float,
        radius_km: float,
        line_ref: str | None = None,
        around: datetime | None = None,
    ) -> VehicleTrackingResponse:
        """Positions near a point; with `around`, only those recorded close to that time."""

    async def find_vehicles_near(
        self,
        lat: float,
        lng: float,
        radius_km: float,
        line_ref: str | None = None,
        around: datetime | None = None,
    ) -> tuple[VehicleSnapshot, ...]:
        resp = await self.fetch_vehicles_near(lat, lng, radius_km, line_ref, around)
        return resp.vehicles
