from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Mapping

import httpx

from src.adapters.http.transport import DirectTransport, HttpTransport
from src.adapters.settings import TrackingSettings
from src.app.ports.output import IVehicleTrackingProvider
from src.domain.algorithms.geo_utils import haversine_distance_m
from src.domain.algorithms.timestamps import isoformat_utc
from src.domain.models import GeoPoint, VehicleSnapshot, VehicleTrackingResponse

logger = logging.getLogger(__name__)

_HEADERS = {
    "Accept": "application/json",
    "User-Agent": "TransitEvidence/1.0",
}


def _opt_float(value: Any) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _opt_int(value: Any) -> int | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _opt_str(value: Any) -> str | None:
    if value is None or value == "":
        return None
    return str(value)


def _snapshot(record: Mapping[str, Any], station: GeoPoint) -> VehicleSnapshot | None:
    lat = _opt_float(record.get("lat"))
    lng = _opt_float(record.get("lon"))
    if lat is None or lng is None:
        return None
    try:
        position = GeoPoint(lat=lat, lng=lng)
    except ValueError:
        return None

    return VehicleSnapshot(
        recorded_at_time=str(record.get("recorded_at_time") or ""),
        lat=lat,
        lng=lng,
        distance_from_station_m=haversine_distance_m(station, position),
        velocity_kmh=_opt_float(record.get("velocity")),
        bearing=_opt_float(record.get("bearing")),
        line_ref=_opt_str(record.get("siri_route__line_ref")),
        operator_ref=_opt_str(record.get("siri_route__operator_ref")),
        snapshot_id=_opt_int(record.get("siri_snapshot_id")),
    )


@dataclass(slots=True)
class HttpVehicleTrackingProvider(IVehicleTrackingProvider):
    """Radius query against the OpenBus Stride vehicle-locations endpoint.

    GET {base_url}/siri_vehicle_locations/list?lat=..&lon=..&radius_km=..
        [&line_ref=..][&recorded_at_time_from=..&recorded_at_time_to=..]

    With `around`, only positions recorded within `window_minutes` of it are
    requested. Any network, HTTP or decoding failure, an invalid station or
    the overall deadline yields an empty, `success=False` response. An empty
    vehicle list is a finding, not an error.
    """

    settings: TrackingSettings = field(default_factory=TrackingSettings)
    transport: HttpTransport = field(default_factory=DirectTransport)

    def _url(self) -> str:
        return self.settings.base_url.rstrip("/") + "/siri_vehicle_locations/list"

    def _params(
        self,
        lat: float,
        lng: float,
        radius_km: float,
        line_ref: str | None,
        around: datetime | None,
    ) -> dict[str, str]:
        params = {
            "lat": str(lat),
            "lon": str(lng),
            "radius_km": str(radius_km),
            "limit": str(self.settings.result_limit),
            "order_by": "recorded_at_time",
            "order": "desc",
        }
        if line_ref:
            params["line_ref"] = line_ref
        if around is not None:
            window = timedelta(minutes=self.settings.window_minutes)
            params["recorded_at_time_from"] = isoformat_utc(around - window)
            params["recorded_at_time_to"] = isoformat_utc(around + window)
        return params

    async def fetch_vehicles_near(
        self,
        lat: float,
        lng: float,
        radius_km: float,
        line_ref: str | None = None,
        around: datetime | None = None,
    ) -> VehicleTrackingResponse:
        query_timestamp = isoformat_utc(datetime.now(timezone.utc))

        def failure(error: str) -> VehicleTrackingResponse:
            return VehicleTrackingResponse(
                success=False, query_timestamp=query_timestamp, error=error
            )

        try:
            station = GeoPoint(lat=lat, lng=lng)
        except ValueError as exc:
            logger.warning("Vehicle tracking query rejected: %s", exc)
            return failure(f"Vehicle tracking query rejected: {exc}")

        params = self._params(lat, lng, radius_km, line_ref, around)

        try:
            async with asyncio.timeout(self.settings.timeout_s):
                async with self.transport.client(
                    timeout_s=self.settings.timeout_s, headers=_HEADERS
                ) as client:
                    resp = await client.get(self._url(), params=params)
                    resp.raise_for_status()
                    payload = resp.json()
        except TimeoutError:
            logger.warning(
                "Vehicle tracking query near (%.5f, %.5f) exceeded %gs",
                lat,
                lng,
                self.settings.timeout_s,
            )
            return failure(
                f"Vehicle tracking API timeout after {self.settings.timeout_s:g}s"
            )
        except (httpx.HTTPError, httpx.InvalidURL, ValueError) as exc:
            logger.warning(
                "Vehicle tracking query near (%.5f, %.5f) failed: %s: %s",
                lat,
                lng,
                type(exc).__name__,
                exc,
            )
            return failure(f"Vehicle tracking API error: {type(exc).__name__}: {exc}")

        if not isinstance(payload, list):
            logger.warning(
                "Vehicle tracking returned %s instead of a list", type(payload).__name__
            )
            return failure("Vehicle tracking API returned an unexpected payload")

        records = tuple(r for r in payload if isinstance(r, Mapping))
        vehicles = tuple(
            s for s in (_snapshot(r, station) for r in records) if s is not None
        )
        logger.info(
            "Vehicle tracking near (%.5f, %.5f) line %s: %d record(s), %d usable",
            lat,
            lng,
            line_ref or "*",
            len(records),
            len(vehicles),
        )
        return VehicleTrackingResponse(
            success=True,
            query_timestamp=query_timestamp,
            vehicles=vehicles,
            raw_records=records,
        )
