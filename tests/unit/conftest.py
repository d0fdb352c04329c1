from __future__ import annotations

from dataclasses import replace
from typing import Any, Callable

import pytest

from src.domain.models import (
    Confidence,
    FaultTicketInput,
    FeedResponse,
    IncidentType,
    StationData,
    StopVisit,
    UserGps,
    Verdict,
    VehicleSnapshot,
)

@pytest.fixture
def anyio_backend() -> str:
    # The service is built on asyncio (asyncio.gather / asyncio.timeout).
    return "asyncio"


STATION = StationData(name="Arlozorov Terminal", code="21472", lat=32.0853, lng=34.7818)


@pytest.fixture
def station() -> StationData:
    return STATION


@pytest.fixture
def make_evidence() -> Callable[..., FaultTicketInput]:
    """Factory for a complete didnt_stop evidence record; override any field."""

    def _make(**overrides: Any) -> FaultTicketInput:
        feed = FeedResponse(
            success=True,
            stop_code=STATION.code,
            query_timestamp="2024-01-15T06:05:30.123Z",
            response_time_ms=412,
            raw_xml="<Siri/>",
        )
        nearest = VehicleSnapshot(
            recorded_at_time="2024-01-15T06:05:10Z",
            lat=32.0854,
            lng=34.7819,
            distance_from_station_m=20.0,
            velocity_kmh=40.0,
            bearing=90.0,
            line_ref="480",
            snapshot_id=1234,
        )
        evidence = FaultTicketInput(
            incident_type=IncidentType.DIDNT_STOP,
            incident_time="2024-01-15T06:05:00.000Z",
            user_gps=UserGps(
                lat=32.0852,
                lng=34.7817,
                accuracy_meters=8.5,
                captured_at="2024-01-15T06:04:58.000Z",
            ),
            station=STATION,
            bus_line="480",
            bus_company="Egged",
            feed_response=feed,
            matched_visit=None,
            vehicles_found=1,
            vehicles_in_radius=1,
            nearest_vehicle=nearest,
            raw_tracking_records=({"id": 1, "lat": 32.0854, "lon": 34.7819},),
            verdict=Verdict.CONFIRMED,
            confidence=Confidence.HIGH,
            verdict_reason="passed at speed",
            incident_id="inc-1",
            user_id="user-1",
        )
        return replace(evidence, **overrides)

    return _make


@pytest.fixture
def matched_visit() -> StopVisit:
    return StopVisit(
        line_ref="480",
        stop_point_ref="21472",
        aimed_arrival_time="2024-01-15T08:00:00+02:00",
        expected_arrival_time="2024-01-15T08:07:00+02:00",
        delay="PT7M",
        delay_minutes=7,
    )
