from __future__ import annotations

from dataclasses import dataclass

MOT_SIRI_DATA_SOURCE = "MOT_SIRI_OFFICIAL"


@dataclass(frozen=True, slots=True)
class StopVisit:
    """One `<MonitoredStopVisit>` from a SIRI Stop-Monitoring delivery.

    Text fields are empty strings when the feed omits them; numeric fields are None.
    """

    line_ref: str = ""
    operator_ref: str = ""
    vehicle_ref: str = ""
    journey_ref: str = ""
    destination_display: str = ""

    stop_point_ref: str = ""
    aimed_arrival_time: str = ""
    expected_arrival_time: str = ""
    aimed_departure_time: str = ""
    expected_departure_time: str = ""

    delay: str | None = None  # ISO-8601 duration, e.g. "PT5M"
    delay_minutes: int | None = None

    vehicle_lat: float | None = None
    vehicle_lng: float | None = None

    number_of_stops_away: int | None = None
    progress_rate: str | None = None  # normalProgress | noProgress | unknown

    recorded_at_time: str = ""


@dataclass(frozen=True, slots=True)
class FeedResponse:
    """Result of one Stop-Monitoring query.

    `raw_xml` always carries the body as received (also on HTTP errors) so the
    original bytes stay part of the evidence.
    """

    success: bool
    stop_code: str
    query_timestamp: str
    response_time_ms: int
    stop_visits: tuple[StopVisit, ...] = ()
    raw_xml: str = ""
    error: str | None = None
    data_source: str = MOT_SIRI_DATA_SOURCE
