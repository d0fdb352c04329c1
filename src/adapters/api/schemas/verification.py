from __future__ import annotations

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, Field


class StationSchema(BaseModel):
    name: str
    code: str = ""
    lat: float = Field(..., ge=-90.0, le=90.0)
    lng: float = Field(..., ge=-180.0, le=180.0)


class UserGpsSchema(BaseModel):
    lat: float = Field(..., ge=-90.0, le=90.0)
    lng: float = Field(..., ge=-180.0, le=180.0)
    accuracy_meters: float = Field(..., ge=0.0)
    captured_at: datetime


class VerifyIncidentRequestSchema(BaseModel):
    incident_type: Literal["delay", "didnt_arrive", "didnt_stop"]
    station: StationSchema
    bus_line: str = Field(..., min_length=1)
    bus_company: str = ""
    report_time: datetime | None = None
    user_gps: UserGpsSchema | None = None
    incident_id: str | None = None
    user_id: str | None = None
    save: bool = False


class StopVisitSchema(BaseModel):
    line_ref: str
    operator_ref: str = ""
    vehicle_ref: str = ""
    aimed_arrival_time: str = ""
    expected_arrival_time: str = ""
    delay_minutes: int | None = None


class FeedSummarySchema(BaseModel):
    success: bool
    stop_code: str
    query_timestamp: str
    response_time_ms: int
    visits: int
    error: str | None = None


class TrackingSummarySchema(BaseModel):
    success: bool
    query_timestamp: str
    vehicles_found: int
    vehicles_in_radius: int
    nearest_distance_m: float | None = None
    nearest_velocity_kmh: float | None = None
    error: str | None = None


class DidntStopSchema(BaseModel):
    detected: bool
    confidence: str
    reason: str
    velocity_kmh: float | None = None
    velocity_threshold_kmh: float


class VerifyIncidentResponseSchema(BaseModel):
    ticket_id: str
    ticket_hash: str
    created_at: str
    incident_type: str
    verdict: str
    confidence: str
    reason: str
    matched_visit: StopVisitSchema | None = None
    delay_minutes: int | None = None
    didnt_stop: DidntStopSchema | None = None
    feed: FeedSummarySchema
    tracking: TrackingSummarySchema
    legal_citation_he: str
    legal_citation_en: str
    supersedes_ticket_id: str | None = None
    stored: bool = False
    storage_error: str | None = None


class StoredTicketSchema(BaseModel):
    ticket_id: str
    row: dict[str, Any]
