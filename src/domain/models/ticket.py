from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Mapping

from .geo import StationData, UserGps
from .siri import FeedResponse, StopVisit
from .vehicle import VehicleSnapshot

TICKET_VERSION = "1.0"


def freeze(value: Any) -> Any:
    """Read-only deep copy: mappings become MappingProxyType, lists become tuples."""

    if isinstance(value, Mapping):
        return MappingProxyType({str(k): freeze(v) for k, v in value.items()})
    if isinstance(value, (list, tuple)):
        return tuple(freeze(v) for v in value)
    return value


class IncidentType(str, Enum):
    DELAY = "delay"
    DIDNT_ARRIVE = "didnt_arrive"
    DIDNT_STOP = "didnt_stop"


class Verdict(str, Enum):
    CONFIRMED = "confirmed"
    UNCONFIRMED = "unconfirmed"
    CONTRADICTED = "contradicted"
    INSUFFICIENT_DATA = "insufficient_data"


class Confidence(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


@dataclass(frozen=True, slots=True)
class ArrivalMatch:
    visit: StopVisit | None = None
    delay_minutes: int | None = None
    was_scheduled: bool = False
    had_expected_arrival: bool = False


@dataclass(frozen=True, slots=True)
class DidntStopAnalysis:
    detected: bool = False
    vm_in_radius: bool = False
    sm_no_arrival: bool = False
    velocity_above_threshold: bool = False
    velocity_kmh: float | None = None
    confidence: Confidence = Confidence.LOW
    reason: str = ""


@dataclass(frozen=True, slots=True)
class VerdictOutcome:
    verdict: Verdict
    confidence: Confidence
    reason: str


@dataclass(frozen=True, slots=True)
class DataSources:
    mot_siri_sm: str = (
        "Israel Ministry of Transportation SIRI SM v2.8 (moran.mot.gov.il) - "
        "Official Government"
    )
    stride_vm: str = (
        "OpenBus Stride API SIRI VM (open-bus-stride-api.hasadna.org.il) - "
        "Mirror of MOT Feed"
    )
    gtfs_static: str = (
        "Israel MOT GTFS Static Feed (gtfs.mot.gov.il) - Official Government"
    )
    user_gps: str = "Device GPS (HTML5 Geolocation API, high accuracy mode)"


@dataclass(frozen=True, slots=True)
class FaultTicketInput:
    """Everything gathered for one incident before it is sealed."""

    incident_type: IncidentType
    incident_time: str  # ISO-8601
    user_gps: UserGps
    station: StationData
    bus_line: str
    bus_company: str

    feed_response: FeedResponse
    matched_visit: StopVisit | None

    vehicles_found: int
    vehicles_in_radius: int
    nearest_vehicle: VehicleSnapshot | None
    raw_tracking_records: tuple[Mapping[str, Any], ...]

    verdict: Verdict
    confidence: Confidence
    verdict_reason: str

    incident_id: str | None = None
    user_id: str | None = None
    supersedes_ticket_id: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(
            self, "raw_tracking_records", freeze(tuple(self.raw_tracking_records))
        )


@dataclass(frozen=True, slots=True)
class FaultTicket:
    """Sealed evidentiary record.

    Never edited in place: a correction is a new ticket whose
    `evidence.supersedes_ticket_id` points back at this one.
    """

    ticket_id: str
    created_at: str
    evidence: FaultTicketInput
    didnt_stop: DidntStopAnalysis
    scheduled_arrival: str | None
    expected_arrival: str | None
    delay_minutes: int | None
    legal_citation_he: str
    legal_citation_en: str
    ticket_hash: str
    didnt_stop_velocity_threshold_kmh: float = 15.0
    data_sources: DataSources = field(default_factory=DataSources)
    ticket_version: str = TICKET_VERSION

    @property
    def incident_id(self) -> str | None:
        return self.evidence.incident_id

    @property
    def incident_type(self) -> IncidentType:
        return self.evidence.incident_type

    @property
    def verdict(self) -> Verdict:
        return self.evidence.verdict

    @property
    def confidence(self) -> Confidence:
        return self.evidence.confidence

    @property
    def supersedes_ticket_id(self) -> str | None:
        return self.evidence.supersedes_ticket_id
