from .geo import GeoPoint, StationData, UserGps
from .siri import FeedResponse, StopVisit
from .ticket import (
    ArrivalMatch,
    Confidence,
    DataSources,
    DidntStopAnalysis,
    FaultTicket,
    FaultTicketInput,
    IncidentType,
    Verdict,
    VerdictOutcome,
)
from .vehicle import VehicleSnapshot, VehicleTrackingResponse

__all__ = [
    "ArrivalMatch",
    "Confidence",
    "DataSources",
    "DidntStopAnalysis",
    "FaultTicket",
    "FaultTicketInput",
    "FeedResponse",
    "GeoPoint",
    "IncidentType",
    "StationData",
    "StopVisit",
    "UserGps",
    "VehicleSnapshot",
    "VehicleTrackingResponse",
    "Verdict",
    "VerdictOutcome",
]
