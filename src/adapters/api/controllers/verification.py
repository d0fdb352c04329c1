from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException

from src.adapters.api.dependencies import get_verification_service
from src.adapters.api.schemas.verification import (
    DidntStopSchema,
    FeedSummarySchema,
    StopVisitSchema,
    StoredTicketSchema,
    TrackingSummarySchema,
    VerifyIncidentRequestSchema,
    VerifyIncidentResponseSchema,
)
from src.app.services.incident_verification_service import (
    IncidentReport,
    IncidentVerificationService,
    VerificationResult,
)
from src.domain.algorithms.timestamps import isoformat_utc
from src.domain.exceptions import EvidenceSinkError
from src.domain.models import IncidentType, StationData, UserGps

router = APIRouter(tags=["incidents"])


def _result_to_schema(result: VerificationResult) -> VerifyIncidentResponseSchema:
    ticket = result.ticket
    visit = ticket.evidence.matched_visit
    nearest = ticket.evidence.nearest_vehicle
    return VerifyIncidentResponseSchema(
        ticket_id=ticket.ticket_id,
        ticket_hash=ticket.ticket_hash,
        created_at=ticket.created_at,
        incident_type=ticket.incident_type.value,
        verdict=ticket.verdict.value,
        confidence=ticket.confidence.value,
        reason=ticket.evidence.verdict_reason,
        matched_visit=(
            StopVisitSchema(
                line_ref=visit.line_ref,
                operator_ref=visit.operator_ref,
                vehicle_ref=visit.vehicle_ref,
                aimed_arrival_time=visit.aimed_arrival_time,
                expected_arrival_time=visit.expected_arrival_time,
                delay_minutes=visit.delay_minutes,
            )
            if visit
            else None
        ),
        delay_minutes=ticket.delay_minutes,
        didnt_stop=(
            DidntStopSchema(
                detected=ticket.didnt_stop.detected,
                confidence=ticket.didnt_stop.confidence.value,
                reason=ticket.didnt_stop.reason,
                velocity_kmh=ticket.didnt_stop.velocity_kmh,
                velocity_threshold_kmh=ticket.didnt_stop_velocity_threshold_kmh,
            )
            if ticket.incident_type is IncidentType.DIDNT_STOP
            else None
        ),
        feed=FeedSummarySchema(
            success=result.feed.success,
            stop_code=result.feed.stop_code,
            query_timestamp=result.feed.query_timestamp,
            response_time_ms=result.feed.response_time_ms,
            visits=len(result.feed.stop_visits),
            error=result.feed.error,
        ),
        tracking=TrackingSummarySchema(
            success=result.tracking.success,
            query_timestamp=result.tracking.query_timestamp,
            vehicles_found=len(result.tracking.vehicles),
            vehicles_in_radius=result.vehicles_in_radius,
            nearest_distance_m=(
                round(nearest.distance_from_station_m, 1) if nearest else None
            ),
            nearest_velocity_kmh=nearest.velocity_kmh if nearest else None,
            error=result.tracking.error,
        ),
        legal_citation_he=ticket.legal_citation_he,
        legal_citation_en=ticket.legal_citation_en,
        supersedes_ticket_id=ticket.supersedes_ticket_id,
        stored=result.stored,
        storage_error=result.storage_error,
    )


@router.post("/incidents/verify", response_model=VerifyIncidentResponseSchema)
async def verify_incident(
    req: VerifyIncidentRequestSchema,
    service: IncidentVerificationService = Depends(get_verification_service),
) -> VerifyIncidentResponseSchema:
    station = StationData(
        name=req.station.name,
        code=req.station.code,
        lat=req.station.lat,
        lng=req.station.lng,
    )
    user_gps = (
        UserGps(
            lat=req.user_gps.lat,
            lng=req.user_gps.lng,
            accuracy_meters=req.user_gps.accuracy_meters,
            captured_at=isoformat_utc(req.user_gps.captured_at),
        )
        if req.user_gps
        else None
    )
    result = await service.verify(
        IncidentReport(
            incident_type=IncidentType(req.incident_type),
            station=station,
            bus_line=req.bus_line,
            bus_company=req.bus_company,
            report_time=req.report_time,
            user_gps=user_gps,
            incident_id=req.incident_id,
            user_id=req.user_id,
            save=req.save,
        )
    )
    return _result_to_schema(result)


@router.get("/tickets/{ticket_id}", response_model=StoredTicketSchema)
def get_ticket(
    ticket_id: str,
    service: IncidentVerificationService = Depends(get_verification_service),
) -> StoredTicketSchema:
    if service.evidence_sink is None:
        raise HTTPException(status_code=503, detail="Evidence store not configured")
    try:
        row = service.get_ticket(ticket_id=ticket_id)
    except EvidenceSinkError as exc:
        raise HTTPException(status_code=503, detail=str(exc)) from exc
    if row is None:
        raise HTTPException(status_code=404, detail="Ticket not found")
    return StoredTicketSchema(ticket_id=ticket_id, row=dict(row))
