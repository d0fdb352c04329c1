from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone

from src.app.ports.output import (
    IEvidenceSink,
    IStopMonitoringClient,
    IVehicleTrackingProvider,
)
from src.app.services.fault_ticket_service import FaultTicketAssembler
from src.domain.algorithms.arrival_matcher import (
    DEFAULT_TOLERANCE_MINUTES,
    find_relevant_arrival,
)
from src.domain.algorithms.didnt_stop import analyze_didnt_stop
from src.domain.algorithms.geo_utils import nearest_vehicle, vehicles_within
from src.domain.algorithms.timestamps import ensure_aware, isoformat_utc
from src.domain.algorithms.verdict import determine_verdict
from src.domain.exceptions import EvidenceSinkError
from src.domain.models import (
    ArrivalMatch,
    FaultTicket,
    FaultTicketInput,
    FeedResponse,
    IncidentType,
    StationData,
    UserGps,
    VehicleTrackingResponse,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class IncidentReport:
    incident_type: IncidentType
    station: StationData
    bus_line: str
    bus_company: str = ""
    report_time: datetime | None = None
    user_gps: UserGps | None = None
    incident_id: str | None = None
    user_id: str | None = None
    save: bool = False


@dataclass(frozen=True, slots=True)
class VerificationResult:
    ticket: FaultTicket
    match: ArrivalMatch
    feed: FeedResponse
    tracking: VehicleTrackingResponse
    vehicles_in_radius: int
    stored_id: str | None = None
    storage_error: str | None = None

    @property
    def stored(self) -> bool:
        return self.stored_id is not None


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(slots=True)
class IncidentVerificationService:
    """Cross-checks a rider's report against both feeds and seals a ticket.

    Flow:
      1) Query stop monitoring and vehicle tracking concurrently.
      2) Match the report time to a scheduled visit.
      3) Count tracked vehicles inside the station radius.
      4) Classify the incident and assemble the ticket.
      5) Optionally store the ticket once.

    Feed and tracking failures degrade the verdict instead of failing the call.
    """

    tracking_provider: IVehicleTrackingProvider
    assembler: FaultTicketAssembler = field(default_factory=FaultTicketAssembler)
    feed_client: IStopMonitoringClient | None = None
    evidence_sink: IEvidenceSink | None = None

    tolerance_minutes: float = DEFAULT_TOLERANCE_MINUTES
    station_radius_m: float = 150.0
    search_radius_km: float = 0.5
    raw_record_limit: int = 20

    async def _query_feed(self, report: IncidentReport) -> FeedResponse:
        now = isoformat_utc(_utcnow())
        code = report.station.code
        if not code:
            return FeedResponse(
                success=False,
                stop_code="",
                query_timestamp=now,
                response_time_ms=0,
                error="No station code",
            )
        if self.feed_client is None:
            return FeedResponse(
                success=False,
                stop_code=code,
                query_timestamp=now,
                response_time_ms=0,
                error="MOT SIRI API not configured",
            )
        return await self.feed_client.query_stop_monitoring(
            code, report.bus_line or None
        )

    async def _query_tracking(
        self, report: IncidentReport, report_time: datetime
    ) -> VehicleTrackingResponse:
        return await self.tracking_provider.fetch_vehicles_near(
            report.station.lat,
            report.station.lng,
            self.search_radius_km,
            report.bus_line or None,
            around=report_time,
        )

    async def _gather(
        self, report: IncidentReport, report_time: datetime
    ) -> tuple[FeedResponse, VehicleTrackingResponse]:
        feed_out, tracking_out = await asyncio.gather(
            self._query_feed(report),
            self._query_tracking(report, report_time),
            return_exceptions=True,
        )
        for out in (feed_out, tracking_out):
            if isinstance(out, BaseException) and not isinstance(out, Exception):
                raise out

        now = isoformat_utc(_utcnow())
        if isinstance(feed_out, Exception):
            logger.warning(
                "Stop monitoring query raised %s; treating as unavailable",
                type(feed_out).__name__,
            )
            feed_out = FeedResponse(
                success=False,
                stop_code=report.station.code,
                query_timestamp=now,
                response_time_ms=0,
                error=f"Stop monitoring query failed: {type(feed_out).__name__}",
            )
        if isinstance(tracking_out, Exception):
            logger.warning(
                "Vehicle tracking query raised %s; treating as unavailable",
                type(tracking_out).__name__,
            )
            tracking_out = VehicleTrackingResponse(
                success=False,
                query_timestamp=now,
                error=f"Vehicle tracking query failed: {type(tracking_out).__name__}",
            )
        return feed_out, tracking_out

    async def verify(self, report: IncidentReport) -> VerificationResult:
        report_time = ensure_aware(report.report_time or _utcnow())
        feed, tracking = await self._gather(report, report_time)

        match = (
            find_relevant_arrival(
                feed.stop_visits,
                report_time,
                line_ref=report.bus_line or None,
                tolerance_minutes=self.tolerance_minutes,
            )
            if feed.success
            else ArrivalMatch()
        )

        in_radius = vehicles_within(tracking.vehicles, self.station_radius_m)
        nearest = nearest_vehicle(tracking.vehicles)

        didnt_stop = None
        if report.incident_type is IncidentType.DIDNT_STOP:
            didnt_stop = analyze_didnt_stop(
                nearest,
                len(in_radius),
                match.visit,
                feed.success,
                velocity_threshold_kmh=self.assembler.velocity_threshold_kmh,
            )

        outcome = determine_verdict(
            report.incident_type,
            feed_success=feed.success,
            match=match,
            vehicles_found=len(tracking.vehicles),
            vehicles_in_radius=len(in_radius),
            didnt_stop=didnt_stop,
        )

        user_gps = report.user_gps or UserGps(
            lat=report.station.lat,
            lng=report.station.lng,
            accuracy_meters=0.0,
            captured_at=isoformat_utc(report_time),
        )

        ticket = self.assembler.create_fault_ticket(
            FaultTicketInput(
                incident_type=report.incident_type,
                incident_time=isoformat_utc(report_time),
                user_gps=user_gps,
                station=report.station,
                bus_line=report.bus_line,
                bus_company=report.bus_company,
                feed_response=feed,
                matched_visit=match.visit,
                vehicles_found=len(tracking.vehicles),
                vehicles_in_radius=len(in_radius),
                nearest_vehicle=nearest,
                raw_tracking_records=tracking.raw_records[: self.raw_record_limit],
                verdict=outcome.verdict,
                confidence=outcome.confidence,
                verdict_reason=outcome.reason,
                incident_id=report.incident_id,
                user_id=report.user_id,
            )
        )

        stored_id: str | None = None
        storage_error: str | None = None
        if self.evidence_sink is not None and (report.save or report.incident_id):
            try:
                stored_id = await asyncio.to_thread(self.evidence_sink.save, ticket)
            except EvidenceSinkError as exc:
                logger.error("Fault ticket %s not stored: %s", ticket.ticket_id, exc)
                storage_error = str(exc)

        return VerificationResult(
            ticket=ticket,
            match=match,
            feed=feed,
            tracking=tracking,
            vehicles_in_radius=len(in_radius),
            stored_id=stored_id,
            storage_error=storage_error,
        )

    def get_ticket(self, *, ticket_id: str):
        if self.evidence_sink is None:
            raise RuntimeError("Evidence sink not configured")
        return self.evidence_sink.get(ticket_id=ticket_id)
