from __future__ import annotations

import logging
import os

from src.adapters.persistence import DynamoDbEvidenceSink
from src.adapters.settings import DetectionSettings, SiriSettings, TrackingSettings
from src.adapters.siri.http_stop_monitoring_client import HttpStopMonitoringClient
from src.adapters.tracking.http_vehicle_tracking_provider import (
    HttpVehicleTrackingProvider,
)
from src.app.ports.output import IEvidenceSink, IStopMonitoringClient
from src.app.services.fault_ticket_service import FaultTicketAssembler
from src.app.services.incident_verification_service import (
    IncidentVerificationService,
)

logger = logging.getLogger(__name__)


def _evidence_sink() -> IEvidenceSink | None:
    if not os.getenv("EVIDENCE_TABLE"):
        return None
    return DynamoDbEvidenceSink()


def get_verification_service() -> IncidentVerificationService:
    siri = SiriSettings.from_env()
    tracking = TrackingSettings.from_env()
    detection = DetectionSettings.from_env()

    feed_client: IStopMonitoringClient | None = None
    if siri.configured:
        feed_client = HttpStopMonitoringClient(settings=siri)
    else:
        # Verdicts still run on tracking data alone, capped at medium confidence.
        logger.warning("MOT_SIRI_KEY not set; stop monitoring queries are disabled")

    return IncidentVerificationService(
        tracking_provider=HttpVehicleTrackingProvider(settings=tracking),
        assembler=FaultTicketAssembler(
            velocity_threshold_kmh=detection.velocity_threshold_kmh,
            citation_timezone=detection.citation_timezone,
        ),
        feed_client=feed_client,
        evidence_sink=_evidence_sink(),
        tolerance_minutes=detection.tolerance_minutes,
        station_radius_m=detection.station_radius_m,
        search_radius_km=tracking.search_radius_km,
    )
