from __future__ import annotations

from datetime import datetime, timezone

import pytest

from src.adapters.persistence import DynamoDbEvidenceSink
from src.app.services.fault_ticket_service import FaultTicketAssembler
from src.domain.exceptions import EvidenceSinkError
from src.domain.models import (
    Confidence,
    FaultTicketInput,
    FeedResponse,
    IncidentType,
    StationData,
    UserGps,
    Verdict,
)


def _evidence() -> FaultTicketInput:
    station = StationData(name="Arlozorov Terminal", code="21472", lat=32.0853, lng=34.7818)
    return FaultTicketInput(
        incident_type=IncidentType.DIDNT_ARRIVE,
        incident_time="2024-01-15T06:05:00.000Z",
        user_gps=UserGps(
            lat=32.0852,
            lng=34.7817,
            accuracy_meters=12.0,
            captured_at="2024-01-15T06:04:58.000Z",
        ),
        station=station,
        bus_line="480",
        bus_company="Egged",
        feed_response=FeedResponse(
            success=True,
            stop_code="21472",
            query_timestamp="2024-01-15T06:05:30.000Z",
            response_time_ms=250,
            raw_xml="<Siri><ServiceDelivery/></Siri>",
        ),
        matched_visit=None,
        vehicles_found=0,
        vehicles_in_radius=0,
        nearest_vehicle=None,
        raw_tracking_records=(),
        verdict=Verdict.CONFIRMED,
        confidence=Confidence.HIGH,
        verdict_reason="No tracked vehicle of this line was found near the station.",
    )


@pytest.mark.integration
def test_dynamodb_evidence_sink_write_once_and_get(evidence_table: str) -> None:
    assembler = FaultTicketAssembler(
        clock=lambda: datetime(2024, 1, 15, 6, 6, tzinfo=timezone.utc)
    )
    ticket = assembler.create_fault_ticket(_evidence())
    sink = DynamoDbEvidenceSink(table_name=evidence_table)

    assert sink.save(ticket) == ticket.ticket_id

    with pytest.raises(EvidenceSinkError):
        sink.save(ticket)

    row = sink.get(ticket_id=ticket.ticket_id)
    assert row is not None
    assert row["ticket_hash"] == ticket.ticket_hash
    assert row["incident_id"] is None
    assert row["nearest_vehicle_lat"] is None
    assert row["raw_siri_sm_response"]["rawXml"] == "<Siri><ServiceDelivery/></Siri>"
    assert row["raw_siri_vm_response"] == []

    assert sink.get(ticket_id="does-not-exist") is None
