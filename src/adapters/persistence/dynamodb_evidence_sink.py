from __future__ import annotations

import json
import logging
import os
from dataclasses import asdict, dataclass
from typing import Any, Callable, Mapping

from botocore.exceptions import BotoCoreError, ClientError

from src.adapters.aws import DynamoDBClient, dynamodb_client
from src.app.ports.output import IEvidenceSink
from src.domain.exceptions import EvidenceSinkError
from src.domain.models import FaultTicket

logger = logging.getLogger(__name__)

# Columns stored as JSON text.
JSON_COLUMNS = frozenset({"raw_siri_vm_response", "raw_siri_sm_response", "data_sources"})


def _thaw(value: Any) -> Any:
    if isinstance(value, Mapping):
        return {k: _thaw(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_thaw(v) for v in value]
    return value


def ticket_to_row(ticket: FaultTicket) -> dict[str, Any]:
    """Flatten a ticket into the evidence row contract (one row per ticket).

    `incident_id` and `user_id` may be None. The SM payload keeps the raw XML
    and parsed visits; the feed key is never part of a FeedResponse.
    """

    ev = ticket.evidence
    feed = ev.feed_response
    nearest = ev.nearest_vehicle
    visit = ev.matched_visit
    ds = ticket.didnt_stop

    return {
        "ticket_id": ticket.ticket_id,
        "supersedes_ticket_id": ev.supersedes_ticket_id,
        "incident_id": ev.incident_id,
        "user_id": ev.user_id,
        "ticket_version": ticket.ticket_version,
        "created_at": ticket.created_at,
        "incident_type": ev.incident_type.value,
        "incident_time": ev.incident_time,
        "verdict": ev.verdict.value,
        "confidence": ev.confidence.value,
        "verdict_reason": ev.verdict_reason,
        # User GPS
        "user_lat": ev.user_gps.lat,
        "user_lng": ev.user_gps.lng,
        "user_location_accuracy_m": ev.user_gps.accuracy_meters,
        "user_location_captured_at": ev.user_gps.captured_at,
        # Station
        "station_name": ev.station.name,
        "station_code": ev.station.code,
        "station_lat": ev.station.lat,
        "station_lng": ev.station.lng,
        "bus_line": ev.bus_line,
        "bus_company": ev.bus_company,
        # Schedule as published in SIRI SM
        "gtfs_scheduled_arrival": ticket.scheduled_arrival,
        "gtfs_delay_minutes": ticket.delay_minutes,
        "siri_query_timestamp": feed.query_timestamp,
        "siri_api_response_ms": feed.response_time_ms,
        # Vehicle tracking
        "siri_vehicles_found": ev.vehicles_found,
        "siri_vehicles_in_radius": ev.vehicles_in_radius,
        "nearest_vehicle_lat": nearest.lat if nearest else None,
        "nearest_vehicle_lng": nearest.lng if nearest else None,
        "nearest_vehicle_distance_m": (
            round(nearest.distance_from_station_m) if nearest else None
        ),
        "nearest_vehicle_velocity_kmh": nearest.velocity_kmh if nearest else None,
        "nearest_vehicle_bearing": nearest.bearing if nearest else None,
        "nearest_vehicle_recorded_at": nearest.recorded_at_time if nearest else None,
        "nearest_vehicle_siri_snapshot_id": nearest.snapshot_id if nearest else None,
        # Stop monitoring
        "sm_arrival_checked": feed.success,
        "sm_arrival_found": visit is not None,
        "sm_expected_arrival": ticket.expected_arrival,
        "sm_scheduled_arrival": ticket.scheduled_arrival,
        # Didn't-stop analysis
        "didnt_stop_detected": ds.detected,
        "didnt_stop_vm_in_radius": ds.vm_in_radius,
        "didnt_stop_sm_no_arrival": ds.sm_no_arrival,
        "didnt_stop_velocity_kmh": ds.velocity_kmh,
        "didnt_stop_velocity_threshold": ticket.didnt_stop_velocity_threshold_kmh,
        "didnt_stop_velocity_above_threshold": ds.velocity_above_threshold,
        "didnt_stop_confidence": ds.confidence.value,
        "didnt_stop_reason": ds.reason,
        # Raw payloads (chain of custody)
        "raw_siri_vm_response": _thaw(ev.raw_tracking_records),
        "raw_siri_sm_response": {
            "rawXml": feed.raw_xml,
            "stopVisits": [asdict(v) for v in feed.stop_visits],
            "queryTimestamp": feed.query_timestamp,
            "error": feed.error,
        },
        "data_sources": asdict(ticket.data_sources),
        "legal_citation_he": ticket.legal_citation_he,
        "legal_citation_en": ticket.legal_citation_en,
        "ticket_hash": ticket.ticket_hash,
    }


def _to_attribute(column: str, value: Any) -> dict[str, Any]:
    if value is None:
        return {"NULL": True}
    if column in JSON_COLUMNS:
        return {"S": json.dumps(value, ensure_ascii=False)}
    if isinstance(value, bool):
        return {"BOOL": value}
    if isinstance(value, (int, float)):
        return {"N": str(value)}
    return {"S": str(value)}


def _from_attribute(column: str, attr: Mapping[str, Any]) -> Any:
    if "NULL" in attr:
        return None
    if "BOOL" in attr:
        return bool(attr["BOOL"])
    if "N" in attr:
        raw = str(attr["N"])
        return float(raw) if any(c in raw for c in ".eE") else int(raw)
    value = attr.get("S")
    if column in JSON_COLUMNS and value is not None:
        return json.loads(value)
    return value


@dataclass(slots=True)
class DynamoDbEvidenceSink(IEvidenceSink):
    """Stores sealed fault tickets in DynamoDB, one item per ticket.

    Env vars:
      - EVIDENCE_TABLE (default: fault-tickets)
      - ENDPOINT_URL (preferred for LocalStack)
      - AWS_REGION

    Items are write-once: a second put for the same ticket id is rejected.
    """

    table_name: str | None = None
    client_factory: Callable[[], DynamoDBClient] = dynamodb_client

    def _table(self) -> str:
        return self.table_name or os.getenv("EVIDENCE_TABLE") or "fault-tickets"

    def save(self, ticket: FaultTicket) -> str:
        item = {
            column: _to_attribute(column, value)
            for column, value in ticket_to_row(ticket).items()
        }
        ddb = self.client_factory()
        try:
            ddb.put_item(
                TableName=self._table(),
                Item=item,
                ConditionExpression="attribute_not_exists(ticket_id)",
            )
        except ClientError as exc:
            code = exc.response.get("Error", {}).get("Code")
            if code == "ConditionalCheckFailedException":
                raise EvidenceSinkError(
                    f"Fault ticket {ticket.ticket_id} already stored; tickets are immutable"
                ) from exc
            raise EvidenceSinkError(f"Failed to store fault ticket: {code}") from exc
        except BotoCoreError as exc:
            raise EvidenceSinkError(f"Failed to store fault ticket: {exc}") from exc

        logger.info("Stored fault ticket %s in %s", ticket.ticket_id, self._table())
        return ticket.ticket_id

    def get(self, *, ticket_id: str) -> Mapping[str, Any] | None:
        ddb = self.client_factory()
        try:
            resp = ddb.get_item(
                TableName=self._table(),
                Key={"ticket_id": {"S": ticket_id}},
                ConsistentRead=True,
            )
        except (ClientError, BotoCoreError) as exc:
            raise EvidenceSinkError(f"Failed to read fault ticket: {exc}") from exc

        item = resp.get("Item")
        if not item:
            return None
        return {column: _from_attribute(column, attr) for column, attr in item.items()}
