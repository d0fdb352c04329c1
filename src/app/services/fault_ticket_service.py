from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from datetime import datetime, timezone, tzinfo
from typing import Callable
from uuid import uuid4
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from src.domain.algorithms.arrival_matcher import calculate_delay_minutes
from src.domain.algorithms.canonical import (
    Hasher,
    compute_ticket_hash,
    sha256_digest,
    ticket_hash_fields,
)
from src.domain.algorithms.didnt_stop import (
    DEFAULT_VELOCITY_THRESHOLD_KMH,
    analyze_didnt_stop,
)
from src.domain.algorithms.timestamps import isoformat_utc, parse_timestamp
from src.domain.exceptions import TicketIntegrityError
from src.domain.models import (
    DidntStopAnalysis,
    FaultTicket,
    FaultTicketInput,
    IncidentType,
)

logger = logging.getLogger(__name__)

DEFAULT_CITATION_TIMEZONE = "Asia/Jerusalem"


def _new_ticket_id() -> str:
    return str(uuid4())


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _zone(name: str) -> tzinfo:
    try:
        return ZoneInfo(name)
    except ZoneInfoNotFoundError:
        logger.warning("Unknown citation timezone %r; using UTC", name)
        return timezone.utc


def build_legal_citations(
    query_timestamp: str, *, tz_name: str = DEFAULT_CITATION_TIMEZONE
) -> tuple[str, str]:
    """Hebrew and English source citations for the official feed query.

    The query date is the calendar date in `tz_name`.
    """

    queried = parse_timestamp(query_timestamp)
    if queried is None:
        he_date = en_date = query_timestamp or "unknown"
    else:
        local = queried.astimezone(_zone(tz_name))
        he_date = f"{local.day}.{local.month}.{local.year}"
        en_date = f"{local.day:02d}/{local.month:02d}/{local.year}"

    citation_he = " ".join(
        [
            "מקור הנתונים: מרכז נתוני זמן אמת של משרד התחבורה",
            f"(SIRI SM גרסה 2.8, שאילתה מתאריך {he_date})",
            "נתונים רשמיים של הממשלה - מהימנות מלאה לשימוש בהליכים משפטיים.",
        ]
    )
    citation_en = " ".join(
        [
            "Data source: Israel Ministry of Transportation Real-Time Data Center",
            f"(SIRI SM v2.8, queried on {en_date})",
            "Official government data - fully admissible as legal evidence.",
        ]
    )
    return citation_he, citation_en


@dataclass(slots=True)
class FaultTicketAssembler:
    """Seals collected evidence into an immutable, hashed FaultTicket.

    - Pure composition and hashing; every network call happens before this.
    - Id, clock and digest are injectable so a ticket can be rebuilt
      byte-for-byte during an audit.
    - The hash covers a fixed subset of fields (see `ticket_hash_fields`).
    """

    velocity_threshold_kmh: float = DEFAULT_VELOCITY_THRESHOLD_KMH
    citation_timezone: str = DEFAULT_CITATION_TIMEZONE
    id_factory: Callable[[], str] = _new_ticket_id
    clock: Callable[[], datetime] = _utcnow
    hasher: Hasher = sha256_digest

    def create_fault_ticket(self, evidence: FaultTicketInput) -> FaultTicket:
        ticket_id = self.id_factory()
        created_at = isoformat_utc(self.clock())

        didnt_stop = DidntStopAnalysis()
        if evidence.incident_type is IncidentType.DIDNT_STOP:
            didnt_stop = analyze_didnt_stop(
                evidence.nearest_vehicle,
                evidence.vehicles_in_radius,
                evidence.matched_visit,
                evidence.feed_response.success,
                velocity_threshold_kmh=self.velocity_threshold_kmh,
            )

        visit = evidence.matched_visit
        scheduled_arrival = (visit.aimed_arrival_time or None) if visit else None
        expected_arrival = (visit.expected_arrival_time or None) if visit else None
        delay_minutes = calculate_delay_minutes(visit) if visit else None

        citation_he, citation_en = build_legal_citations(
            evidence.feed_response.query_timestamp, tz_name=self.citation_timezone
        )

        ticket_hash = compute_ticket_hash(
            ticket_hash_fields(
                ticket_id=ticket_id, created_at=created_at, evidence=evidence
            ),
            self.hasher,
        )

        logger.info(
            "Sealed fault ticket %s (%s, verdict=%s, confidence=%s)",
            ticket_id,
            evidence.incident_type.value,
            evidence.verdict.value,
            evidence.confidence.value,
        )

        return FaultTicket(
            ticket_id=ticket_id,
            created_at=created_at,
            evidence=evidence,
            didnt_stop=didnt_stop,
            scheduled_arrival=scheduled_arrival,
            expected_arrival=expected_arrival,
            delay_minutes=delay_minutes,
            legal_citation_he=citation_he,
            legal_citation_en=citation_en,
            ticket_hash=ticket_hash,
            didnt_stop_velocity_threshold_kmh=self.velocity_threshold_kmh,
        )

    def supersede_fault_ticket(
        self, previous: FaultTicket, evidence: FaultTicketInput
    ) -> FaultTicket:
        """Issue a corrected ticket (new id) that points back at `previous`."""

        return self.create_fault_ticket(
            replace(evidence, supersedes_ticket_id=previous.ticket_id)
        )

    def verify_ticket_hash(self, ticket: FaultTicket) -> None:
        expected = compute_ticket_hash(
            ticket_hash_fields(
                ticket_id=ticket.ticket_id,
                created_at=ticket.created_at,
                evidence=ticket.evidence,
            ),
            self.hasher,
        )
        if expected != ticket.ticket_hash:
            raise TicketIntegrityError(
                f"Ticket {ticket.ticket_id} hash mismatch: stored "
                f"{ticket.ticket_hash[:16]}..., recomputed {expected[:16]}..."
            )
