from __future__ import annotations

from src.domain.algorithms.didnt_stop import FEED_UNAVAILABLE_NOTE
from src.domain.models import (
    ArrivalMatch,
    Confidence,
    DidntStopAnalysis,
    IncidentType,
    Verdict,
    VerdictOutcome,
)


def _didnt_stop_verdict(
    analysis: DidntStopAnalysis, match: ArrivalMatch
) -> VerdictOutcome:
    if analysis.detected:
        return VerdictOutcome(Verdict.CONFIRMED, analysis.confidence, analysis.reason)
    if analysis.vm_in_radius and match.visit is not None:
        return VerdictOutcome(
            Verdict.CONTRADICTED,
            Confidence.HIGH,
            "The official SIRI SM feed records an arrival of this line at the stop. "
            + analysis.reason,
        )
    if analysis.vm_in_radius:
        return VerdictOutcome(Verdict.UNCONFIRMED, Confidence.LOW, analysis.reason)
    return VerdictOutcome(Verdict.INSUFFICIENT_DATA, Confidence.LOW, analysis.reason)


def _didnt_arrive_verdict(
    feed_success: bool,
    match: ArrivalMatch,
    vehicles_found: int,
    vehicles_in_radius: int,
) -> VerdictOutcome:
    if vehicles_found == 0:
        confidence = (
            Confidence.HIGH
            if feed_success and match.visit is None
            else Confidence.MEDIUM
        )
        return VerdictOutcome(
            Verdict.CONFIRMED,
            confidence,
            "No tracked vehicle of this line was found near the station at the"
            " reported time.",
        )
    if vehicles_in_radius > 0:
        return VerdictOutcome(
            Verdict.CONTRADICTED,
            Confidence.HIGH,
            f"Vehicle tracking shows {vehicles_in_radius} vehicle(s) of this line"
            " within the station radius.",
        )
    return VerdictOutcome(
        Verdict.UNCONFIRMED,
        Confidence.MEDIUM,
        f"{vehicles_found} vehicle(s) of this line were tracked nearby, but none"
        " within the station radius.",
    )


def _delay_verdict(feed_success: bool, match: ArrivalMatch) -> VerdictOutcome:
    visit = match.visit
    if feed_success and visit is not None:
        if match.delay_minutes is not None and match.delay_minutes > 0:
            return VerdictOutcome(
                Verdict.CONFIRMED,
                Confidence.HIGH,
                f"The official SIRI SM feed confirms a delay of {match.delay_minutes}"
                f" minutes (scheduled {visit.aimed_arrival_time or 'unknown'},"
                f" expected {visit.expected_arrival_time or 'unknown'}).",
            )
        return VerdictOutcome(
            Verdict.UNCONFIRMED,
            Confidence.MEDIUM,
            "A scheduled arrival was found in the official SIRI SM feed, but no"
            " significant delay was recorded.",
        )
    return VerdictOutcome(
        Verdict.INSUFFICIENT_DATA,
        Confidence.LOW,
        "No SIRI SM arrival data was found for this stop and time.",
    )


def determine_verdict(
    incident_type: IncidentType,
    *,
    feed_success: bool,
    match: ArrivalMatch,
    vehicles_found: int,
    vehicles_in_radius: int,
    didnt_stop: DidntStopAnalysis | None = None,
) -> VerdictOutcome:
    """Classify the reported incident against the collected evidence.

    Without the official feed the outcome can be at most medium confidence,
    and the reason says the government data was missing.
    """

    if incident_type is IncidentType.DIDNT_STOP:
        if didnt_stop is None:
            raise ValueError("didnt_stop analysis is required for didnt_stop incidents")
        outcome = _didnt_stop_verdict(didnt_stop, match)
    elif incident_type is IncidentType.DIDNT_ARRIVE:
        outcome = _didnt_arrive_verdict(
            feed_success, match, vehicles_found, vehicles_in_radius
        )
    else:
        outcome = _delay_verdict(feed_success, match)

    if feed_success:
        return outcome

    confidence = outcome.confidence
    if confidence is Confidence.HIGH:
        confidence = Confidence.MEDIUM
    reason = outcome.reason
    if FEED_UNAVAILABLE_NOTE.strip() not in reason:
        reason += FEED_UNAVAILABLE_NOTE
    return VerdictOutcome(outcome.verdict, confidence, reason)
