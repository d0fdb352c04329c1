from __future__ import annotations

import pytest

from src.domain.algorithms.didnt_stop import FEED_UNAVAILABLE_NOTE
from src.domain.algorithms.verdict import determine_verdict
from src.domain.models import (
    ArrivalMatch,
    Confidence,
    DidntStopAnalysis,
    IncidentType,
    StopVisit,
    Verdict,
)

VISIT = StopVisit(
    line_ref="480",
    aimed_arrival_time="2024-01-15T08:00:00+02:00",
    expected_arrival_time="2024-01-15T08:12:00+02:00",
)


@pytest.mark.unit
def test_delay_confirmed_by_feed() -> None:
    out = determine_verdict(
        IncidentType.DELAY,
        feed_success=True,
        match=ArrivalMatch(visit=VISIT, delay_minutes=12, was_scheduled=True),
        vehicles_found=2,
        vehicles_in_radius=0,
    )
    assert out.verdict is Verdict.CONFIRMED
    assert out.confidence is Confidence.HIGH
    assert "12 minutes" in out.reason


@pytest.mark.unit
def test_delay_on_time_is_unconfirmed() -> None:
    out = determine_verdict(
        IncidentType.DELAY,
        feed_success=True,
        match=ArrivalMatch(visit=VISIT, delay_minutes=0),
        vehicles_found=1,
        vehicles_in_radius=1,
    )
    assert out.verdict is Verdict.UNCONFIRMED
    assert out.confidence is Confidence.MEDIUM


@pytest.mark.unit
def test_delay_without_feed_is_insufficient() -> None:
    out = determine_verdict(
        IncidentType.DELAY,
        feed_success=False,
        match=ArrivalMatch(),
        vehicles_found=3,
        vehicles_in_radius=0,
    )
    assert out.verdict is Verdict.INSUFFICIENT_DATA
    assert out.confidence is Confidence.LOW
    assert out.reason.endswith(FEED_UNAVAILABLE_NOTE)


@pytest.mark.unit
def test_didnt_arrive_confirmed_when_nothing_tracked() -> None:
    out = determine_verdict(
        IncidentType.DIDNT_ARRIVE,
        feed_success=True,
        match=ArrivalMatch(),
        vehicles_found=0,
        vehicles_in_radius=0,
    )
    assert out.verdict is Verdict.CONFIRMED
    assert out.confidence is Confidence.HIGH


@pytest.mark.unit
def test_didnt_arrive_contradicted_by_bus_at_station() -> None:
    out = determine_verdict(
        IncidentType.DIDNT_ARRIVE,
        feed_success=True,
        match=ArrivalMatch(visit=VISIT),
        vehicles_found=2,
        vehicles_in_radius=1,
    )
    assert out.verdict is Verdict.CONTRADICTED
    assert out.confidence is Confidence.HIGH


@pytest.mark.unit
def test_didnt_arrive_feed_failure_caps_confidence() -> None:
    out = determine_verdict(
        IncidentType.DIDNT_ARRIVE,
        feed_success=False,
        match=ArrivalMatch(),
        vehicles_found=2,
        vehicles_in_radius=1,
    )
    assert out.verdict is Verdict.CONTRADICTED
    assert out.confidence is Confidence.MEDIUM
    assert "unavailable" in out.reason


@pytest.mark.unit
def test_didnt_stop_follows_detector() -> None:
    analysis = DidntStopAnalysis(
        detected=True,
        vm_in_radius=True,
        sm_no_arrival=True,
        velocity_above_threshold=True,
        velocity_kmh=40.0,
        confidence=Confidence.HIGH,
        reason="passed at speed",
    )
    out = determine_verdict(
        IncidentType.DIDNT_STOP,
        feed_success=True,
        match=ArrivalMatch(),
        vehicles_found=1,
        vehicles_in_radius=1,
        didnt_stop=analysis,
    )
    assert out.verdict is Verdict.CONFIRMED
    assert out.confidence is Confidence.HIGH
    assert out.reason == "passed at speed"


@pytest.mark.unit
def test_didnt_stop_without_vehicle_is_insufficient() -> None:
    out = determine_verdict(
        IncidentType.DIDNT_STOP,
        feed_success=True,
        match=ArrivalMatch(),
        vehicles_found=0,
        vehicles_in_radius=0,
        didnt_stop=DidntStopAnalysis(),
    )
    assert out.verdict is Verdict.INSUFFICIENT_DATA


@pytest.mark.unit
def test_didnt_stop_requires_analysis() -> None:
    with pytest.raises(ValueError):
        determine_verdict(
            IncidentType.DIDNT_STOP,
            feed_success=True,
            match=ArrivalMatch(),
            vehicles_found=0,
            vehicles_in_radius=0,
        )
