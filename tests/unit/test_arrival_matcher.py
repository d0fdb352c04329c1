from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from src.domain.algorithms.arrival_matcher import (
    calculate_delay_minutes,
    find_relevant_arrival,
    line_matches,
)
from src.domain.models import StopVisit

IL = timezone(timedelta(hours=2))


def _visit(
    aimed: str, expected: str = "", line: str = "480", delay: int | None = None
) -> StopVisit:
    return StopVisit(
        line_ref=line,
        aimed_arrival_time=aimed,
        expected_arrival_time=expected,
        delay_minutes=delay,
    )


@pytest.mark.unit
def test_closest_visit_within_tolerance() -> None:
    early = _visit("2024-01-15T08:00:00+02:00")
    late = _visit("2024-01-15T08:30:00+02:00")
    target = datetime(2024, 1, 15, 8, 5, tzinfo=IL)

    match = find_relevant_arrival([early, late], target, tolerance_minutes=30)
    assert match.visit is early
    assert match.was_scheduled is True
    assert match.had_expected_arrival is False

    assert find_relevant_arrival([early, late], target, tolerance_minutes=3).visit is None


@pytest.mark.unit
def test_equal_distance_keeps_first_seen() -> None:
    before = _visit("2024-01-15T08:00:00+02:00", line="A")
    after = _visit("2024-01-15T08:10:00+02:00", line="B")
    target = datetime(2024, 1, 15, 8, 5, tzinfo=IL)

    assert find_relevant_arrival([before, after], target).visit is before
    assert find_relevant_arrival([after, before], target).visit is after


@pytest.mark.unit
def test_line_filter_accepts_suffix_matches() -> None:
    other = _visit("2024-01-15T08:05:00+02:00", line="18")
    wanted = _visit("2024-01-15T08:15:00+02:00", line="IL:480")
    target = datetime(2024, 1, 15, 8, 5, tzinfo=IL)

    match = find_relevant_arrival([other, wanted], target, line_ref="480")
    assert match.visit is wanted


@pytest.mark.unit
def test_visits_without_aimed_arrival_are_ignored() -> None:
    target = datetime(2024, 1, 15, 8, 5, tzinfo=IL)
    assert find_relevant_arrival([_visit("")], target).visit is None
    assert find_relevant_arrival([], target).visit is None


@pytest.mark.unit
def test_naive_target_is_treated_as_utc() -> None:
    visit = _visit("2024-01-15T06:00:00Z")
    match = find_relevant_arrival([visit], datetime(2024, 1, 15, 6, 10))
    assert match.visit is visit


@pytest.mark.unit
def test_delay_prefers_feed_value_then_computes() -> None:
    target = datetime(2024, 1, 15, 8, 0, tzinfo=IL)
    from_feed = _visit(
        "2024-01-15T08:00:00+02:00", "2024-01-15T08:09:00+02:00", delay=7
    )
    computed = _visit("2024-01-15T08:00:00+02:00", "2024-01-15T08:09:00+02:00")

    assert find_relevant_arrival([from_feed], target).delay_minutes == 7
    match = find_relevant_arrival([computed], target)
    assert match.delay_minutes == 9
    assert match.had_expected_arrival is True


@pytest.mark.unit
def test_calculate_delay_minutes() -> None:
    assert (
        calculate_delay_minutes(
            _visit("2024-01-15T08:00:00+02:00", "2024-01-15T07:58:00+02:00")
        )
        == -2
    )
    assert calculate_delay_minutes(_visit("2024-01-15T08:00:00+02:00")) is None


@pytest.mark.unit
def test_line_matches() -> None:
    assert line_matches("480", "480")
    assert line_matches("10480", "480")
    assert not line_matches("481", "480")
