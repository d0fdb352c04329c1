from __future__ import annotations

from datetime import datetime
from typing import Sequence

from src.domain.algorithms.timestamps import ensure_aware, parse_timestamp
from src.domain.models import ArrivalMatch, StopVisit

DEFAULT_TOLERANCE_MINUTES = 30.0


def line_matches(line_ref: str, wanted: str) -> bool:
    return line_ref == wanted or line_ref.endswith(wanted)


def calculate_delay_minutes(visit: StopVisit) -> int | None:
    """Expected minus aimed arrival, in whole minutes. Positive means late."""

    aimed = parse_timestamp(visit.aimed_arrival_time)
    expected = parse_timestamp(visit.expected_arrival_time)
    if aimed is None or expected is None:
        return None
    return round((expected - aimed).total_seconds() / 60.0)


def find_relevant_arrival(
    visits: Sequence[StopVisit],
    target_time: datetime,
    line_ref: str | None = None,
    tolerance_minutes: float = DEFAULT_TOLERANCE_MINUTES,
) -> ArrivalMatch:
    """Pick the scheduled visit closest to `target_time` within the tolerance window.

    Visits without a usable aimed arrival are ignored. Equal distances keep the
    visit seen first. No visit in the window yields an empty ArrivalMatch.
    """

    candidates = (
        [v for v in visits if line_matches(v.line_ref, line_ref)]
        if line_ref
        else list(visits)
    )

    target = ensure_aware(target_time)
    best: StopVisit | None = None
    best_diff = float("inf")

    for v in candidates:
        aimed = parse_timestamp(v.aimed_arrival_time)
        if aimed is None:
            continue
        diff = abs((aimed - target).total_seconds()) / 60.0
        if diff < best_diff and diff <= tolerance_minutes:
            best_diff = diff
            best = v

    if best is None:
        return ArrivalMatch()

    delay = best.delay_minutes
    if delay is None:
        delay = calculate_delay_minutes(best)

    return ArrivalMatch(
        visit=best,
        delay_minutes=delay,
        was_scheduled=bool(best.aimed_arrival_time),
        had_expected_arrival=bool(best.expected_arrival_time),
    )
