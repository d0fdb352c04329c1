from __future__ import annotations

import logging
import re
import xml.etree.ElementTree as ET
from functools import lru_cache
from xml.sax.saxutils import unescape

from src.domain.algorithms.duration import parse_duration
from src.domain.models.siri import StopVisit

logger = logging.getLogger(__name__)

_PREFIX = r"(?:[\w.-]+:)?"
_CDATA_RE = re.compile(r"^<!\[CDATA\[(.*)\]\]>$", re.DOTALL)
_ENTITIES = {"&quot;": '"', "&apos;": "'"}


@lru_cache(maxsize=64)
def _element_re(tag: str) -> re.Pattern[str]:
    name = re.escape(tag)
    return re.compile(
        rf"<{_PREFIX}{name}(?:\s[^>]*)?(?<!/)>(.*?)</{_PREFIX}{name}\s*>",
        re.IGNORECASE | re.DOTALL,
    )


@lru_cache(maxsize=64)
def _open_re(tag: str) -> re.Pattern[str]:
    return re.compile(
        rf"<{_PREFIX}{re.escape(tag)}(?:\s[^>]*)?(?<!/)>", re.IGNORECASE
    )


@lru_cache(maxsize=64)
def _close_re(tag: str) -> re.Pattern[str]:
    return re.compile(rf"</{_PREFIX}{re.escape(tag)}\s*>", re.IGNORECASE)


def _local_name(qualified: str) -> str:
    # ElementTree renders namespaced tags as "{uri}Local".
    return qualified.rsplit("}", 1)[-1]


def extract_tag(xml: str, tag: str) -> str | None:
    """Return the trimmed text of the first non-empty `<tag>` / `<ns:tag>` element.

    Matching is case-insensitive and exact on the local name. Elements whose
    content is markup rather than text are skipped. Absence is None, not an error.
    """

    for match in _element_re(tag).finditer(xml):
        content = match.group(1).strip()
        cdata = _CDATA_RE.match(content)
        if cdata is not None:
            content = cdata.group(1).strip()
        elif "<" in content:
            continue
        else:
            content = unescape(content, _ENTITIES)
        if content:
            return content
    return None


def extract_blocks(xml: str, tag: str) -> list[str]:
    """Return every top-level `<tag>...</tag>` fragment verbatim.

    A linear scan from each opening tag to the first matching closing tag.
    When a same-named element turns up nested inside a block the scan would
    cut it short, so the document is re-read with ElementTree instead.
    """

    open_re = _open_re(tag)
    close_re = _close_re(tag)

    blocks: list[str] = []
    nested = False
    pos = 0
    while True:
        opened = open_re.search(xml, pos)
        if opened is None:
            break
        closed = close_re.search(xml, opened.end())
        if closed is None:
            break
        if open_re.search(xml, opened.end(), closed.start()) is not None:
            nested = True
        blocks.append(xml[opened.start() : closed.end()])
        pos = closed.end()

    if nested:
        logger.warning(
            "Nested <%s> elements in feed; re-extracting with ElementTree", tag
        )
        tree_blocks = _blocks_via_element_tree(xml, tag)
        if tree_blocks is not None:
            return tree_blocks

    return blocks


def _blocks_via_element_tree(xml: str, tag: str) -> list[str] | None:
    try:
        root = ET.fromstring(xml.encode("utf-8"))
    except (ET.ParseError, ValueError) as exc:
        logger.warning("Feed is not well-formed XML (%s); keeping linear scan", exc)
        return None

    wanted = tag.lower()
    out: list[str] = []

    def walk(element: ET.Element) -> None:
        for child in element:
            if _local_name(child.tag).lower() == wanted:
                out.append(ET.tostring(child, encoding="unicode"))
            else:
                walk(child)

    if _local_name(root.tag).lower() == wanted:
        return [ET.tostring(root, encoding="unicode")]
    walk(root)
    return out


def _to_float(value: str | None) -> float | None:
    if value is None:
        return None
    try:
        return float(value)
    except ValueError:
        return None


def _to_int(value: str | None) -> int | None:
    if value is None:
        return None
    try:
        return int(value)
    except ValueError:
        return None


def parse_stop_visit(fragment: str) -> StopVisit:
    """Build a StopVisit from one `<MonitoredStopVisit>` fragment.

    Fields are read independently; a missing or malformed field never fails
    the visit, it is just left empty.
    """

    delay = extract_tag(fragment, "Delay")

    journey_ref = (
        extract_tag(fragment, "FramedVehicleJourneyRef")
        or extract_tag(fragment, "DatedVehicleJourneyRef")
        or extract_tag(fragment, "VehicleJourneyRef")
        or ""
    )

    return StopVisit(
        line_ref=extract_tag(fragment, "LineRef") or "",
        operator_ref=extract_tag(fragment, "OperatorRef") or "",
        vehicle_ref=extract_tag(fragment, "VehicleRef") or "",
        journey_ref=journey_ref,
        destination_display=extract_tag(fragment, "DestinationDisplay") or "",
        stop_point_ref=extract_tag(fragment, "StopPointRef") or "",
        aimed_arrival_time=extract_tag(fragment, "AimedArrivalTime") or "",
        expected_arrival_time=extract_tag(fragment, "ExpectedArrivalTime") or "",
        aimed_departure_time=extract_tag(fragment, "AimedDepartureTime") or "",
        expected_departure_time=extract_tag(fragment, "ExpectedDepartureTime") or "",
        delay=delay,
        delay_minutes=parse_duration(delay),
        vehicle_lat=_to_float(extract_tag(fragment, "Latitude")),
        vehicle_lng=_to_float(extract_tag(fragment, "Longitude")),
        number_of_stops_away=_to_int(extract_tag(fragment, "NumberOfStopsAway")),
        progress_rate=extract_tag(fragment, "ProgressRate"),
        recorded_at_time=extract_tag(fragment, "RecordedAtTime") or "",
    )


def stop_code_matches(stop_point_ref: str, stop_code: str) -> bool:
    # Some agencies prefix stop codes with a region identifier.
    if not stop_point_ref:
        return True
    return stop_point_ref == stop_code or stop_point_ref.endswith(stop_code)


def parse_feed_xml(xml: str, stop_code: str) -> list[StopVisit]:
    """Parse a Stop-Monitoring delivery and keep the visits for `stop_code`."""

    visits = [parse_stop_visit(b) for b in extract_blocks(xml, "MonitoredStopVisit")]
    return [v for v in visits if stop_code_matches(v.stop_point_ref, stop_code)]
