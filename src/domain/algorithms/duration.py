from __future__ import annotations

import re

_DURATION_RE = re.compile(r"^P(?:T(?:(\d+)H)?(?:(\d+)M)?(?:(\d+)S)?)?$")


def parse_duration(value: str | None) -> int | None:
    """Parse an ISO-8601 duration ("PT5M", "-PT3M", "PT1H30M") into signed minutes.

    Seconds are truncated, not rounded: "PT4M59S" is 4. Returns None for
    anything that does not match the pattern; never raises.
    """

    if not value:
        return None

    text = value.strip()
    negative = text.startswith("-")
    if negative:
        text = text[1:]

    match = _DURATION_RE.match(text)
    if match is None:
        return None

    hours = int(match.group(1) or 0)
    minutes = int(match.group(2) or 0)
    total = hours * 60 + minutes
    return -total if negative else total
