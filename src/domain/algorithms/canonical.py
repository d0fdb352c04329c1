from __future__ import annotations

import hashlib
import json
import math
from decimal import Decimal
from enum import Enum
from typing import Any, Callable, Mapping

from src.domain.models import FaultTicketInput

Hasher = Callable[[bytes], bytes]


def sha256_digest(data: bytes) -> bytes:
    return hashlib.sha256(data).digest()


def js_number(value: float | int) -> str:
    """Render a number the way JavaScript's `Number.prototype.toString` does.

    Positional notation for 1e-6 <= |x| < 1e21, `1.5e-7` / `1e+21` style
    exponents outside it. Digits are the shortest round-trip form, which
    Python's `repr` and JS agree on.
    """

    if isinstance(value, bool):
        raise TypeError("bool is not a number")
    if isinstance(value, int):
        return str(value)
    if not math.isfinite(value):
        raise ValueError(f"{value!r} is not valid JSON")
    if value == 0.0:
        return "0"

    sign = "-" if value < 0 else ""
    _, digit_tuple, exponent = Decimal(repr(abs(value))).as_tuple()
    digits = "".join(str(d) for d in digit_tuple).rstrip("0")
    exponent += len(digit_tuple) - len(digits)
    k = len(digits)
    n = k + exponent  # value = 0.<digits> * 10**n

    if k <= n <= 21:
        body = digits + "0" * (n - k)
    elif 0 < n <= 21:
        body = digits[:n] + "." + digits[n:]
    elif -6 < n <= 0:
        body = "0." + "0" * (-n) + digits
    else:
        e = n - 1
        mantissa = digits if k == 1 else digits[0] + "." + digits[1:]
        body = f"{mantissa}e{'+' if e >= 0 else '-'}{abs(e)}"
    return sign + body


def _encode(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, Enum):
        return _encode(value.value)
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return js_number(value)
    if isinstance(value, str):
        return json.dumps(value, ensure_ascii=False)
    if isinstance(value, Mapping):
        items = sorted(
            ((str(k), v) for k, v in value.items() if v is not None),
            key=lambda kv: kv[0],
        )
        return (
            "{"
            + ",".join(
                f"{json.dumps(k, ensure_ascii=False)}:{_encode(v)}" for k, v in items
            )
            + "}"
        )
    if isinstance(value, (list, tuple)):
        return "[" + ",".join(_encode(v) for v in value) + "]"
    raise TypeError(f"Cannot encode {type(value).__name__} in canonical JSON")


def canonical_json(payload: Mapping[str, Any]) -> str:
    """Deterministic JSON: sorted keys, compact separators, literal UTF-8.

    None values are dropped and numbers are written in JavaScript form, so the
    text matches what `JSON.stringify` over the same key-sorted record gives.
    """

    return _encode(payload)


def ticket_hash_fields(
    *, ticket_id: str, created_at: str, evidence: FaultTicketInput
) -> dict[str, Any]:
    """The fixed subset of a ticket covered by its hash, under its wire names."""

    gps = evidence.user_gps
    station = evidence.station
    return {
        "ticketId": ticket_id,
        "createdAt": created_at,
        "incidentId": evidence.incident_id,
        "incidentType": evidence.incident_type,
        "verdict": evidence.verdict,
        "motSiriQueryTimestamp": evidence.feed_response.query_timestamp,
        "strideVehiclesFound": evidence.vehicles_found,
        "userGps": {
            "lat": gps.lat,
            "lng": gps.lng,
            "accuracyMeters": gps.accuracy_meters,
            "capturedAt": gps.captured_at,
        },
        "station": {
            "name": station.name,
            "code": station.code,
            "lat": station.lat,
            "lng": station.lng,
        },
        "busLine": evidence.bus_line,
    }


def compute_ticket_hash(
    fields: Mapping[str, Any], hasher: Hasher = sha256_digest
) -> str:
    return hasher(canonical_json(fields).encode("utf-8")).hex()
