from __future__ import annotations

import os
from dataclasses import dataclass, field

from src.domain.exceptions import ConfigurationError

MAX_FEED_TIMEOUT_S = 20.0
DEFAULT_SIRI_ENDPOINT = "https://moran.mot.gov.il/Channels/HTTPChannel/SmQuery/2.8"
DEFAULT_STRIDE_BASE_URL = "https://open-bus-stride-api.hasadna.org.il"


def _env_str(name: str, default: str | None = None) -> str | None:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip() or default


def _env_float(name: str, default: float) -> float:
    raw = _env_str(name)
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise ConfigurationError(f"{name} must be a number, got {raw!r}") from exc


def _env_int(name: str, default: int) -> int:
    raw = _env_str(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}") from exc


@dataclass(frozen=True, slots=True)
class SiriSettings:
    """Official SIRI Stop-Monitoring endpoint.

    Env vars:
      - MOT_SIRI_ENDPOINT: base URL (default: production SmQuery 2.8)
      - MOT_SIRI_KEY: shared secret, sent as the `Key` query parameter
      - SIRI_PROXY_URL (or FIXIE_URL): egress proxy with an allowlisted IP
      - MOT_SIRI_TIMEOUT_S: request timeout, capped at 20s (default 20)
    """

    endpoint: str = DEFAULT_SIRI_ENDPOINT
    key: str = field(default="", repr=False)
    proxy_url: str | None = field(default=None, repr=False)
    timeout_s: float = MAX_FEED_TIMEOUT_S

    @staticmethod
    def from_env() -> "SiriSettings":
        return SiriSettings(
            endpoint=_env_str("MOT_SIRI_ENDPOINT", DEFAULT_SIRI_ENDPOINT) or "",
            key=_env_str("MOT_SIRI_KEY", "") or "",
            proxy_url=_env_str("SIRI_PROXY_URL") or _env_str("FIXIE_URL"),
            timeout_s=min(
                _env_float("MOT_SIRI_TIMEOUT_S", MAX_FEED_TIMEOUT_S), MAX_FEED_TIMEOUT_S
            ),
        )

    @property
    def configured(self) -> bool:
        return bool(self.endpoint and self.key)


@dataclass(frozen=True, slots=True)
class TrackingSettings:
    """Vehicle-position feed (OpenBus Stride, a mirror of the SIRI VM feed).

    Env vars:
      - STRIDE_API_BASE_URL
      - STRIDE_TIMEOUT_S (default 15, capped at 20)
      - STRIDE_SEARCH_RADIUS_KM (default 0.5)
      - STRIDE_RESULT_LIMIT (default 100)
      - STRIDE_TIME_WINDOW_MINUTES: +/- window around the report time (default 10)
    """

    base_url: str = DEFAULT_STRIDE_BASE_URL
    timeout_s: float = 15.0
    search_radius_km: float = 0.5
    result_limit: int = 100
    window_minutes: float = 10.0

    @staticmethod
    def from_env() -> "TrackingSettings":
        return TrackingSettings(
            base_url=_env_str("STRIDE_API_BASE_URL", DEFAULT_STRIDE_BASE_URL) or "",
            timeout_s=min(_env_float("STRIDE_TIMEOUT_S", 15.0), MAX_FEED_TIMEOUT_S),
            search_radius_km=_env_float("STRIDE_SEARCH_RADIUS_KM", 0.5),
            result_limit=_env_int("STRIDE_RESULT_LIMIT", 100),
            window_minutes=_env_float("STRIDE_TIME_WINDOW_MINUTES", 10.0),
        )


@dataclass(frozen=True, slots=True)
class DetectionSettings:
    """Verdict-affecting constants. Change only with stakeholder sign-off.

    Env vars:
      - DIDNT_STOP_VELOCITY_THRESHOLD_KMH (default 15)
      - ARRIVAL_TOLERANCE_MINUTES (default 30)
      - BUS_AT_STATION_RADIUS_M (default 150)
      - CITATION_TIMEZONE (default Asia/Jerusalem)
    """

    velocity_threshold_kmh: float = 15.0
    tolerance_minutes: float = 30.0
    station_radius_m: float = 150.0
    citation_timezone: str = "Asia/Jerusalem"

    @staticmethod
    def from_env() -> "DetectionSettings":
        return DetectionSettings(
            velocity_threshold_kmh=_env_float("DIDNT_STOP_VELOCITY_THRESHOLD_KMH", 15.0),
            tolerance_minutes=_env_float("ARRIVAL_TOLERANCE_MINUTES", 30.0),
            station_radius_m=_env_float("BUS_AT_STATION_RADIUS_M", 150.0),
            citation_timezone=_env_str("CITATION_TIMEZONE", "Asia/Jerusalem")
            or "Asia/Jerusalem",
        )
