from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone

import httpx

from src.adapters.http.transport import (
    HttpTransport,
    install_redaction,
    redact_secrets,
    select_transport,
)
from src.adapters.settings import SiriSettings
from src.app.ports.output import IStopMonitoringClient
from src.domain.algorithms.siri_xml import parse_feed_xml
from src.domain.algorithms.timestamps import isoformat_utc
from src.domain.exceptions import ConfigurationError
from src.domain.models import FeedResponse

logger = logging.getLogger(__name__)

_HEADERS = {
    "Accept": "application/xml, text/xml",
    "User-Agent": "TransitEvidence/1.0",
}


@dataclass(slots=True)
class HttpStopMonitoringClient(IStopMonitoringClient):
    """Queries the Ministry of Transportation SIRI SM v2.8 endpoint.

    GET {endpoint}/xml?Key=...&MonitoringRef=<stop>[&LineRef=<line>]

    Notes:
      - Missing endpoint or key raises ConfigurationError at construction.
      - Timeouts, connection errors and non-2xx answers are returned as
        `success=False`, keeping whatever body arrived in `raw_xml`.
      - The key never appears in logs, error messages or responses.
    """

    settings: SiriSettings
    transport: HttpTransport | None = None
    _transport: HttpTransport = field(init=False, repr=False)

    def __post_init__(self) -> None:
        if not self.settings.endpoint:
            raise ConfigurationError("MOT_SIRI_ENDPOINT is not configured")
        if not self.settings.key:
            raise ConfigurationError("MOT_SIRI_KEY is not configured")
        self._transport = self.transport or select_transport(self.settings.proxy_url)
        install_redaction("httpx")

    def _url(self) -> str:
        return self.settings.endpoint.rstrip("/") + "/xml"

    def _redact(self, text: str) -> str:
        return redact_secrets(text, self.settings.key)

    async def query_stop_monitoring(
        self, stop_code: str, line_ref: str | None = None
    ) -> FeedResponse:
        query_timestamp = isoformat_utc(datetime.now(timezone.utc))
        started = time.perf_counter()

        def elapsed_ms() -> int:
            return int((time.perf_counter() - started) * 1000)

        def failure(error: str, raw_xml: str = "") -> FeedResponse:
            return FeedResponse(
                success=False,
                stop_code=stop_code,
                query_timestamp=query_timestamp,
                response_time_ms=elapsed_ms(),
                raw_xml=raw_xml,
                error=error,
            )

        params = {"Key": self.settings.key, "MonitoringRef": stop_code}
        if line_ref:
            params["LineRef"] = line_ref

        # httpx bounds each phase; the deadline bounds the whole exchange.
        try:
            async with asyncio.timeout(self.settings.timeout_s):
                async with self._transport.client(
                    timeout_s=self.settings.timeout_s, headers=_HEADERS
                ) as client:
                    resp = await client.get(self._url(), params=params)
                    body = resp.text
        except (httpx.TimeoutException, TimeoutError):
            logger.warning(
                "SIRI SM query for stop %s timed out after %dms", stop_code, elapsed_ms()
            )
            return failure(f"MOT SIRI API timeout after {self.settings.timeout_s:g}s")
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            message = self._redact(f"{type(exc).__name__}: {exc}")
            logger.warning("SIRI SM query for stop %s failed: %s", stop_code, message)
            return failure(f"MOT SIRI API request failed: {message}")

        if not resp.is_success:
            logger.warning(
                "SIRI SM query for stop %s returned HTTP %d after %dms",
                stop_code,
                resp.status_code,
                elapsed_ms(),
            )
            return failure(
                f"MOT SIRI API error: HTTP {resp.status_code}", self._redact(body)
            )

        visits = parse_feed_xml(body, stop_code)
        logger.info(
            "SIRI SM stop %s line %s: %d visit(s) in %dms",
            stop_code,
            line_ref or "*",
            len(visits),
            elapsed_ms(),
        )
        return FeedResponse(
            success=True,
            stop_code=stop_code,
            query_timestamp=query_timestamp,
            response_time_ms=elapsed_ms(),
            stop_visits=tuple(visits),
            raw_xml=body,
        )
