from __future__ import annotations

import asyncio
import logging
import time

import httpx
import pytest

from src.adapters.http.transport import DirectTransport, redact_secrets
from src.adapters.settings import SiriSettings
from src.adapters.siri.http_stop_monitoring_client import HttpStopMonitoringClient
from src.domain.exceptions import ConfigurationError

SECRET = "s3cr3t-key-value"

DELIVERY = (
    '<Siri xmlns="http://www.siri.org.uk/siri"><ServiceDelivery>'
    "<StopMonitoringDelivery>"
    "<MonitoredStopVisit><MonitoredVehicleJourney><LineRef>480</LineRef>"
    "<MonitoredCall><StopPointRef>21472</StopPointRef>"
    "<AimedArrivalTime>2024-01-15T08:00:00+02:00</AimedArrivalTime>"
    "<ExpectedArrivalTime>2024-01-15T08:04:00+02:00</ExpectedArrivalTime>"
    "</MonitoredCall></MonitoredVehicleJourney></MonitoredStopVisit>"
    "</StopMonitoringDelivery></ServiceDelivery></Siri>"
)


def _client(handler, timeout_s: float = 20.0) -> HttpStopMonitoringClient:
    settings = SiriSettings(
        endpoint="https://siri.example.test/SmQuery/2.8",
        key=SECRET,
        timeout_s=timeout_s,
    )
    return HttpStopMonitoringClient(
        settings=settings,
        transport=DirectTransport(transport=httpx.MockTransport(handler)),
    )


@pytest.mark.unit
def test_successful_query_parses_visits_and_keeps_raw_xml() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, text=DELIVERY)

    resp = asyncio.run(_client(handler).query_stop_monitoring("21472", "480"))

    assert resp.success is True
    assert resp.error is None
    assert resp.raw_xml == DELIVERY
    assert [v.line_ref for v in resp.stop_visits] == ["480"]
    assert resp.data_source == "MOT_SIRI_OFFICIAL"
    assert resp.query_timestamp.endswith("Z")

    request = seen[0]
    assert request.url.path == "/SmQuery/2.8/xml"
    assert request.url.params["MonitoringRef"] == "21472"
    assert request.url.params["LineRef"] == "480"
    assert request.url.params["Key"] == SECRET


@pytest.mark.unit
def test_line_ref_is_optional() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, text=DELIVERY)

    asyncio.run(_client(handler).query_stop_monitoring("21472"))
    assert "LineRef" not in seen[0].url.params


@pytest.mark.unit
def test_timeout_becomes_failed_response() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("timed out", request=request)

    resp = asyncio.run(_client(handler, timeout_s=20.0).query_stop_monitoring("21472"))

    assert resp.success is False
    assert resp.error == "MOT SIRI API timeout after 20s"
    assert resp.stop_visits == ()


@pytest.mark.unit
def test_non_2xx_keeps_body_and_status() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(403, text="<Error>IP not allowlisted</Error>")

    resp = asyncio.run(_client(handler).query_stop_monitoring("21472"))

    assert resp.success is False
    assert resp.error == "MOT SIRI API error: HTTP 403"
    assert "IP not allowlisted" in resp.raw_xml


@pytest.mark.unit
def test_key_never_leaks_into_errors_or_logs(caplog: pytest.LogCaptureFixture) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError(f"cannot reach {request.url}", request=request)

    with caplog.at_level(logging.DEBUG):
        resp = asyncio.run(_client(handler).query_stop_monitoring("21472"))

    assert resp.success is False
    assert SECRET not in (resp.error or "")
    assert SECRET not in resp.raw_xml
    assert SECRET not in caplog.text


@pytest.mark.unit
def test_echoed_key_in_error_body_is_redacted() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(500, text=f"bad request {request.url}")

    resp = asyncio.run(_client(handler).query_stop_monitoring("21472"))
    assert SECRET not in resp.raw_xml
    assert "Key=***" in resp.raw_xml


@pytest.mark.unit
def test_settings_repr_hides_key() -> None:
    assert SECRET not in repr(SiriSettings(key=SECRET, proxy_url="http://u:p@proxy"))


@pytest.mark.unit
@pytest.mark.parametrize(
    "settings",
    [SiriSettings(key=""), SiriSettings(endpoint="", key=SECRET)],
)
def test_missing_configuration_raises(settings: SiriSettings) -> None:
    with pytest.raises(ConfigurationError):
        HttpStopMonitoringClient(settings=settings)


@pytest.mark.unit
def test_timeout_from_env_is_capped(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("MOT_SIRI_KEY", SECRET)
    monkeypatch.setenv("MOT_SIRI_TIMEOUT_S", "60")
    monkeypatch.delenv("SIRI_PROXY_URL", raising=False)
    monkeypatch.setenv("FIXIE_URL", "http://proxy.example.test:80")

    settings = SiriSettings.from_env()
    assert settings.timeout_s == 20.0
    assert settings.proxy_url == "http://proxy.example.test:80"
    assert settings.configured is True


@pytest.mark.unit
def test_redact_secrets() -> None:
    text = "GET https://h/xml?Key=abc123&MonitoringRef=1 failed for abc123"
    assert redact_secrets(text, "abc123") == (
        "GET https://h/xml?Key=***&MonitoringRef=1 failed for ***"
    )


async def _drip(body: bytes, delay_s: float):
    for i in range(len(body)):
        await asyncio.sleep(delay_s)
        yield body[i : i + 1]


@pytest.mark.unit
def test_slow_body_is_cut_at_overall_deadline() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        # Each chunk arrives well inside any per-read timeout.
        return httpx.Response(200, content=_drip(DELIVERY.encode("utf-8")[:40], 0.05))

    started = time.perf_counter()
    resp = asyncio.run(_client(handler, timeout_s=0.3).query_stop_monitoring("21472"))
    elapsed = time.perf_counter() - started

    assert elapsed < 1.5
    assert resp.success is False
    assert resp.error == "MOT SIRI API timeout after 0.3s"


@pytest.mark.unit
def test_transport_defaults_to_direct_without_proxy() -> None:
    client = HttpStopMonitoringClient(settings=SiriSettings(key=SECRET))
    assert isinstance(client._transport, DirectTransport)
    assert client.transport is None
