from __future__ import annotations

import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Mapping

import httpx

logger = logging.getLogger(__name__)

_KEY_PARAM_RE = re.compile(r"(?i)([?&]Key=)[^&\s'\"]+")


def redact_secrets(text: str, *secrets: str) -> str:
    """Mask the `Key` query parameter and any literal secret in `text`."""

    out = _KEY_PARAM_RE.sub(r"\1***", text)
    for secret in secrets:
        if secret:
            out = out.replace(secret, "***")
    return out


class RedactSecretsFilter(logging.Filter):
    """Rewrites log records so request URLs never carry the feed key."""

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        redacted = redact_secrets(message)
        if redacted != message:
            record.msg = redacted
            record.args = None
        return True


def install_redaction(logger_name: str = "httpx") -> None:
    target = logging.getLogger(logger_name)
    if not any(isinstance(f, RedactSecretsFilter) for f in target.filters):
        target.addFilter(RedactSecretsFilter())


class HttpTransport(ABC):
    """How outbound requests leave the process; chosen once at startup."""

    @abstractmethod
    def client(
        self, *, timeout_s: float, headers: Mapping[str, str] | None = None
    ) -> httpx.AsyncClient:
        raise NotImplementedError


@dataclass(frozen=True, slots=True)
class DirectTransport(HttpTransport):
    # Optional low-level transport (e.g. httpx.MockTransport in tests).
    transport: httpx.AsyncBaseTransport | None = None

    def client(
        self, *, timeout_s: float, headers: Mapping[str, str] | None = None
    ) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=timeout_s, headers=dict(headers or {}), transport=self.transport
        )


@dataclass(frozen=True, slots=True)
class ProxiedTransport(HttpTransport):
    """Routes through a fixed egress proxy (the upstream allowlists its IP)."""

    proxy_url: str = field(repr=False)

    def client(
        self, *, timeout_s: float, headers: Mapping[str, str] | None = None
    ) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            proxy=self.proxy_url, timeout=timeout_s, headers=dict(headers or {})
        )


def select_transport(proxy_url: str | None) -> HttpTransport:
    if proxy_url:
        host = httpx.URL(proxy_url).host
        logger.info("Routing feed requests through egress proxy %s", host)
        return ProxiedTransport(proxy_url=proxy_url)

    logger.info("No egress proxy configured; using direct connections")
    return DirectTransport()
