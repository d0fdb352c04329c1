from __future__ import annotations

from abc import ABC, abstractmethod

from src.domain.models import FeedResponse


class IStopMonitoringClient(ABC):
    """Port for querying a SIRI Stop-Monitoring (SM) endpoint."""

    @abstractmethod
    async def query_stop_monitoring(
        self, stop_code: str, line_ref: str | None = None
    ) -> FeedResponse:
        """Query one stop. Transport failures come back as `success=False`, never raised."""
