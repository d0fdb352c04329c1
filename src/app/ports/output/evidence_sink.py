from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Mapping

from src.domain.models import FaultTicket


class IEvidenceSink(ABC):
    """Port for the write-once row store that keeps sealed fault tickets."""

    @abstractmethod
    def save(self, ticket: FaultTicket) -> str:
        """Persist a ticket once and return its stored id."""

    @abstractmethod
    def get(self, *, ticket_id: str) -> Mapping[str, Any] | None:
        raise NotImplementedError
