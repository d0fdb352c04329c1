from .evidence import (
    ConfigurationError,
    EvidenceError,
    EvidenceSinkError,
    TicketIntegrityError,
)

__all__ = [
    "ConfigurationError",
    "EvidenceError",
    "EvidenceSinkError",
    "TicketIntegrityError",
]
