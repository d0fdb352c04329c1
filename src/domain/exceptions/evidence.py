class EvidenceError(Exception):
    """Base exception for the evidence engine."""


class ConfigurationError(EvidenceError):
    """Raised at a client boundary when required configuration is missing or invalid."""


class EvidenceSinkError(EvidenceError):
    """Raised when a fault ticket cannot be written to or read from the sink."""


class TicketIntegrityError(EvidenceError):
    """Raised when a ticket's stored hash does not match its recomputed hash."""
