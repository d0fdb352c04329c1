from .evidence_sink import IEvidenceSink
from .stop_monitoring_client import IStopMonitoringClient
from .vehicle_tracking_provider import IVehicleTrackingProvider

__all__ = [
    "IEvidenceSink",
    "IStopMonitoringClient",
    "IVehicleTrackingProvider",
]
