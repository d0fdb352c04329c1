from __future__ import annotations

from src.domain.models import Confidence, DidntStopAnalysis, StopVisit, VehicleSnapshot

DEFAULT_VELOCITY_THRESHOLD_KMH = 15.0

FEED_UNAVAILABLE_NOTE = (
    " Official SIRI SM stop-monitoring data was unavailable, so the government"
    " record of arrivals could not be checked."
)


def _describe_position(vehicle: VehicleSnapshot | None) -> str:
    if vehicle is None:
        return "near the station"
    return f"{round(vehicle.distance_from_station_m)} m from the station"


def analyze_didnt_stop(
    nearest_vehicle: VehicleSnapshot | None,
    vehicles_in_radius: int,
    matched_visit: StopVisit | None,
    feed_success: bool,
    velocity_threshold_kmh: float = DEFAULT_VELOCITY_THRESHOLD_KMH,
) -> DidntStopAnalysis:
    """Decide whether a bus passed the station without stopping.

    Signals: a tracked vehicle inside the station radius, no arrival in the
    official Stop-Monitoring record, and the nearest vehicle's speed against
    the threshold. A measured speed at or below the threshold counts as
    evidence of stopping. The reason text quotes the measured values and is
    stored with the ticket.
    """

    vm_in_radius = vehicles_in_radius > 0
    velocity = nearest_vehicle.velocity_kmh if nearest_vehicle is not None else None
    above = velocity is not None and velocity > velocity_threshold_kmh
    sm_no_arrival = feed_success and matched_visit is None

    where = _describe_position(nearest_vehicle)
    threshold = f"{velocity_threshold_kmh:g} km/h"
    feed_note = "" if feed_success else FEED_UNAVAILABLE_NOTE

    def result(detected: bool, confidence: Confidence, reason: str) -> DidntStopAnalysis:
        return DidntStopAnalysis(
            detected=detected,
            vm_in_radius=vm_in_radius,
            sm_no_arrival=sm_no_arrival,
            velocity_above_threshold=above,
            velocity_kmh=velocity,
            confidence=confidence,
            reason=reason,
        )

    if vm_in_radius and sm_no_arrival and (velocity is None or above):
        speed = (
            f" at {velocity:.1f} km/h (above the {threshold} threshold)"
            if above
            else " (velocity not reported)"
        )
        return result(
            True,
            Confidence.HIGH,
            f"Vehicle tracking places the bus {where}{speed}. The official SIRI SM"
            " feed records no arrival at this stop.",
        )

    if vm_in_radius and sm_no_arrival:
        return result(
            False,
            Confidence.LOW,
            f"Vehicle tracking places the bus {where} at {velocity:.1f} km/h, at or"
            f" below the {threshold} threshold, which is consistent with stopping,"
            " although the official SIRI SM feed records no arrival at this stop.",
        )

    if vm_in_radius and above:
        sm_note = (
            " The official SIRI SM feed lists a scheduled arrival for this stop."
            if feed_success
            else feed_note
        )
        return result(
            True,
            Confidence.MEDIUM,
            f"Vehicle tracking places the bus {where} at {velocity:.1f} km/h (above"
            f" the {threshold} threshold for stopping).{sm_note}",
        )

    if vm_in_radius:
        speed = (
            f"{velocity:.1f} km/h" if velocity is not None else "an unreported speed"
        )
        return result(
            False,
            Confidence.LOW,
            f"The bus was {where} at {speed}; the data is not sufficient to"
            f" determine whether it stopped.{feed_note}",
        )

    return result(
        False,
        Confidence.LOW,
        f"No tracked vehicle was found within the station radius.{feed_note}",
    )
