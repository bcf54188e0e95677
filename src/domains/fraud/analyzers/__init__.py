"""Signal analyzers package.

Exports `default_analyzers()` (one instance per category, in fan-out order)
and the individual analyzer classes for direct use.
"""

from .base import AnomalyCheck, ExtensionCheck, SignalAnalyzer, not_anomalous
from .behavioral import BehavioralAnalyzer
from .device import DeviceAnalyzer
from .location import LocationAnalyzer, haversine, travel_speed_kmh
from .transactional import TransactionalAnalyzer
from .velocity import VelocityAnalyzer


def default_analyzers(
    session_check: ExtensionCheck = not_anomalous,
    frequency_check: ExtensionCheck = not_anomalous,
) -> list[SignalAnalyzer]:
    """All analyzers in fan-out order: velocity, location, device, behavioral, transactional."""
    return [
        VelocityAnalyzer(),
        LocationAnalyzer(),
        DeviceAnalyzer(),
        BehavioralAnalyzer(session_check=session_check),
        TransactionalAnalyzer(frequency_check=frequency_check),
    ]


__all__ = [
    "AnomalyCheck",
    "BehavioralAnalyzer",
    "DeviceAnalyzer",
    "ExtensionCheck",
    "LocationAnalyzer",
    "SignalAnalyzer",
    "TransactionalAnalyzer",
    "VelocityAnalyzer",
    "default_analyzers",
    "haversine",
    "not_anomalous",
    "travel_speed_kmh",
]
