"""Location analyzer: impossible travel, risky geographies, anonymizers."""

import asyncio
import math
from dataclasses import dataclass
from datetime import datetime

from ..collaborators import SecurityDataSource
from ..config import FraudConfig
from ..models import (
    FraudCategory,
    FraudReason,
    GeoLocation,
    LocationHistoryEntry,
    TransactionContext,
)
from .base import SignalAnalyzer

EARTH_RADIUS_KM = 6371.0


def haversine(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Calculate distance in km between two lat/lon points."""
    lat1_r, lon1_r = math.radians(lat1), math.radians(lon1)
    lat2_r, lon2_r = math.radians(lat2), math.radians(lon2)
    dlat = lat2_r - lat1_r
    dlon = lon2_r - lon1_r
    a = math.sin(dlat / 2) ** 2 + math.cos(lat1_r) * math.cos(lat2_r) * math.sin(dlon / 2) ** 2
    return 2 * EARTH_RADIUS_KM * math.asin(math.sqrt(a))


def distance_km(first: GeoLocation, second: GeoLocation) -> float:
    return haversine(first.latitude, first.longitude, second.latitude, second.longitude)


def travel_speed_kmh(distance: float, start: datetime, end: datetime) -> float:
    """Speed needed to cover `distance` between two instants.

    Zero elapsed time is infinitely fast unless nothing moved.
    """
    minutes = abs((end - start).total_seconds()) / 60
    if minutes == 0:
        return math.inf if distance > 0 else 0.0
    return (distance / minutes) * 60


def location_consistency(
    history: list[LocationHistoryEntry], current: GeoLocation, empty_default: float
) -> float:
    """Share of history entries in the current country."""
    if not history:
        return empty_default
    matches = sum(1 for entry in history if entry.location.country == current.country)
    return matches / len(history)


@dataclass(frozen=True)
class LocationSignals:
    current: GeoLocation
    history: list[LocationHistoryEntry]
    high_risk_country: bool


class LocationAnalyzer(SignalAnalyzer):
    """Scores the transaction's origin against the user's location history."""

    category = FraudCategory.LOCATION

    async def fetch(self, context: TransactionContext, source: SecurityDataSource) -> LocationSignals:
        current, history = await asyncio.gather(
            source.resolve_location(context.ip_address),
            source.get_location_history(context.user_id),
        )
        high_risk = await source.is_high_risk_country(current.country)
        return LocationSignals(current=current, history=history, high_risk_country=high_risk)

    def evaluate(
        self, context: TransactionContext, signals: LocationSignals, config: FraudConfig
    ) -> tuple[int, list[FraudReason]]:
        thresholds = config.location
        current = signals.current
        score = 0
        reasons: list[FraudReason] = []

        if signals.history:
            previous = max(signals.history, key=lambda entry: entry.timestamp)
            distance = distance_km(previous.location, current)
            speed = travel_speed_kmh(distance, previous.timestamp, context.timestamp)
            if speed > thresholds.max_travel_speed_kmh:
                minutes = abs((context.timestamp - previous.timestamp).total_seconds()) / 60
                score += 40
                reasons.append(
                    self._reason(
                        "IMPOSSIBLE_TRAVEL",
                        f"Impossible travel detected: {distance:.0f}km in {minutes:.0f} minutes",
                        0.40,
                    )
                )

        if signals.high_risk_country:
            score += 25
            reasons.append(
                self._reason(
                    "HIGH_RISK_COUNTRY",
                    f"Transaction from high-risk country: {current.country}",
                    0.25,
                )
            )

        if current.is_vpn or current.is_tor:
            score += 15
            reasons.append(self._reason("VPN_TOR_USAGE", "VPN or Tor usage detected", 0.15))

        consistency = location_consistency(
            signals.history, current, thresholds.empty_history_consistency
        )
        if consistency < thresholds.min_location_consistency:
            score += 20
            reasons.append(
                self._reason(
                    "LOCATION_INCONSISTENCY",
                    f"Low location consistency score: {consistency:.2f}",
                    0.20,
                )
            )

        return score, reasons
