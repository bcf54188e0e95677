"""External data the analyzers read: velocity counters, geolocation, device
history and behavior profiles.

The engine only depends on the `SecurityDataSource` protocol. Two
implementations ship with it: an httpx client for the security data API and
an in-memory source for local runs and tests.
"""

from collections.abc import Mapping, Sequence
from datetime import UTC, datetime
from typing import Protocol

import httpx
import structlog

from .config import FraudConfig, default_config
from .fingerprint import generate_device_fingerprint
from .models import (
    DeviceAttributes,
    DeviceFingerprint,
    GeoLocation,
    LocationHistoryEntry,
    UserBehaviorProfile,
    VelocityData,
    VelocityLimits,
)

logger = structlog.get_logger()


class SecurityDataSource(Protocol):
    async def get_velocity_data(self, user_id: str) -> VelocityData: ...

    async def get_velocity_limits(self) -> VelocityLimits: ...

    async def resolve_location(self, ip_address: str) -> GeoLocation: ...

    async def get_location_history(self, user_id: str) -> list[LocationHistoryEntry]: ...

    async def is_high_risk_country(self, country_code: str) -> bool: ...

    async def generate_device_fingerprint(
        self, attributes: DeviceAttributes
    ) -> DeviceFingerprint: ...

    async def get_device_history(self, user_id: str) -> list[DeviceFingerprint]: ...

    async def get_behavior_profile(self, user_id: str) -> UserBehaviorProfile: ...


class HttpSecurityDataSource:
    """Reads collaborator data from the security data HTTP API.

    Non-2xx responses raise `httpx.HTTPStatusError`; the calling analyzer
    converts that into its fallback score.
    """

    def __init__(
        self,
        base_url: str,
        timeout_seconds: float = 2.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._client = client or httpx.AsyncClient(base_url=base_url, timeout=timeout_seconds)

    async def _get(self, path: str):
        response = await self._client.get(path)
        response.raise_for_status()
        return response.json()

    async def get_velocity_data(self, user_id: str) -> VelocityData:
        return VelocityData.model_validate(await self._get(f"/velocity/{user_id}"))

    async def get_velocity_limits(self) -> VelocityLimits:
        return VelocityLimits.model_validate(await self._get("/config/velocity-limits"))

    async def resolve_location(self, ip_address: str) -> GeoLocation:
        return GeoLocation.model_validate(await self._get(f"/geolocation/{ip_address}"))

    async def get_location_history(self, user_id: str) -> list[LocationHistoryEntry]:
        data = await self._get(f"/users/{user_id}/location-history")
        return [LocationHistoryEntry.model_validate(item) for item in data]

    async def is_high_risk_country(self, country_code: str) -> bool:
        data = await self._get("/config/high-risk-countries")
        return country_code.upper() in {c.upper() for c in data.get("countries", [])}

    async def generate_device_fingerprint(self, attributes: DeviceAttributes) -> DeviceFingerprint:
        response = await self._client.post(
            "/device/fingerprint", json=attributes.model_dump(mode="json")
        )
        response.raise_for_status()
        return DeviceFingerprint.model_validate(response.json())

    async def get_device_history(self, user_id: str) -> list[DeviceFingerprint]:
        data = await self._get(f"/users/{user_id}/devices")
        return [DeviceFingerprint.model_validate(item) for item in data]

    async def get_behavior_profile(self, user_id: str) -> UserBehaviorProfile:
        return UserBehaviorProfile.model_validate(
            await self._get(f"/users/{user_id}/behavior-profile")
        )

    async def aclose(self) -> None:
        await self._client.aclose()


class InMemorySecurityDataSource:
    """Serves collaborator data from dictionaries.

    Unknown users get empty histories, zeroed counters and an empty behavior
    profile. Unknown IPs raise `LookupError`, which the location analyzer
    treats like any other lookup failure.
    """

    def __init__(
        self,
        velocity: Mapping[str, VelocityData] | None = None,
        limits: VelocityLimits | None = None,
        locations: Mapping[str, GeoLocation] | None = None,
        location_history: Mapping[str, Sequence[LocationHistoryEntry]] | None = None,
        devices: Mapping[str, Sequence[DeviceFingerprint]] | None = None,
        known_fingerprints: Mapping[str, DeviceFingerprint] | None = None,
        profiles: Mapping[str, UserBehaviorProfile] | None = None,
        config: FraudConfig | None = None,
    ) -> None:
        cfg = config or default_config
        self._velocity = dict(velocity or {})
        self._limits = limits or VelocityLimits(
            transactions_per_hour=10, transactions_per_day=50, amount_per_hour=5_000.0
        )
        self._locations = dict(locations or {})
        self._location_history = {k: list(v) for k, v in (location_history or {}).items()}
        self._devices = {k: list(v) for k, v in (devices or {}).items()}
        self._known_fingerprints = dict(known_fingerprints or {})
        self._profiles = dict(profiles or {})
        self._high_risk_countries = {c.upper() for c in cfg.location.high_risk_countries}

    async def get_velocity_data(self, user_id: str) -> VelocityData:
        return self._velocity.get(user_id, VelocityData())

    async def get_velocity_limits(self) -> VelocityLimits:
        return self._limits

    async def resolve_location(self, ip_address: str) -> GeoLocation:
        try:
            return self._locations[ip_address]
        except KeyError:
            raise LookupError(f"No geolocation for IP {ip_address}") from None

    async def get_location_history(self, user_id: str) -> list[LocationHistoryEntry]:
        return list(self._location_history.get(user_id, []))

    async def is_high_risk_country(self, country_code: str) -> bool:
        return country_code.upper() in self._high_risk_countries

    async def generate_device_fingerprint(self, attributes: DeviceAttributes) -> DeviceFingerprint:
        fingerprint = generate_device_fingerprint(attributes, now=datetime.now(UTC))
        return self._known_fingerprints.get(fingerprint.id, fingerprint)

    async def get_device_history(self, user_id: str) -> list[DeviceFingerprint]:
        return list(self._devices.get(user_id, []))

    async def get_behavior_profile(self, user_id: str) -> UserBehaviorProfile:
        return self._profiles.get(user_id, UserBehaviorProfile())
