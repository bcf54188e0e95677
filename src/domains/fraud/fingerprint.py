"""Deterministic device fingerprinting."""

import hashlib
from datetime import datetime

from .models import DeviceAttributes, DeviceFingerprint

DEFAULT_TRUST_SCORE = 50

_SCALAR_ATTRIBUTES = ("user_agent", "screen_resolution", "timezone", "language", "platform")


def fingerprint_id(attributes: DeviceAttributes) -> str:
    """Stable id for a set of device attributes: fp_ + 16 hex chars of SHA-256."""
    raw = "|".join(
        [
            attributes.user_agent,
            attributes.screen_resolution,
            attributes.timezone,
            attributes.language,
            attributes.platform,
            ",".join(attributes.plugins),
            attributes.canvas,
            attributes.webgl,
        ]
    )
    digest = hashlib.sha256(raw.encode("utf-8")).hexdigest()
    return f"fp_{digest[:16]}"


def generate_device_fingerprint(
    attributes: DeviceAttributes, now: datetime | None = None
) -> DeviceFingerprint:
    """Build a fresh fingerprint with default trust and no known users."""
    return DeviceFingerprint(
        id=fingerprint_id(attributes),
        trust_score=DEFAULT_TRUST_SCORE,
        associated_users=frozenset(),
        first_seen=now,
        last_seen=now,
        attributes=attributes,
    )


def compare_device_fingerprints(first: DeviceFingerprint, second: DeviceFingerprint) -> float:
    """Similarity in [0, 1]: 80% scalar attribute matches, 20% plugin overlap."""
    a = first.attributes or DeviceAttributes()
    b = second.attributes or DeviceAttributes()

    matches = sum(1 for name in _SCALAR_ATTRIBUTES if getattr(a, name) == getattr(b, name))

    plugins_a, plugins_b = set(a.plugins), set(b.plugins)
    union = plugins_a | plugins_b
    plugin_similarity = len(plugins_a & plugins_b) / len(union) if union else 0.0

    return (matches / len(_SCALAR_ATTRIBUTES)) * 0.8 + plugin_similarity * 0.2
