"""Shared test fixtures for the fraud risk engine tests."""

import os
from datetime import UTC, datetime, timedelta

import pytest

from src.domains.fraud.collaborators import InMemorySecurityDataSource
from src.domains.fraud.fingerprint import fingerprint_id
from src.domains.fraud.models import (
    DeviceAttributes,
    DeviceFingerprint,
    FraudFeedback,
    GeoLocation,
    LocationHistoryEntry,
    SecurityEvent,
    TransactionContext,
    UserBehaviorProfile,
    VelocityData,
)

os.environ.setdefault("KAFKA_BOOTSTRAP_SERVERS", "localhost:9092")

NOW = datetime(2026, 1, 15, 14, 0, 0, tzinfo=UTC)
USER_ID = "user-1"
HOME_IP = "203.0.113.10"

DESKTOP = DeviceAttributes(
    user_agent="Mozilla/5.0 (Macintosh; Intel Mac OS X 14_2) AppleWebKit/605.1.15",
    screen_resolution="2560x1440",
    timezone="America/New_York",
    language="en-US",
    platform="MacIntel",
    plugins=("pdf-viewer",),
)

NEW_YORK = GeoLocation(
    country="US",
    region="NY",
    city="New York",
    latitude=40.7128,
    longitude=-74.0060,
    timezone="America/New_York",
)

TEHRAN = GeoLocation(
    country="IR",
    region="Tehran",
    city="Tehran",
    latitude=35.6892,
    longitude=51.3890,
    is_vpn=True,
)


class RecordingAuditSink:
    """Audit sink that keeps everything it receives in memory."""

    def __init__(self, fail: bool = False) -> None:
        self.events: list[SecurityEvent] = []
        self.feedback: list[FraudFeedback] = []
        self.closed = False
        self._fail = fail

    async def submit_event(self, event: SecurityEvent) -> None:
        if self._fail:
            raise ConnectionError("audit backend unavailable")
        self.events.append(event)

    async def submit_feedback(self, feedback: FraudFeedback) -> None:
        if self._fail:
            raise ConnectionError("audit backend unavailable")
        self.feedback.append(feedback)

    async def close(self) -> None:
        self.closed = True


def make_context(**kwargs) -> TransactionContext:
    """A clean $47.25 retail purchase from the user's usual desktop at home."""
    defaults = {
        "transaction_id": "txn-1",
        "user_id": USER_ID,
        "amount": "47.25",
        "currency": "USD",
        "timestamp": NOW,
        "ip_address": HOME_IP,
        "user_agent": DESKTOP.user_agent,
        "merchant_category": "retail",
        "payment_method": "credit_card",
        "device_attributes": DESKTOP,
    }
    defaults.update(kwargs)
    return TransactionContext(**defaults)


def make_source(**overrides) -> InMemorySecurityDataSource:
    """Collaborator data under which `make_context()` scores 0 everywhere."""
    params = {
        "velocity": {USER_ID: VelocityData(avg_hourly_amount_last_7_days=100.0)},
        "locations": {HOME_IP: NEW_YORK},
        "location_history": {
            USER_ID: [LocationHistoryEntry(location=NEW_YORK, timestamp=NOW - timedelta(hours=3))]
        },
        "devices": {
            USER_ID: [
                DeviceFingerprint(
                    id=fingerprint_id(DESKTOP),
                    trust_score=80,
                    associated_users=frozenset({USER_ID}),
                    attributes=DESKTOP,
                )
            ]
        },
        "profiles": {
            USER_ID: UserBehaviorProfile(
                typical_transaction_hours=frozenset(range(8, 22)),
                average_transaction_amount=50.0,
                transaction_amount_std_dev=20.0,
                frequent_merchant_categories=frozenset({"retail", "grocery"}),
            )
        },
    }
    params.update(overrides)
    return InMemorySecurityDataSource(**params)


@pytest.fixture
def audit_sink() -> RecordingAuditSink:
    return RecordingAuditSink()


@pytest.fixture
def clean_source() -> InMemorySecurityDataSource:
    return make_source()
