"""Pydantic models for the fraud domain.

All models are frozen: a transaction context is created once per evaluation
request and a detection result is never modified after construction.
"""

from datetime import UTC, datetime
from decimal import Decimal
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field, field_validator


class FraudCategory(StrEnum):
    VELOCITY = "velocity"
    LOCATION = "location"
    DEVICE = "device"
    BEHAVIORAL = "behavioral"
    TRANSACTIONAL = "transactional"


class RiskLevel(StrEnum):
    VERY_LOW = "very_low"
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    VERY_HIGH = "very_high"

    @property
    def rank(self) -> int:
        """Ordinal position, VERY_LOW=0 through VERY_HIGH=4."""
        return _RISK_LEVEL_ORDER.index(self)


_RISK_LEVEL_ORDER = (
    RiskLevel.VERY_LOW,
    RiskLevel.LOW,
    RiskLevel.MEDIUM,
    RiskLevel.HIGH,
    RiskLevel.VERY_HIGH,
)


class SecurityActionType(StrEnum):
    BLOCK_TRANSACTION = "block_transaction"
    REQUIRE_ADDITIONAL_AUTH = "require_additional_auth"
    TEMPORARY_ACCOUNT_LOCK = "temporary_account_lock"
    ALERT_SENT = "alert_sent"
    MANUAL_REVIEW_TRIGGERED = "manual_review_triggered"
    IP_BLOCKED = "ip_blocked"
    DEVICE_BLOCKED = "device_blocked"
    ESCALATE_TO_ADMIN = "escalate_to_admin"


class SecurityEventType(StrEnum):
    FRAUD_ANALYSIS = "fraud_analysis"
    FRAUD_ANALYSIS_FAILED = "fraud_analysis_failed"
    SUSPICIOUS_TRANSACTION = "suspicious_transaction"
    MULTIPLE_FAILED_ATTEMPTS = "multiple_failed_attempts"
    UNUSUAL_LOCATION = "unusual_location"
    VELOCITY_CHECK_FAILED = "velocity_check_failed"
    DEVICE_FINGERPRINT_MISMATCH = "device_fingerprint_mismatch"
    IP_REPUTATION_ALERT = "ip_reputation_alert"
    BEHAVIORAL_ANOMALY = "behavioral_anomaly"
    PAYMENT_METHOD_FRAUD = "payment_method_fraud"


class SecuritySeverity(StrEnum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True)


def _assume_utc(value: datetime) -> datetime:
    """Naive timestamps are taken to be UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


class BillingLocation(_Frozen):
    country: str = ""
    region: str = ""
    city: str = ""
    postal_code: str = ""


class DeviceAttributes(_Frozen):
    """Stable device/browser attributes a fingerprint is derived from."""

    user_agent: str = ""
    screen_resolution: str = ""
    timezone: str = ""
    language: str = ""
    platform: str = ""
    plugins: tuple[str, ...] = ()
    canvas: str = ""
    webgl: str = ""


class TransactionContext(_Frozen):
    transaction_id: str
    user_id: str
    amount: Decimal = Field(ge=0)
    currency: str = "USD"
    timestamp: datetime
    ip_address: str = ""
    user_agent: str = ""
    merchant_category: str = ""
    payment_method: str = ""
    billing_location: BillingLocation | None = None
    device_fingerprint_id: str | None = None
    device_attributes: DeviceAttributes | None = None
    is_international: bool = False
    is_first_time_vendor: bool = False
    is_known_device: bool = False

    @field_validator("timestamp")
    @classmethod
    def _timestamp_utc(cls, value: datetime) -> datetime:
        return _assume_utc(value)

    def resolved_device_attributes(self) -> DeviceAttributes:
        if self.device_attributes is not None:
            return self.device_attributes
        return DeviceAttributes(user_agent=self.user_agent)


class VelocityData(_Frozen):
    transactions_last_hour: int = Field(default=0, ge=0)
    transactions_last_day: int = Field(default=0, ge=0)
    amount_last_hour: float = Field(default=0.0, ge=0)
    avg_hourly_amount_last_7_days: float = Field(default=0.0, ge=0)


class VelocityLimits(_Frozen):
    transactions_per_hour: int = Field(gt=0)
    transactions_per_day: int = Field(gt=0)
    amount_per_hour: float = Field(gt=0)


class GeoLocation(_Frozen):
    country: str
    region: str = ""
    city: str = ""
    latitude: float = Field(ge=-90, le=90)
    longitude: float = Field(ge=-180, le=180)
    timezone: str = ""
    isp: str | None = None
    is_vpn: bool = False
    is_tor: bool = False


class LocationHistoryEntry(_Frozen):
    location: GeoLocation
    timestamp: datetime

    @field_validator("timestamp")
    @classmethod
    def _timestamp_utc(cls, value: datetime) -> datetime:
        return _assume_utc(value)


class DeviceFingerprint(_Frozen):
    id: str
    trust_score: int = Field(default=50, ge=0, le=100)
    associated_users: frozenset[str] = frozenset()
    first_seen: datetime | None = None
    last_seen: datetime | None = None
    attributes: DeviceAttributes | None = None


class UserBehaviorProfile(_Frozen):
    typical_transaction_hours: frozenset[int] = frozenset()
    average_transaction_amount: float = Field(default=0.0, ge=0)
    transaction_amount_std_dev: float = Field(default=0.0, ge=0)
    frequent_merchant_categories: frozenset[str] = frozenset()

    @field_validator("typical_transaction_hours")
    @classmethod
    def _hours_in_day(cls, hours: frozenset[int]) -> frozenset[int]:
        if any(not 0 <= h <= 23 for h in hours):
            raise ValueError("typical_transaction_hours must be within 0-23")
        return hours


class FraudReason(_Frozen):
    code: str
    description: str = ""
    weight: float = Field(ge=0.0, le=1.0)
    category: FraudCategory


class AnalyzerResult(_Frozen):
    category: FraudCategory
    score: int = Field(ge=0, le=100)
    reasons: list[FraudReason] = []
    degraded: bool = False


class FraudDetectionResult(_Frozen):
    risk_score: int = Field(ge=0, le=100)
    risk_level: RiskLevel
    reasons: list[FraudReason] = []
    recommended_actions: list[SecurityActionType] = []
    confidence: float = Field(ge=0.0, le=1.0)
    model_version: str
    processed_at: datetime
    degraded_analyzers: list[FraudCategory] = []

    @field_validator("recommended_actions")
    @classmethod
    def _unique_actions(cls, actions: list[SecurityActionType]) -> list[SecurityActionType]:
        if len(set(actions)) != len(actions):
            raise ValueError("recommended_actions must not contain duplicates")
        return actions


class SecurityEvent(_Frozen):
    id: str
    timestamp: datetime
    event_type: SecurityEventType
    severity: SecuritySeverity
    transaction_id: str | None = None
    user_id: str | None = None
    ip_address: str = "unknown"
    user_agent: str = "unknown"
    description: str
    metadata: dict = Field(default_factory=dict)
    resolved: bool = False


class FraudFeedback(_Frozen):
    transaction_id: str
    is_fraud: bool
    model_version: str
    reported_at: datetime


class FeedbackRequest(BaseModel):
    transaction_id: str
    is_fraud: bool
