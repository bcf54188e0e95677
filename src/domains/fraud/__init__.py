"""Fraud detection domain."""

from .analyzers import default_analyzers
from .collaborators import HttpSecurityDataSource, InMemorySecurityDataSource, SecurityDataSource
from .config import FraudConfig, default_config
from .engine import FraudDetectionEngine
from .models import (
    FraudCategory,
    FraudDetectionResult,
    FraudReason,
    RiskLevel,
    SecurityActionType,
    SecurityEvent,
    TransactionContext,
)
from .rate_limiter import RateLimiter

__all__ = [
    "FraudCategory",
    "FraudConfig",
    "FraudDetectionEngine",
    "FraudDetectionResult",
    "FraudReason",
    "HttpSecurityDataSource",
    "InMemorySecurityDataSource",
    "RateLimiter",
    "RiskLevel",
    "SecurityActionType",
    "SecurityDataSource",
    "SecurityEvent",
    "TransactionContext",
    "default_analyzers",
    "default_config",
]
