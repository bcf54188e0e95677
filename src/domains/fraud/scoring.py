"""Aggregation, classification, action policy and confidence.

Pure functions over analyzer output. The orchestrator in `engine` chains
them; nothing here performs I/O or reads module-level mutable state.
"""

from collections.abc import Iterable, Mapping
from datetime import datetime

from .config import RiskLevelThresholds, RiskWeights
from .models import (
    FraudCategory,
    FraudDetectionResult,
    FraudReason,
    RiskLevel,
    SecurityActionType,
)

_BASE_ACTIONS: dict[RiskLevel, tuple[SecurityActionType, ...]] = {
    RiskLevel.VERY_HIGH: (
        SecurityActionType.BLOCK_TRANSACTION,
        SecurityActionType.ESCALATE_TO_ADMIN,
        SecurityActionType.TEMPORARY_ACCOUNT_LOCK,
    ),
    RiskLevel.HIGH: (
        SecurityActionType.REQUIRE_ADDITIONAL_AUTH,
        SecurityActionType.MANUAL_REVIEW_TRIGGERED,
        SecurityActionType.ALERT_SENT,
    ),
    RiskLevel.MEDIUM: (
        SecurityActionType.REQUIRE_ADDITIONAL_AUTH,
        SecurityActionType.ALERT_SENT,
    ),
    RiskLevel.LOW: (SecurityActionType.ALERT_SENT,),
    RiskLevel.VERY_LOW: (),
}

FAILSAFE_REASON = FraudReason(
    code="ANALYSIS_FAILED",
    description="Fraud analysis failed - applying conservative measures",
    weight=1.0,
    category=FraudCategory.BEHAVIORAL,
)


def aggregate_scores(scores: Mapping[FraudCategory, int], weights: RiskWeights) -> int:
    """Weighted sum of the five sub-scores, rounded and clamped to [0, 100].

    A category missing from `scores` contributes 0.
    """
    total = (
        scores.get(FraudCategory.VELOCITY, 0) * weights.velocity
        + scores.get(FraudCategory.LOCATION, 0) * weights.location
        + scores.get(FraudCategory.DEVICE, 0) * weights.device
        + scores.get(FraudCategory.BEHAVIORAL, 0) * weights.behavioral
        + scores.get(FraudCategory.TRANSACTIONAL, 0) * weights.transactional
    )
    # Half-up rounding; Python's round() would send 12.5 to 12. The inner
    # round() drops float noise such as 7.4999999999 before the half-up step.
    return max(0, min(int(round(total, 6) + 0.5), 100))


def classify_risk_level(score: int, thresholds: RiskLevelThresholds) -> RiskLevel:
    """Map a score to a risk level, checking thresholds from highest to lowest."""
    if score >= thresholds.very_high:
        return RiskLevel.VERY_HIGH
    if score >= thresholds.high:
        return RiskLevel.HIGH
    if score >= thresholds.medium:
        return RiskLevel.MEDIUM
    if score >= thresholds.low:
        return RiskLevel.LOW
    return RiskLevel.VERY_LOW


def recommend_actions(
    level: RiskLevel, reasons: Iterable[FraudReason]
) -> list[SecurityActionType]:
    """Base actions for the risk level plus category overlays, deduplicated.

    Overlays only augment a non-empty base set: a device or high-risk-country
    reason never raises a VERY_LOW result into one with actions.
    """
    actions = list(_BASE_ACTIONS[level])
    if not actions:
        return []

    reasons = list(reasons)
    if any(r.category == FraudCategory.DEVICE for r in reasons):
        actions.append(SecurityActionType.DEVICE_BLOCKED)
    if any(r.code == "HIGH_RISK_COUNTRY" for r in reasons):
        actions.append(SecurityActionType.IP_BLOCKED)

    return list(dict.fromkeys(actions))


def compute_confidence(reasons: Iterable[FraudReason]) -> float:
    """Weight-averaged per-reason confidence; 1.0 when nothing was detected."""
    reasons = list(reasons)
    if not reasons:
        return 1.0

    total_weight = sum(r.weight for r in reasons)
    if total_weight == 0:
        return 1.0
    weighted = sum(min(r.weight * 2, 1.0) * r.weight for r in reasons)
    return max(0.0, min(weighted / total_weight, 1.0))


def failsafe_result(model_version: str, processed_at: datetime) -> FraudDetectionResult:
    """Fixed conservative result returned when orchestration itself fails."""
    return FraudDetectionResult(
        risk_score=50,
        risk_level=RiskLevel.MEDIUM,
        reasons=[FAILSAFE_REASON],
        recommended_actions=[SecurityActionType.MANUAL_REVIEW_TRIGGERED],
        confidence=0.5,
        model_version=model_version,
        processed_at=processed_at,
    )
