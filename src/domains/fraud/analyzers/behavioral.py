"""Behavioral analyzer: deviation from the user's usual time, amount and merchants."""

import asyncio
from dataclasses import dataclass

from ..collaborators import SecurityDataSource
from ..config import FraudConfig
from ..models import FraudCategory, FraudReason, TransactionContext, UserBehaviorProfile
from .base import AnomalyCheck, ExtensionCheck, SignalAnalyzer, not_anomalous


@dataclass(frozen=True)
class BehavioralSignals:
    profile: UserBehaviorProfile
    session: AnomalyCheck


class BehavioralAnalyzer(SignalAnalyzer):
    """Compares the transaction with the user's behavior profile.

    `session_check` is an extension point for session-level signals; the
    default never flags anything.
    """

    category = FraudCategory.BEHAVIORAL

    def __init__(self, session_check: ExtensionCheck = not_anomalous) -> None:
        self._session_check = session_check

    async def fetch(
        self, context: TransactionContext, source: SecurityDataSource
    ) -> BehavioralSignals:
        profile, session = await asyncio.gather(
            source.get_behavior_profile(context.user_id),
            self._session_check(context),
        )
        return BehavioralSignals(profile=profile, session=session)

    def evaluate(
        self, context: TransactionContext, signals: BehavioralSignals, config: FraudConfig
    ) -> tuple[int, list[FraudReason]]:
        profile = signals.profile
        score = 0
        reasons: list[FraudReason] = []

        hour = context.timestamp.hour
        if profile.typical_transaction_hours and hour not in profile.typical_transaction_hours:
            score += 10
            reasons.append(
                self._reason("TIME_PATTERN_ANOMALY", f"Transaction at unusual time: {hour}:00", 0.15)
            )

        avg = profile.average_transaction_amount
        band = config.behavioral.amount_stddev_multiplier * profile.transaction_amount_std_dev
        if avg > 0 and abs(float(context.amount) - avg) > band:
            score += 20
            reasons.append(
                self._reason(
                    "AMOUNT_PATTERN_ANOMALY",
                    "Transaction amount significantly deviates from user pattern",
                    0.20,
                )
            )

        categories = profile.frequent_merchant_categories
        if categories and context.merchant_category not in categories:
            score += 10
            reasons.append(
                self._reason(
                    "MERCHANT_PATTERN_ANOMALY",
                    f"Transaction in unusual merchant category: {context.merchant_category}",
                    0.15,
                )
            )

        if signals.session.is_anomalous:
            score += signals.session.score
            reasons.append(
                self._reason("SESSION_BEHAVIOR_ANOMALY", signals.session.description, 0.10)
            )

        return score, reasons
