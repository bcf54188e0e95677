"""Device analyzer: fingerprint recognition, trust and sharing."""

import asyncio
import re
from dataclasses import dataclass

from ..collaborators import SecurityDataSource
from ..config import FraudConfig
from ..models import DeviceFingerprint, FraudCategory, FraudReason, TransactionContext
from .base import SignalAnalyzer


def is_insecure_user_agent(user_agent: str, patterns: tuple[str, ...]) -> bool:
    return any(re.search(pattern, user_agent, re.IGNORECASE) for pattern in patterns)


@dataclass(frozen=True)
class DeviceSignals:
    fingerprint: DeviceFingerprint
    history: list[DeviceFingerprint]


class DeviceAnalyzer(SignalAnalyzer):
    """Scores how much the transaction's device can be trusted.

    The engine never writes device state; trust adjustments are left to the
    device-history owner.
    """

    category = FraudCategory.DEVICE

    async def fetch(self, context: TransactionContext, source: SecurityDataSource) -> DeviceSignals:
        fingerprint, history = await asyncio.gather(
            source.generate_device_fingerprint(context.resolved_device_attributes()),
            source.get_device_history(context.user_id),
        )
        return DeviceSignals(fingerprint=fingerprint, history=history)

    def evaluate(
        self, context: TransactionContext, signals: DeviceSignals, config: FraudConfig
    ) -> tuple[int, list[FraudReason]]:
        thresholds = config.device
        fingerprint = signals.fingerprint
        score = 0
        reasons: list[FraudReason] = []

        known = next((d for d in signals.history if d.id == fingerprint.id), None)
        if known is None:
            score += 20
            reasons.append(self._reason("UNKNOWN_DEVICE", "Transaction from unknown device", 0.20))
        elif known.trust_score < thresholds.low_trust_score:
            score += 15
            reasons.append(
                self._reason(
                    "LOW_DEVICE_TRUST",
                    f"Device has low trust score: {known.trust_score}",
                    0.15,
                )
            )

        users = set(fingerprint.associated_users)
        if known is not None:
            users |= known.associated_users
        if len(users) > thresholds.max_associated_users:
            score += 15
            reasons.append(
                self._reason(
                    "MULTIPLE_USERS_DEVICE",
                    f"Device associated with {len(users)} users",
                    0.15,
                )
            )

        if is_insecure_user_agent(context.user_agent, thresholds.insecure_agent_patterns):
            score += 10
            reasons.append(
                self._reason(
                    "INSECURE_BROWSER",
                    "Transaction from potentially insecure browser or app",
                    0.10,
                )
            )

        return score, reasons
