"""Velocity analyzer: transaction count and amount over rolling windows."""

import asyncio
from dataclasses import dataclass

from ..collaborators import SecurityDataSource
from ..config import FraudConfig
from ..models import FraudCategory, FraudReason, TransactionContext, VelocityData, VelocityLimits
from .base import SignalAnalyzer


@dataclass(frozen=True)
class VelocitySignals:
    data: VelocityData
    limits: VelocityLimits


class VelocityAnalyzer(SignalAnalyzer):
    """Flags users exceeding hourly/daily counts, hourly amount, or spiking."""

    category = FraudCategory.VELOCITY

    async def fetch(self, context: TransactionContext, source: SecurityDataSource) -> VelocitySignals:
        data, limits = await asyncio.gather(
            source.get_velocity_data(context.user_id),
            source.get_velocity_limits(),
        )
        return VelocitySignals(data=data, limits=limits)

    def evaluate(
        self, context: TransactionContext, signals: VelocitySignals, config: FraudConfig
    ) -> tuple[int, list[FraudReason]]:
        data, limits = signals.data, signals.limits
        score = 0
        reasons: list[FraudReason] = []

        if data.transactions_last_hour > limits.transactions_per_hour:
            score += 30
            reasons.append(
                self._reason(
                    "VELOCITY_TRANSACTIONS_HOUR",
                    f"Exceeded hourly transaction limit: "
                    f"{data.transactions_last_hour}/{limits.transactions_per_hour}",
                    0.30,
                )
            )

        if data.transactions_last_day > limits.transactions_per_day:
            score += 25
            reasons.append(
                self._reason(
                    "VELOCITY_TRANSACTIONS_DAY",
                    f"Exceeded daily transaction limit: "
                    f"{data.transactions_last_day}/{limits.transactions_per_day}",
                    0.25,
                )
            )

        if data.amount_last_hour > limits.amount_per_hour:
            score += 35
            reasons.append(
                self._reason(
                    "VELOCITY_AMOUNT_HOUR",
                    f"Exceeded hourly amount limit: "
                    f"${data.amount_last_hour:,.2f}/${limits.amount_per_hour:,.2f}",
                    0.35,
                )
            )

        spike_ceiling = data.avg_hourly_amount_last_7_days * config.velocity.spike_multiplier
        if float(context.amount) > spike_ceiling:
            score += 20
            reasons.append(
                self._reason(
                    "VELOCITY_SPIKE_DETECTION",
                    f"Amount ${float(context.amount):,.2f} exceeds "
                    f"{config.velocity.spike_multiplier:g}x the 7-day hourly average",
                    0.20,
                )
            )

        return score, reasons
