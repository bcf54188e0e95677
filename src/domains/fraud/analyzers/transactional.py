"""Transactional analyzer: properties of the transaction itself."""

from dataclasses import dataclass
from decimal import Decimal

from ..collaborators import SecurityDataSource
from ..config import FraudConfig
from ..models import FraudCategory, FraudReason, TransactionContext
from .base import AnomalyCheck, ExtensionCheck, SignalAnalyzer, not_anomalous


def normalized_amount(amount: Decimal, currency: str, usd_rates: dict[str, float]) -> float:
    return float(amount) * usd_rates.get(currency.upper(), 1.0)


def is_round_amount(amount: Decimal, divisors: tuple[int, ...]) -> bool:
    return any(amount % divisor == 0 for divisor in divisors)


@dataclass(frozen=True)
class TransactionalSignals:
    frequency: AnomalyCheck


class TransactionalAnalyzer(SignalAnalyzer):
    """Scores amount size, round amounts and payment method risk.

    `frequency_check` is an extension point for transaction-frequency
    signals; the default never flags anything.
    """

    category = FraudCategory.TRANSACTIONAL

    def __init__(self, frequency_check: ExtensionCheck = not_anomalous) -> None:
        self._frequency_check = frequency_check

    async def fetch(
        self, context: TransactionContext, source: SecurityDataSource
    ) -> TransactionalSignals:
        return TransactionalSignals(frequency=await self._frequency_check(context))

    def evaluate(
        self, context: TransactionContext, signals: TransactionalSignals, config: FraudConfig
    ) -> tuple[int, list[FraudReason]]:
        thresholds = config.transactional
        score = 0
        reasons: list[FraudReason] = []

        usd_amount = normalized_amount(context.amount, context.currency, thresholds.usd_rates)
        if usd_amount > thresholds.high_value_amount:
            score += 15
            reasons.append(
                self._reason(
                    "HIGH_VALUE_TRANSACTION",
                    f"High-value transaction: ${usd_amount:,.2f}",
                    0.15,
                )
            )

        if is_round_amount(context.amount, thresholds.round_amount_divisors):
            score += 5
            reasons.append(
                self._reason("ROUND_NUMBER_AMOUNT", "Transaction amount is a round number", 0.05)
            )

        if context.payment_method in thresholds.high_risk_payment_methods:
            score += 15
            reasons.append(
                self._reason(
                    "HIGH_RISK_PAYMENT_METHOD",
                    f"High-risk payment method: {context.payment_method}",
                    0.10,
                )
            )

        if signals.frequency.is_anomalous:
            score += signals.frequency.score
            reasons.append(
                self._reason("FREQUENCY_ANOMALY", signals.frequency.description, 0.15)
            )

        return score, reasons
