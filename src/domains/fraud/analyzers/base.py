"""Abstract base class for signal analyzers."""

import asyncio
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

import structlog

from ..collaborators import SecurityDataSource
from ..config import FraudConfig
from ..models import AnalyzerResult, FraudCategory, FraudReason, TransactionContext

logger = structlog.get_logger()

MAX_SUB_SCORE = 100


@dataclass(frozen=True)
class AnomalyCheck:
    """Outcome of a pluggable extension check."""

    is_anomalous: bool = False
    score: int = 0
    description: str = ""


ExtensionCheck = Callable[[TransactionContext], Awaitable[AnomalyCheck]]


async def not_anomalous(context: TransactionContext) -> AnomalyCheck:
    """Default extension check: never reports an anomaly."""
    return AnomalyCheck()


class SignalAnalyzer(ABC):
    """Base class for the five analyzers.

    `analyze` is the fault-isolation boundary. Collaborator reads happen in
    `fetch` under the configured timeout; scoring in `evaluate` is pure given
    the fetched signals. Any failure in either step yields the category's
    fallback score with no reasons. Cancelling the running task is never
    swallowed; a `CancelledError` raised by a collaborator on its own counts
    as a failure.
    """

    category: FraudCategory

    @abstractmethod
    async def fetch(self, context: TransactionContext, source: SecurityDataSource) -> Any:
        """Read everything `evaluate` needs from external collaborators."""
        ...

    @abstractmethod
    def evaluate(
        self, context: TransactionContext, signals: Any, config: FraudConfig
    ) -> tuple[int, list[FraudReason]]:
        """Score the transaction. Returns the raw additive score and reasons."""
        ...

    async def analyze(
        self,
        context: TransactionContext,
        source: SecurityDataSource,
        config: FraudConfig,
    ) -> AnalyzerResult:
        try:
            async with asyncio.timeout(config.timeouts.analyzer_seconds):
                signals = await self.fetch(context, source)
            score, reasons = self.evaluate(context, signals, config)
        except TimeoutError:
            return self._fallback(context, config, reason="timeout", error_type="TimeoutError")
        except asyncio.CancelledError:
            # A cancel not aimed at this task is a collaborator failure
            task = asyncio.current_task()
            if task is None or task.cancelling():
                raise
            return self._fallback(context, config, reason="error", error_type="CancelledError")
        except Exception as exc:
            return self._fallback(context, config, reason="error", error_type=type(exc).__name__)

        return AnalyzerResult(
            category=self.category,
            score=max(0, min(score, MAX_SUB_SCORE)),
            reasons=reasons,
        )

    def _fallback(
        self,
        context: TransactionContext,
        config: FraudConfig,
        reason: str,
        error_type: str,
    ) -> AnalyzerResult:
        score = getattr(config.fallback, self.category.value)
        logger.warning(
            "analyzer_fallback",
            analyzer=self.category.value,
            reason=reason,
            error_type=error_type,
            fallback_score=score,
            transaction_id=context.transaction_id,
            exc_info=reason == "error",
        )
        return AnalyzerResult(category=self.category, score=score, reasons=[], degraded=True)

    def _reason(self, code: str, description: str, weight: float) -> FraudReason:
        """Convenience: build a reason in this analyzer's category."""
        return FraudReason(code=code, description=description, weight=weight, category=self.category)
