"""Fraud detection orchestrator: analyzers -> score -> level -> actions -> audit."""

import asyncio
import time
from collections.abc import Callable, Sequence
from datetime import UTC, datetime

import structlog

from .analyzers import SignalAnalyzer, default_analyzers
from .audit import AuditSink, LoggingAuditSink, build_analysis_event, build_escalation_event
from .collaborators import SecurityDataSource
from .config import FraudConfig, default_config
from .models import (
    AnalyzerResult,
    FraudCategory,
    FraudDetectionResult,
    FraudFeedback,
    SecurityEvent,
    TransactionContext,
)
from .scoring import (
    aggregate_scores,
    classify_risk_level,
    compute_confidence,
    failsafe_result,
    recommend_actions,
)

logger = structlog.get_logger()


def _utcnow() -> datetime:
    return datetime.now(UTC)


class FraudDetectionEngine:
    """Evaluates one transaction at a time and never raises to its caller.

    Evaluation runs in two phases:
    1. Fan-out: every analyzer runs as a task in one task group. Analyzers
       isolate their own failures and timeouts, so each task returns a result.
    2. Decide: aggregate -> classify -> recommend -> confidence, build the
       immutable result, then hand audit events to the sink in the background.

    Any exception escaping either phase yields the failsafe result.
    Cancelling the calling task cancels the analyzers and re-raises
    `asyncio.CancelledError`; no result and no audit event are produced.
    """

    def __init__(
        self,
        source: SecurityDataSource,
        audit_sink: AuditSink | None = None,
        config: FraudConfig | None = None,
        analyzers: Sequence[SignalAnalyzer] | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._config = (config or default_config).validate()
        self._source = source
        self._audit_sink = audit_sink or LoggingAuditSink()
        self._analyzers = list(analyzers) if analyzers is not None else default_analyzers()
        self._clock = clock
        self._pending: set[asyncio.Task] = set()

        categories = [a.category for a in self._analyzers]
        if len(categories) != len(FraudCategory) or set(categories) != set(FraudCategory):
            raise ValueError(
                f"Engine needs exactly one analyzer per category, got {[c.value for c in categories]}"
            )
        order = list(FraudCategory)
        self._analyzers.sort(key=lambda a: order.index(a.category))

        logger.info(
            "fraud_engine_initialized",
            analyzers=[a.category.value for a in self._analyzers],
            model_version=self._config.model_version,
            analyzer_timeout_seconds=self._config.timeouts.analyzer_seconds,
        )

    @property
    def config(self) -> FraudConfig:
        return self._config

    async def evaluate(self, context: TransactionContext) -> FraudDetectionResult:
        """Score a transaction. Returns a result or raises only on cancellation."""
        start = time.perf_counter()
        failed = False
        try:
            analyzer_results = await self._fan_out(context)
            result = self._decide(analyzer_results)
        except asyncio.CancelledError:
            logger.info(
                "fraud_evaluation_cancelled",
                transaction_id=context.transaction_id,
                user_id=context.user_id,
            )
            raise
        except Exception:
            logger.exception(
                "fraud_evaluation_failed",
                transaction_id=context.transaction_id,
                user_id=context.user_id,
            )
            failed = True
            result = failsafe_result(self._config.model_version, self._clock())

        duration_ms = round((time.perf_counter() - start) * 1000, 2)
        logger.info(
            "fraud_evaluated",
            transaction_id=context.transaction_id,
            risk_score=result.risk_score,
            risk_level=result.risk_level.value,
            actions=[a.value for a in result.recommended_actions],
            confidence=result.confidence,
            degraded=[c.value for c in result.degraded_analyzers],
            failsafe=failed,
            duration_ms=duration_ms,
        )

        self._audit(context, result, duration_ms, failed)
        return result

    async def _fan_out(self, context: TransactionContext) -> list[AnalyzerResult]:
        async with asyncio.TaskGroup() as group:
            tasks = [
                group.create_task(analyzer.analyze(context, self._source, self._config))
                for analyzer in self._analyzers
            ]
        return [task.result() for task in tasks]

    def _decide(self, analyzer_results: list[AnalyzerResult]) -> FraudDetectionResult:
        scores = {r.category: r.score for r in analyzer_results}
        reasons = [reason for r in analyzer_results for reason in r.reasons]

        risk_score = aggregate_scores(scores, self._config.weights)
        risk_level = classify_risk_level(risk_score, self._config.levels)

        return FraudDetectionResult(
            risk_score=risk_score,
            risk_level=risk_level,
            reasons=reasons,
            recommended_actions=recommend_actions(risk_level, reasons),
            confidence=compute_confidence(reasons),
            model_version=self._config.model_version,
            processed_at=self._clock(),
            degraded_analyzers=[r.category for r in analyzer_results if r.degraded],
        )

    def _audit(
        self,
        context: TransactionContext,
        result: FraudDetectionResult,
        duration_ms: float,
        failed: bool,
    ) -> None:
        try:
            events = [build_analysis_event(context, result, duration_ms, failed=failed)]
            escalation = build_escalation_event(context, result)
            if escalation is not None:
                events.append(escalation)
        except Exception:
            logger.exception("audit_event_build_failed", transaction_id=context.transaction_id)
            return

        for event in events:
            self._spawn(self._deliver_event(event))

    async def _deliver_event(self, event: SecurityEvent) -> None:
        try:
            await self._audit_sink.submit_event(event)
        except Exception:
            logger.exception(
                "audit_submit_failed",
                event_id=event.id,
                event_type=event.event_type.value,
                transaction_id=event.transaction_id,
            )

    async def report_feedback(self, transaction_id: str, is_fraud: bool) -> None:
        """Queue ground-truth feedback for the model-improvement pipeline.

        Returns immediately; delivery is best-effort and failures are logged.
        """
        feedback = FraudFeedback(
            transaction_id=transaction_id,
            is_fraud=is_fraud,
            model_version=self._config.model_version,
            reported_at=self._clock(),
        )
        self._spawn(self._deliver_feedback(feedback))

    async def _deliver_feedback(self, feedback: FraudFeedback) -> None:
        try:
            await self._audit_sink.submit_feedback(feedback)
            logger.info(
                "fraud_feedback_reported",
                transaction_id=feedback.transaction_id,
                is_fraud=feedback.is_fraud,
            )
        except Exception:
            logger.exception("audit_submit_failed", transaction_id=feedback.transaction_id)

    def _spawn(self, coro) -> None:
        task = asyncio.create_task(coro)
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def drain(self) -> None:
        """Wait for every queued audit/feedback delivery to finish."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    async def aclose(self) -> None:
        await self.drain()
        await self._audit_sink.close()
