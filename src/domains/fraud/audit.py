"""Audit trail: security event construction and delivery sinks."""

import asyncio
import uuid
from typing import Protocol

import structlog
from aiokafka import AIOKafkaProducer

from src.shared.kafka_utils import (
    FRAUD_FEEDBACK_TOPIC,
    SECURITY_EVENTS_TOPIC,
    create_producer,
)

from .models import (
    FraudDetectionResult,
    FraudFeedback,
    RiskLevel,
    SecurityActionType,
    SecurityEvent,
    SecurityEventType,
    SecuritySeverity,
    TransactionContext,
)

logger = structlog.get_logger()

_LEVEL_SEVERITY = {
    RiskLevel.VERY_LOW: SecuritySeverity.LOW,
    RiskLevel.LOW: SecuritySeverity.LOW,
    RiskLevel.MEDIUM: SecuritySeverity.MEDIUM,
    RiskLevel.HIGH: SecuritySeverity.HIGH,
    RiskLevel.VERY_HIGH: SecuritySeverity.CRITICAL,
}

ESCALATION_ACTIONS = frozenset(
    {SecurityActionType.BLOCK_TRANSACTION, SecurityActionType.ESCALATE_TO_ADMIN}
)


class AuditSink(Protocol):
    async def submit_event(self, event: SecurityEvent) -> None: ...

    async def submit_feedback(self, feedback: FraudFeedback) -> None: ...

    async def close(self) -> None: ...


def severity_for_level(level: RiskLevel) -> SecuritySeverity:
    return _LEVEL_SEVERITY[level]


def _new_event_id() -> str:
    return f"evt_{uuid.uuid4().hex[:12]}"


def _context_fields(context: TransactionContext) -> dict:
    return {
        "transaction_id": context.transaction_id,
        "user_id": context.user_id,
        "ip_address": context.ip_address or "unknown",
        "user_agent": context.user_agent or "unknown",
    }


def build_analysis_event(
    context: TransactionContext,
    result: FraudDetectionResult,
    duration_ms: float,
    failed: bool = False,
) -> SecurityEvent:
    """Audit record for one evaluation, successful or failsafe."""
    if failed:
        event_type = SecurityEventType.FRAUD_ANALYSIS_FAILED
        description = "Fraud analysis failed - failsafe result returned"
    else:
        event_type = SecurityEventType.FRAUD_ANALYSIS
        description = f"Fraud analysis completed: score {result.risk_score} ({result.risk_level.value})"

    return SecurityEvent(
        id=_new_event_id(),
        timestamp=result.processed_at,
        event_type=event_type,
        severity=severity_for_level(result.risk_level),
        description=description,
        metadata={
            "risk_score": result.risk_score,
            "risk_level": result.risk_level.value,
            "confidence": result.confidence,
            "reason_codes": [r.code for r in result.reasons],
            "recommended_actions": [a.value for a in result.recommended_actions],
            "degraded_analyzers": [c.value for c in result.degraded_analyzers],
            "model_version": result.model_version,
            "processing_time_ms": duration_ms,
            "amount": str(context.amount),
            "currency": context.currency,
            "device_fingerprint_id": context.device_fingerprint_id,
        },
        **_context_fields(context),
    )


def build_escalation_event(
    context: TransactionContext, result: FraudDetectionResult
) -> SecurityEvent | None:
    """Extra CRITICAL record when the result asks to block or escalate."""
    escalations = [a for a in result.recommended_actions if a in ESCALATION_ACTIONS]
    if not escalations:
        return None

    return SecurityEvent(
        id=_new_event_id(),
        timestamp=result.processed_at,
        event_type=SecurityEventType.SUSPICIOUS_TRANSACTION,
        severity=SecuritySeverity.CRITICAL,
        description=f"Transaction escalated due to high fraud risk (score: {result.risk_score})",
        metadata={
            "risk_score": result.risk_score,
            "actions": [a.value for a in escalations],
            "reason_codes": [r.code for r in result.reasons],
        },
        **_context_fields(context),
    )


class LoggingAuditSink:
    """Writes audit records to the structured log only."""

    async def submit_event(self, event: SecurityEvent) -> None:
        logger.info(
            "security_event",
            event_id=event.id,
            event_type=event.event_type.value,
            severity=event.severity.value,
            transaction_id=event.transaction_id,
            user_id=event.user_id,
            description=event.description,
            metadata=event.metadata,
        )

    async def submit_feedback(self, feedback: FraudFeedback) -> None:
        logger.info(
            "fraud_feedback",
            transaction_id=feedback.transaction_id,
            is_fraud=feedback.is_fraud,
            model_version=feedback.model_version,
        )

    async def close(self) -> None:
        return None


class KafkaAuditSink:
    """Publishes audit records to Kafka with bounded retries.

    A record is retried until the broker acknowledges it or `max_attempts`
    is exhausted, in which case the last error is raised to the caller.
    """

    def __init__(
        self,
        bootstrap_servers: str,
        events_topic: str = SECURITY_EVENTS_TOPIC,
        feedback_topic: str = FRAUD_FEEDBACK_TOPIC,
        max_attempts: int = 3,
        retry_backoff_seconds: float = 0.5,
        producer: AIOKafkaProducer | None = None,
    ) -> None:
        self._bootstrap_servers = bootstrap_servers
        self._events_topic = events_topic
        self._feedback_topic = feedback_topic
        self._max_attempts = max(1, max_attempts)
        self._backoff = retry_backoff_seconds
        self._producer = producer
        self._start_lock = asyncio.Lock()

    async def start(self) -> None:
        async with self._start_lock:
            if self._producer is None:
                self._producer = await create_producer(self._bootstrap_servers)

    async def submit_event(self, event: SecurityEvent) -> None:
        await self._publish(
            self._events_topic,
            key=event.user_id or event.id,
            payload=event.model_dump(mode="json"),
        )

    async def submit_feedback(self, feedback: FraudFeedback) -> None:
        await self._publish(
            self._feedback_topic,
            key=feedback.transaction_id,
            payload=feedback.model_dump(mode="json"),
        )

    async def _publish(self, topic: str, key: str, payload: dict) -> None:
        if self._producer is None:
            await self.start()

        for attempt in range(1, self._max_attempts + 1):
            try:
                await self._producer.send_and_wait(topic, value=payload, key=key.encode("utf-8"))
                logger.debug("audit_published", topic=topic, key=key, attempt=attempt)
                return
            except Exception as exc:
                if attempt == self._max_attempts:
                    raise
                logger.warning(
                    "audit_publish_retry",
                    topic=topic,
                    attempt=attempt,
                    error=str(exc),
                )
                await asyncio.sleep(self._backoff * attempt)

    async def close(self) -> None:
        if self._producer is not None:
            await self._producer.stop()
            self._producer = None

