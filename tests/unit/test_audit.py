"""Tests for audit event construction and the audit sinks."""

import asyncio
from unittest.mock import AsyncMock

import pytest
from structlog.testing import capture_logs

from src.domains.fraud.audit import (
    KafkaAuditSink,
    LoggingAuditSink,
    build_analysis_event,
    build_escalation_event,
    severity_for_level,
)
from src.domains.fraud.models import (
    FraudCategory,
    FraudDetectionResult,
    FraudFeedback,
    FraudReason,
    RiskLevel,
    SecurityActionType,
    SecurityEventType,
    SecuritySeverity,
)
from src.domains.fraud.scoring import failsafe_result
from tests.conftest import NOW, make_context

A = SecurityActionType


def _result(score: int, level: RiskLevel, actions, reasons=()) -> FraudDetectionResult:
    return FraudDetectionResult(
        risk_score=score,
        risk_level=level,
        reasons=list(reasons),
        recommended_actions=list(actions),
        confidence=0.8,
        model_version="2.1.0",
        processed_at=NOW,
        degraded_analyzers=[FraudCategory.LOCATION],
    )


VERY_HIGH = _result(
    88,
    RiskLevel.VERY_HIGH,
    [A.BLOCK_TRANSACTION, A.ESCALATE_TO_ADMIN, A.TEMPORARY_ACCOUNT_LOCK],
    [FraudReason(code="IMPOSSIBLE_TRAVEL", weight=0.4, category=FraudCategory.LOCATION)],
)
LOW = _result(22, RiskLevel.LOW, [A.ALERT_SENT])


class TestSeverity:
    @pytest.mark.parametrize(
        "level,severity",
        [
            (RiskLevel.VERY_LOW, SecuritySeverity.LOW),
            (RiskLevel.LOW, SecuritySeverity.LOW),
            (RiskLevel.MEDIUM, SecuritySeverity.MEDIUM),
            (RiskLevel.HIGH, SecuritySeverity.HIGH),
            (RiskLevel.VERY_HIGH, SecuritySeverity.CRITICAL),
        ],
    )
    def test_level_mapping(self, level, severity):
        assert severity_for_level(level) == severity


class TestBuildEvents:
    def test_analysis_event(self):
        context = make_context(ip_address="203.0.113.10")
        event = build_analysis_event(context, VERY_HIGH, duration_ms=12.5)

        assert event.id.startswith("evt_")
        assert event.event_type == SecurityEventType.FRAUD_ANALYSIS
        assert event.severity == SecuritySeverity.CRITICAL
        assert event.timestamp == NOW
        assert event.transaction_id == "txn-1"
        assert event.user_id == "user-1"
        assert event.ip_address == "203.0.113.10"
        assert event.resolved is False
        assert event.metadata["risk_score"] == 88
        assert event.metadata["reason_codes"] == ["IMPOSSIBLE_TRAVEL"]
        assert event.metadata["recommended_actions"] == [
            "block_transaction",
            "escalate_to_admin",
            "temporary_account_lock",
        ]
        assert event.metadata["degraded_analyzers"] == ["location"]
        assert event.metadata["processing_time_ms"] == 12.5
        assert event.metadata["amount"] == "47.25"

    def test_missing_network_fields_are_unknown(self):
        event = build_analysis_event(make_context(ip_address="", user_agent=""), LOW, 1.0)
        assert event.ip_address == "unknown"
        assert event.user_agent == "unknown"

    def test_failed_analysis_event(self):
        event = build_analysis_event(make_context(), failsafe_result("2.1.0", NOW), 3.0, failed=True)
        assert event.event_type == SecurityEventType.FRAUD_ANALYSIS_FAILED
        assert event.severity == SecuritySeverity.MEDIUM
        assert event.metadata["reason_codes"] == ["ANALYSIS_FAILED"]

    def test_unique_event_ids(self):
        context = make_context()
        ids = {build_analysis_event(context, LOW, 1.0).id for _ in range(50)}
        assert len(ids) == 50

    def test_escalation_for_block(self):
        event = build_escalation_event(make_context(), VERY_HIGH)
        assert event is not None
        assert event.event_type == SecurityEventType.SUSPICIOUS_TRANSACTION
        assert event.severity == SecuritySeverity.CRITICAL
        assert event.metadata["actions"] == ["block_transaction", "escalate_to_admin"]

    def test_no_escalation_below_very_high(self):
        assert build_escalation_event(make_context(), LOW) is None


class TestLoggingAuditSink:
    @pytest.mark.asyncio
    async def test_logs_event_and_feedback(self):
        sink = LoggingAuditSink()
        event = build_analysis_event(make_context(), LOW, 1.0)
        feedback = FraudFeedback(
            transaction_id="txn-1", is_fraud=True, model_version="2.1.0", reported_at=NOW
        )

        with capture_logs() as logs:
            await sink.submit_event(event)
            await sink.submit_feedback(feedback)
            await sink.close()

        assert [e["event"] for e in logs] == ["security_event", "fraud_feedback"]
        assert logs[0]["event_id"] == event.id
        assert logs[1]["is_fraud"] is True


class TestKafkaAuditSink:
    @pytest.mark.asyncio
    async def test_publishes_event_keyed_by_user(self):
        producer = AsyncMock()
        sink = KafkaAuditSink("kafka:9092", producer=producer)
        event = build_analysis_event(make_context(), LOW, 1.0)

        await sink.submit_event(event)

        producer.send_and_wait.assert_awaited_once()
        args, kwargs = producer.send_and_wait.call_args
        assert args == ("payments.security.events",)
        assert kwargs["key"] == b"user-1"
        assert kwargs["value"]["id"] == event.id
        assert kwargs["value"]["event_type"] == "fraud_analysis"

    @pytest.mark.asyncio
    async def test_publishes_feedback_to_feedback_topic(self):
        producer = AsyncMock()
        sink = KafkaAuditSink("kafka:9092", feedback_topic="fraud.labels", producer=producer)
        feedback = FraudFeedback(
            transaction_id="txn-9", is_fraud=False, model_version="2.1.0", reported_at=NOW
        )

        await sink.submit_feedback(feedback)

        args, kwargs = producer.send_and_wait.call_args
        assert args == ("fraud.labels",)
        assert kwargs["key"] == b"txn-9"
        assert kwargs["value"]["is_fraud"] is False

    @pytest.mark.asyncio
    async def test_retries_until_acknowledged(self):
        producer = AsyncMock()
        producer.send_and_wait.side_effect = [ConnectionError("broker down"), None]
        sink = KafkaAuditSink("kafka:9092", retry_backoff_seconds=0, producer=producer)

        with capture_logs() as logs:
            await sink.submit_event(build_analysis_event(make_context(), LOW, 1.0))

        assert producer.send_and_wait.await_count == 2
        assert [e["attempt"] for e in logs if e["event"] == "audit_publish_retry"] == [1]

    @pytest.mark.asyncio
    async def test_raises_after_max_attempts(self):
        producer = AsyncMock()
        producer.send_and_wait.side_effect = ConnectionError("broker down")
        sink = KafkaAuditSink(
            "kafka:9092", max_attempts=3, retry_backoff_seconds=0, producer=producer
        )

        with pytest.raises(ConnectionError):
            await sink.submit_event(build_analysis_event(make_context(), LOW, 1.0))
        assert producer.send_and_wait.await_count == 3

    @pytest.mark.asyncio
    async def test_close_stops_producer(self):
        producer = AsyncMock()
        sink = KafkaAuditSink("kafka:9092", producer=producer)
        await sink.close()
        producer.stop.assert_awaited_once()
        # Second close is a no-op
        await sink.close()
        producer.stop.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_concurrent_submits_start_one_producer(self, monkeypatch):
        producer = AsyncMock()

        async def slow_create(bootstrap_servers):
            await asyncio.sleep(0)
            return producer

        create = AsyncMock(side_effect=slow_create)
        monkeypatch.setattr("src.domains.fraud.audit.create_producer", create)
        sink = KafkaAuditSink("kafka:9092")
        context = make_context()

        await asyncio.gather(
            sink.submit_event(build_analysis_event(context, VERY_HIGH, 1.0)),
            sink.submit_event(build_escalation_event(context, VERY_HIGH)),
        )

        assert create.await_count == 1
        assert producer.send_and_wait.await_count == 2
