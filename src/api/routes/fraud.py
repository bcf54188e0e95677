"""Fraud evaluation, feedback and configuration endpoints."""

import structlog
from fastapi import APIRouter, Depends, HTTPException

from src.config import Settings, settings
from src.domains.fraud.audit import KafkaAuditSink, LoggingAuditSink
from src.domains.fraud.collaborators import HttpSecurityDataSource, InMemorySecurityDataSource
from src.domains.fraud.config import FraudConfig
from src.domains.fraud.decision import PaymentDecisionFlow
from src.domains.fraud.engine import FraudDetectionEngine
from src.domains.fraud.models import FeedbackRequest, FraudDetectionResult, TransactionContext
from src.domains.fraud.rate_limiter import transaction_rate_limiter

logger = structlog.get_logger()
router = APIRouter(prefix="/api/v1/fraud", tags=["fraud"])

_engine: FraudDetectionEngine | None = None
_source: HttpSecurityDataSource | InMemorySecurityDataSource | None = None


def build_engine(app_settings: Settings) -> FraudDetectionEngine:
    """Wire the engine from process settings and FRAUD_* env overrides."""
    global _source
    config = FraudConfig.from_env()

    if app_settings.security_api_base_url:
        _source = HttpSecurityDataSource(
            app_settings.security_api_base_url,
            timeout_seconds=app_settings.security_api_timeout_seconds,
        )
    else:
        logger.warning("security_api_not_configured", source="in_memory")
        _source = InMemorySecurityDataSource(config=config)

    if app_settings.audit_kafka_enabled:
        sink = KafkaAuditSink(
            app_settings.kafka_bootstrap_servers,
            events_topic=app_settings.audit_events_topic,
            feedback_topic=app_settings.audit_feedback_topic,
            max_attempts=app_settings.audit_publish_attempts,
            retry_backoff_seconds=app_settings.audit_retry_backoff_seconds,
        )
    else:
        sink = LoggingAuditSink()

    return FraudDetectionEngine(_source, audit_sink=sink, config=config)


def get_engine() -> FraudDetectionEngine:
    """Get or create the process-wide engine."""
    global _engine
    if _engine is None:
        _engine = build_engine(settings)
    return _engine


async def close_engine() -> None:
    global _engine, _source
    if _engine is not None:
        await _engine.aclose()
        _engine = None
    if isinstance(_source, HttpSecurityDataSource):
        await _source.aclose()
    _source = None


@router.post("/evaluate", response_model=FraudDetectionResult)
async def evaluate_transaction(
    context: TransactionContext,
    engine: FraudDetectionEngine = Depends(get_engine),  # noqa: B008
) -> FraudDetectionResult:
    if not transaction_rate_limiter.is_allowed(context.user_id):
        raise HTTPException(
            status_code=429,
            detail={
                "error": "rate_limited",
                "message": "Too many transaction attempts",
                "retry_after_seconds": transaction_rate_limiter.window_seconds,
            },
        )
    return await engine.evaluate(context)


@router.post("/feedback", status_code=202)
async def report_feedback(
    request: FeedbackRequest,
    engine: FraudDetectionEngine = Depends(get_engine),  # noqa: B008
) -> dict:
    await engine.report_feedback(request.transaction_id, request.is_fraud)
    return {"status": "accepted", "transaction_id": request.transaction_id}


@router.get("/config")
async def get_config(
    engine: FraudDetectionEngine = Depends(get_engine),  # noqa: B008
) -> dict:
    config = engine.config
    return {
        "model_version": config.model_version,
        "weights": {
            "velocity": config.weights.velocity,
            "location": config.weights.location,
            "device": config.weights.device,
            "behavioral": config.weights.behavioral,
            "transactional": config.weights.transactional,
        },
        "risk_levels": {
            "very_high": config.levels.very_high,
            "high": config.levels.high,
            "medium": config.levels.medium,
            "low": config.levels.low,
        },
        "analyzer_timeout_seconds": config.timeouts.analyzer_seconds,
        "high_risk_countries": list(config.location.high_risk_countries),
        "high_value_amount": config.transactional.high_value_amount,
    }


@router.post("/authorize")
async def authorize_payment(
    context: TransactionContext,
    engine: FraudDetectionEngine = Depends(get_engine),  # noqa: B008
) -> dict:
    """Route a payment to review or processing; blocked payments raise 403."""
    if not transaction_rate_limiter.is_allowed(context.user_id):
        raise HTTPException(
            status_code=429,
            detail={
                "error": "rate_limited",
                "message": "Too many transaction attempts",
                "retry_after_seconds": transaction_rate_limiter.window_seconds,
            },
        )
    flow = PaymentDecisionFlow(context)
    step = await flow.analyze(engine)
    return {
        "transaction_id": context.transaction_id,
        "step": step.value,
        "result": flow.result.model_dump(mode="json"),
    }
