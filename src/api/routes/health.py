"""Health and readiness endpoints."""

import structlog
from fastapi import APIRouter
from fastapi.responses import JSONResponse

from src.api.routes.fraud import get_engine
from src.config import settings

logger = structlog.get_logger()
router = APIRouter(tags=["health"])


@router.get("/health")
async def health() -> dict:
    from src.main import get_uptime

    return {
        "status": "healthy",
        "version": settings.app_version,
        "uptime_seconds": get_uptime(),
    }


@router.get("/ready")
async def ready() -> JSONResponse:
    engine_ok = False
    model_version = None
    try:
        engine = get_engine()
        model_version = engine.config.model_version
        engine_ok = True
    except ValueError as exc:
        # Invalid FRAUD_* configuration keeps the service out of rotation
        logger.warning("engine_not_ready", error=str(exc))

    return JSONResponse(
        status_code=200 if engine_ok else 503,
        content={
            "status": "ready" if engine_ok else "degraded",
            "engine": engine_ok,
            "model_version": model_version,
            "audit_kafka_enabled": settings.audit_kafka_enabled,
        },
    )
