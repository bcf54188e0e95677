"""FastAPI application entry point for the fraud risk engine."""

import time
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from src.api.middleware.error_handler import global_exception_handler
from src.api.middleware.logging import StructuredLoggingMiddleware
from src.api.middleware.rate_limit import ApiRateLimitMiddleware
from src.api.routes.fraud import close_engine, get_engine
from src.api.routes.fraud import router as fraud_router
from src.api.routes.health import router as health_router
from src.config import settings
from src.domains.fraud.decision import TransactionBlockedError
from src.shared.logging import setup_logging

logger = structlog.get_logger()

# Track app start time for uptime calculation
APP_START_TIME: float = 0.0


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan: startup and shutdown logic."""
    global APP_START_TIME
    APP_START_TIME = time.time()
    setup_logging(settings.log_level)

    logger.info(
        "fraud_engine_starting",
        app_name=settings.app_name,
        version=settings.app_version,
        debug=settings.debug,
    )

    # Fail fast on invalid FRAUD_* configuration
    get_engine()

    yield

    # Flush queued audit deliveries before the sink goes away
    await close_engine()
    logger.info("fraud_engine_shutting_down")


app = FastAPI(
    title="Fraud Risk Engine",
    description="Real-time multi-signal fraud risk scoring for payment transactions",
    version=settings.app_version,
    lifespan=lifespan,
)

# CORS for local development
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"] if settings.debug else [],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Per-client throttling sits inside the logging middleware so 429s carry a request id
app.add_middleware(ApiRateLimitMiddleware)
app.add_middleware(StructuredLoggingMiddleware)

# Global exception handlers; domain errors first so they resolve without a 500
app.add_exception_handler(TransactionBlockedError, global_exception_handler)
app.add_exception_handler(Exception, global_exception_handler)

# Register routers
app.include_router(health_router)
app.include_router(fraud_router)


def get_uptime() -> int:
    """Get application uptime in seconds."""
    if APP_START_TIME == 0.0:
        return 0
    return int(time.time() - APP_START_TIME)
