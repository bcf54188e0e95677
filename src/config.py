"""Application configuration via environment variables."""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    app_name: str = "fraud-risk-engine"
    app_version: str = "0.1.0"
    debug: bool = False
    log_level: str = "INFO"

    host: str = "0.0.0.0"
    port: int = 8000

    # Security data service backing velocity/location/device/profile lookups.
    # Empty means an in-memory source with no history.
    security_api_base_url: str = ""
    security_api_timeout_seconds: float = 2.0

    kafka_bootstrap_servers: str = "localhost:9092"

    # Audit trail
    audit_kafka_enabled: bool = False
    audit_events_topic: str = "payments.security.events"
    audit_feedback_topic: str = "payments.fraud.feedback"
    audit_publish_attempts: int = 3
    audit_retry_backoff_seconds: float = 0.5

    model_config = {"env_prefix": "", "env_file": ".env", "extra": "ignore"}


settings = Settings()
