"""Fraud engine configuration with sensible defaults.

Every weight, threshold and timeout the analyzers and the scoring pipeline
use lives here. Sections that carry invariants validate themselves on
construction; `FraudConfig.validate()` re-checks the whole tree because the
dataclasses stay mutable after construction.
"""

import os
from dataclasses import dataclass, field

WEIGHT_TOLERANCE = 1e-6


@dataclass
class RiskWeights:
    """Aggregation weights per analyzer. Changed only as a matched set."""

    velocity: float = 0.25
    location: float = 0.20
    device: float = 0.15
    behavioral: float = 0.20
    transactional: float = 0.20

    def __post_init__(self) -> None:
        self.validate()

    def as_tuple(self) -> tuple[float, float, float, float, float]:
        return (self.velocity, self.location, self.device, self.behavioral, self.transactional)

    def validate(self) -> None:
        weights = self.as_tuple()
        if any(w < 0 for w in weights):
            raise ValueError(f"Risk weights must be non-negative, got {weights}")
        total = sum(weights)
        if abs(total - 1.0) > WEIGHT_TOLERANCE:
            raise ValueError(f"Risk weights must sum to 1.0, got {total:.4f}")


@dataclass
class RiskLevelThresholds:
    """Lower bounds (inclusive) of each risk level above VERY_LOW."""

    very_high: int = 80
    high: int = 60
    medium: int = 40
    low: int = 20

    def __post_init__(self) -> None:
        self.validate()

    def validate(self) -> None:
        ordered = (self.very_high, self.high, self.medium, self.low)
        if not all(0 < t <= 100 for t in ordered):
            raise ValueError(f"Risk level thresholds must be in (0, 100], got {ordered}")
        if any(a <= b for a, b in zip(ordered, ordered[1:])):
            raise ValueError(f"Risk level thresholds must be strictly descending, got {ordered}")


@dataclass
class VelocityThresholds:
    # Current amount above this multiple of the 7-day hourly average is a spike
    spike_multiplier: float = 5.0


@dataclass
class LocationThresholds:
    max_travel_speed_kmh: float = 900.0
    min_location_consistency: float = 0.3
    empty_history_consistency: float = 0.5
    # Consulted by the in-memory data source; remote sources own their list
    high_risk_countries: tuple[str, ...] = ("KP", "IR", "SY", "CU")


@dataclass
class DeviceThresholds:
    low_trust_score: int = 50
    max_associated_users: int = 3
    insecure_agent_patterns: tuple[str, ...] = ("bot", "crawler", "spider", "scraper")


@dataclass
class BehavioralThresholds:
    amount_stddev_multiplier: float = 3.0


@dataclass
class TransactionalThresholds:
    high_value_amount: float = 10_000.0
    round_amount_divisors: tuple[int, ...] = (100, 50)
    high_risk_payment_methods: tuple[str, ...] = ("prepaid_card", "gift_card", "cryptocurrency")
    # Multipliers into USD; currencies missing here are taken at par
    usd_rates: dict[str, float] = field(default_factory=lambda: {"USD": 1.0})


@dataclass
class FallbackScores:
    """Sub-scores reported when an analyzer cannot reach its data."""

    velocity: int = 10
    location: int = 5
    device: int = 5
    behavioral: int = 5
    transactional: int = 5

    def validate(self) -> None:
        scores = (self.velocity, self.location, self.device, self.behavioral, self.transactional)
        if not all(0 <= s <= 100 for s in scores):
            raise ValueError(f"Fallback scores must be in [0, 100], got {scores}")


@dataclass
class TimeoutSettings:
    analyzer_seconds: float = 2.0

    def validate(self) -> None:
        if self.analyzer_seconds <= 0:
            raise ValueError(f"Analyzer timeout must be positive, got {self.analyzer_seconds}")


@dataclass
class RateLimitSettings:
    transaction_max_attempts: int = 10
    transaction_window_seconds: float = 60
    api_max_attempts: int = 100
    api_window_seconds: float = 60


@dataclass
class FraudConfig:
    weights: RiskWeights = field(default_factory=RiskWeights)
    levels: RiskLevelThresholds = field(default_factory=RiskLevelThresholds)
    velocity: VelocityThresholds = field(default_factory=VelocityThresholds)
    location: LocationThresholds = field(default_factory=LocationThresholds)
    device: DeviceThresholds = field(default_factory=DeviceThresholds)
    behavioral: BehavioralThresholds = field(default_factory=BehavioralThresholds)
    transactional: TransactionalThresholds = field(default_factory=TransactionalThresholds)
    fallback: FallbackScores = field(default_factory=FallbackScores)
    timeouts: TimeoutSettings = field(default_factory=TimeoutSettings)
    rate_limits: RateLimitSettings = field(default_factory=RateLimitSettings)
    model_version: str = "2.1.0"

    def validate(self) -> "FraudConfig":
        """Fail fast on any invariant violation. Returns self for chaining."""
        self.weights.validate()
        self.levels.validate()
        self.fallback.validate()
        self.timeouts.validate()
        if not 0 <= self.location.min_location_consistency <= 1:
            raise ValueError("Location consistency threshold must be in [0, 1]")
        if self.location.max_travel_speed_kmh <= 0:
            raise ValueError("Max travel speed must be positive")
        if self.velocity.spike_multiplier <= 0:
            raise ValueError("Spike multiplier must be positive")
        return self

    @classmethod
    def from_env(cls) -> "FraudConfig":
        """Load config with env var overrides. Env vars use FRAUD_ prefix."""
        config = cls()

        # Weights are replaced as a matched set so they re-validate
        if v := os.getenv("FRAUD_RISK_WEIGHTS"):
            parts = [float(p) for p in v.split(",")]
            if len(parts) != 5:
                raise ValueError(f"FRAUD_RISK_WEIGHTS needs 5 values, got {len(parts)}")
            config.weights = RiskWeights(*parts)

        if v := os.getenv("FRAUD_ANALYZER_TIMEOUT_SECONDS"):
            config.timeouts.analyzer_seconds = float(v)
        if v := os.getenv("FRAUD_MAX_TRAVEL_SPEED_KMH"):
            config.location.max_travel_speed_kmh = float(v)
        if v := os.getenv("FRAUD_HIGH_RISK_COUNTRIES"):
            config.location.high_risk_countries = tuple(
                c.strip().upper() for c in v.split(",") if c.strip()
            )
        if v := os.getenv("FRAUD_HIGH_VALUE_AMOUNT"):
            config.transactional.high_value_amount = float(v)
        if v := os.getenv("FRAUD_MODEL_VERSION"):
            config.model_version = v

        return config.validate()


# Module-level default instance
default_config = FraudConfig()
