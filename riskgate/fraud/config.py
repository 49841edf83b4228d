"""Fraud engine policy configuration with sensible defaults."""

import os
from dataclasses import dataclass, field
from decimal import Decimal


@dataclass
class VelocityThresholds:
    high_frequency_window_seconds: int = 60
    high_frequency_count: int = 5
    rapid_sequence_seconds: float = 5.0
    daily_count_max: int = 20
    spike_multiplier: int = 5
    failed_window_hours: int = 1
    failed_count_max: int = 3


@dataclass
class AmountThresholds:
    large_txn_over: Decimal = Decimal("50000")
    structuring_floor: Decimal = Decimal("9500")
    reporting_threshold: Decimal = Decimal("10000")
    round_amounts: tuple[Decimal, ...] = (
        Decimal("1000"),
        Decimal("5000"),
        Decimal("10000"),
        Decimal("20000"),
        Decimal("50000"),
        Decimal("100000"),
    )
    micro_deposit_under: Decimal = Decimal("1")
    repeated_amount_count: int = 3
    deviation_multiplier: Decimal = Decimal("10")
    deviation_lookback_days: int = 30
    daily_limit: Decimal = Decimal("100000")
    odd_decimal_min_amount: Decimal = Decimal("1000")
    round_fractions: tuple[Decimal, ...] = (
        Decimal("0.00"),
        Decimal("0.25"),
        Decimal("0.50"),
        Decimal("0.75"),
    )


@dataclass
class BehavioralThresholds:
    new_account_hours: int = 24
    new_account_amount_over: Decimal = Decimal("1000")
    first_txn_amount_over: Decimal = Decimal("5000")
    dormant_days: int = 30
    unusual_hour_start: int = 2
    unusual_hour_end: int = 6
    local_timezone: str = "UTC"
    reciprocal_window_hours: int = 1
    distinct_recipients_max: int = 5
    deposit_match_window_minutes: int = 30
    deposit_match_tolerance: Decimal = Decimal("100")
    weekend_count_min: int = 10
    same_recipient_count: int = 5
    balance_drain_ratio: Decimal = Decimal("0.95")


@dataclass
class ScoringPolicy:
    # (minimum count, multiplier), checked top-down
    high_severity_multipliers: tuple[tuple[int, Decimal], ...] = (
        (3, Decimal("1.5")),
        (2, Decimal("1.3")),
        (1, Decimal("1.2")),
    )
    medium_severity_multipliers: tuple[tuple[int, Decimal], ...] = ((3, Decimal("1.15")),)
    count_multipliers: tuple[tuple[int, Decimal], ...] = (
        (10, Decimal("1.5")),
        (7, Decimal("1.3")),
        (5, Decimal("1.2")),
        (3, Decimal("1.1")),
    )
    max_score: int = 100
    critical_from: int = 80
    high_from: int = 60
    medium_from: int = 40
    low_from: int = 20


@dataclass
class DecisionThresholds:
    block_from: int = 80
    review_from: int = 60
    challenge_from: int = 40


@dataclass
class EngineSettings:
    parallel_detectors: bool = True
    timeout_seconds: float | None = None
    log_high_risk_from: int = 60
    log_medium_risk_from: int = 40


@dataclass
class AuditSettings:
    max_attempts: int = 3
    retry_backoff_seconds: float = 0.5


@dataclass
class FraudConfig:
    velocity: VelocityThresholds = field(default_factory=VelocityThresholds)
    amount: AmountThresholds = field(default_factory=AmountThresholds)
    behavioral: BehavioralThresholds = field(default_factory=BehavioralThresholds)
    scoring: ScoringPolicy = field(default_factory=ScoringPolicy)
    decision: DecisionThresholds = field(default_factory=DecisionThresholds)
    engine: EngineSettings = field(default_factory=EngineSettings)
    audit: AuditSettings = field(default_factory=AuditSettings)

    @classmethod
    def from_env(cls) -> "FraudConfig":
        """Load config with env var overrides. Env vars use FRAUD_ prefix."""
        config = cls()

        # Velocity overrides
        if v := os.getenv("FRAUD_HIGH_FREQUENCY_COUNT"):
            config.velocity.high_frequency_count = int(v)
        if v := os.getenv("FRAUD_DAILY_COUNT_MAX"):
            config.velocity.daily_count_max = int(v)

        # Amount overrides
        if v := os.getenv("FRAUD_LARGE_TXN_OVER"):
            config.amount.large_txn_over = Decimal(v)
        if v := os.getenv("FRAUD_REPORTING_THRESHOLD"):
            config.amount.reporting_threshold = Decimal(v)
        if v := os.getenv("FRAUD_STRUCTURING_FLOOR"):
            config.amount.structuring_floor = Decimal(v)
        if v := os.getenv("FRAUD_DAILY_LIMIT"):
            config.amount.daily_limit = Decimal(v)

        # Behavioral overrides
        if v := os.getenv("FRAUD_LOCAL_TIMEZONE"):
            config.behavioral.local_timezone = v

        # Decision overrides
        if v := os.getenv("FRAUD_BLOCK_FROM"):
            config.decision.block_from = int(v)
        if v := os.getenv("FRAUD_REVIEW_FROM"):
            config.decision.review_from = int(v)
        if v := os.getenv("FRAUD_CHALLENGE_FROM"):
            config.decision.challenge_from = int(v)

        # Engine overrides
        if v := os.getenv("FRAUD_PARALLEL_DETECTORS"):
            config.engine.parallel_detectors = v.lower() in ("1", "true", "yes")
        if v := os.getenv("FRAUD_TIMEOUT_SECONDS"):
            config.engine.timeout_seconds = float(v)

        # Audit overrides
        if v := os.getenv("FRAUD_AUDIT_MAX_ATTEMPTS"):
            config.audit.max_attempts = int(v)

        return config


# Module-level default instance
default_config = FraudConfig()
