"""Pydantic models for the fraud domain."""

from collections.abc import Mapping
from datetime import UTC, datetime
from decimal import Decimal, InvalidOperation
from enum import StrEnum
from types import MappingProxyType
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator

CURRENCY_QUANTUM = Decimal("0.01")


def to_money(value: Any) -> Decimal:
    """Convert ``value`` to a currency-scale Decimal without passing through binary floats.

    Values finer than 0.01 are rejected rather than rounded, so an amount can
    never be moved across a rule threshold.
    """
    if isinstance(value, float):
        value = repr(value)
    try:
        amount = Decimal(value)
    except (InvalidOperation, TypeError) as exc:
        raise ValueError(f"not a decimal amount: {value!r}") from exc
    if not amount.is_finite():
        raise ValueError(f"amount must be finite: {value!r}")
    try:
        quantized = amount.quantize(CURRENCY_QUANTUM)
    except InvalidOperation as exc:
        raise ValueError(f"amount out of range: {value!r}") from exc
    if quantized != amount:
        raise ValueError(f"amount finer than {CURRENCY_QUANTUM}: {value!r}")
    return quantized


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


class TransactionType(StrEnum):
    DEPOSIT = "deposit"
    TRANSFER_SENT = "transfer_sent"
    TRANSFER_RECEIVED = "transfer_received"
    WITHDRAWAL = "withdrawal"
    PAYMENT = "payment"
    REFUND = "refund"


class TransactionStatus(StrEnum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    REVERSED = "reversed"


class SignalCategory(StrEnum):
    VELOCITY = "velocity"
    AMOUNT = "amount"
    BEHAVIORAL = "behavioral"


class Severity(StrEnum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class RiskLevel(StrEnum):
    MINIMAL = "minimal"
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"
    UNKNOWN = "unknown"


class Action(StrEnum):
    ALLOW = "allow"
    CHALLENGE = "challenge"
    REVIEW = "review"
    BLOCK = "block"


class Transaction(BaseModel):
    """A transaction submitted for assessment. Immutable once built."""

    model_config = ConfigDict(frozen=True)

    user_id: str = Field(min_length=1)
    type: TransactionType
    amount: Decimal
    timestamp: datetime
    recipient_id: str | None = None
    transaction_id: str | None = None

    @field_validator("amount", mode="before")
    @classmethod
    def _parse_amount(cls, value: Any) -> Decimal:
        return to_money(value)

    @field_validator("amount")
    @classmethod
    def _non_negative(cls, value: Decimal) -> Decimal:
        if value < 0:
            raise ValueError("amount must be non-negative")
        return value

    @field_validator("timestamp")
    @classmethod
    def _utc_timestamp(cls, value: datetime) -> datetime:
        return _as_utc(value)


class UserContext(BaseModel):
    """Caller-supplied facts. ``None`` means unknown, never zero."""

    model_config = ConfigDict(frozen=True)

    wallet_balance: Decimal | None = None

    @field_validator("wallet_balance", mode="before")
    @classmethod
    def _parse_balance(cls, value: Any) -> Decimal | None:
        if value is None:
            return None
        return to_money(value)


class HistoricalTransaction(BaseModel):
    """One ledger row as returned by a HistorySource."""

    model_config = ConfigDict(frozen=True)

    user_id: str
    type: TransactionType
    amount: Decimal
    timestamp: datetime
    recipient_id: str | None = None
    status: TransactionStatus = TransactionStatus.COMPLETED

    @field_validator("amount", mode="before")
    @classmethod
    def _parse_amount(cls, value: Any) -> Decimal:
        return to_money(value)

    @field_validator("timestamp")
    @classmethod
    def _utc_timestamp(cls, value: datetime) -> datetime:
        return _as_utc(value)


class WindowStats(BaseModel):
    model_config = ConfigDict(frozen=True)

    count: int = 0
    total: Decimal = Decimal("0")
    average: Decimal | None = None
    maximum: Decimal | None = None


class Signal(BaseModel):
    """A single triggered rule instance."""

    model_config = ConfigDict(frozen=True)

    rule_id: str
    name: str
    category: SignalCategory
    severity: Severity
    weight: int = Field(gt=0)
    description: str
    metadata: Mapping[str, Any] = Field(default_factory=dict, validate_default=True)

    @field_validator("metadata")
    @classmethod
    def _read_only_metadata(cls, value: Mapping[str, Any]) -> Mapping[str, Any]:
        return MappingProxyType(dict(value))

    @field_serializer("metadata")
    def _dump_metadata(self, value: Mapping[str, Any]) -> dict[str, Any]:
        return dict(value)

    def to_rule_dict(self) -> dict[str, Any]:
        dumped = self.model_dump(mode="json")
        return {
            "ruleId": self.rule_id,
            "ruleName": self.name,
            "category": self.category.value,
            "description": self.description,
            "severity": self.severity.value,
            "weight": self.weight,
            "metadata": dumped["metadata"],
        }


class CategoryBreakdown(BaseModel):
    model_config = ConfigDict(frozen=True)

    count: int = 0
    score: int = 0
    rules: list[str] = Field(default_factory=list)


class ScoreBreakdown(BaseModel):
    model_config = ConfigDict(frozen=True)

    base_score: int = 0
    severity_multiplier: Decimal = Decimal("1.0")
    count_multiplier: Decimal = Decimal("1.0")
    signal_count: int = 0
    categories: dict[SignalCategory, CategoryBreakdown] = Field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "baseScore": self.base_score,
            "severityMultiplier": float(self.severity_multiplier),
            "ruleCountMultiplier": float(self.count_multiplier),
            "ruleCount": self.signal_count,
            "categories": {
                category.value: breakdown.model_dump()
                for category, breakdown in self.categories.items()
            },
        }


class RiskAssessment(BaseModel):
    model_config = ConfigDict(frozen=True)

    score: int = Field(ge=0, le=100)
    level: RiskLevel
    breakdown: ScoreBreakdown = Field(default_factory=ScoreBreakdown)
    summary: str = ""


class Assessment(BaseModel):
    """Result returned to the caller for one evaluation."""

    model_config = ConfigDict(frozen=True)

    action: Action
    risk_assessment: RiskAssessment
    signals: list[Signal] = Field(default_factory=list)
    evaluation_duration_ms: float = 0.0
    evaluated_at: datetime
    transaction_id: str | None = None
    degraded: bool = False
    failed_detectors: list[str] = Field(default_factory=list)
    error: str | None = None

    @property
    def score(self) -> int:
        return self.risk_assessment.score

    @property
    def level(self) -> RiskLevel:
        return self.risk_assessment.level

    @classmethod
    def fail_open(
        cls,
        error: str,
        evaluated_at: datetime,
        evaluation_duration_ms: float = 0.0,
        transaction_id: str | None = None,
        failed_detectors: list[str] | None = None,
    ) -> "Assessment":
        """Safe default used when scoring itself failed: allow, flagged as degraded."""
        return cls(
            action=Action.ALLOW,
            risk_assessment=RiskAssessment(
                score=0,
                level=RiskLevel.UNKNOWN,
                summary="UNKNOWN RISK: scoring failed, transaction allowed by fail-open policy.",
            ),
            signals=[],
            evaluation_duration_ms=evaluation_duration_ms,
            evaluated_at=evaluated_at,
            transaction_id=transaction_id,
            degraded=True,
            failed_detectors=failed_detectors or [],
            error=error,
        )

    def to_response(self) -> dict[str, Any]:
        """Render the stable JSON-like output contract."""
        return {
            "transactionId": self.transaction_id,
            "action": self.action.value,
            "riskScore": self.risk_assessment.score,
            "riskLevel": self.risk_assessment.level.value,
            "triggeredRules": [signal.to_rule_dict() for signal in self.signals],
            "riskBreakdown": self.risk_assessment.breakdown.to_dict(),
            "summary": self.risk_assessment.summary,
            "executionTimeMs": self.evaluation_duration_ms,
            "evaluatedAt": self.evaluated_at.isoformat(),
            "degraded": self.degraded,
            "failedDetectors": list(self.failed_detectors),
            "error": self.error,
        }
