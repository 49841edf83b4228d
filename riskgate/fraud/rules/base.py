"""Rule and detector building blocks.

A rule is an immutable record (id, name, severity, weight) around an async
check function. A detector is a named, fixed catalogue of rules sharing one
fail-open boundary: if any rule raises, the detector contributes no signals.
"""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any

import structlog

from ..config import FraudConfig, default_config
from ..history import HistorySource
from ..models import Severity, Signal, SignalCategory, Transaction, UserContext

logger = structlog.get_logger()


@dataclass(frozen=True)
class Finding:
    """What a rule check returns when it fires."""

    description: str
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class RuleContext:
    transaction: Transaction
    context: UserContext
    history: HistorySource
    config: FraudConfig

    @property
    def now(self) -> datetime:
        return self.transaction.timestamp

    @property
    def user_id(self) -> str:
        return self.transaction.user_id

    @property
    def amount(self) -> Decimal:
        return self.transaction.amount

    def since(self, delta: timedelta) -> datetime:
        """Inclusive lower bound of the window ``[now - delta, now)``."""
        return self.now - delta


RuleCheck = Callable[[RuleContext], Awaitable[Finding | None]]


@dataclass(frozen=True)
class Rule:
    rule_id: str
    name: str
    category: SignalCategory
    severity: Severity
    weight: int
    check: RuleCheck

    async def evaluate(self, ctx: RuleContext) -> Signal | None:
        finding = await self.check(ctx)
        if finding is None:
            return None
        return Signal(
            rule_id=self.rule_id,
            name=self.name,
            category=self.category,
            severity=self.severity,
            weight=self.weight,
            description=finding.description,
            metadata=dict(finding.metadata),
        )


@dataclass(frozen=True)
class DetectorResult:
    detector: str
    signals: tuple[Signal, ...] = ()
    error: str | None = None

    @property
    def failed(self) -> bool:
        return self.error is not None


class Detector:
    """A named family of rules evaluated together."""

    def __init__(self, name: str, category: SignalCategory) -> None:
        self.name = name
        self.category = category
        self._rules: list[Rule] = []

    @property
    def rules(self) -> tuple[Rule, ...]:
        return tuple(self._rules)

    def rule(
        self, rule_id: str, name: str, severity: Severity, weight: int
    ) -> Callable[[RuleCheck], RuleCheck]:
        """Register the decorated check in this detector's catalogue."""

        def register(check: RuleCheck) -> RuleCheck:
            if any(r.rule_id == rule_id for r in self._rules):
                raise ValueError(f"Duplicate rule id {rule_id} in detector {self.name}")
            self._rules.append(
                Rule(
                    rule_id=rule_id,
                    name=name,
                    category=self.category,
                    severity=severity,
                    weight=weight,
                    check=check,
                )
            )
            return check

        return register

    async def run(
        self,
        transaction: Transaction,
        context: UserContext | None,
        history: HistorySource,
        config: FraudConfig | None = None,
    ) -> DetectorResult:
        """Evaluate every rule; never raises."""
        ctx = RuleContext(
            transaction=transaction,
            context=context or UserContext(),
            history=history,
            config=config or default_config,
        )
        signals: list[Signal] = []
        current: Rule | None = None
        try:
            for current in self._rules:
                signal = await current.evaluate(ctx)
                if signal is not None:
                    signals.append(signal)
        except Exception as exc:
            logger.exception(
                "detector_evaluation_error",
                detector=self.name,
                rule_id=current.rule_id if current else None,
                user_id=transaction.user_id,
            )
            return DetectorResult(detector=self.name, error=f"{type(exc).__name__}: {exc}")

        logger.debug(
            "detector_evaluated",
            detector=self.name,
            user_id=transaction.user_id,
            triggered=[s.rule_id for s in signals],
        )
        return DetectorResult(detector=self.name, signals=tuple(signals))

    async def evaluate(
        self,
        transaction: Transaction,
        context: UserContext | None,
        history: HistorySource,
        config: FraudConfig | None = None,
    ) -> list[Signal]:
        result = await self.run(transaction, context, history, config)
        return list(result.signals)

    def __repr__(self) -> str:
        return f"Detector(name={self.name!r}, rules={len(self._rules)})"
