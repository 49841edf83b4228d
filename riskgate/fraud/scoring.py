"""Risk scoring: aggregate triggered signals into a 0-100 score.

    base     = sum of signal weights
    score    = min(100, round_half_up(base * severity_multiplier * count_multiplier))
    level    = bucket of score (minimal/low/medium/high/critical)

The score depends only on the multiset of (weight, severity) pairs, so signal
order never matters. Arithmetic is in Decimal so the result is exact.
"""

from collections import Counter
from collections.abc import Iterable, Sequence
from decimal import ROUND_HALF_UP, Decimal

from .config import FraudConfig, ScoringPolicy, default_config
from .models import (
    CategoryBreakdown,
    RiskAssessment,
    RiskLevel,
    ScoreBreakdown,
    Severity,
    Signal,
    SignalCategory,
)

_ONE = Decimal("1.0")


def _first_match(count: int, table: Iterable[tuple[int, Decimal]]) -> Decimal | None:
    for minimum, multiplier in table:
        if count >= minimum:
            return multiplier
    return None


def severity_multiplier(signals: Sequence[Signal], policy: ScoringPolicy) -> Decimal:
    counts = Counter(s.severity for s in signals)
    return (
        _first_match(counts[Severity.HIGH], policy.high_severity_multipliers)
        or _first_match(counts[Severity.MEDIUM], policy.medium_severity_multipliers)
        or _ONE
    )


def count_multiplier(signal_count: int, policy: ScoringPolicy) -> Decimal:
    return _first_match(signal_count, policy.count_multipliers) or _ONE


def risk_level(score: int, policy: ScoringPolicy) -> RiskLevel:
    if score >= policy.critical_from:
        return RiskLevel.CRITICAL
    if score >= policy.high_from:
        return RiskLevel.HIGH
    if score >= policy.medium_from:
        return RiskLevel.MEDIUM
    if score >= policy.low_from:
        return RiskLevel.LOW
    return RiskLevel.MINIMAL


def categorize(signals: Sequence[Signal]) -> dict[SignalCategory, CategoryBreakdown]:
    """Per-category count, weight subtotal and rule ids. Every category is listed."""
    breakdown = {}
    for category in SignalCategory:
        members = [s for s in signals if s.category == category]
        breakdown[category] = CategoryBreakdown(
            count=len(members),
            score=sum(s.weight for s in members),
            rules=[s.rule_id for s in members],
        )
    return breakdown


_SUMMARIES = {
    RiskLevel.CRITICAL: "CRITICAL RISK: {n} fraud indicators detected.",
    RiskLevel.HIGH: "HIGH RISK: {n} suspicious patterns found.",
    RiskLevel.MEDIUM: "MEDIUM RISK: {n} potential issues detected.",
    RiskLevel.LOW: "LOW RISK: {n} minor flags raised.",
    RiskLevel.MINIMAL: "MINIMAL RISK: Transaction appears normal.",
}


def summarize(level: RiskLevel, signal_count: int) -> str:
    return _SUMMARIES[level].format(n=signal_count)


def score_signals(
    signals: Sequence[Signal], config: FraudConfig | None = None
) -> RiskAssessment:
    """Convert triggered signals into a RiskAssessment. Pure; never raises on valid signals."""
    policy = (config or default_config).scoring
    signals = list(signals)

    base = sum(s.weight for s in signals)
    sev_mult = severity_multiplier(signals, policy)
    cnt_mult = count_multiplier(len(signals), policy)

    raw = (Decimal(base) * sev_mult * cnt_mult).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    score = min(policy.max_score, int(raw))
    level = risk_level(score, policy)

    return RiskAssessment(
        score=score,
        level=level,
        breakdown=ScoreBreakdown(
            base_score=base,
            severity_multiplier=sev_mult,
            count_multiplier=cnt_mult,
            signal_count=len(signals),
            categories=categorize(signals),
        ),
        summary=summarize(level, len(signals)),
    )
