"""Amount-based fraud detection rules.

All comparisons are done on currency-scale Decimals; see ``models.to_money``.
"""

from datetime import timedelta
from decimal import Decimal

from ..models import Severity, SignalCategory, TransactionStatus, TransactionType
from .base import Detector, Finding, RuleContext

amount_detector = Detector("amount", SignalCategory.AMOUNT)


@amount_detector.rule("AMT-001", "Large Single Transaction", Severity.HIGH, 30)
async def large_transaction(ctx: RuleContext) -> Finding | None:
    threshold = ctx.config.amount.large_txn_over
    if ctx.amount <= threshold:
        return None

    return Finding(
        description=f"Transaction amount {ctx.amount:,.2f} exceeds threshold {threshold:,.2f}",
        metadata={"amount": ctx.amount, "threshold": threshold},
    )


@amount_detector.rule("AMT-002", "Structuring Pattern (Just Below Threshold)", Severity.HIGH, 25)
async def structuring(ctx: RuleContext) -> Finding | None:
    """Amount sized just under the reporting threshold."""
    cfg = ctx.config.amount
    if not (cfg.structuring_floor <= ctx.amount < cfg.reporting_threshold):
        return None

    return Finding(
        description=(
            f"Transaction {ctx.amount:,.2f} just below "
            f"{cfg.reporting_threshold:,.2f} reporting threshold"
        ),
        metadata={
            "amount": ctx.amount,
            "threshold": cfg.reporting_threshold,
            "difference": cfg.reporting_threshold - ctx.amount,
        },
    )


@amount_detector.rule("AMT-003", "Exact Round Number Transaction", Severity.MEDIUM, 10)
async def exact_round_number(ctx: RuleContext) -> Finding | None:
    if ctx.amount not in ctx.config.amount.round_amounts:
        return None

    return Finding(
        description=f"Transaction is exactly {ctx.amount:,.2f}",
        metadata={"amount": ctx.amount},
    )


@amount_detector.rule("AMT-004", "Micro-Transaction Testing", Severity.MEDIUM, 15)
async def micro_deposit(ctx: RuleContext) -> Finding | None:
    """Sub-unit deposits are a common card-testing probe."""
    limit = ctx.config.amount.micro_deposit_under
    if ctx.transaction.type != TransactionType.DEPOSIT or ctx.amount >= limit:
        return None

    return Finding(
        description=f"Very small deposit {ctx.amount:.2f} (card testing)",
        metadata={"amount": ctx.amount, "threshold": limit},
    )


@amount_detector.rule("AMT-005", "Repetitive Amount Pattern", Severity.MEDIUM, 15)
async def repeated_amount(ctx: RuleContext) -> Finding | None:
    threshold = ctx.config.amount.repeated_amount_count
    stats = await ctx.history.aggregate(
        ctx.user_id, ctx.since(timedelta(hours=24)), ctx.now, amount=ctx.amount
    )
    if stats.count < threshold:
        return None

    return Finding(
        description=f"Same amount {ctx.amount:,.2f} used {stats.count} times in 24h",
        metadata={"amount": ctx.amount, "count": stats.count, "threshold": threshold},
    )


@amount_detector.rule("AMT-006", "Amount Deviation from User Pattern", Severity.MEDIUM, 20)
async def deviation_from_average(ctx: RuleContext) -> Finding | None:
    """Amount far above the user's recent average.

    Skipped when the user has no history in the lookback window: an undefined
    average disables the rule.
    """
    cfg = ctx.config.amount
    stats = await ctx.history.aggregate(
        ctx.user_id, ctx.since(timedelta(days=cfg.deviation_lookback_days)), ctx.now
    )
    average = stats.average
    if average is None or average <= 0:
        return None
    if ctx.amount <= average * cfg.deviation_multiplier:
        return None

    ratio = ctx.amount / average
    return Finding(
        description=f"{ctx.amount:,.2f} is {ratio:.1f}x user's average",
        metadata={
            "current_amount": ctx.amount,
            "average_amount": average.quantize(Decimal("0.01")),
            "multiplier": ratio.quantize(Decimal("0.1")),
        },
    )


@amount_detector.rule("AMT-007", "Daily Transaction Limit Exceeded", Severity.HIGH, 25)
async def daily_limit(ctx: RuleContext) -> Finding | None:
    limit = ctx.config.amount.daily_limit
    stats = await ctx.history.aggregate(
        ctx.user_id,
        ctx.since(timedelta(hours=24)),
        ctx.now,
        status=TransactionStatus.COMPLETED,
    )
    new_total = stats.total + ctx.amount
    if new_total <= limit:
        return None

    return Finding(
        description=f"Daily total {new_total:,.2f} exceeds {limit:,.2f} limit",
        metadata={"current_total": stats.total, "new_total": new_total, "limit": limit},
    )


@amount_detector.rule("AMT-008", "Unusual Decimal Precision", Severity.LOW, 5)
async def unusual_decimals(ctx: RuleContext) -> Finding | None:
    """Odd cents on larger amounts, a layering tell."""
    cfg = ctx.config.amount
    if ctx.amount <= cfg.odd_decimal_min_amount:
        return None

    fraction = ctx.amount % 1
    if fraction in cfg.round_fractions:
        return None

    return Finding(
        description=f"Amount {ctx.amount:,.2f} has unusual decimal precision",
        metadata={"amount": ctx.amount, "decimal_part": fraction},
    )
