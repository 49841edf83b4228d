"""Behavioral fraud detection rules: account age, dormancy, counterparties, timing."""

from datetime import datetime, timedelta
from decimal import Decimal
from zoneinfo import ZoneInfo

from ..models import Severity, SignalCategory, TransactionStatus, TransactionType
from .base import Detector, Finding, RuleContext

behavioral_detector = Detector("behavioral", SignalCategory.BEHAVIORAL)


def _local_time(ctx: RuleContext) -> datetime:
    return ctx.now.astimezone(ZoneInfo(ctx.config.behavioral.local_timezone))


@behavioral_detector.rule("BEH-001", "New Account High-Value Transaction", Severity.HIGH, 30)
async def new_account_high_value(ctx: RuleContext) -> Finding | None:
    """Large transaction on an account younger than a day.

    Unknown accounts are skipped rather than treated as brand new.
    """
    cfg = ctx.config.behavioral
    if ctx.amount <= cfg.new_account_amount_over:
        return None

    created_at = await ctx.history.account_created_at(ctx.user_id)
    if created_at is None:
        return None

    age_hours = (ctx.now - created_at).total_seconds() / 3600
    if age_hours >= cfg.new_account_hours:
        return None

    return Finding(
        description=f"Account {age_hours:.1f}h old attempting {ctx.amount:,.2f} transaction",
        metadata={"account_age_hours": round(age_hours, 1), "amount": ctx.amount},
    )


@behavioral_detector.rule("BEH-002", "First Transaction High Value", Severity.MEDIUM, 20)
async def first_transaction_high_value(ctx: RuleContext) -> Finding | None:
    threshold = ctx.config.behavioral.first_txn_amount_over
    if ctx.amount <= threshold:
        return None

    lifetime = await ctx.history.aggregate(ctx.user_id, None, ctx.now)
    if lifetime.count > 0:
        return None

    return Finding(
        description=f"First ever transaction is {ctx.amount:,.2f}",
        metadata={"amount": ctx.amount, "threshold": threshold},
    )


@behavioral_detector.rule("BEH-003", "Dormant Account Reactivation", Severity.MEDIUM, 15)
async def dormant_reactivation(ctx: RuleContext) -> Finding | None:
    dormant_days = ctx.config.behavioral.dormant_days
    previous = await ctx.history.last_transaction(ctx.user_id, ctx.now)
    if previous is None:
        return None

    idle_days = (ctx.now - previous.timestamp).total_seconds() / 86400
    if idle_days <= dormant_days:
        return None

    return Finding(
        description=f"Account inactive for {idle_days:.0f} days",
        metadata={"days_since_last_txn": int(idle_days), "threshold_days": dormant_days},
    )


@behavioral_detector.rule("BEH-004", "Unusual Transaction Time", Severity.LOW, 10)
async def unusual_hour(ctx: RuleContext) -> Finding | None:
    cfg = ctx.config.behavioral
    local = _local_time(ctx)
    if not (cfg.unusual_hour_start <= local.hour < cfg.unusual_hour_end):
        return None

    return Finding(
        description=f"Transaction at {local:%H:%M} {cfg.local_timezone} (unusual hours)",
        metadata={"hour": local.hour, "minute": local.minute, "timezone": cfg.local_timezone},
    )


@behavioral_detector.rule("BEH-005", "Circular Transfer Pattern", Severity.HIGH, 25)
async def circular_transfer(ctx: RuleContext) -> Finding | None:
    """The recipient recently sent money to this user."""
    recipient_id = ctx.transaction.recipient_id
    if not recipient_id:
        return None

    window = timedelta(hours=ctx.config.behavioral.reciprocal_window_hours)
    reverse = await ctx.history.aggregate(
        recipient_id, ctx.since(window), ctx.now, recipient_id=ctx.user_id
    )
    if reverse.count == 0:
        return None

    return Finding(
        description="Detected potential circular money movement",
        metadata={"pattern_count": reverse.count, "counterparty_id": recipient_id},
    )


@behavioral_detector.rule("BEH-006", "Multiple Recipients Pattern", Severity.HIGH, 20)
async def many_recipients(ctx: RuleContext) -> Finding | None:
    """Money-mule fan-out to many counterparties within an hour."""
    threshold = ctx.config.behavioral.distinct_recipients_max
    count = await ctx.history.distinct_recipients(
        ctx.user_id, ctx.since(timedelta(hours=1)), ctx.now
    )
    if count < threshold:
        return None

    return Finding(
        description=f"Sent money to {count} different recipients in 1 hour",
        metadata={"recipient_count": count, "threshold": threshold},
    )


@behavioral_detector.rule("BEH-007", "Rapid Withdrawal After Deposit", Severity.MEDIUM, 15)
async def withdrawal_after_deposit(ctx: RuleContext) -> Finding | None:
    if ctx.transaction.type != TransactionType.TRANSFER_SENT:
        return None

    cfg = ctx.config.behavioral
    deposit = await ctx.history.last_transaction(
        ctx.user_id,
        ctx.now,
        start=ctx.since(timedelta(minutes=cfg.deposit_match_window_minutes)),
        status=TransactionStatus.COMPLETED,
        txn_type=TransactionType.DEPOSIT,
    )
    if deposit is None:
        return None
    if abs(deposit.amount - ctx.amount) >= cfg.deposit_match_tolerance:
        return None

    return Finding(
        description=f"Transfer of {ctx.amount:,.2f} shortly after deposit of {deposit.amount:,.2f}",
        metadata={
            "deposit_amount": deposit.amount,
            "transfer_amount": ctx.amount,
            "minutes_since_deposit": round((ctx.now - deposit.timestamp).total_seconds() / 60, 1),
        },
    )


@behavioral_detector.rule("BEH-008", "High Weekend Activity", Severity.LOW, 8)
async def weekend_activity(ctx: RuleContext) -> Finding | None:
    threshold = ctx.config.behavioral.weekend_count_min
    # Saturday=5, Sunday=6
    if _local_time(ctx).weekday() < 5:
        return None

    stats = await ctx.history.aggregate(ctx.user_id, ctx.since(timedelta(hours=24)), ctx.now)
    if stats.count < threshold:
        return None

    return Finding(
        description=f"{stats.count} transactions on weekend (unusual)",
        metadata={"count": stats.count, "threshold": threshold},
    )


@behavioral_detector.rule("BEH-009", "Repetitive Recipient Pattern", Severity.MEDIUM, 12)
async def repeated_recipient(ctx: RuleContext) -> Finding | None:
    recipient_id = ctx.transaction.recipient_id
    if not recipient_id:
        return None

    threshold = ctx.config.behavioral.same_recipient_count
    stats = await ctx.history.aggregate(
        ctx.user_id, ctx.since(timedelta(hours=24)), ctx.now, recipient_id=recipient_id
    )
    if stats.count < threshold:
        return None

    return Finding(
        description=f"{stats.count} transactions to same recipient in 24h",
        metadata={"count": stats.count, "recipient_id": recipient_id, "threshold": threshold},
    )


@behavioral_detector.rule("BEH-010", "Account Balance Draining", Severity.MEDIUM, 15)
async def balance_draining(ctx: RuleContext) -> Finding | None:
    """Amount close to the full wallet balance; needs a known, positive balance."""
    balance = ctx.context.wallet_balance
    if balance is None or balance <= 0:
        return None

    ratio = ctx.config.behavioral.balance_drain_ratio
    if ctx.amount <= balance * ratio:
        return None

    percentage = (ctx.amount / balance * 100).quantize(Decimal("1"))
    return Finding(
        description=f"Attempting to move {percentage}% of balance",
        metadata={"balance": balance, "amount": ctx.amount, "percentage": percentage},
    )
