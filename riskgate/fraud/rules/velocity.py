"""Velocity-based fraud detection rules."""

from datetime import timedelta

from ..models import Severity, SignalCategory, TransactionStatus
from .base import Detector, Finding, RuleContext

velocity_detector = Detector("velocity", SignalCategory.VELOCITY)


@velocity_detector.rule("VEL-001", "High Frequency Transactions", Severity.HIGH, 25)
async def high_frequency(ctx: RuleContext) -> Finding | None:
    """Many transactions in the preceding minute."""
    cfg = ctx.config.velocity
    window = timedelta(seconds=cfg.high_frequency_window_seconds)
    stats = await ctx.history.aggregate(ctx.user_id, ctx.since(window), ctx.now)
    if stats.count < cfg.high_frequency_count:
        return None

    return Finding(
        description=f"{stats.count} transactions in last {cfg.high_frequency_window_seconds}s",
        metadata={
            "count": stats.count,
            "threshold": cfg.high_frequency_count,
            "window_seconds": cfg.high_frequency_window_seconds,
        },
    )


@velocity_detector.rule("VEL-002", "Rapid Sequential Transactions", Severity.MEDIUM, 20)
async def rapid_sequential(ctx: RuleContext) -> Finding | None:
    """Transaction submitted within a few seconds of the previous one."""
    previous = await ctx.history.last_transaction(ctx.user_id, ctx.now)
    if previous is None:
        return None

    elapsed = (ctx.now - previous.timestamp).total_seconds()
    limit = ctx.config.velocity.rapid_sequence_seconds
    if elapsed >= limit:
        return None

    return Finding(
        description=f"Transaction {elapsed:.1f}s after previous",
        metadata={"seconds_since_last_txn": elapsed, "threshold_seconds": limit},
    )


@velocity_detector.rule("VEL-003", "Excessive Daily Transactions", Severity.MEDIUM, 15)
async def excessive_daily(ctx: RuleContext) -> Finding | None:
    threshold = ctx.config.velocity.daily_count_max
    stats = await ctx.history.aggregate(ctx.user_id, ctx.since(timedelta(hours=24)), ctx.now)
    if stats.count < threshold:
        return None

    return Finding(
        description=f"{stats.count} transactions in last 24 hours",
        metadata={"count": stats.count, "threshold": threshold, "window": "24h"},
    )


@velocity_detector.rule("VEL-004", "Transaction Velocity Spike", Severity.HIGH, 20)
async def velocity_spike(ctx: RuleContext) -> Finding | None:
    """Last-hour count far above the user's 24h hourly average.

    The average is only defined once the 24h window holds a transaction; the
    comparison is done in integers to avoid dividing by 24.
    """
    multiplier = ctx.config.velocity.spike_multiplier
    day = await ctx.history.aggregate(ctx.user_id, ctx.since(timedelta(hours=24)), ctx.now)
    if day.count == 0:
        return None

    hour = await ctx.history.aggregate(ctx.user_id, ctx.since(timedelta(hours=1)), ctx.now)
    # hour > multiplier * (day / 24)
    if hour.count * 24 <= multiplier * day.count:
        return None

    average = day.count / 24
    return Finding(
        description=f"Current hour: {hour.count} txns vs avg {average:.1f}",
        metadata={
            "current_hour": hour.count,
            "hourly_average": round(average, 2),
            "multiplier": round(hour.count / average, 1),
        },
    )


@velocity_detector.rule("VEL-005", "Multiple Failed Transaction Attempts", Severity.MEDIUM, 15)
async def repeated_failures(ctx: RuleContext) -> Finding | None:
    cfg = ctx.config.velocity
    stats = await ctx.history.aggregate(
        ctx.user_id,
        ctx.since(timedelta(hours=cfg.failed_window_hours)),
        ctx.now,
        status=TransactionStatus.FAILED,
    )
    if stats.count < cfg.failed_count_max:
        return None

    return Finding(
        description=f"{stats.count} failed transactions in last {cfg.failed_window_hours}h",
        metadata={"failed_count": stats.count, "threshold": cfg.failed_count_max},
    )
