"""Unit tests for amount-based fraud detection rules."""

from datetime import UTC, datetime, timedelta
from decimal import Decimal

import pytest
from pydantic import ValidationError

from riskgate.fraud.config import FraudConfig
from riskgate.fraud.history import InMemoryHistorySource
from riskgate.fraud.models import (
    HistoricalTransaction,
    Severity,
    Transaction,
    TransactionStatus,
    TransactionType,
)
from riskgate.fraud.rules.amount import amount_detector

CONFIG = FraudConfig()
NOW = datetime(2026, 1, 15, 14, 0, 0, tzinfo=UTC)


def _make_txn(**kwargs) -> Transaction:
    defaults = {
        "transaction_id": "txn-1",
        "user_id": "user-1",
        "type": TransactionType.TRANSFER_SENT,
        "amount": "100.00",
        "timestamp": NOW,
        "recipient_id": "user-2",
    }
    defaults.update(kwargs)
    return Transaction(**defaults)


def _past(ago: timedelta, amount: str = "100.00", **kwargs) -> HistoricalTransaction:
    return HistoricalTransaction(
        user_id=kwargs.pop("user_id", "user-1"),
        type=kwargs.pop("type", TransactionType.PAYMENT),
        amount=amount,
        timestamp=NOW - ago,
        **kwargs,
    )


async def _fired(rule_id: str, txn: Transaction, history: InMemoryHistorySource | None = None):
    signals = await amount_detector.evaluate(txn, None, history or InMemoryHistorySource(), CONFIG)
    return next((s for s in signals if s.rule_id == rule_id), None)


class TestLargeTransaction:
    @pytest.mark.asyncio
    async def test_above_threshold(self):
        signal = await _fired("AMT-001", _make_txn(amount="50000.01"))
        assert signal is not None
        assert signal.severity == Severity.HIGH
        assert signal.weight == 30
        assert signal.metadata["amount"] == Decimal("50000.01")

    @pytest.mark.asyncio
    async def test_at_threshold_does_not_fire(self):
        assert await _fired("AMT-001", _make_txn(amount="50000.00")) is None


class TestStructuring:
    @pytest.mark.asyncio
    async def test_just_below_reporting_threshold(self):
        signal = await _fired("AMT-002", _make_txn(amount="9999.99"))
        assert signal is not None
        assert signal.metadata["difference"] == Decimal("0.01")

    @pytest.mark.asyncio
    async def test_at_reporting_threshold_does_not_fire(self):
        assert await _fired("AMT-002", _make_txn(amount="10000.00")) is None

    @pytest.mark.asyncio
    async def test_below_floor_does_not_fire(self):
        assert await _fired("AMT-002", _make_txn(amount="9499.99")) is None

    @pytest.mark.asyncio
    async def test_floor_is_inclusive(self):
        assert await _fired("AMT-002", _make_txn(amount="9500.00")) is not None

    def test_sub_cent_input_is_never_rounded_onto_threshold(self):
        with pytest.raises(ValidationError):
            _make_txn(amount="9999.995")


class TestExactRoundNumber:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("amount", ["1000", "5000.00", "100000"])
    async def test_listed_amounts(self, amount):
        assert await _fired("AMT-003", _make_txn(amount=amount)) is not None

    @pytest.mark.asyncio
    @pytest.mark.parametrize("amount", ["2000.00", "5000.50", "999.99"])
    async def test_other_amounts(self, amount):
        assert await _fired("AMT-003", _make_txn(amount=amount)) is None


class TestMicroDeposit:
    @pytest.mark.asyncio
    async def test_small_deposit(self):
        txn = _make_txn(type=TransactionType.DEPOSIT, amount="0.99", recipient_id=None)
        assert await _fired("AMT-004", txn) is not None

    @pytest.mark.asyncio
    async def test_one_unit_deposit_does_not_fire(self):
        txn = _make_txn(type=TransactionType.DEPOSIT, amount="1.00", recipient_id=None)
        assert await _fired("AMT-004", txn) is None

    @pytest.mark.asyncio
    async def test_only_deposits(self):
        assert await _fired("AMT-004", _make_txn(amount="0.50")) is None


class TestRepeatedAmount:
    @pytest.mark.asyncio
    async def test_at_threshold(self):
        history = InMemoryHistorySource(
            _past(timedelta(hours=h), amount="250.00") for h in (1, 5, 20)
        )
        signal = await _fired("AMT-005", _make_txn(amount="250.00"), history)
        assert signal is not None
        assert signal.metadata["count"] == 3

    @pytest.mark.asyncio
    async def test_different_amounts_not_counted(self):
        history = InMemoryHistorySource(
            [
                _past(timedelta(hours=1), amount="250.00"),
                _past(timedelta(hours=2), amount="250.00"),
                _past(timedelta(hours=3), amount="250.01"),
            ]
        )
        assert await _fired("AMT-005", _make_txn(amount="250.00"), history) is None


class TestDeviationFromAverage:
    @pytest.mark.asyncio
    async def test_far_above_average(self):
        history = InMemoryHistorySource(
            _past(timedelta(days=d), amount=a) for d, a in ((1, "50.00"), (2, "150.00"))
        )
        signal = await _fired("AMT-006", _make_txn(amount="1000.01"), history)
        assert signal is not None
        assert signal.metadata["average_amount"] == Decimal("100.00")

    @pytest.mark.asyncio
    async def test_exactly_multiplier_does_not_fire(self):
        history = InMemoryHistorySource([_past(timedelta(days=1), amount="100.00")])
        assert await _fired("AMT-006", _make_txn(amount="1000.00"), history) is None

    @pytest.mark.asyncio
    async def test_cold_start_is_silent(self):
        assert await _fired("AMT-006", _make_txn(amount="900000.00")) is None

    @pytest.mark.asyncio
    async def test_history_outside_lookback_ignored(self):
        history = InMemoryHistorySource([_past(timedelta(days=31), amount="10.00")])
        assert await _fired("AMT-006", _make_txn(amount="5000.00"), history) is None


class TestDailyLimit:
    @pytest.mark.asyncio
    async def test_exceeds_limit(self):
        history = InMemoryHistorySource([_past(timedelta(hours=2), amount="99900.00")])
        signal = await _fired("AMT-007", _make_txn(amount="100.01"), history)
        assert signal is not None
        assert signal.metadata["new_total"] == Decimal("100000.01")

    @pytest.mark.asyncio
    async def test_reaching_limit_exactly_does_not_fire(self):
        history = InMemoryHistorySource([_past(timedelta(hours=2), amount="99900.00")])
        assert await _fired("AMT-007", _make_txn(amount="100.00"), history) is None

    @pytest.mark.asyncio
    async def test_failed_transactions_not_counted(self):
        history = InMemoryHistorySource(
            [_past(timedelta(hours=2), amount="99900.00", status=TransactionStatus.FAILED)]
        )
        assert await _fired("AMT-007", _make_txn(amount="500.00"), history) is None


class TestUnusualDecimals:
    @pytest.mark.asyncio
    async def test_odd_cents_on_large_amount(self):
        signal = await _fired("AMT-008", _make_txn(amount="1234.56"))
        assert signal is not None
        assert signal.severity == Severity.LOW
        assert signal.metadata["decimal_part"] == Decimal("0.56")

    @pytest.mark.asyncio
    @pytest.mark.parametrize("amount", ["1234.50", "1234.25", "1234.00"])
    async def test_quarter_fractions(self, amount):
        assert await _fired("AMT-008", _make_txn(amount=amount)) is None

    @pytest.mark.asyncio
    async def test_small_amounts_ignored(self):
        assert await _fired("AMT-008", _make_txn(amount="999.99")) is None
