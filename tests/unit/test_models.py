"""Unit tests for fraud domain models."""

from datetime import UTC, datetime
from decimal import Decimal

import pytest
from pydantic import ValidationError

from riskgate.fraud.models import (
    Action,
    Assessment,
    RiskLevel,
    Severity,
    Signal,
    SignalCategory,
    Transaction,
    TransactionType,
    UserContext,
    to_money,
)

NOW = datetime(2026, 1, 15, 14, 0, 0, tzinfo=UTC)


class TestToMoney:
    def test_float_uses_shortest_repr(self):
        assert to_money(12.34) == Decimal("12.34")

    @pytest.mark.parametrize("value", ["10.005", "9999.995", 0.1 + 0.2])
    def test_sub_cent_rejected(self, value):
        with pytest.raises(ValueError, match="finer than"):
            to_money(value)

    def test_trailing_zeros_accepted(self):
        assert to_money("9999.9900") == Decimal("9999.99")

    def test_integer(self):
        assert to_money(5) == Decimal("5.00")

    @pytest.mark.parametrize("value", ["abc", "NaN", "Infinity", None])
    def test_rejects_non_amounts(self, value):
        with pytest.raises(ValueError):
            to_money(value)


class TestTransaction:
    def test_parses_raw_values(self):
        txn = Transaction(
            user_id="user-1", type="deposit", amount="12.3", timestamp="2026-01-15T14:00:00Z"
        )
        assert txn.type == TransactionType.DEPOSIT
        assert txn.amount == Decimal("12.30")
        assert txn.timestamp == NOW
        assert txn.recipient_id is None

    def test_naive_timestamp_is_utc(self):
        txn = Transaction(user_id="u", type="payment", amount=1, timestamp=datetime(2026, 1, 15))
        assert txn.timestamp.tzinfo is UTC

    def test_negative_amount_rejected(self):
        with pytest.raises(ValidationError):
            Transaction(user_id="u", type="payment", amount="-0.01", timestamp=NOW)

    def test_empty_user_rejected(self):
        with pytest.raises(ValidationError):
            Transaction(user_id="", type="payment", amount="1", timestamp=NOW)

    def test_unknown_type_rejected(self):
        with pytest.raises(ValidationError):
            Transaction(user_id="u", type="chargeback", amount="1", timestamp=NOW)

    def test_sub_cent_amount_rejected(self):
        with pytest.raises(ValidationError):
            Transaction(user_id="u", type="payment", amount="9999.995", timestamp=NOW)

    def test_immutable(self):
        txn = Transaction(user_id="u", type="payment", amount="1", timestamp=NOW)
        with pytest.raises(ValidationError):
            txn.amount = Decimal("2")


class TestUserContext:
    def test_balance_unknown_by_default(self):
        assert UserContext().wallet_balance is None

    def test_balance_quantized(self):
        assert UserContext(wallet_balance=12.5).wallet_balance == Decimal("12.50")


class TestAssessment:
    def test_fail_open(self):
        assessment = Assessment.fail_open("RuntimeError: boom", evaluated_at=NOW)
        assert assessment.action == Action.ALLOW
        assert assessment.score == 0
        assert assessment.level == RiskLevel.UNKNOWN
        assert assessment.degraded is True
        assert assessment.error == "RuntimeError: boom"

    def test_response_contract(self):
        response = Assessment.fail_open(
            "RuntimeError: boom", evaluated_at=NOW, transaction_id="txn-9"
        ).to_response()
        assert set(response) == {
            "transactionId",
            "action",
            "riskScore",
            "riskLevel",
            "triggeredRules",
            "riskBreakdown",
            "summary",
            "executionTimeMs",
            "evaluatedAt",
            "degraded",
            "failedDetectors",
            "error",
        }
        assert response["transactionId"] == "txn-9"
        assert response["riskLevel"] == "unknown"
        assert response["evaluatedAt"] == "2026-01-15T14:00:00+00:00"
        assert response["riskBreakdown"]["baseScore"] == 0


class TestSignal:
    def _signal(self, metadata):
        return Signal(
            rule_id="AMT-001",
            name="Large Single Transaction",
            category=SignalCategory.AMOUNT,
            severity=Severity.HIGH,
            weight=30,
            description="big",
            metadata=metadata,
        )

    def test_metadata_is_read_only(self):
        signal = self._signal({"amount": Decimal("50000.01")})
        with pytest.raises(TypeError):
            signal.metadata["amount"] = Decimal("1.00")

    def test_metadata_detached_from_source(self):
        source = {"count": 5}
        signal = self._signal(source)
        source["count"] = 6
        assert signal.metadata["count"] == 5

    def test_metadata_serialized_as_json(self):
        rule = self._signal({"amount": Decimal("50000.01")}).to_rule_dict()
        assert rule["metadata"] == {"amount": "50000.01"}
