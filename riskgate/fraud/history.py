"""Historical-facts query interface consumed by the detectors.

Every query takes an explicit window ``[start, end)``, always derived from the
timestamp of the transaction under evaluation, so replayed evaluations see the
same facts as the original one. ``start=None`` means "since the beginning".
"""

from collections.abc import Callable, Iterable, Mapping
from datetime import UTC, datetime
from decimal import Decimal
from typing import Any, Protocol

import structlog
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from riskgate.db.models import TransactionRecord, UserAccount

from .exceptions import HistorySourceError
from .models import (
    HistoricalTransaction,
    TransactionStatus,
    TransactionType,
    WindowStats,
)

logger = structlog.get_logger()


class HistorySource(Protocol):
    async def aggregate(
        self,
        user_id: str,
        start: datetime | None,
        end: datetime,
        *,
        status: TransactionStatus | None = None,
        txn_type: TransactionType | None = None,
        amount: Decimal | None = None,
        recipient_id: str | None = None,
    ) -> WindowStats:
        """Count/sum/avg/max over the user's transactions in the window."""
        ...

    async def distinct_recipients(self, user_id: str, start: datetime | None, end: datetime) -> int:
        ...

    async def last_transaction(
        self,
        user_id: str,
        before: datetime,
        *,
        start: datetime | None = None,
        status: TransactionStatus | None = None,
        txn_type: TransactionType | None = None,
    ) -> HistoricalTransaction | None:
        """Most recent matching transaction strictly before ``before``."""
        ...

    async def account_created_at(self, user_id: str) -> datetime | None:
        ...


def _utc(value: datetime) -> datetime:
    return value if value.tzinfo is not None else value.replace(tzinfo=UTC)


def _decimal(value: Any) -> Decimal:
    return value if isinstance(value, Decimal) else Decimal(str(value))


class InMemoryHistorySource:
    """List-backed HistorySource for tests, replays and local experiments."""

    def __init__(
        self,
        transactions: Iterable[HistoricalTransaction] = (),
        accounts: Mapping[str, datetime] | None = None,
    ) -> None:
        self._transactions: list[HistoricalTransaction] = list(transactions)
        self._accounts: dict[str, datetime] = {
            user_id: _utc(created_at) for user_id, created_at in (accounts or {}).items()
        }

    def add(self, transaction: HistoricalTransaction) -> None:
        self._transactions.append(transaction)

    def add_account(self, user_id: str, created_at: datetime) -> None:
        self._accounts[user_id] = _utc(created_at)

    def _select(
        self,
        user_id: str,
        start: datetime | None,
        end: datetime,
        status: TransactionStatus | None = None,
        txn_type: TransactionType | None = None,
        amount: Decimal | None = None,
        recipient_id: str | None = None,
    ) -> list[HistoricalTransaction]:
        end = _utc(end)
        start = _utc(start) if start is not None else None
        return [
            t
            for t in self._transactions
            if t.user_id == user_id
            and t.timestamp < end
            and (start is None or t.timestamp >= start)
            and (status is None or t.status == status)
            and (txn_type is None or t.type == txn_type)
            and (amount is None or t.amount == amount)
            and (recipient_id is None or t.recipient_id == recipient_id)
        ]

    async def aggregate(
        self,
        user_id: str,
        start: datetime | None,
        end: datetime,
        *,
        status: TransactionStatus | None = None,
        txn_type: TransactionType | None = None,
        amount: Decimal | None = None,
        recipient_id: str | None = None,
    ) -> WindowStats:
        rows = self._select(user_id, start, end, status, txn_type, amount, recipient_id)
        if not rows:
            return WindowStats()
        total = sum((t.amount for t in rows), Decimal("0"))
        return WindowStats(
            count=len(rows),
            total=total,
            average=total / len(rows),
            maximum=max(t.amount for t in rows),
        )

    async def distinct_recipients(self, user_id: str, start: datetime | None, end: datetime) -> int:
        rows = self._select(user_id, start, end)
        return len({t.recipient_id for t in rows if t.recipient_id is not None})

    async def last_transaction(
        self,
        user_id: str,
        before: datetime,
        *,
        start: datetime | None = None,
        status: TransactionStatus | None = None,
        txn_type: TransactionType | None = None,
    ) -> HistoricalTransaction | None:
        rows = self._select(user_id, start, before, status, txn_type)
        if not rows:
            return None
        return max(rows, key=lambda t: t.timestamp)

    async def account_created_at(self, user_id: str) -> datetime | None:
        return self._accounts.get(user_id)


class SqlHistorySource:
    """HistorySource over the ``transactions`` and ``user_accounts`` tables.

    Each query opens its own short-lived session so detectors can query
    concurrently without sharing an AsyncSession.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession] | None = None) -> None:
        if session_factory is None:
            from riskgate.db.database import async_session_factory

            session_factory = async_session_factory
        self._session_factory = session_factory

    async def _query(self, stmt, reader: Callable[[Any], Any]) -> Any:
        try:
            async with self._session_factory() as session:
                result = await session.execute(stmt)
                return reader(result)
        except SQLAlchemyError as exc:
            logger.warning("history_query_failed", error=str(exc))
            raise HistorySourceError(f"history query failed: {exc}") from exc

    @staticmethod
    def _filters(
        user_id: str,
        start: datetime | None,
        end: datetime,
        status: TransactionStatus | None = None,
        txn_type: TransactionType | None = None,
        amount: Decimal | None = None,
        recipient_id: str | None = None,
    ) -> list:
        clauses = [
            TransactionRecord.user_id == user_id,
            TransactionRecord.created_at < end,
        ]
        if start is not None:
            clauses.append(TransactionRecord.created_at >= start)
        if status is not None:
            clauses.append(TransactionRecord.status == status.value)
        if txn_type is not None:
            clauses.append(TransactionRecord.type == txn_type.value)
        if amount is not None:
            clauses.append(TransactionRecord.amount == amount)
        if recipient_id is not None:
            clauses.append(TransactionRecord.recipient_id == recipient_id)
        return clauses

    async def aggregate(
        self,
        user_id: str,
        start: datetime | None,
        end: datetime,
        *,
        status: TransactionStatus | None = None,
        txn_type: TransactionType | None = None,
        amount: Decimal | None = None,
        recipient_id: str | None = None,
    ) -> WindowStats:
        stmt = select(
            func.count().label("cnt"),
            func.coalesce(func.sum(TransactionRecord.amount), 0).label("total"),
            func.avg(TransactionRecord.amount).label("avg"),
            func.max(TransactionRecord.amount).label("max"),
        ).where(*self._filters(user_id, start, end, status, txn_type, amount, recipient_id))
        row = await self._query(stmt, lambda result: result.one())

        if not row.cnt:
            return WindowStats()
        return WindowStats(
            count=row.cnt,
            total=_decimal(row.total),
            average=_decimal(row.avg),
            maximum=_decimal(row.max),
        )

    async def distinct_recipients(self, user_id: str, start: datetime | None, end: datetime) -> int:
        stmt = select(func.count(TransactionRecord.recipient_id.distinct())).where(
            *self._filters(user_id, start, end),
            TransactionRecord.recipient_id.isnot(None),
        )
        return await self._query(stmt, lambda result: result.scalar_one())

    async def last_transaction(
        self,
        user_id: str,
        before: datetime,
        *,
        start: datetime | None = None,
        status: TransactionStatus | None = None,
        txn_type: TransactionType | None = None,
    ) -> HistoricalTransaction | None:
        stmt = (
            select(TransactionRecord)
            .where(*self._filters(user_id, start, before, status, txn_type))
            .order_by(TransactionRecord.created_at.desc())
            .limit(1)
        )
        record = await self._query(stmt, lambda result: result.scalars().first())
        if record is None:
            return None
        return HistoricalTransaction(
            user_id=record.user_id,
            type=record.type,
            amount=record.amount,
            recipient_id=record.recipient_id,
            status=record.status,
            timestamp=record.created_at,
        )

    async def account_created_at(self, user_id: str) -> datetime | None:
        stmt = select(UserAccount.created_at).where(UserAccount.user_id == user_id)
        created_at = await self._query(stmt, lambda result: result.scalar_one_or_none())
        if created_at is None:
            return None
        return _utc(created_at)
