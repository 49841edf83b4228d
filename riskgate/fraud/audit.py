"""Audit sinks: persist each assessment with its originating transaction.

Writes happen after the caller already has its decision. A sink may raise
AuditWriteError; ``write_with_retry`` retries, logs and gives up without ever
touching the assessment.
"""

import asyncio
import json
import uuid
from datetime import UTC, datetime
from typing import Any, Protocol

import structlog
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from riskgate.config import settings
from riskgate.db.models import FraudLog

from .config import AuditSettings, default_config
from .exceptions import AuditWriteError
from .models import Assessment, Transaction

logger = structlog.get_logger()


class AuditSink(Protocol):
    async def record(self, transaction: Transaction, assessment: Assessment) -> str:
        """Persist the assessment; return the identifier assigned to the record."""
        ...


def audit_payload(log_id: str, transaction: Transaction, assessment: Assessment) -> dict[str, Any]:
    """JSON-safe record shared by every sink."""
    return {
        "log_id": log_id,
        "transaction": transaction.model_dump(mode="json"),
        "assessment": assessment.to_response(),
        "recorded_at": datetime.now(UTC).isoformat(),
    }


class SqlAuditSink:
    """Inserts one ``fraud_logs`` row per assessment."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession] | None = None) -> None:
        if session_factory is None:
            from riskgate.db.database import async_session_factory

            session_factory = async_session_factory
        self._session_factory = session_factory

    async def record(self, transaction: Transaction, assessment: Assessment) -> str:
        log_id = str(uuid.uuid4())
        response = assessment.to_response()
        row = FraudLog(
            log_id=log_id,
            transaction_id=transaction.transaction_id,
            user_id=transaction.user_id,
            transaction_type=transaction.type.value,
            amount=transaction.amount,
            transaction_at=transaction.timestamp,
            risk_score=assessment.risk_assessment.score,
            risk_level=assessment.risk_assessment.level.value,
            action_taken=assessment.action.value,
            rules_triggered=response["triggeredRules"],
            risk_breakdown=response["riskBreakdown"],
            execution_time_ms=assessment.evaluation_duration_ms,
            degraded=assessment.degraded,
            error=assessment.error,
            created_at=datetime.now(UTC),
        )
        try:
            async with self._session_factory() as session:
                session.add(row)
                await session.commit()
        except SQLAlchemyError as exc:
            raise AuditWriteError(f"fraud_logs insert failed: {exc}") from exc

        logger.debug("assessment_persisted", log_id=log_id, user_id=transaction.user_id)
        return log_id


class KafkaAuditSink:
    """Publishes assessments to a Kafka topic.

    Args:
        producer: a started aiokafka ``AIOKafkaProducer`` (or anything with
            an async ``send_and_wait(topic, value=..., key=...)``).
        topic: destination topic; defaults to ``Settings.audit_kafka_topic``.
    """

    def __init__(self, producer, topic: str | None = None) -> None:
        self._producer = producer
        self._topic = topic or settings.audit_kafka_topic

    async def record(self, transaction: Transaction, assessment: Assessment) -> str:
        log_id = str(uuid.uuid4())
        payload = audit_payload(log_id, transaction, assessment)
        try:
            await self._producer.send_and_wait(
                self._topic,
                value=json.dumps(payload, default=str).encode("utf-8"),
                key=transaction.user_id.encode("utf-8"),
            )
        except Exception as exc:
            raise AuditWriteError(f"publish to {self._topic} failed: {exc}") from exc

        logger.debug("assessment_published", log_id=log_id, topic=self._topic)
        return log_id


async def write_with_retry(
    sink: AuditSink,
    transaction: Transaction,
    assessment: Assessment,
    policy: AuditSettings | None = None,
) -> str | None:
    """Attempt the audit write up to ``max_attempts`` times. Returns the record id or None."""
    cfg = policy or default_config.audit
    attempts = max(cfg.max_attempts, 1)
    for attempt in range(1, attempts + 1):
        try:
            return await sink.record(transaction, assessment)
        except Exception as exc:
            logger.warning(
                "audit_write_failed",
                attempt=attempt,
                max_attempts=attempts,
                user_id=transaction.user_id,
                error=str(exc),
            )
            if attempt < attempts:
                await asyncio.sleep(cfg.retry_backoff_seconds * attempt)

    logger.error(
        "audit_write_abandoned",
        user_id=transaction.user_id,
        transaction_id=transaction.transaction_id,
        action=assessment.action.value,
        risk_score=assessment.risk_assessment.score,
    )
    return None
