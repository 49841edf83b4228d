"""Fraud evaluation engine: detectors -> scorer -> decider -> audit.

The engine never raises to its caller. A failing detector contributes no
signals and marks the assessment degraded. When every detector fails, or a
failure happens anywhere else, the engine returns the fail-open assessment
(allow, score 0, level unknown).
"""

import asyncio
import time
from collections.abc import Iterable, Mapping
from datetime import UTC, datetime
from typing import Any

import structlog

from .audit import AuditSink, SqlAuditSink, write_with_retry
from .config import FraudConfig, default_config
from .decision import decide
from .history import HistorySource, SqlHistorySource
from .models import Assessment, Transaction, UserContext
from .rules import DEFAULT_DETECTORS, Detector, DetectorResult
from .scoring import score_signals

logger = structlog.get_logger()


class FraudEngine:
    """Evaluates transactions against a fixed set of detectors.

    Args:
        history: read-only view over past transactions and accounts.
        audit_sink: optional destination for assessment records. Writes are
            dispatched in the background after the decision is built.
        config: thresholds and engine policy; defaults to ``default_config``.
        detectors: detector families to run, in reporting order.
    """

    def __init__(
        self,
        history: HistorySource,
        audit_sink: AuditSink | None = None,
        config: FraudConfig | None = None,
        detectors: Iterable[Detector] | None = None,
    ) -> None:
        self._history = history
        self._audit_sink = audit_sink
        self._config = config or default_config
        self._detectors = tuple(detectors) if detectors is not None else DEFAULT_DETECTORS
        self._audit_tasks: set[asyncio.Task] = set()
        logger.info(
            "fraud_engine_initialized",
            detectors=[d.name for d in self._detectors],
            rule_count=sum(len(d.rules) for d in self._detectors),
            parallel=self._config.engine.parallel_detectors,
        )

    @classmethod
    def from_database(cls, config: FraudConfig | None = None) -> "FraudEngine":
        """Engine wired to the application database for history and audit."""
        return cls(history=SqlHistorySource(), audit_sink=SqlAuditSink(), config=config)

    @property
    def detectors(self) -> tuple[Detector, ...]:
        return self._detectors

    @property
    def pending_audits(self) -> int:
        return len(self._audit_tasks)

    async def evaluate(
        self,
        transaction: Transaction | Mapping[str, Any],
        context: UserContext | Mapping[str, Any] | None = None,
        timeout: float | None = None,
    ) -> Assessment:
        """Assess one transaction. Always returns an Assessment."""
        started = time.perf_counter()
        evaluated_at = datetime.now(UTC)
        txn: Transaction | None = None

        try:
            txn = (
                transaction
                if isinstance(transaction, Transaction)
                else Transaction.model_validate(transaction)
            )
            user_context = (
                context
                if context is None or isinstance(context, UserContext)
                else UserContext.model_validate(context)
            )

            results = await self._run_detectors(txn, user_context, timeout)
            signals = [signal for result in results for signal in result.signals]
            failed = [result.detector for result in results if result.failed]
            error = "; ".join(f"{r.detector}: {r.error}" for r in results if r.failed) or None

            if failed and len(failed) == len(results):
                # Nothing was checked, so there is no score to report
                logger.error("all_detectors_failed", user_id=txn.user_id, failed_detectors=failed)
                assessment = Assessment.fail_open(
                    error=error,
                    evaluated_at=evaluated_at,
                    evaluation_duration_ms=_elapsed_ms(started),
                    transaction_id=txn.transaction_id,
                    failed_detectors=failed,
                )
            else:
                risk = score_signals(signals, self._config)
                assessment = Assessment(
                    action=decide(risk.score, self._config.decision),
                    risk_assessment=risk,
                    signals=signals,
                    evaluation_duration_ms=_elapsed_ms(started),
                    evaluated_at=evaluated_at,
                    transaction_id=txn.transaction_id,
                    degraded=bool(failed),
                    failed_detectors=failed,
                    error=error,
                )
        except Exception as exc:
            logger.exception(
                "evaluation_failed_open",
                user_id=txn.user_id if txn else _lookup(transaction, "user_id"),
            )
            assessment = Assessment.fail_open(
                error=f"{type(exc).__name__}: {exc}",
                evaluated_at=evaluated_at,
                evaluation_duration_ms=_elapsed_ms(started),
                transaction_id=txn.transaction_id if txn else _lookup(transaction, "transaction_id"),
            )

        self._log_assessment(assessment, txn)
        if txn is not None:
            self._dispatch_audit(txn, assessment)
        return assessment

    async def drain(self) -> None:
        """Wait for every scheduled audit write to finish."""
        while self._audit_tasks:
            await asyncio.gather(*list(self._audit_tasks), return_exceptions=True)

    async def _run_detectors(
        self,
        txn: Transaction,
        context: UserContext | None,
        timeout: float | None,
    ) -> list[DetectorResult]:
        if timeout is None:
            timeout = self._config.engine.timeout_seconds
        if self._config.engine.parallel_detectors:
            return await self._run_parallel(txn, context, timeout)
        return await self._run_sequential(txn, context, timeout)

    async def _run_parallel(
        self, txn: Transaction, context: UserContext | None, timeout: float | None
    ) -> list[DetectorResult]:
        if not self._detectors:
            return []

        tasks = [
            asyncio.create_task(
                detector.run(txn, context, self._history, self._config),
                name=f"detector:{detector.name}",
            )
            for detector in self._detectors
        ]
        try:
            _, pending = await asyncio.wait(tasks, timeout=timeout)
            for task in pending:
                task.cancel()
            if pending:
                await asyncio.gather(*pending, return_exceptions=True)
        finally:
            for task in tasks:
                if not task.done():
                    task.cancel()

        results = []
        for detector, task in zip(self._detectors, tasks, strict=True):
            if task in pending:
                results.append(self._timed_out(detector, txn, timeout))
            elif (exc := task.exception()) is not None:
                results.append(self._crashed(detector, txn, exc))
            else:
                results.append(task.result())
        return results

    async def _run_sequential(
        self, txn: Transaction, context: UserContext | None, timeout: float | None
    ) -> list[DetectorResult]:
        deadline = None if timeout is None else time.monotonic() + timeout
        results = []
        for detector in self._detectors:
            remaining = None if deadline is None else max(deadline - time.monotonic(), 0.0)
            try:
                result = await asyncio.wait_for(
                    detector.run(txn, context, self._history, self._config), remaining
                )
            except TimeoutError:
                result = self._timed_out(detector, txn, timeout)
            except Exception as exc:
                result = self._crashed(detector, txn, exc)
            results.append(result)
        return results

    @staticmethod
    def _timed_out(detector: Detector, txn: Transaction, timeout: float | None) -> DetectorResult:
        logger.warning(
            "detector_timed_out",
            detector=detector.name,
            user_id=txn.user_id,
            timeout_seconds=timeout,
        )
        return DetectorResult(detector=detector.name, error=f"timed out after {timeout}s")

    @staticmethod
    def _crashed(detector: Detector, txn: Transaction, exc: BaseException) -> DetectorResult:
        error = f"{type(exc).__name__}: {exc}"
        logger.error(
            "detector_evaluation_error",
            detector=detector.name,
            user_id=txn.user_id,
            error=error,
        )
        return DetectorResult(detector=detector.name, error=error)

    def _log_assessment(self, assessment: Assessment, txn: Transaction | None) -> None:
        policy = self._config.engine
        fields = {
            "user_id": txn.user_id if txn else None,
            "transaction_id": assessment.transaction_id,
            "risk_score": assessment.score,
            "risk_level": assessment.level.value,
            "action": assessment.action.value,
            "triggered": [s.rule_id for s in assessment.signals],
            "degraded": assessment.degraded,
            "duration_ms": round(assessment.evaluation_duration_ms, 2),
        }
        if assessment.score >= policy.log_high_risk_from:
            logger.warning("high_risk_transaction", **fields)
        elif assessment.score >= policy.log_medium_risk_from:
            logger.info("medium_risk_transaction", **fields)
        else:
            logger.debug("transaction_evaluated", **fields)

    def _dispatch_audit(self, txn: Transaction, assessment: Assessment) -> None:
        if self._audit_sink is None:
            return
        task = asyncio.create_task(
            write_with_retry(self._audit_sink, txn, assessment, self._config.audit)
        )
        self._audit_tasks.add(task)
        task.add_done_callback(self._audit_tasks.discard)


def _elapsed_ms(started: float) -> float:
    return (time.perf_counter() - started) * 1000


def _lookup(raw: Any, key: str) -> Any:
    if isinstance(raw, Mapping):
        return raw.get(key)
    return None
