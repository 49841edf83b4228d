"""Fraud detection domain."""

from .audit import AuditSink, KafkaAuditSink, SqlAuditSink
from .config import FraudConfig, default_config
from .decision import decide
from .engine import FraudEngine
from .exceptions import AuditWriteError, HistorySourceError, RiskgateError
from .history import HistorySource, InMemoryHistorySource, SqlHistorySource
from .models import (
    Action,
    Assessment,
    HistoricalTransaction,
    RiskAssessment,
    RiskLevel,
    Severity,
    Signal,
    SignalCategory,
    Transaction,
    TransactionStatus,
    TransactionType,
    UserContext,
)
from .rules import DEFAULT_DETECTORS
from .scoring import score_signals

__all__ = [
    "DEFAULT_DETECTORS",
    "Action",
    "Assessment",
    "AuditSink",
    "AuditWriteError",
    "FraudConfig",
    "FraudEngine",
    "HistoricalTransaction",
    "HistorySource",
    "HistorySourceError",
    "InMemoryHistorySource",
    "KafkaAuditSink",
    "RiskAssessment",
    "RiskLevel",
    "RiskgateError",
    "Severity",
    "Signal",
    "SignalCategory",
    "SqlAuditSink",
    "SqlHistorySource",
    "Transaction",
    "TransactionStatus",
    "TransactionType",
    "UserContext",
    "decide",
    "default_config",
    "score_signals",
]
