"""Exceptions raised by riskgate collaborators.

None of these reach the caller of ``FraudEngine.evaluate``: detector and engine
boundaries convert them into degraded, fail-open results.
"""


class RiskgateError(Exception):
    """Base for all riskgate errors."""

    message: str = "riskgate internal error"

    def __init__(self, message: str | None = None):
        self.message = message or self.__class__.message
        super().__init__(self.message)


class HistorySourceError(RiskgateError):
    """A historical-facts query could not be answered."""

    message = "history source query failed"


class AuditWriteError(RiskgateError):
    """An assessment could not be persisted by an audit sink."""

    message = "audit write failed"
