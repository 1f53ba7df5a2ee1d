from __future__ import annotations

import logging

from excelflow.contracts import OperationReport
from excelflow.errors import ConfigurationError, RunClientError, ValidationError

logger = logging.getLogger("excelflow.reports")

STATUS_UNAVAILABLE = "Could not retrieve the status of run {run_id}. Polling has stopped."


class LoggingNotifier:
    """Default notifier: reports go to the `excelflow.reports` logger."""

    def notify(self, report: OperationReport) -> None:
        level = logging.ERROR if report.severity == "error" else logging.INFO
        logger.log(level, "[%s] %s: %s", report.operation, report.title, report.message)


def success(operation: str, title: str, message: str) -> OperationReport:
    return OperationReport(operation=operation, severity="success", title=title, message=message)


def info(operation: str, title: str, message: str) -> OperationReport:
    return OperationReport(operation=operation, severity="info", title=title, message=message)


def report_from_error(
    operation: str, exc: RunClientError, *, title: str | None = None
) -> OperationReport:
    # Configuration and validation problems keep their own title; the user must act on them.
    if isinstance(exc, (ConfigurationError, ValidationError)) or title is None:
        title = exc.title
    return OperationReport(
        operation=operation,
        severity="error",
        title=title,
        message=str(exc),
        retryable=exc.retryable,
    )


def status_unavailable(operation: str, run_id: str, exc: RunClientError) -> OperationReport:
    if isinstance(exc, ConfigurationError):
        return report_from_error(operation, exc)
    return OperationReport(
        operation=operation,
        severity="error",
        title="Status Unavailable",
        message=STATUS_UNAVAILABLE.format(run_id=run_id),
        retryable=exc.retryable,
    )
