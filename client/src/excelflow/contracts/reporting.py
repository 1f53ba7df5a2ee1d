from __future__ import annotations

from dataclasses import dataclass
from typing import Literal, Protocol, runtime_checkable

Severity = Literal["info", "success", "error"]


@dataclass(frozen=True, slots=True)
class OperationReport:
    """User-visible outcome of one operation (the toast payload)."""

    operation: str
    severity: Severity
    title: str
    message: str
    retryable: bool = False

    @property
    def ok(self) -> bool:
        return self.severity != "error"


@runtime_checkable
class Notifier(Protocol):
    def notify(self, report: OperationReport) -> None:
        """Present a report to the user."""
        ...
