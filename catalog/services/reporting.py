"""
Error reporting - an injectable sink for classified failures.

Components never talk to a global monitor; they receive an ErrorReporter
and call ``report(error, context)``.
"""

import uuid
from collections import Counter, deque
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Literal, Protocol, runtime_checkable

from loguru import logger

from catalog.services.classifier import classify_error

ReportLevel = Literal["low", "medium", "high", "critical"]


@runtime_checkable
class ErrorReporter(Protocol):
    """Capability for recording failures observed at a component boundary."""

    def report(
        self,
        error: BaseException,
        context: str,
        level: ReportLevel = "medium",
        **extra: Any,
    ) -> str:
        """Record an error and return a report id."""
        ...


@dataclass
class ErrorReport:
    """A single recorded failure."""

    id: str
    timestamp: datetime
    error_name: str
    error_type: str
    message: str
    context: str
    level: ReportLevel
    extra: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "timestamp": self.timestamp.isoformat(),
            "error_name": self.error_name,
            "error_type": self.error_type,
            "message": self.message,
            "context": self.context,
            "level": self.level,
            "extra": self.extra,
        }


class LoggingErrorReporter:
    """
    Production reporter: logs through loguru and keeps recent reports.

    Usage:
        reporter = LoggingErrorReporter(max_reports=100)
        reporter.report(exc, "Fetch products", level="high")
        reporter.get_stats()
    """

    def __init__(self, max_reports: int = 100, enabled: bool = True):
        self._reports: deque[ErrorReport] = deque(maxlen=max_reports)
        self.enabled = enabled

    def report(
        self,
        error: BaseException,
        context: str,
        level: ReportLevel = "medium",
        **extra: Any,
    ) -> str:
        if not self.enabled:
            return ""

        app_error = classify_error(error)
        entry = ErrorReport(
            id=f"error_{uuid.uuid4().hex[:12]}",
            timestamp=datetime.now(),
            error_name=type(error).__name__,
            error_type=app_error.error_type.value,
            message=str(error),
            context=context,
            level=level,
            extra=extra,
        )
        self._reports.appendleft(entry)

        log = logger.error if level in ("high", "critical") else logger.warning
        log(
            f"[{level.upper()}] {context}: {entry.error_name}: {entry.message} "
            f"(type={entry.error_type}, id={entry.id})"
        )
        return entry.id

    def get_recent(self, count: int = 10) -> list[ErrorReport]:
        return list(self._reports)[:count]

    def get_by_level(self, level: ReportLevel) -> list[ErrorReport]:
        return [r for r in self._reports if r.level == level]

    def search(self, query: str) -> list[ErrorReport]:
        """Find reports whose context, message or error name contains query."""
        q = query.lower()
        return [
            r
            for r in self._reports
            if q in r.context.lower()
            or q in r.message.lower()
            or q in r.error_name.lower()
        ]

    def get_stats(self) -> dict[str, Any]:
        return {
            "total_errors": len(self._reports),
            "errors_by_type": dict(Counter(r.error_type for r in self._reports)),
            "errors_by_context": dict(Counter(r.context for r in self._reports)),
            "recent_errors": [r.to_dict() for r in self.get_recent(10)],
        }

    def clear(self) -> None:
        self._reports.clear()
