"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Notification and monitoring sinks fed by the error handler.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Literal, Protocol

NoticeSeverity = Literal["info", "error"]


@dataclass(frozen=True, slots=True)
class Notice:
    """
    Short user-facing message for one classified failure.

    Attributes:
        title: Heading shown to the user.
        message: Human-readable explanation.
        severity: ``"info"`` for non-destructive notices (rate limits),
            ``"error"`` for blocking failures.
        duration_s: How long a transient display should stay visible.
    """

    title: str
    message: str
    severity: NoticeSeverity = "error"
    duration_s: float = 5.0

    @property
    def is_blocking(self) -> bool:
        return self.severity == "error"


class NotificationSink(Protocol):
    """Presentation layer receiving user notices."""

    def notify(self, notice: Notice) -> None: ...


class MonitoringSink(Protocol):
    """Analytics/monitoring endpoint receiving error reports."""

    def report(self, payload: dict[str, Any]) -> None: ...


class LoggingNotificationSink:
    """Write notices to a logger; the default when no UI is attached."""

    def __init__(self, logger: logging.Logger | None = None) -> None:
        self._logger = logger or logging.getLogger("serpkit.notices")

    def notify(self, notice: Notice) -> None:
        level = logging.WARNING if notice.is_blocking else logging.INFO
        self._logger.log(level, "%s: %s", notice.title, notice.message)


@dataclass(slots=True)
class InMemoryNotificationSink:
    """Notification sink that keeps every notice in process memory."""

    notices: list[Notice] = field(default_factory=list)

    def notify(self, notice: Notice) -> None:
        self.notices.append(notice)


@dataclass(slots=True)
class InMemoryMonitoringSink:
    """Monitoring sink that keeps every report in process memory."""

    reports: list[dict[str, Any]] = field(default_factory=list)

    def report(self, payload: dict[str, Any]) -> None:
        self.reports.append(dict(payload))


class NullMonitoringSink:
    def report(self, payload: dict[str, Any]) -> None:
        _ = payload
