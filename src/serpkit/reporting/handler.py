"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Shared error handler: logs, notifies and reports every classified failure.
"""

from __future__ import annotations

import functools
import logging
import time
import uuid
from collections import deque
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any, ParamSpec, TypeVar

from ..errors import ClassifiedError, ErrorKind, classify_error
from .sinks import (
    LoggingNotificationSink,
    MonitoringSink,
    Notice,
    NotificationSink,
    NullMonitoringSink,
)

logger = logging.getLogger("serpkit.reporting")

P = ParamSpec("P")
R = TypeVar("R")

_RECENT_WINDOW_S = 60 * 60


@dataclass(frozen=True, slots=True)
class ErrorLogEntry:
    """One handled error kept in the bounded in-memory log."""

    error: ClassifiedError
    timestamp: float
    context: dict[str, Any] = field(default_factory=dict)
    id: str = field(default_factory=lambda: uuid.uuid4().hex)


def notice_for(error: ClassifiedError) -> Notice:
    """Map a classified error to the short message shown to the user."""
    if error.kind is ErrorKind.NETWORK:
        return Notice(
            title="Error",
            message="Network error. Please check your connection and try again.",
        )
    if error.kind is ErrorKind.AUTH:
        return Notice(title="Error", message="Authentication error. Please log in again.")
    if error.kind is ErrorKind.RATE_LIMIT:
        return Notice(
            title="Error",
            message="Rate limit exceeded. Please wait a moment before trying again.",
            severity="info",
            duration_s=3.0,
        )
    if error.kind is ErrorKind.VALIDATION:
        return Notice(title="Error", message=f"Validation error: {error.message}")
    return Notice(title="Error", message="An unexpected error occurred")


class ErrorHandler:
    """
    Single place where failures are logged, shown and reported.

    Callers hand every failure to ``handle`` exactly once and then re-raise
    it; the handler never swallows or replaces the error seen by callers.
    Sink failures are logged and otherwise ignored.
    """

    def __init__(
        self,
        *,
        notifier: NotificationSink | None = None,
        monitor: MonitoringSink | None = None,
        max_log_size: int = 100,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if max_log_size <= 0:
            raise ValueError("max_log_size must be > 0")
        self._notifier = notifier or LoggingNotificationSink()
        self._monitor = monitor or NullMonitoringSink()
        self._log: deque[ErrorLogEntry] = deque(maxlen=max_log_size)
        self._clock = clock

    def handle(
        self,
        error: BaseException,
        context: dict[str, Any] | None = None,
    ) -> ClassifiedError:
        """Classify ``error``, record it, notify and report; return the classified error."""
        classified = classify_error(error, context=context)
        self._log.append(
            ErrorLogEntry(
                error=classified,
                timestamp=self._clock(),
                context=dict(classified.context),
            )
        )
        logger.error(
            "%s error: %s (context=%s)",
            classified.kind.value,
            classified.message,
            classified.context,
        )

        try:
            self._notifier.notify(notice_for(classified))
        except Exception:  # noqa: BLE001
            logger.exception("Notification sink failed")
        try:
            self._monitor.report(classified.to_report())
        except Exception:  # noqa: BLE001
            logger.exception("Monitoring sink failed")
        return classified

    def error_log(self) -> list[ErrorLogEntry]:
        return list(self._log)

    def clear_error_log(self) -> None:
        self._log.clear()

    def error_stats(self) -> dict[str, Any]:
        cutoff = self._clock() - _RECENT_WINDOW_S
        by_kind: dict[str, int] = {}
        for entry in self._log:
            by_kind[entry.error.kind.value] = by_kind.get(entry.error.kind.value, 0) + 1
        return {
            "total": len(self._log),
            "by_kind": by_kind,
            "recent": sum(1 for entry in self._log if entry.timestamp > cutoff),
        }

    def wrap_async(
        self,
        fn: Callable[P, Awaitable[R]],
        context: dict[str, Any] | None = None,
    ) -> Callable[P, Awaitable[R]]:
        """Decorate a coroutine function so failures are handled then re-raised."""

        @functools.wraps(fn)
        async def _wrapped(*args: P.args, **kwargs: P.kwargs) -> R:
            try:
                return await fn(*args, **kwargs)
            except Exception as error:
                self.handle(error, {**(context or {}), "args": list(args)})
                raise

        return _wrapped

    def wrap_sync(
        self,
        fn: Callable[P, R],
        context: dict[str, Any] | None = None,
    ) -> Callable[P, R]:
        """Decorate a plain function so failures are handled then re-raised."""

        @functools.wraps(fn)
        def _wrapped(*args: P.args, **kwargs: P.kwargs) -> R:
            try:
                return fn(*args, **kwargs)
            except Exception as error:
                self.handle(error, {**(context or {}), "args": list(args)})
                raise

        return _wrapped
