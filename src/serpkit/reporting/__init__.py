"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Error reporting package.

Every failure surfaced by the request layer passes through one
``ErrorHandler`` which keeps a bounded log, turns the failure into a short
user notice, and forwards a report to the monitoring sink.
"""

from .handler import ErrorHandler, ErrorLogEntry, notice_for
from .sinks import (
    InMemoryMonitoringSink,
    InMemoryNotificationSink,
    LoggingNotificationSink,
    MonitoringSink,
    Notice,
    NotificationSink,
    NullMonitoringSink,
)

__all__ = [
    "ErrorHandler",
    "ErrorLogEntry",
    "notice_for",
    "Notice",
    "NotificationSink",
    "MonitoringSink",
    "LoggingNotificationSink",
    "InMemoryNotificationSink",
    "InMemoryMonitoringSink",
    "NullMonitoringSink",
]
