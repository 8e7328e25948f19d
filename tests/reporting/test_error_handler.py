from __future__ import annotations

import asyncio

import pytest

from serpkit.errors import (
    AuthError,
    ClassifiedError,
    ErrorKind,
    NetworkError,
    RateLimitError,
    UnknownError,
    ValidationError,
    classify_error,
    classify_status,
)
from serpkit.reporting import (
    ErrorHandler,
    InMemoryMonitoringSink,
    InMemoryNotificationSink,
    notice_for,
)


def _handler(**kwargs):
    notifier = InMemoryNotificationSink()
    monitor = InMemoryMonitoringSink()
    return ErrorHandler(notifier=notifier, monitor=monitor, **kwargs), notifier, monitor


@pytest.mark.parametrize(
    ("status", "expected"),
    [
        (401, AuthError),
        (429, RateLimitError),
        (500, NetworkError),
        (503, NetworkError),
        (404, UnknownError),
        (400, UnknownError),
    ],
)
def test_classify_status_maps_http_codes(status, expected):
    error = classify_status(status, "Reason", context={"endpoint": "/x"})
    assert isinstance(error, expected)
    assert error.status == status
    assert error.context == {"endpoint": "/x"}


def test_classify_status_passes_success_and_formats_unknown():
    assert classify_status(200) is None
    assert classify_status(204) is None
    assert classify_status(404, "Not Found").message == "HTTP 404: Not Found"


def test_classify_error_handles_builtin_failures():
    assert classify_error(asyncio.TimeoutError()).kind is ErrorKind.NETWORK
    assert classify_error(asyncio.TimeoutError()).message == "timeout"
    assert classify_error(ConnectionRefusedError("refused")).kind is ErrorKind.NETWORK
    assert classify_error(RuntimeError("429 Too Many Requests")).kind is ErrorKind.RATE_LIMIT
    assert classify_error(RuntimeError("JWT expired")).kind is ErrorKind.AUTH
    assert classify_error(RuntimeError("request timed out")).message == "timeout"
    assert classify_error(RuntimeError("something odd")).kind is ErrorKind.UNKNOWN


def test_classify_error_passes_through_and_merges_context():
    original = AuthError(context={"endpoint": "/a"})
    classified = classify_error(original, context={"endpoint": "/b", "method": "GET"})
    assert classified is original
    assert classified.context == {"endpoint": "/a", "method": "GET"}


def test_handle_logs_notifies_and_reports_once():
    handler, notifier, monitor = _handler()
    result = handler.handle(NetworkError("timeout"), {"endpoint": "/health"})

    assert isinstance(result, NetworkError)
    assert len(handler.error_log()) == 1
    assert len(notifier.notices) == 1
    assert notifier.notices[0].is_blocking
    assert monitor.reports[0]["kind"] == "network"
    assert monitor.reports[0]["context"] == {"endpoint": "/health"}
    assert set(monitor.reports[0]) == {"message", "kind", "context", "timestamp"}


def test_rate_limit_notice_is_non_blocking_and_shorter():
    notice = notice_for(RateLimitError())
    assert notice.severity == "info"
    assert notice.duration_s < notice_for(AuthError()).duration_s
    assert "log in again" in notice_for(AuthError()).message
    assert notice_for(ValidationError("name: too short")).message == (
        "Validation error: name: too short"
    )


def test_error_log_is_bounded():
    handler, _, _ = _handler(max_log_size=3)
    for i in range(5):
        handler.handle(UnknownError(f"e{i}"))
    log = handler.error_log()
    assert [entry.error.message for entry in log] == ["e2", "e3", "e4"]


def test_error_stats_counts_by_kind_and_recent():
    now = {"t": 10_000.0}
    handler, _, _ = _handler(clock=lambda: now["t"])
    handler.handle(AuthError())
    now["t"] += 2 * 60 * 60
    handler.handle(RateLimitError())
    handler.handle(RateLimitError())

    stats = handler.error_stats()
    assert stats == {"total": 3, "by_kind": {"auth": 1, "rate_limit": 2}, "recent": 2}

    handler.clear_error_log()
    assert handler.error_stats()["total"] == 0


def test_failing_sinks_never_mask_the_error():
    class _Broken:
        def notify(self, notice):
            raise RuntimeError("ui gone")

        def report(self, payload):
            raise RuntimeError("monitor gone")

    handler = ErrorHandler(notifier=_Broken(), monitor=_Broken())
    result = handler.handle(AuthError())
    assert isinstance(result, AuthError)
    assert len(handler.error_log()) == 1


def test_wrap_async_handles_then_reraises_original():
    handler, notifier, _ = _handler()

    async def fails(x):
        raise ValueError(f"bad {x}")

    wrapped = handler.wrap_async(fails, {"component": "test"})
    with pytest.raises(ValueError, match="bad 1"):
        asyncio.run(wrapped(1))

    entry = handler.error_log()[0]
    assert entry.context["component"] == "test"
    assert entry.context["args"] == [1]
    assert len(notifier.notices) == 1


def test_wrap_sync_returns_value_when_no_error():
    handler, _, _ = _handler()
    wrapped = handler.wrap_sync(lambda a, b: a + b)
    assert wrapped(2, 3) == 5
    assert handler.error_log() == []


def test_classified_error_is_an_exception_with_report():
    error = RateLimitError(context={"endpoint": "/k"})
    assert isinstance(error, ClassifiedError)
    assert str(error) == "Rate limit exceeded"
    report = error.to_report()
    assert report["kind"] == "rate_limit"
    assert report["context"] == {"endpoint": "/k"}
