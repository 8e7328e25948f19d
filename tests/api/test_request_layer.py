from __future__ import annotations

import asyncio
import json
import time
import urllib.error

import pytest

from serpkit.api import APIClient, ClientSettings
from serpkit.errors import AuthError, NetworkError, RateLimitError, UnknownError
from serpkit.reporting import ErrorHandler, InMemoryMonitoringSink, InMemoryNotificationSink
from serpkit.transport import HttpRequest, HttpResponse


class _Transport:
    def __init__(self, response=None, *, hang: bool = False, error: Exception | None = None):
        self.response = response
        self.hang = hang
        self.error = error
        self.requests: list[HttpRequest] = []

    async def send(self, request: HttpRequest) -> HttpResponse:
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        if self.hang:
            await asyncio.Event().wait()
        return self.response


def _client(transport, *, timeout_s: float = 30.0):
    notifier = InMemoryNotificationSink()
    monitor = InMemoryMonitoringSink()
    handler = ErrorHandler(notifier=notifier, monitor=monitor)
    client = APIClient(
        ClientSettings(base_url="https://api.test", api_key="k", request_timeout_s=timeout_s),
        transport=transport,
        error_handler=handler,
    )
    return client, handler, monitor


def run_async(coro):
    return asyncio.run(coro)


def test_request_returns_decoded_json_and_sends_headers():
    transport = _Transport(HttpResponse(status=200, body=json.dumps({"ok": True}).encode()))
    client, handler, _ = _client(transport)

    result = run_async(client.request("/projects", method="post", json_body={"name": "x"}))

    assert result == {"ok": True}
    sent = transport.requests[0]
    assert sent.url == "https://api.test/projects"
    assert sent.method == "POST"
    assert sent.headers["Content-Type"] == "application/json"
    assert sent.headers["Authorization"] == "Bearer k"
    assert json.loads(sent.body) == {"name": "x"}
    assert handler.error_log() == []


def test_empty_body_decodes_to_none():
    client, _, _ = _client(_Transport(HttpResponse(status=204)))
    assert run_async(client.request("/x")) is None


@pytest.mark.parametrize(
    ("status", "expected", "kind"),
    [
        (401, AuthError, "auth"),
        (429, RateLimitError, "rate_limit"),
        (502, NetworkError, "network"),
        (418, UnknownError, "unknown"),
    ],
)
def test_http_status_is_classified_reported_and_raised(status, expected, kind):
    transport = _Transport(HttpResponse(status=status, reason="Nope"))
    client, handler, monitor = _client(transport)

    with pytest.raises(expected) as info:
        run_async(client.request("/keywords"))

    assert info.value.status == status
    assert info.value.context["endpoint"] == "/keywords"
    assert len(handler.error_log()) == 1
    assert monitor.reports[0]["kind"] == kind


def test_hanging_call_times_out_as_network_error():
    client, handler, monitor = _client(_Transport(hang=True), timeout_s=0.05)

    started = time.monotonic()
    with pytest.raises(NetworkError) as info:
        run_async(client.request("/slow"))
    elapsed = time.monotonic() - started

    assert info.value.message == "timeout"
    assert elapsed < 1.0
    assert len(handler.error_log()) == 1
    assert monitor.reports[0]["message"] == "timeout"


def test_connection_failure_is_network_error_chained_to_original():
    original = urllib.error.URLError("connection refused")
    client, handler, _ = _client(_Transport(error=original))

    with pytest.raises(NetworkError) as info:
        run_async(client.request("/x"))

    assert info.value.__cause__ is original
    assert len(handler.error_log()) == 1


def test_invalid_json_body_is_unknown_error():
    client, _, _ = _client(_Transport(HttpResponse(status=200, body=b"<html>")))
    with pytest.raises(UnknownError, match="Invalid JSON response"):
        run_async(client.request("/x"))


def test_set_request_timeout_applies_to_later_calls():
    client, _, _ = _client(_Transport(hang=True), timeout_s=30)
    client.set_request_timeout(0.02)
    assert client.request_timeout_s == 0.02
    with pytest.raises(NetworkError):
        run_async(client.request("/slow"))
    with pytest.raises(ValueError):
        client.set_request_timeout(0)


def test_health_check_reports_false_instead_of_raising():
    ok_client, _, _ = _client(_Transport(HttpResponse(status=200, body=b"{}")))
    down_client, handler, _ = _client(_Transport(HttpResponse(status=503)))

    assert run_async(ok_client.health_check()) is True
    assert run_async(down_client.health_check()) is False
    assert len(handler.error_log()) == 1


def test_settings_from_env(monkeypatch):
    monkeypatch.setenv("SERPKIT_BASE_URL", "https://env.test")
    monkeypatch.setenv("SERPKIT_REQUEST_TIMEOUT_S", "12.5")
    monkeypatch.setenv("SERPKIT_CACHE_MAX_SIZE", "42")
    monkeypatch.setenv("SERPKIT_CACHE_SINGLE_FLIGHT", "true")

    settings = ClientSettings.from_env()

    assert settings.base_url == "https://env.test"
    assert settings.request_timeout_s == 12.5
    assert settings.cache_max_size == 42
    assert settings.single_flight is True
    assert settings.long_cache_ttl_s == 1800.0
