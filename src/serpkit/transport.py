"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

HTTP transport used by the request layer and the HTTP backend.
"""

from __future__ import annotations

import asyncio
import json
import urllib.error
import urllib.request
from dataclasses import dataclass, field
from typing import Any, Protocol


@dataclass(frozen=True, slots=True)
class HttpRequest:
    method: str
    url: str
    headers: dict[str, str] = field(default_factory=dict)
    body: bytes | None = None
    timeout_s: float | None = None


@dataclass(frozen=True, slots=True)
class HttpResponse:
    """Raw response. Non-2xx statuses are returned, not raised."""

    status: int
    reason: str = ""
    headers: dict[str, str] = field(default_factory=dict)
    body: bytes = b""

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    def json(self) -> Any:
        if not self.body:
            return None
        return json.loads(self.body.decode("utf-8"))


class HttpTransport(Protocol):
    async def send(self, request: HttpRequest) -> HttpResponse: ...


def encode_json(payload: Any) -> bytes:
    return json.dumps(payload, default=str).encode("utf-8")


class UrllibTransport:
    """
    ``urllib``-based transport; each request runs in a worker thread.

    Connection failures raise ``urllib.error.URLError`` (an ``OSError``),
    which the request layer classifies as a network error.
    """

    async def send(self, request: HttpRequest) -> HttpResponse:
        return await asyncio.to_thread(self._send_blocking, request)

    def _send_blocking(self, request: HttpRequest) -> HttpResponse:
        req = urllib.request.Request(
            request.url,
            data=request.body,
            method=request.method.upper(),
            headers=dict(request.headers),
        )
        try:
            with urllib.request.urlopen(req, timeout=request.timeout_s) as resp:  # noqa: S310
                return HttpResponse(
                    status=resp.status,
                    reason=resp.reason or "",
                    headers=dict(resp.headers.items()),
                    body=resp.read(),
                )
        except urllib.error.HTTPError as e:
            body = b""
            try:
                body = e.read()
            except Exception:  # noqa: BLE001
                body = b""
            return HttpResponse(
                status=e.code,
                reason=str(e.reason or ""),
                headers=dict(e.headers.items()) if e.headers else {},
                body=body,
            )
