"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Request layer: timeouts, status classification and error reporting for
every outbound call.
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Awaitable, Mapping
from typing import Any, TypeVar

from ..errors import ClassifiedError, NetworkError, UnknownError, classify_status
from ..reporting import ErrorHandler
from ..transport import HttpRequest, HttpTransport, UrllibTransport, encode_json
from .settings import ClientSettings

logger = logging.getLogger("serpkit.api")

T = TypeVar("T")


class APIClient:
    """
    Generic request helper shared by every resource method.

    Each call runs under the client-wide timeout. Any failure is classified,
    handed to the shared ``ErrorHandler`` exactly once, and raised to the
    caller as a ``ClassifiedError`` chained to the original exception.
    Nothing here retries; retry policy belongs to callers.
    """

    def __init__(
        self,
        settings: ClientSettings | None = None,
        *,
        transport: HttpTransport | None = None,
        error_handler: ErrorHandler | None = None,
    ) -> None:
        self.settings = settings or ClientSettings()
        self._transport = transport or UrllibTransport()
        self.error_handler = error_handler or ErrorHandler()
        self._request_timeout_s = self.settings.request_timeout_s
        self._default_headers = dict(self.settings.default_headers)
        if self.settings.api_key:
            self._default_headers.setdefault("apikey", self.settings.api_key)
            self._default_headers.setdefault(
                "Authorization", f"Bearer {self.settings.api_key}"
            )

    @property
    def request_timeout_s(self) -> float:
        return self._request_timeout_s

    def set_request_timeout(self, timeout_s: float) -> None:
        if timeout_s <= 0:
            raise ValueError("timeout_s must be > 0")
        self._request_timeout_s = float(timeout_s)

    async def request(
        self,
        endpoint: str,
        *,
        method: str = "GET",
        headers: Mapping[str, str] | None = None,
        json_body: Any = None,
    ) -> Any:
        """
        Perform one HTTP call against ``base_url + endpoint``.

        Returns the decoded JSON body (``None`` for an empty body).

        Raises:
            NetworkError: timeout, connection failure or 5xx status.
            AuthError: 401 status.
            RateLimitError: 429 status.
            UnknownError: any other non-2xx status or undecodable body.
        """
        context = {"endpoint": endpoint, "method": method.upper()}
        request = HttpRequest(
            method=method.upper(),
            url=f"{self.settings.base_url}{endpoint}",
            headers={**self._default_headers, **dict(headers or {})},
            body=encode_json(json_body) if json_body is not None else None,
            timeout_s=self._request_timeout_s,
        )

        async def _do_request() -> Any:
            response = await self._transport.send(request)
            failure = classify_status(response.status, response.reason, context=context)
            if failure is not None:
                raise failure
            try:
                return response.json()
            except (UnicodeDecodeError, json.JSONDecodeError) as e:
                raise UnknownError("Invalid JSON response", context=context) from e

        return await self._guarded(_do_request(), context)

    async def health_check(self) -> bool:
        """Return ``True`` when ``/health`` answers with a 2xx status."""
        try:
            await self.request("/health")
        except ClassifiedError:
            return False
        return True

    async def _guarded(self, awaitable: Awaitable[T], context: dict[str, Any]) -> T:
        """Await under the client timeout; classify, report and raise failures."""
        try:
            return await asyncio.wait_for(awaitable, timeout=self._request_timeout_s)
        except asyncio.CancelledError:
            raise
        except asyncio.TimeoutError as e:
            error = NetworkError("timeout", context=context)
            self.error_handler.handle(error, context)
            raise error from e
        except Exception as e:
            classified = self.error_handler.handle(e, context)
            if classified is e:
                raise
            raise classified from e
