"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

REST backend speaking the PostgREST table dialect and ``/functions/v1``.
"""

from __future__ import annotations

import json
import urllib.parse
from collections.abc import Mapping, Sequence
from typing import Any

from ..transport import HttpRequest, HttpResponse, HttpTransport, UrllibTransport, encode_json
from .types import BackendError, BackendResponse, Filter, Query, Row

_SINGLE_ACCEPT = "application/vnd.pgrst.object+json"


def _format_value(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _format_filter(flt: Filter) -> str:
    if flt.op == "in":
        inner = ",".join(_format_value(v) for v in flt.value)
        return f"in.({inner})"
    if flt.op == "eq" and flt.value is None:
        return "is.null"
    return f"{flt.op}.{_format_value(flt.value)}"


def query_params(query: Query) -> list[tuple[str, str]]:
    """Translate a ``Query`` into PostgREST query-string pairs."""
    params: list[tuple[str, str]] = [("select", "*")]
    params.extend((f.column, _format_filter(f)) for f in query.filters)
    if query.orderings:
        params.append(
            (
                "order",
                ",".join(
                    f"{o.column}.{'asc' if o.ascending else 'desc'}" for o in query.orderings
                ),
            )
        )

    limit = query.limit_value
    if query.range_value is not None:
        start, end = query.range_value
        span = max(0, end - start + 1)
        limit = span if limit is None else min(limit, span)
        params.append(("offset", str(start)))
    if limit is not None:
        params.append(("limit", str(limit)))
    return params


class HttpBackend:
    """
    Backend reached over HTTP.

    Args:
        base_url: Project URL, e.g. ``https://xyz.example.co``.
        api_key: Key sent as ``apikey`` and bearer token.
        transport: HTTP transport; defaults to ``UrllibTransport``.
        timeout_s: Socket timeout handed to the transport.
    """

    def __init__(
        self,
        base_url: str,
        *,
        api_key: str | None = None,
        transport: HttpTransport | None = None,
        timeout_s: float | None = 30.0,
        headers: Mapping[str, str] | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._api_key = api_key
        self._transport = transport or UrllibTransport()
        self._timeout_s = timeout_s
        self._headers = dict(headers or {})

    def _default_headers(self) -> dict[str, str]:
        headers = {
            "Content-Type": "application/json",
            "Accept": "application/json",
            **self._headers,
        }
        if self._api_key:
            headers.setdefault("apikey", self._api_key)
            headers.setdefault("Authorization", f"Bearer {self._api_key}")
        return headers

    def _table_url(self, query: Query | str, params: list[tuple[str, str]] | None = None) -> str:
        table = query if isinstance(query, str) else query.table
        url = f"{self._base_url}/rest/v1/{urllib.parse.quote(table)}"
        if params:
            url = f"{url}?{urllib.parse.urlencode(params, safe='*(),.')}"
        return url

    async def _send(
        self,
        method: str,
        url: str,
        *,
        body: Any = None,
        single: bool = False,
        representation: bool = False,
    ) -> BackendResponse:
        headers = self._default_headers()
        if single:
            headers["Accept"] = _SINGLE_ACCEPT
        if representation:
            headers["Prefer"] = "return=representation"
        response = await self._transport.send(
            HttpRequest(
                method=method,
                url=url,
                headers=headers,
                body=encode_json(body) if body is not None else None,
                timeout_s=self._timeout_s,
            )
        )
        return self._to_backend_response(response)

    @staticmethod
    def _to_backend_response(response: HttpResponse) -> BackendResponse:
        if response.ok:
            try:
                return BackendResponse(data=response.json())
            except (UnicodeDecodeError, json.JSONDecodeError):
                return BackendResponse(
                    error=BackendError("Invalid JSON response", status=response.status)
                )

        message = response.reason or f"HTTP {response.status}"
        code = None
        try:
            payload = response.json()
        except (UnicodeDecodeError, json.JSONDecodeError):
            payload = None
        if isinstance(payload, dict):
            message = str(payload.get("message") or payload.get("error") or message)
            code = payload.get("code") if isinstance(payload.get("code"), str) else None
        return BackendResponse(error=BackendError(message, status=response.status, code=code))

    async def select(self, query: Query) -> BackendResponse:
        return await self._send(
            "GET",
            self._table_url(query, query_params(query)),
            single=query.single_row,
        )

    async def insert(
        self,
        table: str,
        rows: Row | Sequence[Row],
        *,
        single: bool = False,
    ) -> BackendResponse:
        return await self._send(
            "POST",
            self._table_url(table, [("select", "*")]),
            body=rows if isinstance(rows, Mapping) else list(rows),
            single=single,
            representation=True,
        )

    async def update(self, query: Query, values: Mapping[str, Any]) -> BackendResponse:
        return await self._send(
            "PATCH",
            self._table_url(query, query_params(query)),
            body=dict(values),
            single=query.single_row,
            representation=True,
        )

    async def delete(self, query: Query) -> BackendResponse:
        return await self._send(
            "DELETE",
            self._table_url(query, query_params(query)),
            representation=True,
        )

    async def invoke(self, function: str, body: Mapping[str, Any]) -> BackendResponse:
        return await self._send(
            "POST",
            f"{self._base_url}/functions/v1/{urllib.parse.quote(function)}",
            body=dict(body),
        )
