"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

In-memory backend implementation.
"""

from __future__ import annotations

import copy
import inspect
import re
import time
import uuid
from collections.abc import Awaitable, Callable, Mapping, Sequence
from typing import Any

from .realtime import InMemoryChangeFeed
from .types import (
    BackendError,
    BackendResponse,
    ChangeEvent,
    ChangeFeed,
    Filter,
    Query,
    Row,
)

FunctionHandler = Callable[[dict[str, Any]], Awaitable[Any] | Any]


def _like_to_regex(pattern: str) -> re.Pattern[str]:
    parts = []
    for ch in pattern:
        if ch == "%":
            parts.append(".*")
        elif ch == "_":
            parts.append(".")
        else:
            parts.append(re.escape(ch))
    return re.compile("".join(parts), re.IGNORECASE | re.DOTALL)


def _matches(row: Row, flt: Filter) -> bool:
    value = row.get(flt.column)
    if flt.op == "eq":
        return value == flt.value
    if flt.op == "neq":
        return value != flt.value
    if flt.op == "in":
        return value in flt.value
    if flt.op == "ilike":
        return value is not None and _like_to_regex(str(flt.value)).fullmatch(str(value)) is not None
    if value is None:
        return False
    if flt.op == "gt":
        return value > flt.value
    if flt.op == "gte":
        return value >= flt.value
    if flt.op == "lt":
        return value < flt.value
    if flt.op == "lte":
        return value <= flt.value
    raise ValueError(f"Unsupported filter operator: {flt.op}")


def apply_query(rows: Sequence[Row], query: Query) -> list[Row]:
    """Evaluate filters, ordering, range and limit against ``rows``."""
    selected = [row for row in rows if all(_matches(row, f) for f in query.filters)]
    # Stable sorts applied last-to-first give multi-column ordering.
    for ordering in reversed(query.orderings):
        present = [r for r in selected if r.get(ordering.column) is not None]
        missing = [r for r in selected if r.get(ordering.column) is None]
        present.sort(key=lambda r: r[ordering.column], reverse=not ordering.ascending)
        selected = present + missing
    if query.range_value is not None:
        start, end = query.range_value
        selected = selected[start : end + 1]
    if query.limit_value is not None:
        selected = selected[: query.limit_value]
    return selected


class InMemoryBackend:
    """
    Process-local backend with tables as lists of rows.

    Inserted rows get an ``id`` (uuid hex) and ``created_at`` stamp when
    missing. Every mutation publishes a ``ChangeEvent`` on ``feed``.
    Suitable for development and tests; data is lost on process exit.
    """

    def __init__(
        self,
        *,
        feed: ChangeFeed | None = None,
        tables: Mapping[str, Sequence[Row]] | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.feed: ChangeFeed = feed or InMemoryChangeFeed()
        self._tables: dict[str, list[Row]] = {
            name: [dict(row) for row in rows] for name, rows in (tables or {}).items()
        }
        self._functions: dict[str, FunctionHandler] = {}
        self._clock = clock
        self.calls: list[tuple[str, str]] = []

    def register_function(self, name: str, handler: FunctionHandler) -> None:
        self._functions[name] = handler

    def table(self, name: str) -> list[Row]:
        """Return a deep copy of the table rows."""
        return copy.deepcopy(self._tables.get(name, []))

    async def select(self, query: Query) -> BackendResponse:
        self.calls.append(("select", query.table))
        rows = apply_query(self._tables.get(query.table, []), query)
        return self._shape(rows, query.single_row)

    async def insert(
        self,
        table: str,
        rows: Row | Sequence[Row],
        *,
        single: bool = False,
    ) -> BackendResponse:
        self.calls.append(("insert", table))
        batch = [rows] if isinstance(rows, Mapping) else list(rows)
        stored: list[Row] = []
        for raw in batch:
            row = dict(raw)
            row.setdefault("id", uuid.uuid4().hex)
            row.setdefault("created_at", self._clock())
            stored.append(row)
        self._tables.setdefault(table, []).extend(stored)
        for row in stored:
            await self.feed.publish(ChangeEvent(event="INSERT", table=table, new=dict(row)))
        return self._shape(copy.deepcopy(stored), single)

    async def update(self, query: Query, values: Mapping[str, Any]) -> BackendResponse:
        self.calls.append(("update", query.table))
        matched = apply_query(self._tables.get(query.table, []), query)
        if query.single_row and len(matched) != 1:
            return self._single_error(len(matched))
        events = []
        for row in matched:
            old = dict(row)
            row.update(values)
            events.append(ChangeEvent(event="UPDATE", table=query.table, new=dict(row), old=old))
        for event in events:
            await self.feed.publish(event)
        return self._shape(copy.deepcopy(matched), query.single_row)

    async def delete(self, query: Query) -> BackendResponse:
        self.calls.append(("delete", query.table))
        table = self._tables.get(query.table, [])
        doomed = apply_query(table, query)
        doomed_ids = {id(row) for row in doomed}
        self._tables[query.table] = [row for row in table if id(row) not in doomed_ids]
        for row in doomed:
            await self.feed.publish(ChangeEvent(event="DELETE", table=query.table, old=dict(row)))
        return BackendResponse(data=copy.deepcopy(doomed))

    async def invoke(self, function: str, body: Mapping[str, Any]) -> BackendResponse:
        self.calls.append(("invoke", function))
        handler = self._functions.get(function)
        if handler is None:
            return BackendResponse(
                error=BackendError(f"Function not found: {function}", status=404)
            )
        result = handler(dict(body))
        if inspect.isawaitable(result):
            result = await result
        return BackendResponse(data=result)

    def _shape(self, rows: list[Row], single: bool) -> BackendResponse:
        if not single:
            return BackendResponse(data=copy.deepcopy(rows))
        if len(rows) != 1:
            return self._single_error(len(rows))
        return BackendResponse(data=copy.deepcopy(rows[0]))

    @staticmethod
    def _single_error(count: int) -> BackendResponse:
        return BackendResponse(
            error=BackendError(
                f"JSON object requested, multiple (or no) rows returned ({count})",
                status=406,
                code="PGRST116",
            )
        )
