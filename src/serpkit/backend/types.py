"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Remote backend contract: table queries, named functions and change events.
"""

from __future__ import annotations

import time
from collections.abc import Awaitable, Callable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any, Literal, Protocol

FilterOp = Literal["eq", "neq", "gt", "gte", "lt", "lte", "ilike", "in"]
ChangeType = Literal["INSERT", "UPDATE", "DELETE"]

Row = dict[str, Any]


@dataclass(frozen=True, slots=True)
class Filter:
    column: str
    op: FilterOp
    value: Any


@dataclass(frozen=True, slots=True)
class Ordering:
    column: str
    ascending: bool = True


class Query:
    """
    Fluent table query mirroring the remote filter/order/range semantics.

    Every builder mutates and returns the same instance::

        Query("serp_rankings").eq("project_id", pid).order("checked_at", ascending=False)
    """

    def __init__(self, table: str) -> None:
        self.table = table
        self.filters: list[Filter] = []
        self.orderings: list[Ordering] = []
        self.limit_value: int | None = None
        self.range_value: tuple[int, int] | None = None
        self.single_row = False

    def _add(self, column: str, op: FilterOp, value: Any) -> "Query":
        self.filters.append(Filter(column=column, op=op, value=value))
        return self

    def eq(self, column: str, value: Any) -> "Query":
        return self._add(column, "eq", value)

    def neq(self, column: str, value: Any) -> "Query":
        return self._add(column, "neq", value)

    def gt(self, column: str, value: Any) -> "Query":
        return self._add(column, "gt", value)

    def gte(self, column: str, value: Any) -> "Query":
        return self._add(column, "gte", value)

    def lt(self, column: str, value: Any) -> "Query":
        return self._add(column, "lt", value)

    def lte(self, column: str, value: Any) -> "Query":
        return self._add(column, "lte", value)

    def ilike(self, column: str, pattern: str) -> "Query":
        return self._add(column, "ilike", pattern)

    def in_(self, column: str, values: Sequence[Any]) -> "Query":
        return self._add(column, "in", tuple(values))

    def order(self, column: str, *, ascending: bool = True) -> "Query":
        self.orderings.append(Ordering(column=column, ascending=ascending))
        return self

    def limit(self, count: int) -> "Query":
        self.limit_value = int(count)
        return self

    def range(self, start: int, end: int) -> "Query":
        """Restrict to rows ``start``..``end`` inclusive."""
        self.range_value = (int(start), int(end))
        return self

    def single(self) -> "Query":
        self.single_row = True
        return self

    def describe(self) -> dict[str, Any]:
        """JSON-safe description used for error context."""
        return {
            "table": self.table,
            "filters": [[f.column, f.op, f.value] for f in self.filters],
            "order": [[o.column, o.ascending] for o in self.orderings],
            "limit": self.limit_value,
            "range": list(self.range_value) if self.range_value else None,
            "single": self.single_row,
        }

    def __repr__(self) -> str:
        return f"Query({self.describe()!r})"


@dataclass(frozen=True, slots=True)
class BackendError:
    """Error half of a ``{data, error}`` backend response."""

    message: str
    status: int | None = None
    code: str | None = None


@dataclass(frozen=True, slots=True)
class BackendResponse:
    """``{data, error}`` envelope returned by every backend call."""

    data: Any = None
    error: BackendError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


class Backend(Protocol):
    """Database-and-functions service used by ``SEOClient``."""

    async def select(self, query: Query) -> BackendResponse: ...

    async def insert(
        self,
        table: str,
        rows: Row | Sequence[Row],
        *,
        single: bool = False,
    ) -> BackendResponse: ...

    async def update(self, query: Query, values: Mapping[str, Any]) -> BackendResponse: ...

    async def delete(self, query: Query) -> BackendResponse: ...

    async def invoke(self, function: str, body: Mapping[str, Any]) -> BackendResponse: ...


@dataclass(frozen=True, slots=True)
class ChangeEvent:
    """One row-level change delivered on the real-time stream."""

    event: ChangeType
    table: str
    new: Row = field(default_factory=dict)
    old: Row = field(default_factory=dict)
    commit_timestamp: float = field(default_factory=time.time)

    @property
    def row(self) -> Row:
        """The row that identifies the change (``old`` for deletes)."""
        return self.old if self.event == "DELETE" else self.new

    def to_dict(self) -> dict[str, Any]:
        return {
            "event": self.event,
            "table": self.table,
            "new": dict(self.new),
            "old": dict(self.old),
            "commit_timestamp": self.commit_timestamp,
        }

    @staticmethod
    def from_dict(data: Mapping[str, Any]) -> "ChangeEvent":
        return ChangeEvent(
            event=data["event"],
            table=data["table"],
            new=dict(data.get("new") or {}),
            old=dict(data.get("old") or {}),
            commit_timestamp=float(data.get("commit_timestamp") or time.time()),
        )


ChangeHandler = Callable[[ChangeEvent], Awaitable[None] | None]


def parse_row_filter(expression: str | None) -> tuple[str, str] | None:
    """Parse a ``column=eq.value`` subscription filter."""
    if not expression:
        return None
    column, sep, rest = expression.partition("=")
    if not sep or not rest.startswith("eq."):
        raise ValueError(f"Unsupported change filter: {expression!r}")
    return column.strip(), rest[len("eq."):]


def matches_row_filter(event: ChangeEvent, row_filter: tuple[str, str] | None) -> bool:
    if row_filter is None:
        return True
    column, expected = row_filter
    if column not in event.row:
        return False
    return str(event.row[column]) == expected


class Subscription(Protocol):
    async def unsubscribe(self) -> None: ...


class ChangeFeed(Protocol):
    """Publish/subscribe channel for row-level change events."""

    async def subscribe(
        self,
        table: str,
        handler: ChangeHandler,
        *,
        filter: str | None = None,
    ) -> Subscription: ...

    async def publish(self, event: ChangeEvent) -> None: ...
