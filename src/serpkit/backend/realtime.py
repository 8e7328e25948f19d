"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

In-process change feed for real-time row notifications.
"""

from __future__ import annotations

import inspect
import logging
import uuid
from dataclasses import dataclass

from .types import ChangeEvent, ChangeHandler, matches_row_filter, parse_row_filter

logger = logging.getLogger("serpkit.backend.realtime")


async def dispatch_change(handler: ChangeHandler, event: ChangeEvent) -> None:
    """Run a sync or async handler; failures are logged, never propagated."""
    try:
        result = handler(event)
        if inspect.isawaitable(result):
            await result
    except Exception:  # noqa: BLE001
        logger.exception("Change handler failed for %s on %s", event.event, event.table)


@dataclass(slots=True)
class _Listener:
    id: str
    table: str
    handler: ChangeHandler
    row_filter: tuple[str, str] | None


class InMemorySubscription:
    def __init__(self, feed: "InMemoryChangeFeed", listener_id: str) -> None:
        self._feed = feed
        self.id = listener_id

    async def unsubscribe(self) -> None:
        self._feed._listeners.pop(self.id, None)


class InMemoryChangeFeed:
    """
    Change feed delivering events to in-process listeners.

    Handlers run in subscription order, awaited one after another on the
    publisher's task. Suitable for single-process deployments and tests.
    """

    def __init__(self) -> None:
        self._listeners: dict[str, _Listener] = {}

    async def subscribe(
        self,
        table: str,
        handler: ChangeHandler,
        *,
        filter: str | None = None,
    ) -> InMemorySubscription:
        listener = _Listener(
            id=uuid.uuid4().hex,
            table=table,
            handler=handler,
            row_filter=parse_row_filter(filter),
        )
        self._listeners[listener.id] = listener
        return InMemorySubscription(self, listener.id)

    async def publish(self, event: ChangeEvent) -> None:
        for listener in list(self._listeners.values()):
            if listener.table != event.table:
                continue
            if not matches_row_filter(event, listener.row_filter):
                continue
            await dispatch_change(listener.handler, event)

    @property
    def listener_count(self) -> int:
        return len(self._listeners)
