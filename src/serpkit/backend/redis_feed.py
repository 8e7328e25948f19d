"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Redis pub/sub change feed for multi-process deployments.
"""

from __future__ import annotations

import asyncio
import json
import logging
import uuid
from typing import Any

from .realtime import dispatch_change
from .types import ChangeEvent, ChangeHandler, matches_row_filter, parse_row_filter

logger = logging.getLogger("serpkit.backend.redis")


class RedisSubscription:
    def __init__(self, feed: "RedisChangeFeed", table: str, listener_id: str) -> None:
        self._feed = feed
        self.table = table
        self.id = listener_id

    async def unsubscribe(self) -> None:
        await self._feed._remove(self.table, self.id)


class RedisChangeFeed:
    """
    Change feed publishing JSON events on ``{prefix}:{table}`` channels.

    One pub/sub connection and one listener task serve every subscription
    made through this feed. Call ``close()`` to stop the listener.

    Requires ``redis.asyncio`` (``pip install redis``).

    Args:
        redis: An ``redis.asyncio.Redis`` client instance.
        prefix: Channel prefix for namespacing.
        poll_timeout_s: Max wait per ``get_message`` call in the listener.
    """

    def __init__(
        self,
        redis: Any,
        *,
        prefix: str = "serpkit:changes",
        poll_timeout_s: float = 1.0,
    ) -> None:
        self._redis = redis
        self._prefix = prefix
        self._poll_timeout_s = poll_timeout_s
        self._pubsub: Any | None = None
        self._listeners: dict[str, dict[str, tuple[ChangeHandler, tuple[str, str] | None]]] = {}
        self._task: asyncio.Task[None] | None = None

    def _channel(self, table: str) -> str:
        return f"{self._prefix}:{table}"

    def _table_for(self, channel: str | bytes) -> str:
        if isinstance(channel, bytes):
            channel = channel.decode("utf-8")
        return channel[len(self._prefix) + 1 :]

    async def subscribe(
        self,
        table: str,
        handler: ChangeHandler,
        *,
        filter: str | None = None,
    ) -> RedisSubscription:
        row_filter = parse_row_filter(filter)
        if self._pubsub is None:
            self._pubsub = self._redis.pubsub()
        listeners = self._listeners.setdefault(table, {})
        if not listeners:
            await self._pubsub.subscribe(self._channel(table))
        listener_id = uuid.uuid4().hex
        listeners[listener_id] = (handler, row_filter)
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self._listen())
        return RedisSubscription(self, table, listener_id)

    async def publish(self, event: ChangeEvent) -> None:
        await self._redis.publish(
            self._channel(event.table),
            json.dumps(event.to_dict(), default=str),
        )

    async def _remove(self, table: str, listener_id: str) -> None:
        listeners = self._listeners.get(table)
        if not listeners or listeners.pop(listener_id, None) is None:
            return
        if not listeners and self._pubsub is not None:
            del self._listeners[table]
            await self._pubsub.unsubscribe(self._channel(table))

    async def _listen(self) -> None:
        while True:
            try:
                message = await self._pubsub.get_message(
                    ignore_subscribe_messages=True,
                    timeout=self._poll_timeout_s,
                )
            except asyncio.CancelledError:
                raise
            except Exception:  # noqa: BLE001
                logger.exception("Redis change feed read failed")
                await asyncio.sleep(self._poll_timeout_s)
                continue
            if message is None or message.get("type") != "message":
                continue
            await self._deliver(message)

    async def _deliver(self, message: dict[str, Any]) -> None:
        table = self._table_for(message.get("channel", b""))
        raw = message.get("data")
        try:
            if isinstance(raw, bytes):
                raw = raw.decode("utf-8")
            event = ChangeEvent.from_dict(json.loads(raw))
        except (KeyError, TypeError, ValueError):
            logger.warning("Dropping malformed change event on %s", table)
            return
        for handler, row_filter in list(self._listeners.get(table, {}).values()):
            if matches_row_filter(event, row_filter):
                await dispatch_change(handler, event)

    async def close(self) -> None:
        task = self._task
        self._task = None
        if task is not None and not task.done():
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)
        if self._pubsub is not None:
            await self._pubsub.aclose()
            self._pubsub = None
        self._listeners.clear()
        logger.info("Redis change feed closed (prefix=%s)", self._prefix)
