"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Module: cache/coalescing.py.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

T = TypeVar("T")


class RequestCoalescer:
    """Share one in-flight producer call between concurrent callers of a key."""

    def __init__(self) -> None:
        self._tasks: dict[str, asyncio.Task[Any]] = {}

    async def run(self, key: str, factory: Callable[[], Awaitable[T]]) -> T:
        existing = self._tasks.get(key)
        if existing is not None:
            return await asyncio.shield(existing)

        task: asyncio.Task[T] = asyncio.ensure_future(factory())
        self._tasks[key] = task
        task.add_done_callback(lambda done: self._forget(key, done))
        return await asyncio.shield(task)

    def _forget(self, key: str, task: asyncio.Task[Any]) -> None:
        if self._tasks.get(key) is task:
            del self._tasks[key]
        # Followers may all have been cancelled; retrieve to avoid
        # "exception was never retrieved" noise.
        if not task.cancelled():
            task.exception()

    def in_flight(self, key: str) -> bool:
        return key in self._tasks

    def __len__(self) -> int:
        return len(self._tasks)
