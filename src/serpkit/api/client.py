"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

SEO resource client: cached reads, invalidating writes, remote analysis
functions and change subscriptions.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import Awaitable, Callable, Mapping, Sequence
from typing import Any

from ..backend import (
    Backend,
    BackendResponse,
    ChangeEvent,
    ChangeFeed,
    HttpBackend,
    InMemoryChangeFeed,
    Query,
    Subscription,
)
from ..cache import CacheKeys, CacheManager, options_fragment
from ..errors import ClassifiedError, ErrorKind, classify_status, error_for_kind
from ..reporting import ErrorHandler
from ..transport import HttpTransport
from .contracts import CacheTTLPolicy, DateRange, KeywordFilters, KeywordUpdateOutcome
from .request import APIClient
from .settings import ClientSettings
from .validation import KeywordInput, ProjectInput, UrlInput, validate_payload

logger = logging.getLogger("serpkit.api")

PROJECTS_TABLE = "seo_projects"
KEYWORDS_TABLE = "serp_rankings"
COMPETITORS_TABLE = "competitor_analysis"
BACKLINKS_TABLE = "backlink_data"
ANALYTICS_TABLE = "gsc_analytics"

SEO_ANALYZER_FUNCTION = "seo-intelligence-analyzer"
COMPETITOR_ANALYZER_FUNCTION = "competitor-analyzer"

ChangeCallback = Callable[[ChangeEvent], Awaitable[None] | None]


class SEOClient(APIClient):
    """
    Resource-level client over a database-and-functions backend.

    Reads go through ``CacheManager.get_or_set`` under deterministic keys.
    Writes hit the backend first and invalidate the affected keys only when
    the mutation succeeded, always in the cache the matching read uses.

    Cache instances are injected so they can be shared across clients or
    scoped per test. ``from_settings`` builds the usual trio (main,
    short-term, long-term).
    """

    def __init__(
        self,
        *,
        backend: Backend,
        cache: CacheManager,
        short_cache: CacheManager,
        long_cache: CacheManager,
        feed: ChangeFeed | None = None,
        settings: ClientSettings | None = None,
        transport: HttpTransport | None = None,
        error_handler: ErrorHandler | None = None,
        ttl_policy: CacheTTLPolicy | None = None,
    ) -> None:
        super().__init__(settings, transport=transport, error_handler=error_handler)
        self.backend = backend
        self.feed: ChangeFeed = feed or getattr(backend, "feed", None) or InMemoryChangeFeed()
        self.cache = cache
        self.short_cache = short_cache
        self.long_cache = long_cache
        self.ttl = ttl_policy or CacheTTLPolicy()

    @classmethod
    def from_settings(
        cls,
        settings: ClientSettings,
        *,
        backend: Backend | None = None,
        feed: ChangeFeed | None = None,
        transport: HttpTransport | None = None,
        error_handler: ErrorHandler | None = None,
    ) -> "SEOClient":
        """Build a client plus its three caches from ``settings``."""
        if backend is None:
            backend = HttpBackend(
                settings.base_url,
                api_key=settings.api_key,
                transport=transport,
                timeout_s=settings.request_timeout_s,
            )
        return cls(
            backend=backend,
            feed=feed,
            settings=settings,
            transport=transport,
            error_handler=error_handler,
            cache=CacheManager(
                default_ttl_s=settings.cache_default_ttl_s,
                max_size=settings.cache_max_size,
                sweep_interval_s=settings.sweep_interval_s,
                single_flight=settings.single_flight,
                name="main",
            ),
            short_cache=CacheManager(
                default_ttl_s=settings.short_cache_ttl_s,
                max_size=settings.short_cache_max_size,
                sweep_interval_s=settings.sweep_interval_s,
                single_flight=settings.single_flight,
                name="short_term",
            ),
            long_cache=CacheManager(
                default_ttl_s=settings.long_cache_ttl_s,
                max_size=settings.long_cache_max_size,
                sweep_interval_s=settings.sweep_interval_s,
                single_flight=settings.single_flight,
                name="long_term",
            ),
        )

    # ------------------------------------------------------------------
    # Backend call plumbing
    # ------------------------------------------------------------------

    async def _call(
        self,
        operation: Awaitable[BackendResponse],
        context: dict[str, Any],
    ) -> Any:
        """Run one backend call under the request timeout; unwrap ``{data, error}``."""

        async def _unwrap() -> Any:
            response = await operation
            if response.error is None:
                return response.data
            err = response.error
            kind = ErrorKind.UNKNOWN
            if err.status is not None:
                by_status = classify_status(err.status, err.message)
                if by_status is not None:
                    kind = by_status.kind
            raise error_for_kind(kind, err.message, context=context, status=err.status)

        return await self._guarded(_unwrap(), context)

    def _validate(self, model, data: Mapping[str, Any], context: dict[str, Any]):
        try:
            return validate_payload(model, data, context=context)
        except ClassifiedError as e:
            self.error_handler.handle(e, context)
            raise

    # ------------------------------------------------------------------
    # Projects
    # ------------------------------------------------------------------

    async def get_projects(self) -> list[dict[str, Any]]:
        async def _fetch() -> list[dict[str, Any]]:
            query = Query(PROJECTS_TABLE).order("created_at", ascending=False)
            return await self._call(self.backend.select(query), {"operation": "get_projects"})

        return await self.cache.get_or_set(CacheKeys.projects(), _fetch, self.ttl.projects_s)

    async def get_project(self, project_id: str) -> dict[str, Any]:
        async def _fetch() -> dict[str, Any]:
            query = Query(PROJECTS_TABLE).eq("id", project_id).single()
            return await self._call(
                self.backend.select(query),
                {"operation": "get_project", "project_id": project_id},
            )

        return await self.cache.get_or_set(
            CacheKeys.project(project_id), _fetch, self.ttl.project_s
        )

    async def create_project(self, project: Mapping[str, Any]) -> dict[str, Any]:
        context = {"operation": "create_project"}
        self._validate(ProjectInput, project, context)
        data = await self._call(
            self.backend.insert(PROJECTS_TABLE, dict(project), single=True), context
        )
        self.cache.delete(CacheKeys.projects())
        return data

    async def update_project(self, project_id: str, updates: Mapping[str, Any]) -> dict[str, Any]:
        query = Query(PROJECTS_TABLE).eq("id", project_id).single()
        data = await self._call(
            self.backend.update(query, dict(updates)),
            {"operation": "update_project", "project_id": project_id},
        )
        self._invalidate_project(project_id)
        return data

    async def delete_project(self, project_id: str) -> None:
        query = Query(PROJECTS_TABLE).eq("id", project_id)
        await self._call(
            self.backend.delete(query),
            {"operation": "delete_project", "project_id": project_id},
        )
        self._invalidate_project(project_id)
        self._invalidate_keywords(project_id)
        self.short_cache.invalidate_prefix(f"{CacheKeys.analytics(project_id)}:")
        for cache, key in (
            (self.cache, CacheKeys.competitors(project_id)),
            (self.long_cache, CacheKeys.backlinks(project_id)),
        ):
            cache.delete(key)
            cache.invalidate_prefix(f"{key}:")

    def _invalidate_project(self, project_id: str) -> None:
        self.cache.delete(CacheKeys.projects())
        self.cache.delete(CacheKeys.project(project_id))
        self.cache.invalidate_prefix(f"{CacheKeys.project(project_id)}:")

    # ------------------------------------------------------------------
    # Keywords
    # ------------------------------------------------------------------

    def _keywords_key(self, project_id: str, filters: KeywordFilters | None) -> str:
        fragment = options_fragment(filters.to_dict() if filters else None)
        return f"{CacheKeys.keywords(project_id)}:{fragment}"

    def _invalidate_keywords(self, project_id: str | None, keyword_id: str | None = None) -> None:
        if project_id:
            # Trailing ":" keeps "keywords:p1" from matching "keywords:p10".
            self.short_cache.invalidate_prefix(f"{CacheKeys.keywords(project_id)}:")
        if keyword_id:
            self.short_cache.delete(CacheKeys.keyword(keyword_id))

    async def get_keywords(
        self,
        project_id: str,
        filters: KeywordFilters | None = None,
    ) -> list[dict[str, Any]]:
        async def _fetch() -> list[dict[str, Any]]:
            query = (
                Query(KEYWORDS_TABLE)
                .eq("project_id", project_id)
                .order("checked_at", ascending=False)
            )
            if filters is not None:
                if filters.search:
                    query.ilike("keyword", f"%{filters.search}%")
                for column, bounds in (
                    ("position", filters.position_range),
                    ("volume", filters.volume_range),
                    ("difficulty", filters.difficulty_range),
                ):
                    if bounds is not None:
                        query.gte(column, bounds[0]).lte(column, bounds[1])
                if filters.trend:
                    query.eq("trend", filters.trend)
                if filters.limit:
                    query.limit(filters.limit)
                if filters.offset:
                    query.range(filters.offset, filters.offset + (filters.limit or 50) - 1)
            return await self._call(
                self.backend.select(query),
                {
                    "operation": "get_keywords",
                    "project_id": project_id,
                    "filters": filters.to_dict() if filters else None,
                },
            )

        return await self.short_cache.get_or_set(
            self._keywords_key(project_id, filters), _fetch, self.ttl.keywords_s
        )

    async def add_keyword(self, project_id: str, keyword: Mapping[str, Any]) -> dict[str, Any]:
        context = {"operation": "add_keyword", "project_id": project_id}
        self._validate(KeywordInput, keyword, context)
        data = await self._call(
            self.backend.insert(
                KEYWORDS_TABLE, {**dict(keyword), "project_id": project_id}, single=True
            ),
            context,
        )
        self._invalidate_keywords(project_id)
        return data

    async def update_keyword(self, keyword_id: str, updates: Mapping[str, Any]) -> dict[str, Any]:
        context = {"operation": "update_keyword", "keyword_id": keyword_id}
        previous_project_id = None
        if "project_id" in updates:
            owner = await self._call(
                self.backend.select(Query(KEYWORDS_TABLE).eq("id", keyword_id)), context
            )
            previous_project_id = owner[0].get("project_id") if owner else None
        query = Query(KEYWORDS_TABLE).eq("id", keyword_id).single()
        data = await self._call(self.backend.update(query, dict(updates)), context)
        project_id = data.get("project_id") if isinstance(data, dict) else None
        self._invalidate_keywords(project_id, keyword_id)
        if previous_project_id and previous_project_id != project_id:
            self._invalidate_keywords(previous_project_id)
        return data

    async def delete_keyword(self, keyword_id: str) -> None:
        context = {"operation": "delete_keyword", "keyword_id": keyword_id}
        owner = await self._call(
            self.backend.select(Query(KEYWORDS_TABLE).eq("id", keyword_id)), context
        )
        project_id = owner[0].get("project_id") if owner else None
        await self._call(self.backend.delete(Query(KEYWORDS_TABLE).eq("id", keyword_id)), context)
        self._invalidate_keywords(project_id, keyword_id)

    async def batch_update_keywords(
        self,
        updates: Sequence[tuple[str, Mapping[str, Any]]],
    ) -> list[KeywordUpdateOutcome]:
        """Apply every update; one failure never aborts the others."""
        results = await asyncio.gather(
            *(self.update_keyword(keyword_id, changes) for keyword_id, changes in updates),
            return_exceptions=True,
        )
        outcomes: list[KeywordUpdateOutcome] = []
        for (keyword_id, _), result in zip(updates, results):
            if isinstance(result, ClassifiedError):
                outcomes.append(KeywordUpdateOutcome(id=keyword_id, ok=False, error=result))
            elif isinstance(result, BaseException):
                raise result
            else:
                outcomes.append(KeywordUpdateOutcome(id=keyword_id, ok=True, value=result))
        return outcomes

    async def batch_add_keywords(
        self,
        project_id: str,
        keywords: Sequence[Mapping[str, Any]],
    ) -> list[dict[str, Any]]:
        """Insert all keywords in one mutation, then invalidate once."""
        context = {"operation": "batch_add_keywords", "project_id": project_id}
        for keyword in keywords:
            self._validate(KeywordInput, keyword, context)
        rows = [{**dict(keyword), "project_id": project_id} for keyword in keywords]
        data = await self._call(self.backend.insert(KEYWORDS_TABLE, rows), context)
        self._invalidate_keywords(project_id)
        return data

    # ------------------------------------------------------------------
    # Analysis, competitors, backlinks, analytics
    # ------------------------------------------------------------------

    async def analyze_seo(
        self,
        project_id: str,
        url: str,
        options: Mapping[str, Any] | None = None,
    ) -> Any:
        context = {"operation": "analyze_seo", "project_id": project_id, "url": url}
        self._validate(UrlInput, {"url": url}, context)
        body = {"projectId": project_id, "url": url, **dict(options or {})}
        return await self._call(self.backend.invoke(SEO_ANALYZER_FUNCTION, body), context)

    async def get_competitors(self, project_id: str) -> list[dict[str, Any]]:
        async def _fetch() -> list[dict[str, Any]]:
            query = (
                Query(COMPETITORS_TABLE)
                .eq("project_id", project_id)
                .order("created_at", ascending=False)
            )
            return await self._call(
                self.backend.select(query),
                {"operation": "get_competitors", "project_id": project_id},
            )

        return await self.cache.get_or_set(
            CacheKeys.competitors(project_id), _fetch, self.ttl.competitors_s
        )

    async def analyze_competitor(self, project_id: str, competitor_domain: str) -> Any:
        return await self._call(
            self.backend.invoke(
                COMPETITOR_ANALYZER_FUNCTION,
                {"domain": competitor_domain, "projectId": project_id},
            ),
            {
                "operation": "analyze_competitor",
                "project_id": project_id,
                "domain": competitor_domain,
            },
        )

    async def get_backlinks(self, project_id: str) -> list[dict[str, Any]]:
        async def _fetch() -> list[dict[str, Any]]:
            query = (
                Query(BACKLINKS_TABLE)
                .eq("project_id", project_id)
                .order("created_at", ascending=False)
            )
            return await self._call(
                self.backend.select(query),
                {"operation": "get_backlinks", "project_id": project_id},
            )

        return await self.long_cache.get_or_set(
            CacheKeys.backlinks(project_id), _fetch, self.ttl.backlinks_s
        )

    async def get_analytics(
        self,
        project_id: str,
        date_range: DateRange | None = None,
    ) -> list[dict[str, Any]]:
        async def _fetch() -> list[dict[str, Any]]:
            query = Query(ANALYTICS_TABLE).eq("project_id", project_id)
            if date_range is not None:
                query.gte("date", date_range.start).lte("date", date_range.end)
            query.order("date", ascending=False)
            return await self._call(
                self.backend.select(query),
                {
                    "operation": "get_analytics",
                    "project_id": project_id,
                    "date_range": date_range.to_dict() if date_range else None,
                },
            )

        key = (
            f"{CacheKeys.analytics(project_id)}:"
            f"{options_fragment(date_range.to_dict() if date_range else None)}"
        )
        return await self.short_cache.get_or_set(key, _fetch, self.ttl.analytics_s)

    # ------------------------------------------------------------------
    # Real-time subscriptions
    # ------------------------------------------------------------------

    async def subscribe_to_project_updates(
        self,
        project_id: str,
        callback: ChangeCallback,
    ) -> Subscription:
        async def _on_change(event: ChangeEvent) -> None:
            self._invalidate_project(project_id)
            await _forward(callback, event)

        return await self.feed.subscribe(
            PROJECTS_TABLE, _on_change, filter=f"id=eq.{project_id}"
        )

    async def subscribe_to_keyword_updates(
        self,
        project_id: str,
        callback: ChangeCallback,
    ) -> Subscription:
        async def _on_change(event: ChangeEvent) -> None:
            keyword_id = event.row.get("id")
            self._invalidate_keywords(project_id, str(keyword_id) if keyword_id else None)
            await _forward(callback, event)

        return await self.feed.subscribe(
            KEYWORDS_TABLE, _on_change, filter=f"project_id=eq.{project_id}"
        )

    # ------------------------------------------------------------------
    # Cache management
    # ------------------------------------------------------------------

    def _caches(self) -> tuple[CacheManager, CacheManager, CacheManager]:
        return self.cache, self.short_cache, self.long_cache

    def start(self) -> None:
        """Start the background expiry sweep of every cache."""
        for cache in self._caches():
            cache.start()

    async def close(self) -> None:
        for cache in self._caches():
            await cache.close()

    def clear_cache(self) -> None:
        for cache in self._caches():
            cache.clear()

    def get_cache_stats(self) -> dict[str, dict[str, Any]]:
        return {
            "main": self.cache.get_stats().to_dict(),
            "short_term": self.short_cache.get_stats().to_dict(),
            "long_term": self.long_cache.get_stats().to_dict(),
        }


async def _forward(callback: ChangeCallback, event: ChangeEvent) -> None:
    result = callback(event)
    if inspect.isawaitable(result):
        await result
