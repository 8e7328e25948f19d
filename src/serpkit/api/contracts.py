"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Typed per-resource policies and result types for the SEO client.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Literal

from ..errors import ClassifiedError


@dataclass(frozen=True, slots=True)
class CacheTTLPolicy:
    """TTL (seconds) applied to each cached read."""

    projects_s: float = 10 * 60
    project_s: float = 5 * 60
    keywords_s: float = 2 * 60
    competitors_s: float = 15 * 60
    backlinks_s: float = 30 * 60
    analytics_s: float = 5 * 60


KeywordTrend = Literal["up", "down", "stable"]


@dataclass(frozen=True, slots=True)
class KeywordFilters:
    """Optional filters for ``SEOClient.get_keywords``."""

    search: str | None = None
    position_range: tuple[int, int] | None = None
    volume_range: tuple[int, int] | None = None
    difficulty_range: tuple[int, int] | None = None
    trend: KeywordTrend | None = None
    limit: int | None = None
    offset: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "search": self.search,
            "position_range": list(self.position_range) if self.position_range else None,
            "volume_range": list(self.volume_range) if self.volume_range else None,
            "difficulty_range": list(self.difficulty_range) if self.difficulty_range else None,
            "trend": self.trend,
            "limit": self.limit,
            "offset": self.offset,
        }


@dataclass(frozen=True, slots=True)
class DateRange:
    start: str
    end: str

    def to_dict(self) -> dict[str, str]:
        return {"from": self.start, "to": self.end}


@dataclass(frozen=True, slots=True)
class KeywordUpdateOutcome:
    """Per-item result of ``batch_update_keywords``."""

    id: str
    ok: bool
    value: dict[str, Any] | None = None
    error: ClassifiedError | None = None
