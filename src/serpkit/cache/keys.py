"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Deterministic cache key builders.

Keys are ``:``-joined segments that start with the resource name so that a
single ``invalidate_prefix`` call drops every cached view of a resource.
"""

from __future__ import annotations

import json
from typing import Any


def generate_key(prefix: str, *parts: str | int) -> str:
    """Join ``prefix`` and ``parts`` with ``:``."""
    return ":".join([prefix, *(str(part) for part in parts)])


def options_fragment(options: Any) -> str:
    """Serialise a filter/options object into a stable key fragment."""
    return json.dumps(options, sort_keys=True, separators=(",", ":"), default=str)


class CacheKeys:
    """Key namespace for every cached resource."""

    @staticmethod
    def projects() -> str:
        return "projects"

    @staticmethod
    def project(project_id: str) -> str:
        return f"project:{project_id}"

    @staticmethod
    def keywords(project_id: str) -> str:
        return f"keywords:{project_id}"

    @staticmethod
    def keyword(keyword_id: str) -> str:
        return f"keyword:{keyword_id}"

    @staticmethod
    def analytics(project_id: str) -> str:
        return f"analytics:{project_id}"

    @staticmethod
    def analytics_summary(project_id: str) -> str:
        return f"analytics:summary:{project_id}"

    @staticmethod
    def competitors(project_id: str) -> str:
        return f"competitors:{project_id}"

    @staticmethod
    def competitor_analysis(project_id: str, competitor_id: str) -> str:
        return f"competitor:analysis:{project_id}:{competitor_id}"

    @staticmethod
    def backlinks(project_id: str) -> str:
        return f"backlinks:{project_id}"

    @staticmethod
    def backlink_analysis(project_id: str) -> str:
        return f"backlinks:analysis:{project_id}"

    @staticmethod
    def serp_data(keyword: str, location: str) -> str:
        return f"serp:{keyword}:{location}"

    @staticmethod
    def serp_features(keyword: str) -> str:
        return f"serp:features:{keyword}"

    @staticmethod
    def ai_analysis(content_hash: str) -> str:
        return f"ai:analysis:{content_hash}"

    @staticmethod
    def ai_recommendations(project_id: str) -> str:
        return f"ai:recommendations:{project_id}"

    @staticmethod
    def user_profile(user_id: str) -> str:
        return f"user:profile:{user_id}"

    @staticmethod
    def user_settings(user_id: str) -> str:
        return f"user:settings:{user_id}"

    @staticmethod
    def dataforseo(endpoint: str, params: str) -> str:
        return f"dataforseo:{endpoint}:{params}"

    @staticmethod
    def gsc_data(site_url: str, date_range: str) -> str:
        return f"gsc:{site_url}:{date_range}"

    @staticmethod
    def ga4_data(property_id: str, date_range: str) -> str:
        return f"ga4:{property_id}:{date_range}"
