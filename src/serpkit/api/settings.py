"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Client settings and explicit config loading.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True, slots=True)
class ClientSettings:
    """Explicit settings used by the request layer and its caches."""

    base_url: str = ""
    api_key: str | None = None
    request_timeout_s: float = 30.0
    default_headers: dict[str, str] = field(
        default_factory=lambda: {"Content-Type": "application/json"}
    )

    cache_default_ttl_s: float = 300.0
    cache_max_size: int = 1000
    short_cache_ttl_s: float = 60.0
    short_cache_max_size: int = 500
    long_cache_ttl_s: float = 1800.0
    long_cache_max_size: int = 200
    sweep_interval_s: float = 300.0
    single_flight: bool = False

    @staticmethod
    def from_env() -> "ClientSettings":
        """Load settings from ``SERPKIT_*`` environment variables."""
        return ClientSettings(
            base_url=os.getenv("SERPKIT_BASE_URL", ""),
            api_key=os.getenv("SERPKIT_API_KEY"),
            request_timeout_s=float(os.getenv("SERPKIT_REQUEST_TIMEOUT_S", "30")),
            cache_default_ttl_s=float(os.getenv("SERPKIT_CACHE_TTL_S", "300")),
            cache_max_size=int(os.getenv("SERPKIT_CACHE_MAX_SIZE", "1000")),
            short_cache_ttl_s=float(os.getenv("SERPKIT_SHORT_CACHE_TTL_S", "60")),
            short_cache_max_size=int(os.getenv("SERPKIT_SHORT_CACHE_MAX_SIZE", "500")),
            long_cache_ttl_s=float(os.getenv("SERPKIT_LONG_CACHE_TTL_S", "1800")),
            long_cache_max_size=int(os.getenv("SERPKIT_LONG_CACHE_MAX_SIZE", "200")),
            sweep_interval_s=float(os.getenv("SERPKIT_CACHE_SWEEP_INTERVAL_S", "300")),
            single_flight=_env_bool("SERPKIT_CACHE_SINGLE_FLIGHT", False),
        )
