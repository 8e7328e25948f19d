"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Module: api/__init__.py.
"""

from .client import SEOClient
from .contracts import CacheTTLPolicy, DateRange, KeywordFilters, KeywordUpdateOutcome
from .request import APIClient
from .settings import ClientSettings
from .validation import KeywordInput, ProjectInput, UrlInput, validate_payload

__all__ = [
    "APIClient",
    "SEOClient",
    "ClientSettings",
    "CacheTTLPolicy",
    "DateRange",
    "KeywordFilters",
    "KeywordUpdateOutcome",
    "KeywordInput",
    "ProjectInput",
    "UrlInput",
    "validate_payload",
]
