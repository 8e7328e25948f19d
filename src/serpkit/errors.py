"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Classified error taxonomy shared by the request layer and error reporting.
"""

from __future__ import annotations

import asyncio
import socket
import time
from enum import Enum
from typing import Any


class ErrorKind(str, Enum):
    """Coarse-grained failure category used to drive uniform handling."""

    NETWORK = "network"
    AUTH = "auth"
    RATE_LIMIT = "rate_limit"
    VALIDATION = "validation"
    UNKNOWN = "unknown"


class ClassifiedError(Exception):
    """
    Base error carrying a kind, a human-readable message and diagnostics.

    ``context`` is free-form key/value data attached at the throw site
    (endpoint, parameters). It is never persisted.
    """

    kind: ErrorKind = ErrorKind.UNKNOWN
    default_message: str = "An unexpected error occurred"

    def __init__(
        self,
        message: str | None = None,
        *,
        context: dict[str, Any] | None = None,
        status: int | None = None,
    ) -> None:
        self.message = message or self.default_message
        self.context: dict[str, Any] = dict(context or {})
        self.status = status
        self.timestamp = time.time()
        super().__init__(self.message)

    def with_context(self, **extra: Any) -> "ClassifiedError":
        """Merge ``extra`` into the context; existing keys win."""
        for key, value in extra.items():
            self.context.setdefault(key, value)
        return self

    def to_report(self) -> dict[str, Any]:
        return {
            "message": self.message,
            "kind": self.kind.value,
            "context": dict(self.context),
            "timestamp": self.timestamp,
        }

    def __repr__(self) -> str:
        return f"{type(self).__name__}(kind={self.kind.value!r}, message={self.message!r})"


class NetworkError(ClassifiedError):
    kind = ErrorKind.NETWORK
    default_message = "Network connection failed"


class AuthError(ClassifiedError):
    kind = ErrorKind.AUTH
    default_message = "Authentication failed"


class RateLimitError(ClassifiedError):
    kind = ErrorKind.RATE_LIMIT
    default_message = "Rate limit exceeded"


class ValidationError(ClassifiedError):
    kind = ErrorKind.VALIDATION
    default_message = "Validation failed"


class UnknownError(ClassifiedError):
    kind = ErrorKind.UNKNOWN


_ERROR_TYPES: dict[ErrorKind, type[ClassifiedError]] = {
    ErrorKind.NETWORK: NetworkError,
    ErrorKind.AUTH: AuthError,
    ErrorKind.RATE_LIMIT: RateLimitError,
    ErrorKind.VALIDATION: ValidationError,
    ErrorKind.UNKNOWN: UnknownError,
}


def error_for_kind(
    kind: ErrorKind,
    message: str | None = None,
    *,
    context: dict[str, Any] | None = None,
    status: int | None = None,
) -> ClassifiedError:
    return _ERROR_TYPES[kind](message, context=context, status=status)


def classify_status(
    status: int,
    status_text: str = "",
    *,
    context: dict[str, Any] | None = None,
) -> ClassifiedError | None:
    """Map an HTTP status to a classified error; ``None`` for 2xx."""
    if 200 <= status < 300:
        return None
    if status == 401:
        return AuthError("Authentication failed", context=context, status=status)
    if status == 429:
        return RateLimitError("Rate limit exceeded", context=context, status=status)
    if status >= 500:
        return NetworkError("Server error", context=context, status=status)
    return UnknownError(f"HTTP {status}: {status_text}".rstrip(), context=context, status=status)


_MESSAGE_HINTS: tuple[tuple[tuple[str, ...], ErrorKind], ...] = (
    (("rate limit", "429"), ErrorKind.RATE_LIMIT),
    (("unauthorized", "auth", "jwt expired"), ErrorKind.AUTH),
    (("network", "fetch", "connection"), ErrorKind.NETWORK),
)


def classify_error(
    error: BaseException,
    *,
    context: dict[str, Any] | None = None,
) -> ClassifiedError:
    """Classify any exception into the taxonomy, merging ``context``."""
    if isinstance(error, ClassifiedError):
        return error.with_context(**(context or {}))
    if isinstance(error, (asyncio.TimeoutError, TimeoutError, socket.timeout)):
        return NetworkError("timeout", context=context)
    if isinstance(error, (ConnectionError, OSError)):
        return NetworkError(str(error) or None, context=context)

    text = str(error)
    lowered = text.lower()
    if "timeout" in lowered or "timed out" in lowered:
        return NetworkError("timeout", context=context)
    for phrases, kind in _MESSAGE_HINTS:
        if any(phrase in lowered for phrase in phrases):
            return error_for_kind(kind, text, context=context)
    return UnknownError(text or None, context=context)
