"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Input schemas checked before any remote mutation.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, TypeVar

from pydantic import BaseModel, ConfigDict, Field, HttpUrl
from pydantic import ValidationError as PydanticValidationError

from ..errors import ValidationError

M = TypeVar("M", bound=BaseModel)


class ProjectInput(BaseModel):
    model_config = ConfigDict(extra="allow", str_strip_whitespace=True)

    name: str = Field(min_length=1, max_length=100)
    domain: str | None = Field(default=None, max_length=255)


class KeywordInput(BaseModel):
    model_config = ConfigDict(extra="allow", str_strip_whitespace=True)

    keyword: str = Field(min_length=1, max_length=200)


class UrlInput(BaseModel):
    url: HttpUrl


def validate_payload(
    model: type[M],
    data: Mapping[str, Any],
    *,
    context: dict[str, Any] | None = None,
) -> M:
    """Validate ``data`` against ``model`` or raise ``ValidationError``."""
    try:
        return model.model_validate(dict(data))
    except PydanticValidationError as e:
        details = e.errors(include_url=False, include_context=False)
        first = details[0] if details else {}
        location = ".".join(str(part) for part in first.get("loc", ())) or model.__name__
        message = f"{location}: {first.get('msg', 'invalid value')}"
        raise ValidationError(
            message,
            context={**(context or {}), "model": model.__name__, "errors": details},
        ) from e
