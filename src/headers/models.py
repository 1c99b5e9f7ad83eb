# src/headers/models.py — v1
"""Header directives attached to uploaded objects."""

from __future__ import annotations

import re
from typing import Any

from pydantic import BaseModel, ConfigDict, PrivateAttr, field_validator

GZIP = "gzip"


class HeaderSet(BaseModel):
    """Optional per-object directives. An empty set means no special handling."""

    model_config = ConfigDict(frozen=True)

    content_encoding: str | None = None
    cache_control: str | None = None
    server_side_encryption: str | None = None

    @property
    def should_compress(self) -> bool:
        """Bytes must be gzipped in transit to honour the declared encoding."""
        return (self.content_encoding or "").lower() == GZIP

    def is_empty(self) -> bool:
        return not (
            self.content_encoding or self.cache_control or self.server_side_encryption
        )


class HeaderRule(BaseModel):
    """Ordered (pattern, header set) pair.

    The pattern is a regular expression searched anywhere in the relative path.
    """

    model_config = ConfigDict(frozen=True)

    pattern: str
    headers: HeaderSet = HeaderSet()

    _regex: re.Pattern[str] = PrivateAttr()

    @field_validator("pattern")
    @classmethod
    def validate_pattern(cls, v: str) -> str:
        try:
            re.compile(v)
        except re.error as e:
            raise ValueError(f"invalid header rule pattern {v!r}: {e}") from e
        return v

    def model_post_init(self, __context: Any) -> None:
        self._regex = re.compile(self.pattern)

    def matches(self, path: str) -> bool:
        return self._regex.search(path) is not None
