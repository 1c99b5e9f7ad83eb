# src/headers/resolver.py — v1
"""First-match-wins resolution of path patterns to header sets."""

from __future__ import annotations

import mimetypes
from collections.abc import Sequence

from bucketsync.headers.models import HeaderRule, HeaderSet

SSE_AES256 = "AES256"

_ONE_YEAR = "max-age=31536000"

# Order matters: first hit, first served.
DEFAULT_HEADER_RULES: tuple[HeaderRule, ...] = (
    HeaderRule(
        pattern=r"index\.html$",
        headers=HeaderSet(content_encoding="gzip", cache_control="max-age=1800"),
    ),
    HeaderRule(
        pattern=r"[^/]*\.html$",
        headers=HeaderSet(content_encoding="gzip", cache_control="max-age=3600"),
    ),
    HeaderRule(
        pattern=r"\.xml$",
        headers=HeaderSet(content_encoding="gzip", cache_control="max-age=1800"),
    ),
    HeaderRule(
        pattern=r"\.ico$",
        headers=HeaderSet(content_encoding="gzip", cache_control=_ONE_YEAR),
    ),
    HeaderRule(
        pattern=r"\.(js|css)$",
        headers=HeaderSet(content_encoding="gzip", cache_control=_ONE_YEAR),
    ),
    HeaderRule(
        pattern=r"\.(jpg|JPG|jpeg|png|PNG|gif|webp|svg)$",
        headers=HeaderSet(cache_control=_ONE_YEAR),
    ),
)

_EMPTY = HeaderSet()


class HeaderResolver:
    """Resolve a relative path to the header set of the first matching rule.

    Resolution depends only on the path string and the rules given at
    construction time.
    """

    def __init__(
        self,
        rules: Sequence[HeaderRule] = DEFAULT_HEADER_RULES,
        encrypt: bool = False,
    ) -> None:
        self._rules = tuple(rules)
        self._encrypt = encrypt

    @property
    def rules(self) -> tuple[HeaderRule, ...]:
        return self._rules

    def resolve(self, path: str) -> HeaderSet:
        """Header set of the first rule matching ``path``; empty if none match."""
        headers = _EMPTY
        for rule in self._rules:
            if rule.matches(path):
                headers = rule.headers
                break
        if self._encrypt and headers.server_side_encryption is None:
            headers = headers.model_copy(update={"server_side_encryption": SSE_AES256})
        return headers

    @staticmethod
    def content_type(path: str) -> str | None:
        """MIME type guessed from the file extension."""
        content_type, _ = mimetypes.guess_type(path, strict=False)
        return content_type
