# src/storage/models.py — v2
"""Transport-agnostic transfer models: StoreRequest and StoreResult."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, BinaryIO

from pydantic import BaseModel

from bucketsync.headers.models import HeaderSet


@dataclass
class StoreRequest:
    """One object transfer. ``body`` is read as a stream, never buffered whole."""

    bucket: str
    key: str
    body: BinaryIO
    content_type: str | None = None
    headers: HeaderSet = field(default_factory=HeaderSet)

    def extra_args(self) -> dict[str, Any]:
        """S3-style upload arguments for the optional directives that are set."""
        args: dict[str, Any] = {}
        if self.content_type:
            args["ContentType"] = self.content_type
        if self.headers.content_encoding:
            args["ContentEncoding"] = self.headers.content_encoding
        if self.headers.cache_control:
            args["CacheControl"] = self.headers.cache_control
        if self.headers.server_side_encryption:
            args["ServerSideEncryption"] = self.headers.server_side_encryption
        return args


class StoreResult(BaseModel):
    """Outcome of a successful transfer."""

    bucket: str
    key: str
    location: str
    etag: str | None = None
    version_id: str | None = None
