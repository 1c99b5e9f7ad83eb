# src/core/errors.py — v1
"""Error taxonomy shared by the cache, storage and sync layers.

Run-level errors (scan, cache write) surface to the caller. Per-file
TransferErrors stay inside the pipeline and drive retry-or-reject.
"""

from __future__ import annotations


class BucketSyncError(Exception):
    """Base class for all bucketsync errors."""


class ScanError(BucketSyncError):
    """The source tree could not be enumerated or hashed."""

    def __init__(self, root: str, reason: str) -> None:
        self.root = root
        self.reason = reason
        super().__init__(f"Cannot scan {root}: {reason}")


class CacheCorruptError(BucketSyncError):
    """The persisted fingerprint cache is unreadable or malformed."""

    def __init__(self, path: str, reason: str, line_no: int | None = None) -> None:
        self.path = path
        self.reason = reason
        self.line_no = line_no
        where = f"{path}:{line_no}" if line_no is not None else path
        super().__init__(f"Corrupt cache file {where}: {reason}")


class CacheWriteError(BucketSyncError):
    """Persisting the fingerprint cache failed; the previous file is intact."""

    def __init__(self, path: str, reason: str) -> None:
        self.path = path
        self.reason = reason
        super().__init__(f"Cannot write cache file {path}: {reason}")


class TransferError(BucketSyncError):
    """A single upload failed.

    Attributes:
        recoverable: True if retrying may succeed (timeouts, throttling,
            transient server errors), False for fatal failures (auth,
            missing bucket, malformed request, unreadable local file).
        code: Structured error code from the transport, when one exists.
    """

    def __init__(
        self,
        message: str,
        *,
        recoverable: bool,
        code: str | None = None,
    ) -> None:
        self.recoverable = recoverable
        self.code = code
        super().__init__(message)
