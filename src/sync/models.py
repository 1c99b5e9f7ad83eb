# src/sync/models.py — v2
"""Sync domain models: WorkItem, UploadReport, RunOutcome."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Literal

from pydantic import BaseModel, Field

from bucketsync.headers.models import HeaderSet


class ItemState(str, Enum):
    PENDING = "pending"
    IN_FLIGHT = "in_flight"
    RETRYING = "retrying"
    SUCCEEDED = "succeeded"
    REJECTED = "rejected"
    CANCELLED = "cancelled"

    @property
    def terminal(self) -> bool:
        return self in (ItemState.SUCCEEDED, ItemState.REJECTED, ItemState.CANCELLED)


@dataclass
class WorkItem:
    """One changed file travelling through the upload pipeline.

    ``attempts`` counts failed tries; ``calls`` counts store calls made.
    ``headers`` is resolved on the first try and reused by retries.
    """

    path: str
    attempts: int = 0
    calls: int = 0
    state: ItemState = ItemState.PENDING
    headers: HeaderSet | None = None
    last_error: str | None = None
    backoff_delays: list[float] = field(default_factory=list)


class UploadReport(BaseModel):
    """Terminal states of every item seeded into one pipeline run."""

    uploaded: list[str] = Field(default_factory=list)
    rejected: dict[str, str] = Field(default_factory=dict)
    cancelled: list[str] = Field(default_factory=list)
    calls: dict[str, int] = Field(default_factory=dict)
    retry_delays: dict[str, list[float]] = Field(default_factory=dict)

    @property
    def not_uploaded(self) -> set[str]:
        """Paths that must not be recorded as uploaded in the cache."""
        return set(self.rejected) | set(self.cancelled)


RunStatus = Literal[
    "nothing_to_do", "completed", "completed_with_rejections", "interrupted",
    "cache_write_failed",
]

NOTHING_TO_DO: RunStatus = "nothing_to_do"
COMPLETED: RunStatus = "completed"
COMPLETED_WITH_REJECTIONS: RunStatus = "completed_with_rejections"
INTERRUPTED: RunStatus = "interrupted"
CACHE_WRITE_FAILED: RunStatus = "cache_write_failed"


class RunOutcome(BaseModel):
    """Single outcome struct threaded from the upload phase into the cache phase."""

    source: str
    changed: list[str] = Field(default_factory=list)
    uploaded: list[str] = Field(default_factory=list)
    rejected: dict[str, str] = Field(default_factory=dict)
    cancelled: list[str] = Field(default_factory=list)
    interrupted: bool = False
    dry_run: bool = False
    upload_skipped: bool = False
    cache_corrupt: bool = False
    cache_written: bool = False
    cache_error: str | None = None
    duration_seconds: float = 0.0

    @property
    def status(self) -> RunStatus:
        if self.cache_error is not None:
            return CACHE_WRITE_FAILED
        if not self.changed:
            return NOTHING_TO_DO
        if self.interrupted:
            return INTERRUPTED
        if self.rejected or self.cancelled:
            return COMPLETED_WITH_REJECTIONS
        return COMPLETED

    def apply_report(self, report: UploadReport) -> None:
        self.uploaded = sorted(report.uploaded)
        self.rejected = dict(sorted(report.rejected.items()))
        self.cancelled = sorted(report.cancelled)
