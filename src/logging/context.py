# src/logging/context.py — v2
"""Contextual logging support: attach run_id, worker and path to log records.

Context variables are copied per asyncio task, so a value set inside a
worker task only affects that worker's records.
"""

from __future__ import annotations

import contextvars
from dataclasses import dataclass
from typing import Any

_run_id: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "run_id", default=None
)
_worker: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "worker", default=None
)
_path: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "path", default=None
)


@dataclass
class LogContext:
    """Snapshot of the current logging context."""

    run_id: str | None = None
    worker: str | None = None
    path: str | None = None

    def as_dict(self) -> dict[str, Any]:
        """Return non-None fields as dict for JSON log injection."""
        return {k: v for k, v in self.__dict__.items() if v is not None}


def get_context() -> LogContext:
    return LogContext(
        run_id=_run_id.get(),
        worker=_worker.get(),
        path=_path.get(),
    )


def set_run_context(run_id: str) -> None:
    """Set run-level context (called once per sync run)."""
    _run_id.set(run_id)


def set_worker_context(worker: str, path: str | None = None) -> None:
    """Set worker-level context (called by each worker task, per item)."""
    _worker.set(worker)
    _path.set(path)


def clear_context() -> None:
    _run_id.set(None)
    _worker.set(None)
    _path.set(None)
