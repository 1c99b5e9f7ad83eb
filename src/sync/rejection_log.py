# src/sync/rejection_log.py — v1
"""Append-only, thread-safe record of paths that permanently failed."""

from __future__ import annotations

import threading


class RejectionLog:
    """Shared by all workers of a run; read once when the cache is finalized."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._reasons: dict[str, str] = {}

    def add(self, path: str, reason: str = "") -> None:
        with self._lock:
            self._reasons.setdefault(path, reason)

    def paths(self) -> list[str]:
        with self._lock:
            return sorted(self._reasons)

    def reasons(self) -> dict[str, str]:
        with self._lock:
            return dict(self._reasons)

    def __contains__(self, path: object) -> bool:
        with self._lock:
            return path in self._reasons

    def __len__(self) -> int:
        with self._lock:
            return len(self._reasons)
