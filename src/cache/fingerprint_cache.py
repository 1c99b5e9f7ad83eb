# src/cache/fingerprint_cache.py — v2
"""FingerprintCache: compute, load, diff, reject and persist fingerprints."""

from __future__ import annotations

from collections.abc import Callable, Iterable
from pathlib import Path

from bucketsync.cache.cache_file import dump_cache, load_cache
from bucketsync.cache.fingerprint import compute_current
from bucketsync.cache.models import FingerprintSet


class FingerprintCache:
    """Change detection for one source tree and its cache file."""

    def __init__(
        self,
        trust_mtime: bool = False,
        exclude: Iterable[str] = (),
        ignore: Callable[[str], bool] | None = None,
    ) -> None:
        self._trust_mtime = trust_mtime
        self._exclude = tuple(exclude)
        self._ignore = ignore

    def compute_current(
        self, root: Path, previous: FingerprintSet | None = None,
    ) -> FingerprintSet:
        """Fingerprint the tree under root. Raises ScanError."""
        return compute_current(
            root,
            previous=previous,
            trust_mtime=self._trust_mtime,
            exclude=self._exclude,
            ignore=self._ignore,
        )

    @staticmethod
    def load(path: Path) -> FingerprintSet:
        """Load a cache file. Raises CacheCorruptError."""
        return load_cache(path)

    @staticmethod
    def diff(current: FingerprintSet, old: FingerprintSet) -> list[str]:
        """Changed or new paths, sorted lexicographically."""
        return current.diff(old)

    @staticmethod
    def reject(current: FingerprintSet, paths: Iterable[str]) -> FingerprintSet:
        return current.reject(paths)

    @staticmethod
    def dump(fingerprints: FingerprintSet, path: Path) -> None:
        """Persist atomically. Raises CacheWriteError."""
        dump_cache(fingerprints, path)
