# src/cache/fingerprint.py — v4
"""Content fingerprinting of a source tree.

Each regular file under the root is hashed (MD5 over raw bytes, read in
chunks) and keyed by its POSIX-style path relative to the root.
"""

from __future__ import annotations

import fnmatch
import hashlib
import logging
import os
from collections.abc import Callable, Iterable, Iterator
from pathlib import Path

from bucketsync.cache.models import Fingerprint, FingerprintSet
from bucketsync.core.errors import ScanError

logger = logging.getLogger(__name__)

READ_CHUNK_SIZE = 1024 * 1024


def file_digest(path: Path, chunk_size: int = READ_CHUNK_SIZE) -> str:
    """MD5 hex digest of a file's content."""
    h = hashlib.md5()  # noqa: S324
    with path.open("rb") as f:
        for chunk in iter(lambda: f.read(chunk_size), b""):
            h.update(chunk)
    return h.hexdigest()


def compute_fingerprint(root: Path, path: Path) -> Fingerprint:
    """Fingerprint a single file located under ``root``."""
    stat = path.stat()
    return Fingerprint(
        path=path.relative_to(root).as_posix(),
        digest=file_digest(path),
        size=stat.st_size,
        mtime_ns=stat.st_mtime_ns,
    )


def iter_files(
    root: Path,
    exclude: Iterable[str] = (),
    ignore: Callable[[str], bool] | None = None,
) -> Iterator[Path]:
    """Yield regular files under root in sorted order, skipping excluded globs.

    Patterns are matched against the relative POSIX path and the file name.
    ``ignore`` is called with the exact relative POSIX path; no glob matching.
    """
    patterns = [p for p in exclude if p]
    for path in sorted(root.rglob("*")):
        if not path.is_file():
            continue
        rel = path.relative_to(root).as_posix()
        if ignore is not None and ignore(rel):
            logger.debug("Ignored %s", rel)
            continue
        if any(
            fnmatch.fnmatch(rel, pattern) or fnmatch.fnmatch(path.name, pattern)
            for pattern in patterns
        ):
            logger.debug("Excluded %s", rel)
            continue
        yield path


def compute_current(
    root: Path,
    previous: FingerprintSet | None = None,
    trust_mtime: bool = False,
    exclude: Iterable[str] = (),
    ignore: Callable[[str], bool] | None = None,
) -> FingerprintSet:
    """Fingerprint every file under root.

    Args:
        root: Source directory.
        previous: Prior fingerprints, consulted only when ``trust_mtime`` is set.
        trust_mtime: Reuse the previous digest when size and mtime are unchanged.
        exclude: Glob patterns to skip.
        ignore: Predicate on the relative POSIX path; true means skip.

    Raises:
        ScanError: If root is not a readable directory or a file cannot be read.
    """
    root = Path(root)
    if not root.is_dir():
        raise ScanError(str(root), "not a directory")
    if not os.access(root, os.R_OK | os.X_OK):
        raise ScanError(str(root), "permission denied")

    fingerprints: list[Fingerprint] = []
    reused = 0
    try:
        for path in iter_files(root, exclude, ignore):
            if trust_mtime and previous is not None:
                stat = path.stat()
                rel = path.relative_to(root).as_posix()
                prior = previous.get(rel)
                probe = Fingerprint(
                    path=rel, digest="", size=stat.st_size, mtime_ns=stat.st_mtime_ns,
                )
                if prior is not None and probe.same_stat(prior):
                    fingerprints.append(prior)
                    reused += 1
                    continue
            fingerprints.append(compute_fingerprint(root, path))
    except OSError as e:
        raise ScanError(str(root), str(e)) from e

    logger.info(
        "Fingerprinted %s: %d files (%d reused from cache)",
        root, len(fingerprints), reused,
    )
    return FingerprintSet(fingerprints)
