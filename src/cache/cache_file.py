# src/cache/cache_file.py — v2
"""Line-oriented persistence of a FingerprintSet.

Format, one entry per line, UTF-8::

    <md5 hex>\\t<size>\\t<mtime_ns>\\t<relative path>

The short form ``<md5 hex>\\t<relative path>`` is accepted on load. Blank
lines and ``#`` comments are ignored. The path is the last field; backslash,
TAB, CR and LF inside it are backslash-escaped. Lines end at LF only. File names
that are not valid UTF-8 round-trip through ``surrogateescape``.
"""

from __future__ import annotations

import logging
import os
import re
import tempfile
from pathlib import Path

from bucketsync.cache.models import Fingerprint, FingerprintSet
from bucketsync.core.errors import CacheCorruptError, CacheWriteError

logger = logging.getLogger(__name__)

_DIGEST_RE = re.compile(r"^[0-9a-f]{32}$")
HEADER = "# bucketsync fingerprint cache v2"

_ESCAPES = {"\\": "\\\\", "\n": "\\n", "\r": "\\r", "\t": "\\t"}
_UNESCAPES = {"\\": "\\", "n": "\n", "r": "\r", "t": "\t"}
_ESCAPE_RE = re.compile(r"[\\\n\r\t]")
_UNESCAPE_RE = re.compile(r"\\([\\nrt])")


def load_cache(path: Path) -> FingerprintSet:
    """Read a persisted cache. A missing file yields an empty set.

    Raises:
        CacheCorruptError: If the file cannot be read or a line is malformed.
    """
    path = Path(path)
    if not path.exists():
        logger.info("No cache at %s, starting from an empty cache", path)
        return FingerprintSet()

    try:
        text = path.read_bytes().decode("utf-8", errors="surrogateescape")
    except OSError as e:
        raise CacheCorruptError(str(path), str(e)) from e

    fingerprints: list[Fingerprint] = []
    for line_no, line in enumerate(text.split("\n"), start=1):
        if not line.strip() or line.startswith("#"):
            continue
        fingerprints.append(_parse_line(path, line, line_no))

    logger.debug("Loaded %d cache entries from %s", len(fingerprints), path)
    return FingerprintSet(fingerprints)


def _parse_line(path: Path, line: str, line_no: int) -> Fingerprint:
    fields = line.split("\t", 3)
    if len(fields) == 2:
        digest, rel = fields
        size = mtime_ns = None
    elif len(fields) == 4:
        digest, raw_size, raw_mtime, rel = fields
        try:
            size = int(raw_size)
            mtime_ns = int(raw_mtime)
        except ValueError as e:
            raise CacheCorruptError(str(path), "bad size or mtime", line_no) from e
    else:
        raise CacheCorruptError(
            str(path), f"expected 2 or 4 fields, got {len(fields)}", line_no,
        )

    if not _DIGEST_RE.match(digest):
        raise CacheCorruptError(str(path), f"bad digest {digest!r}", line_no)
    if not rel:
        raise CacheCorruptError(str(path), "empty path", line_no)
    return Fingerprint(
        path=_unescape_path(rel), digest=digest, size=size, mtime_ns=mtime_ns,
    )


def _escape_path(rel: str) -> str:
    return _ESCAPE_RE.sub(lambda m: _ESCAPES[m.group(0)], rel)


def _unescape_path(field: str) -> str:
    return _UNESCAPE_RE.sub(lambda m: _UNESCAPES[m.group(1)], field)


def _format_line(fp: Fingerprint) -> str:
    rel = _escape_path(fp.path)
    if fp.size is None or fp.mtime_ns is None:
        return f"{fp.digest}\t{rel}"
    return f"{fp.digest}\t{fp.size}\t{fp.mtime_ns}\t{rel}"


def dump_cache(fingerprints: FingerprintSet, path: Path) -> None:
    """Atomically write the cache: temp file in the same directory, then rename.

    Raises:
        CacheWriteError: On any failure. The previous cache file is left intact.
    """
    path = Path(path)
    lines = [HEADER] + [_format_line(fp) for fp in fingerprints]
    payload = "\n".join(lines) + "\n"

    tmp_name: str | None = None
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{path.name}.", suffix=".tmp", dir=path.parent,
        )
        with os.fdopen(
            fd, "w", encoding="utf-8", errors="surrogateescape", newline="\n",
        ) as f:
            f.write(payload)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_name, path)
        tmp_name = None
    except (OSError, UnicodeError) as e:
        raise CacheWriteError(str(path), str(e)) from e
    finally:
        if tmp_name is not None and os.path.exists(tmp_name):
            os.unlink(tmp_name)

    logger.info("Wrote %d cache entries to %s", len(fingerprints), path)
