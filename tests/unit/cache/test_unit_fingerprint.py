# tests/unit/cache/test_unit_fingerprint.py — v2
"""Tests for cache/fingerprint.py — tree scanning and hashing."""

from __future__ import annotations

import hashlib
import os
from pathlib import Path
from unittest.mock import patch

import pytest

from bucketsync.cache.fingerprint import compute_current, file_digest, iter_files
from bucketsync.cache.fingerprint_cache import FingerprintCache
from bucketsync.cache.models import Fingerprint, FingerprintSet
from bucketsync.core.errors import ScanError


class TestFileDigest:
    def test_md5_of_content(self, tmp_path: Path):
        p = tmp_path / "f.bin"
        p.write_bytes(b"hello world")
        assert file_digest(p) == hashlib.md5(b"hello world").hexdigest()

    def test_chunked_read_matches(self, tmp_path: Path):
        p = tmp_path / "big.bin"
        data = os.urandom(10_000)
        p.write_bytes(data)
        assert file_digest(p, chunk_size=7) == hashlib.md5(data).hexdigest()


class TestComputeCurrent:
    def test_relative_posix_paths(self, make_tree):
        root = make_tree({"a.txt": b"a", "sub/dir/b.txt": b"b"})
        current = compute_current(root)
        assert current.paths() == ["a.txt", "sub/dir/b.txt"]

    def test_identical_content_same_digest(self, make_tree):
        root = make_tree({"one.txt": b"same", "two.txt": b"same", "three.txt": b"diff"})
        current = compute_current(root)
        assert current.get("one.txt").digest == current.get("two.txt").digest
        assert current.get("one.txt").digest != current.get("three.txt").digest

    def test_records_size_and_mtime(self, make_tree):
        root = make_tree({"a.txt": b"abcd"})
        fp = compute_current(root).get("a.txt")
        assert fp.size == 4
        assert fp.mtime_ns == (root / "a.txt").stat().st_mtime_ns

    def test_empty_tree(self, make_tree):
        assert len(compute_current(make_tree({}))) == 0

    def test_missing_root_raises(self, tmp_path: Path):
        with pytest.raises(ScanError, match="not a directory"):
            compute_current(tmp_path / "nope")

    def test_file_as_root_raises(self, tmp_path: Path):
        f = tmp_path / "file.txt"
        f.write_text("x")
        with pytest.raises(ScanError):
            compute_current(f)

    def test_unreadable_file_raises(self, make_tree):
        root = make_tree({"a.txt": b"a"})
        with patch(
            "bucketsync.cache.fingerprint.file_digest",
            side_effect=PermissionError("denied"),
        ):
            with pytest.raises(ScanError, match="denied"):
                compute_current(root)

    def test_exclude_patterns(self, make_tree):
        root = make_tree({"a.txt": b"a", "b.log": b"b", "sub/c.log": b"c", ".git/x": b"x"})
        current = compute_current(root, exclude=["*.log", ".git/*"])
        assert current.paths() == ["a.txt"]

    def test_trust_mtime_reuses_previous_digest(self, make_tree):
        root = make_tree({"a.txt": b"a"})
        stat = (root / "a.txt").stat()
        previous = FingerprintSet([
            Fingerprint(path="a.txt", digest="f" * 32, size=stat.st_size, mtime_ns=stat.st_mtime_ns),
        ])
        current = compute_current(root, previous=previous, trust_mtime=True)
        assert current.get("a.txt").digest == "f" * 32

    def test_trust_mtime_rehashes_when_stat_differs(self, make_tree):
        root = make_tree({"a.txt": b"a"})
        previous = FingerprintSet([
            Fingerprint(path="a.txt", digest="f" * 32, size=999, mtime_ns=1),
        ])
        current = compute_current(root, previous=previous, trust_mtime=True)
        assert current.get("a.txt").digest == hashlib.md5(b"a").hexdigest()

    def test_without_trust_mtime_always_hashes(self, make_tree):
        root = make_tree({"a.txt": b"a"})
        stat = (root / "a.txt").stat()
        previous = FingerprintSet([
            Fingerprint(path="a.txt", digest="f" * 32, size=stat.st_size, mtime_ns=stat.st_mtime_ns),
        ])
        current = compute_current(root, previous=previous)
        assert current.get("a.txt").digest == hashlib.md5(b"a").hexdigest()


class TestIterFiles:
    def test_sorted_files_only(self, make_tree):
        root = make_tree({"b": b"", "a/c": b"", "a/b": b""})
        assert [p.relative_to(root).as_posix() for p in iter_files(root)] == ["a/b", "a/c", "b"]

    def test_ignore_sees_exact_relative_path(self, make_tree):
        root = make_tree({"state.txt": b"", "docs/state.txt": b"", "[x].txt": b""})
        seen = []

        def ignore(rel):
            seen.append(rel)
            return rel == "state.txt"

        kept = [p.relative_to(root).as_posix() for p in iter_files(root, ignore=ignore)]
        assert kept == ["[x].txt", "docs/state.txt"]
        assert sorted(seen) == ["[x].txt", "docs/state.txt", "state.txt"]


class TestFingerprintCacheFacade:
    def test_diff_and_reject(self, make_tree):
        root = make_tree({"a.txt": b"a", "b.txt": b"b"})
        cache = FingerprintCache()
        current = cache.compute_current(root)
        assert cache.diff(current, FingerprintSet()) == ["a.txt", "b.txt"]
        assert cache.reject(current, ["a.txt"]).paths() == ["b.txt"]

    def test_exclude_passed_through(self, make_tree):
        root = make_tree({"a.txt": b"a", "skip.tmp": b"b"})
        current = FingerprintCache(exclude=["*.tmp"]).compute_current(root)
        assert current.paths() == ["a.txt"]

    def test_ignore_passed_through(self, make_tree):
        root = make_tree({"a.txt": b"a", "meta/c.txt": b"c"})
        current = FingerprintCache(ignore=lambda rel: rel == "meta/c.txt").compute_current(root)
        assert current.paths() == ["a.txt"]
