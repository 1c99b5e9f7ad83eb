# src/cache/models.py — v2
"""Cache domain models: Fingerprint and FingerprintSet."""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping

from pydantic import BaseModel, ConfigDict


class Fingerprint(BaseModel):
    """Content state of one file, keyed by its path relative to the source root."""

    model_config = ConfigDict(frozen=True)

    path: str
    digest: str
    size: int | None = None
    mtime_ns: int | None = None

    def same_stat(self, other: Fingerprint) -> bool:
        """True if size and mtime are known on both sides and equal."""
        if self.size is None or self.mtime_ns is None:
            return False
        return self.size == other.size and self.mtime_ns == other.mtime_ns


class FingerprintSet:
    """Mapping of relative path to Fingerprint.

    Instances are treated as read-only once built: ``reject`` returns a new
    set instead of mutating this one.
    """

    def __init__(self, fingerprints: Iterable[Fingerprint] = ()) -> None:
        self._entries: dict[str, Fingerprint] = {fp.path: fp for fp in fingerprints}

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, str]) -> FingerprintSet:
        """Build a set from a plain ``{path: digest}`` mapping."""
        return cls(Fingerprint(path=p, digest=d) for p, d in mapping.items())

    def get(self, path: str) -> Fingerprint | None:
        return self._entries.get(path)

    def paths(self) -> list[str]:
        return sorted(self._entries)

    def digests(self) -> dict[str, str]:
        return {path: fp.digest for path, fp in self._entries.items()}

    def diff(self, old: FingerprintSet) -> list[str]:
        """Paths whose digest is new or differs from ``old``, sorted."""
        changed = []
        for path, fp in self._entries.items():
            previous = old.get(path)
            if previous is None or previous.digest != fp.digest:
                changed.append(path)
        return sorted(changed)

    def reject(self, paths: Iterable[str]) -> FingerprintSet:
        """Return a copy without the given paths."""
        excluded = set(paths)
        return FingerprintSet(
            fp for path, fp in self._entries.items() if path not in excluded
        )

    def __contains__(self, path: object) -> bool:
        return path in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[Fingerprint]:
        for path in sorted(self._entries):
            yield self._entries[path]

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, FingerprintSet):
            return NotImplemented
        return self.digests() == other.digests()

    def __repr__(self) -> str:
        return f"FingerprintSet({len(self._entries)} entries)"
