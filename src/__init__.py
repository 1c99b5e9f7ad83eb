# src/__init__.py — v1
"""bucketsync: incremental, fingerprint-driven directory sync to object storage."""

from bucketsync.version import __version__

__all__ = ["__version__"]
