# tests/conftest.py — v2
"""Shared test fixtures for unit and integration tests.

Provides a recording in-memory store client with error injection, source
tree builders and settings factories. No network: all transfers are faked.
"""

from __future__ import annotations

import threading
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path

import pytest

from bucketsync.config.settings import Settings
from bucketsync.core.errors import TransferError
from bucketsync.logging.context import clear_context
from bucketsync.storage.base_store_client import BaseStoreClient
from bucketsync.storage.models import StoreRequest, StoreResult


# === Store client double ===


@dataclass
class RecordedUpload:
    """One upload attempt: the request, the bytes read from its body, the error."""

    request: StoreRequest
    content: bytes
    error: Exception | None = None


ErrorFunc = Callable[[StoreRequest], "Exception | None"]


class RecordingStoreClient(BaseStoreClient):
    """Records every upload attempt; ``error_func`` can inject failures."""

    def __init__(self, error_func: ErrorFunc | None = None) -> None:
        self.error_func = error_func
        self.uploads: list[RecordedUpload] = []
        self._lock = threading.Lock()

    async def upload(self, request: StoreRequest) -> StoreResult:
        content = request.body.read()
        with self._lock:
            error = self.error_func(request) if self.error_func else None
            self.uploads.append(RecordedUpload(request, content, error))
        if error is not None:
            raise error
        return StoreResult(
            bucket=request.bucket,
            key=request.key,
            location=f"s3://{request.bucket}/{request.key}",
            etag='"mock-etag"',
        )

    def calls_for(self, key: str) -> int:
        return sum(1 for u in self.uploads if u.request.key == key)

    def stored(self) -> dict[str, bytes]:
        """Content of every key whose last attempt succeeded."""
        result: dict[str, bytes] = {}
        for u in self.uploads:
            if u.error is None:
                result[u.request.key] = u.content
        return result

    def keys(self) -> set[str]:
        return {u.request.key for u in self.uploads}

    # --- Error injection helpers ---

    @staticmethod
    def error_on_key(key: str, error: Exception) -> ErrorFunc:
        return lambda request: error if request.key == key else None

    @staticmethod
    def error_always(error: Exception) -> ErrorFunc:
        return lambda request: error

    @staticmethod
    def error_n_times_on_key(key: str, n: int, error: Exception) -> ErrorFunc:
        count = 0

        def func(request: StoreRequest) -> Exception | None:
            nonlocal count
            if request.key != key:
                return None
            count += 1
            return error if count <= n else None

        return func


def recoverable_error() -> TransferError:
    return TransferError(
        "RequestTimeout: request timed out", recoverable=True, code="RequestTimeout",
    )


def fatal_error() -> TransferError:
    return TransferError("AccessDenied: Access Denied", recoverable=False, code="AccessDenied")


# === FIXTURES ===


@pytest.fixture(autouse=True)
def _reset_log_context():
    clear_context()
    yield
    clear_context()


@pytest.fixture
def recording_client() -> RecordingStoreClient:
    return RecordingStoreClient()


@pytest.fixture
def recoverable() -> TransferError:
    return recoverable_error()


@pytest.fixture
def fatal() -> TransferError:
    return fatal_error()


@pytest.fixture
def make_tree(tmp_path: Path) -> Callable[[dict[str, bytes]], Path]:
    """Write ``{relative path: content}`` under tmp_path/src and return the root."""

    def _make(files: dict[str, bytes]) -> Path:
        root = tmp_path / "src"
        root.mkdir(exist_ok=True)
        for rel, content in files.items():
            path = root / rel
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(content)
        return root

    return _make


@pytest.fixture
def make_settings(tmp_path: Path) -> Callable[..., Settings]:
    """Settings isolated from any .env file, with fast retries."""

    def _make(**overrides: object) -> Settings:
        values: dict[str, object] = {
            "bucket_name": "test-bucket",
            "source": tmp_path / "src",
            "cache_file": tmp_path / "cache.txt",
            "workers_count": 4,
            "retry_base_delay_s": 0.0005,
        }
        values.update(overrides)
        return Settings(_env_file=None, **values)  # type: ignore[arg-type]

    return _make
