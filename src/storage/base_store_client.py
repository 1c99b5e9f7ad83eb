# src/storage/base_store_client.py — v1
"""Abstract store client interface."""

from __future__ import annotations

from abc import ABC, abstractmethod

from bucketsync.storage.models import StoreRequest, StoreResult


class BaseStoreClient(ABC):
    """Performs a single object transfer.

    Implementations must be safe to call concurrently with distinct requests
    and must signal failures as ``TransferError`` (or an exception the
    classifier understands).
    """

    @abstractmethod
    async def upload(self, request: StoreRequest) -> StoreResult:
        """Stream ``request.body`` to ``request.bucket``/``request.key``."""
