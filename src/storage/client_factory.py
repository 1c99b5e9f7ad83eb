# src/storage/client_factory.py — v1
"""Factory: instantiate the store client from configuration."""

from __future__ import annotations

from bucketsync.config.settings import Settings
from bucketsync.storage.base_store_client import BaseStoreClient
from bucketsync.storage.dry_run_client import DryRunStoreClient


def create_store_client(settings: Settings) -> BaseStoreClient:
    """Create the store client for a run.

    Dry runs get a no-op client so no credentials or network are needed.
    """
    if settings.dry_run:
        return DryRunStoreClient()

    from bucketsync.storage.s3_store_client import S3StoreClient

    return S3StoreClient(
        region=settings.region or None,
        profile=settings.profile or None,
        endpoint_url=settings.endpoint_url or None,
        max_pool_connections=max(10, settings.workers_count),
    )
