# src/storage/dry_run_client.py — v1
"""Store client used for dry runs: every upload succeeds and nothing is sent."""

from __future__ import annotations

import logging

from bucketsync.storage.base_store_client import BaseStoreClient
from bucketsync.storage.models import StoreRequest, StoreResult

logger = logging.getLogger(__name__)


class DryRunStoreClient(BaseStoreClient):
    async def upload(self, request: StoreRequest) -> StoreResult:
        logger.debug("Pretending to upload s3://%s/%s", request.bucket, request.key)
        return StoreResult(
            bucket=request.bucket,
            key=request.key,
            location=f"s3://{request.bucket}/{request.key}",
        )
