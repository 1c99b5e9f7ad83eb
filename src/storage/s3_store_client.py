# src/storage/s3_store_client.py — v1
"""S3-compatible store client backed by boto3's managed transfer.

Supports AWS S3, MinIO and other S3-compatible endpoints. Credentials come
from boto3's default provider chain, optionally narrowed to a named profile.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

import boto3
from boto3.s3.transfer import TransferConfig
from botocore.config import Config as BotoConfig

from bucketsync.core.errors import TransferError
from bucketsync.storage.base_store_client import BaseStoreClient
from bucketsync.storage.classifier import RECOVERABLE, classify_error, error_code
from bucketsync.storage.models import StoreRequest, StoreResult

logger = logging.getLogger(__name__)

SDK_MAX_ATTEMPTS = 3


class S3StoreClient(BaseStoreClient):
    """Upload objects with ``upload_fileobj``, one worker thread per call."""

    def __init__(
        self,
        region: str | None = None,
        profile: str | None = None,
        endpoint_url: str | None = None,
        max_pool_connections: int = 10,
        client: Any | None = None,
        transfer_config: TransferConfig | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            region: AWS region (boto3 default resolution if not set).
            profile: Shared-config profile name.
            endpoint_url: Custom endpoint for MinIO/compatible storage.
            max_pool_connections: HTTP pool size; should cover the worker count.
            client: Pre-built boto3 S3 client, used as-is when given.
            transfer_config: boto3 TransferConfig for multipart thresholds.
        """
        if client is None:
            session = boto3.session.Session(
                profile_name=profile or None,
                region_name=region or None,
            )
            client = session.client(
                "s3",
                endpoint_url=endpoint_url or None,
                config=BotoConfig(
                    retries={"max_attempts": SDK_MAX_ATTEMPTS, "mode": "standard"},
                    max_pool_connections=max_pool_connections,
                ),
            )
        self._s3 = client
        self._transfer_config = transfer_config or TransferConfig(use_threads=False)

    async def upload(self, request: StoreRequest) -> StoreResult:
        extra_args = request.extra_args()
        try:
            await asyncio.to_thread(
                self._s3.upload_fileobj,
                request.body,
                request.bucket,
                request.key,
                ExtraArgs=extra_args or None,
                Config=self._transfer_config,
            )
        except TransferError:
            raise
        except Exception as e:
            raise _to_transfer_error(request, e) from e

        logger.debug(
            "S3 upload: s3://%s/%s %s", request.bucket, request.key, extra_args,
        )
        return StoreResult(
            bucket=request.bucket,
            key=request.key,
            location=f"s3://{request.bucket}/{request.key}",
        )


def _to_transfer_error(request: StoreRequest, error: Exception) -> TransferError:
    return TransferError(
        f"upload of s3://{request.bucket}/{request.key} failed: {error}",
        recoverable=classify_error(error) == RECOVERABLE,
        code=error_code(error),
    )
