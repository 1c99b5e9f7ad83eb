# src/sync/pipeline.py — v1
"""Bounded worker pool that uploads changed files with retry and backoff.

Per-item state machine::

    PENDING -> IN_FLIGHT -> SUCCEEDED
                         -> RETRYING -> PENDING   (recoverable, tries left)
                         -> REJECTED              (fatal, or tries exhausted)

Completion is tracked by a counter of items not yet in a terminal state,
never by the queue being empty: a retried item is off the queue while its
backoff delay runs.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import threading
from collections.abc import Sequence
from dataclasses import dataclass, field
from pathlib import Path

from bucketsync.config.settings import Settings, default_workers
from bucketsync.headers.resolver import HeaderResolver
from bucketsync.logging.context import set_worker_context
from bucketsync.storage.base_store_client import BaseStoreClient
from bucketsync.storage.classifier import FATAL, classify_error
from bucketsync.storage.gzip_stream import GzipStream
from bucketsync.storage.models import StoreRequest, StoreResult
from bucketsync.sync.models import ItemState, UploadReport, WorkItem
from bucketsync.sync.rejection_log import RejectionLog
from bucketsync.sync.retry import DelayQueue, RetryPolicy

logger = logging.getLogger(__name__)

_STOP = object()


@dataclass
class PipelineContext:
    """Everything one pipeline run needs, passed in explicitly."""

    root: Path
    bucket: str
    client: BaseStoreClient
    resolver: HeaderResolver = field(default_factory=HeaderResolver)
    key_prefix: str = ""
    workers: int = field(default_factory=default_workers)
    queue_size: int = 0
    retry: RetryPolicy = field(default_factory=RetryPolicy)

    @classmethod
    def from_settings(
        cls, settings: Settings, client: BaseStoreClient,
    ) -> PipelineContext:
        return cls(
            root=Path(settings.source),
            bucket=settings.bucket_name,
            client=client,
            resolver=HeaderResolver(settings.header_rules, encrypt=settings.encrypt),
            key_prefix=settings.key_prefix,
            workers=settings.workers_count,
            queue_size=settings.effective_queue_size,
            retry=RetryPolicy(
                max_tries=settings.max_tries,
                base_delay_s=settings.retry_base_delay_s,
                jitter=settings.retry_jitter,
                max_pending=settings.max_pending_retries,
            ),
        )


class UploadPipeline:
    """Upload a list of relative paths with W concurrent workers.

    A pipeline instance runs once. ``cancel()`` may be called from the event
    loop while ``run()`` is in progress.
    """

    def __init__(self, context: PipelineContext) -> None:
        self._ctx = context
        self.rejections = RejectionLog()
        self._lock = threading.Lock()
        self._outstanding = 0
        self._done: asyncio.Event | None = None
        self._queue: asyncio.Queue | None = None
        self._delays: DelayQueue[WorkItem] | None = None
        self._cancelled = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    async def run(self, paths: Sequence[str]) -> UploadReport:
        """Upload ``paths`` in the given order; return once all are terminal."""
        items = [WorkItem(path=p) for p in paths]
        if not items:
            return UploadReport()

        workers = max(1, min(self._ctx.workers, len(items)))
        self._queue = asyncio.Queue(maxsize=self._ctx.queue_size or workers * 2)
        self._done = asyncio.Event()
        self._outstanding = len(items)
        self._delays = DelayQueue(self._requeue, max_pending=self._ctx.retry.max_pending)
        self._delays.start()

        logger.info(
            "Uploading %d files to '%s' with %d workers",
            len(items), self._ctx.bucket, workers,
        )
        tasks = [
            asyncio.create_task(self._worker(f"worker-{i}"), name=f"bucketsync-worker-{i}")
            for i in range(workers)
        ]
        seeder = asyncio.create_task(self._seed(items), name="bucketsync-seeder")

        try:
            await self._done.wait()
        finally:
            seeder.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await seeder
            for _ in tasks:
                await self._queue.put(_STOP)
            await asyncio.gather(*tasks)
            await self._delays.close()

        return self._report(items)

    def cancel(self) -> None:
        """Stop seeding, drop scheduled retries, let in-flight uploads finish."""
        if self._cancelled:
            return
        self._cancelled = True
        logger.warning("Cancellation requested, finishing in-flight uploads")
        if self._delays is not None:
            for item in self._delays.drain():
                self._settle(item, ItemState.CANCELLED)

    async def _seed(self, items: list[WorkItem]) -> None:
        assert self._queue is not None
        for index, item in enumerate(items):
            if self._cancelled:
                for unseeded in items[index:]:
                    self._settle(unseeded, ItemState.CANCELLED)
                return
            await self._queue.put(item)

    async def _requeue(self, item: WorkItem) -> None:
        assert self._queue is not None
        if self._cancelled:
            self._settle(item, ItemState.CANCELLED)
            return
        item.state = ItemState.PENDING
        await self._queue.put(item)

    async def _worker(self, name: str) -> None:
        assert self._queue is not None
        while True:
            item = await self._queue.get()
            if item is _STOP:
                return
            set_worker_context(name, item.path)
            if self._cancelled:
                self._settle(item, ItemState.CANCELLED)
                continue

            item.state = ItemState.IN_FLIGHT
            item.calls += 1
            try:
                result = await self._attempt(item)
            except Exception as e:
                self._on_failure(item, e)
            else:
                logger.info("Uploaded %s -> %s", item.path, result.location)
                self._settle(item, ItemState.SUCCEEDED)

    async def _attempt(self, item: WorkItem) -> StoreResult:
        """Open the file, optionally gzip it on the fly, and call the store."""
        if item.headers is None:
            item.headers = self._ctx.resolver.resolve(item.path)
        headers = item.headers

        with contextlib.ExitStack() as stack:
            body = stack.enter_context((self._ctx.root / item.path).open("rb"))
            if headers.should_compress:
                body = stack.enter_context(GzipStream(body))
            request = StoreRequest(
                bucket=self._ctx.bucket,
                key=f"{self._ctx.key_prefix}{item.path}",
                body=body,
                content_type=self._ctx.resolver.content_type(item.path),
                headers=headers,
            )
            return await self._ctx.client.upload(request)

    def _on_failure(self, item: WorkItem, error: Exception) -> None:
        assert self._delays is not None
        item.attempts += 1
        item.last_error = str(error)
        policy = self._ctx.retry

        if classify_error(error) == FATAL:
            self._reject(item, f"fatal: {error}")
            return
        if policy.exhausted(item.attempts):
            self._reject(item, f"gave up after {item.attempts} attempts: {error}")
            return
        if self._cancelled:
            self._settle(item, ItemState.CANCELLED)
            return

        delay = policy.delay_for(item.attempts)
        item.state = ItemState.RETRYING
        if not self._delays.schedule(item, delay):
            self._reject(item, f"retry queue full: {error}")
            return
        item.backoff_delays.append(delay)
        logger.warning(
            "Retrying %s in %.3fs (attempt %d/%d): %s",
            item.path, delay, item.attempts, policy.max_tries, error,
        )

    def _reject(self, item: WorkItem, reason: str) -> None:
        self.rejections.add(item.path, reason)
        logger.error("Failed to upload %s: %s", item.path, reason)
        self._settle(item, ItemState.REJECTED)

    def _settle(self, item: WorkItem, state: ItemState) -> None:
        """Move an item to a terminal state and count it as done."""
        if item.state.terminal:
            return
        item.state = state
        with self._lock:
            self._outstanding -= 1
            finished = self._outstanding == 0
        if finished and self._done is not None:
            self._done.set()

    def _report(self, items: list[WorkItem]) -> UploadReport:
        report = UploadReport()
        for item in items:
            report.calls[item.path] = item.calls
            if item.backoff_delays:
                report.retry_delays[item.path] = list(item.backoff_delays)
            if item.state is ItemState.SUCCEEDED:
                report.uploaded.append(item.path)
            elif item.state is ItemState.CANCELLED:
                report.cancelled.append(item.path)
        report.rejected = self.rejections.reasons()
        logger.info(
            "Done uploading: %d uploaded, %d rejected, %d cancelled",
            len(report.uploaded), len(report.rejected), len(report.cancelled),
        )
        return report
