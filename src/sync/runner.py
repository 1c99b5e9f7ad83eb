# src/sync/runner.py — v2
"""One sync run: scan, diff, upload, then finalize the cache.

``run_uploads()`` and ``finalize_cache()`` are the two phases; the completion
barrier between them is the pipeline returning. The only state passed from
one to the other is the ``RunOutcome``.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import signal
import time
import uuid
from collections.abc import Callable, Sequence
from pathlib import Path, PurePosixPath
from typing import Any

from bucketsync.cache.fingerprint_cache import FingerprintCache
from bucketsync.cache.models import FingerprintSet
from bucketsync.config.settings import Settings
from bucketsync.core.errors import CacheCorruptError, CacheWriteError
from bucketsync.logging.context import set_run_context
from bucketsync.storage.base_store_client import BaseStoreClient
from bucketsync.storage.client_factory import create_store_client
from bucketsync.storage.dry_run_client import DryRunStoreClient
from bucketsync.sync.models import RunOutcome, UploadReport
from bucketsync.sync.pipeline import PipelineContext, UploadPipeline

logger = logging.getLogger(__name__)


async def run_uploads(
    pipeline: UploadPipeline,
    paths: Sequence[str],
    outcome: RunOutcome,
) -> UploadReport:
    """Upload phase: run the pipeline to completion and record the result."""
    report = await pipeline.run(paths)
    outcome.apply_report(report)
    return report


def finalize_cache(
    outcome: RunOutcome,
    current: FingerprintSet,
    cache_path: Path,
    do_cache: bool = True,
) -> RunOutcome:
    """Cache phase: persist ``current`` minus everything not uploaded.

    A write failure is recorded on the outcome (status ``cache_write_failed``)
    instead of being raised: uploads that succeeded stay uploaded, and the next
    run only re-checks them.
    """
    if not do_cache:
        logger.info("Skipping cache.")
        return outcome
    if outcome.dry_run:
        logger.info("Pretending to update cache.")
        return outcome

    excluded = set(outcome.rejected) | set(outcome.cancelled)
    final = FingerprintCache.reject(current, excluded)
    try:
        FingerprintCache.dump(final, cache_path)
    except CacheWriteError as e:
        logger.error("Caching failed: %s", e)
        outcome.cache_error = str(e)
        return outcome

    outcome.cache_written = True
    logger.info("Done updating cache (%d entries).", len(final))
    return outcome


async def run_sync(
    settings: Settings,
    client: BaseStoreClient | None = None,
    install_signal_handlers: bool = False,
) -> RunOutcome:
    """Execute one full sync run.

    Scanning and the cache write run in worker threads so the event loop
    stays free for signal handling.

    Args:
        settings: Run settings.
        client: Store client override; defaults to the configured client.
        install_signal_handlers: Cancel the pipeline on SIGINT/SIGTERM.

    Raises:
        ScanError: If the source tree cannot be fingerprinted. Nothing is
            uploaded and the cache is not touched.
    """
    t0 = time.perf_counter()
    set_run_context(uuid.uuid4().hex[:12])

    source = Path(settings.source)
    cache_path = Path(settings.cache_file)
    outcome = RunOutcome(source=str(source), dry_run=settings.dry_run)

    try:
        old = await asyncio.to_thread(FingerprintCache.load, cache_path)
    except CacheCorruptError as e:
        logger.warning("%s; treating cache as empty (full re-upload)", e)
        old = FingerprintSet()
        outcome.cache_corrupt = True

    cache = FingerprintCache(
        trust_mtime=settings.trust_mtime,
        exclude=settings.exclude_list,
        ignore=_cache_file_filter(source, cache_path),
    )
    current = await asyncio.to_thread(cache.compute_current, source, old)
    outcome.changed = cache.diff(current, old)

    if not outcome.changed:
        logger.info("Nothing to upload.")
        outcome.duration_seconds = round(time.perf_counter() - t0, 3)
        return outcome

    logger.info(
        "There are %d files to be uploaded to '%s'",
        len(outcome.changed), settings.bucket_name,
    )

    if settings.do_upload:
        if settings.dry_run:
            client = DryRunStoreClient()
        elif client is None:
            client = create_store_client(settings)
        pipeline = UploadPipeline(PipelineContext.from_settings(settings, client))
        with _cancel_on_signals(pipeline, enabled=install_signal_handlers):
            await run_uploads(pipeline, outcome.changed, outcome)
        outcome.interrupted = pipeline.cancelled
    else:
        logger.info("Skipping upload")
        outcome.upload_skipped = True

    await asyncio.to_thread(
        finalize_cache, outcome, current, cache_path, settings.do_cache,
    )

    outcome.duration_seconds = round(time.perf_counter() - t0, 3)
    logger.info(
        "All done: status=%s changed=%d uploaded=%d rejected=%d in %.1fs",
        outcome.status, len(outcome.changed), len(outcome.uploaded),
        len(outcome.rejected), outcome.duration_seconds,
        extra={"data": _summary_data(outcome)},
    )
    return outcome


def sync(settings: Settings, client: BaseStoreClient | None = None) -> RunOutcome:
    """Blocking convenience wrapper around ``run_sync``."""
    return asyncio.run(run_sync(settings, client))


def _cache_file_filter(
    source: Path, cache_path: Path,
) -> Callable[[str], bool] | None:
    """Match the cache file and its temp files when it lives inside the source
    tree. Names are compared literally, never as globs."""
    try:
        rel = cache_path.resolve().relative_to(source.resolve())
    except ValueError:
        return None
    cache_rel = PurePosixPath(rel.as_posix())
    tmp_prefix = f".{cache_rel.name}."

    def is_cache_file(path: str) -> bool:
        candidate = PurePosixPath(path)
        if candidate == cache_rel:
            return True
        return (
            candidate.parent == cache_rel.parent
            and candidate.name.startswith(tmp_prefix)
            and candidate.name.endswith(".tmp")
        )

    return is_cache_file


def _summary_data(outcome: RunOutcome) -> dict[str, Any]:
    data = outcome.model_dump(exclude={"changed", "uploaded"})
    data["status"] = outcome.status
    data["changed"] = len(outcome.changed)
    data["uploaded"] = len(outcome.uploaded)
    return data


@contextlib.contextmanager
def _cancel_on_signals(pipeline: UploadPipeline, enabled: bool):
    if not enabled:
        yield
        return

    loop = asyncio.get_running_loop()
    installed: list[signal.Signals] = []
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, pipeline.cancel)
        except (NotImplementedError, RuntimeError):
            continue
        installed.append(sig)
    try:
        yield
    finally:
        for sig in installed:
            loop.remove_signal_handler(sig)
