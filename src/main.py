# src/main.py — v3
"""CLI entry point: sync and version commands.

Usage:
    bucketsync sync [--source DIR] [--bucket NAME] [options]
    bucketsync version
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from bucketsync.version import __version__

logger = logging.getLogger(__name__)

# Exit codes
EXIT_SUCCESS = 0
EXIT_SETUP_FAILED = 1
EXIT_SCAN_FAILED = 2
EXIT_REJECTIONS = 3
EXIT_CACHE_FAILED = 4
EXIT_INTERRUPTED = 130

_STATUS_EXIT_CODES = {
    "nothing_to_do": EXIT_SUCCESS,
    "completed": EXIT_SUCCESS,
    "completed_with_rejections": EXIT_REJECTIONS,
    "interrupted": EXIT_INTERRUPTED,
    "cache_write_failed": EXIT_CACHE_FAILED,
}


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    if not hasattr(args, "func"):
        parser.print_help()
        return EXIT_SETUP_FAILED

    try:
        return args.func(args)
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return EXIT_INTERRUPTED


def _build_parser() -> argparse.ArgumentParser:
    """Build CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="bucketsync",
        description=f"bucketsync v{__version__}: incremental directory sync to S3",
    )
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true",
        help="Enable debug logging",
    )
    parser.add_argument(
        "-q", "--quiet", action="store_true",
        help="Print only warnings and errors",
    )
    parser.add_argument(
        "--log-format", choices=["json", "text"], default=None,
        help="Log output format (default: from settings)",
    )

    subparsers = parser.add_subparsers(dest="command")

    # --- sync ---
    p_sync = subparsers.add_parser(
        "sync", help="Upload files changed since the last run",
    )
    p_sync.add_argument("--source", type=Path, help="Source folder to upload")
    p_sync.add_argument("--bucket", dest="bucket_name", help="Bucket to upload to")
    p_sync.add_argument("--prefix", dest="key_prefix", help="Key prefix inside the bucket")
    p_sync.add_argument("--cache-file", type=Path, help="Location of the cache file")
    p_sync.add_argument("--workers", dest="workers_count", type=int, help="No. of upload workers")
    p_sync.add_argument("--max-tries", type=int, help="Attempts per file before giving up")
    p_sync.add_argument("--region", help="AWS region")
    p_sync.add_argument("--profile", help="AWS shared profile")
    p_sync.add_argument("--endpoint-url", help="Custom S3-compatible endpoint")
    p_sync.add_argument(
        "--exclude", help="Comma-separated glob patterns to skip",
    )
    p_sync.add_argument(
        "--encrypt", action="store_true", default=None,
        help="Encrypt files on server side",
    )
    p_sync.add_argument(
        "--dry-run", action="store_true", default=None,
        help="Do not upload or update the cache",
    )
    p_sync.add_argument(
        "--no-upload", dest="do_upload", action="store_false", default=None,
        help="Skip uploading (only refresh the cache)",
    )
    p_sync.add_argument(
        "--no-cache", dest="do_cache", action="store_false", default=None,
        help="Do not update the cache",
    )
    p_sync.add_argument(
        "--trust-mtime", action="store_true", default=None,
        help="Skip hashing files whose size and mtime are unchanged",
    )
    p_sync.set_defaults(func=_cmd_sync)

    # --- version ---
    p_version = subparsers.add_parser("version", help="Print version information")
    p_version.set_defaults(func=_cmd_version)

    return parser


_OVERRIDE_FIELDS = (
    "source", "bucket_name", "key_prefix", "cache_file", "workers_count",
    "max_tries", "region", "profile", "endpoint_url", "exclude", "encrypt",
    "dry_run", "do_upload", "do_cache", "trust_mtime",
)


def _collect_overrides(args: argparse.Namespace) -> dict[str, Any]:
    """Flags given on the command line override settings from the environment."""
    overrides: dict[str, Any] = {}
    for name in _OVERRIDE_FIELDS:
        value = getattr(args, name, None)
        if value is not None:
            overrides[name] = value
    if args.log_format:
        overrides["log_format"] = args.log_format
    if args.verbose:
        overrides["log_level"] = "DEBUG"
    elif args.quiet:
        overrides["log_level"] = "WARNING"
    return overrides


def _cmd_sync(args: argparse.Namespace) -> int:
    """Execute one sync run and map its outcome to an exit code."""
    from bucketsync.config.settings import ConfigurationError, load_settings
    from bucketsync.core.errors import ScanError
    from bucketsync.logging.logger import setup_logging
    from bucketsync.sync.runner import run_sync

    try:
        settings = load_settings(**_collect_overrides(args))
    except (ConfigurationError, ValidationError) as exc:
        print(f"Invalid configuration: {exc}", file=sys.stderr)
        return EXIT_SETUP_FAILED

    setup_logging(
        level=settings.log_level,
        log_format=settings.log_format,
        log_file=str(settings.log_file) if settings.log_file else None,
        rotation=settings.log_rotation,
        retention=settings.log_retention,
    )

    try:
        outcome = asyncio.run(run_sync(settings, install_signal_handlers=True))
    except ScanError as exc:
        logger.error("%s", exc)
        return EXIT_SCAN_FAILED
    except Exception as exc:
        logger.error("Fatal error: %s", exc, exc_info=args.verbose)
        return EXIT_SETUP_FAILED

    _print_outcome_summary(outcome)
    return _STATUS_EXIT_CODES[outcome.status]


def _cmd_version(args: argparse.Namespace) -> int:
    print(f"bucketsync version {__version__}")
    return EXIT_SUCCESS


def _print_outcome_summary(outcome: Any) -> None:
    print(f"\nSync {outcome.status.replace('_', ' ')}:")
    print(f"  Changed:    {len(outcome.changed)}")
    print(f"  Uploaded:   {len(outcome.uploaded)}")
    print(f"  Rejected:   {len(outcome.rejected)}")
    if outcome.cancelled:
        print(f"  Cancelled:  {len(outcome.cancelled)}")
    if outcome.dry_run:
        print("  (dry run: nothing uploaded, cache untouched)")
    if outcome.cache_error:
        print(f"  Cache:      NOT written ({outcome.cache_error})")
    print(f"  Duration:   {outcome.duration_seconds:.1f}s")


if __name__ == "__main__":
    sys.exit(main())
