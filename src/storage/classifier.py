# src/storage/classifier.py — v2
"""Recoverable/fatal classification of upload failures.

Structured signals are inspected first: ``TransferError.recoverable``,
botocore ``ClientError`` codes and HTTP status, botocore exception types and
Python's network exception types. The exception chain (``__cause__`` /
``__context__``) is walked so wrapped SDK errors are still recognised.

Only when no structured signal exists does ``classify_error`` fall back to
matching known error codes and phrases in the message. That fallback is
best-effort: unknown failures are treated as recoverable and are bounded by
the retry policy's ``max_tries``.
"""

from __future__ import annotations

import logging
import re
from typing import Literal

from botocore import exceptions as botocore_exceptions

from bucketsync.core.errors import TransferError

logger = logging.getLogger(__name__)

ErrorClass = Literal["recoverable", "fatal"]

RECOVERABLE = "recoverable"
FATAL = "fatal"

RECOVERABLE_CODES: frozenset[str] = frozenset({
    "RequestTimeout",
    "RequestTimeoutException",
    "Throttling",
    "ThrottlingException",
    "ThrottledException",
    "RequestThrottled",
    "RequestThrottledException",
    "TooManyRequestsException",
    "SlowDown",
    "RequestLimitExceeded",
    "BandwidthLimitExceeded",
    "ProvisionedThroughputExceededException",
    "InternalError",
    "ServiceUnavailable",
    "PriorRequestNotComplete",
    "OperationAborted",
})

FATAL_CODES: frozenset[str] = frozenset({
    "AccessDenied",
    "AllAccessDisabled",
    "AccountProblem",
    "InvalidAccessKeyId",
    "SignatureDoesNotMatch",
    "InvalidToken",
    "ExpiredToken",
    "NoSuchBucket",
    "NoSuchKey",
    "InvalidBucketName",
    "InvalidRequest",
    "InvalidArgument",
    "MalformedXML",
    "MissingContentLength",
    "EntityTooLarge",
    "KeyTooLongError",
    "MethodNotAllowed",
    "InvalidStorageClass",
    "InvalidEncryptionAlgorithmError",
    "CompressionFailed",
})

_RECOVERABLE_TYPES: tuple[type[BaseException], ...] = (
    botocore_exceptions.ConnectionError,
    botocore_exceptions.HTTPClientError,
    ConnectionError,
    TimeoutError,
)

_FATAL_TYPES: tuple[type[BaseException], ...] = (
    botocore_exceptions.NoCredentialsError,
    botocore_exceptions.PartialCredentialsError,
    botocore_exceptions.NoRegionError,
    botocore_exceptions.ParamValidationError,
    botocore_exceptions.ProfileNotFound,
    UnicodeError,
)

_RECOVERABLE_PHRASES = (
    "timed out",
    "timeout",
    "connection reset",
    "connection aborted",
    "connection refused",
    "broken pipe",
    "idle connections will be closed",
    "no such host",
    "temporarily unavailable",
    "try again",
    "slow down",
    "throttl",
    "rate exceeded",
)

_FATAL_PHRASES = (
    "access denied",
    "forbidden",
    "not authorized",
    "does not exist",
    "invalid access key",
    "signature does not match",
)

_TOKEN_RE = re.compile(r"[A-Za-z]+")


def classify_error(error: BaseException) -> ErrorClass:
    """Classify an upload failure as ``"recoverable"`` or ``"fatal"``."""
    structured = _classify_structured(error)
    if structured is not None:
        return structured
    return _classify_text(str(error))


def is_recoverable(error: BaseException) -> bool:
    return classify_error(error) == RECOVERABLE


def error_code(error: BaseException) -> str | None:
    """Structured error code carried by the error or its chain, if any."""
    for exc in _chain(error):
        if isinstance(exc, TransferError) and exc.code:
            return exc.code
        if isinstance(exc, botocore_exceptions.ClientError):
            return exc.response.get("Error", {}).get("Code") or None
    return None


def classify_client_error(error: botocore_exceptions.ClientError) -> ErrorClass:
    """Classify by service error code, then by HTTP status."""
    code = error.response.get("Error", {}).get("Code", "")
    if code in RECOVERABLE_CODES:
        return RECOVERABLE
    if code in FATAL_CODES:
        return FATAL

    status = error.response.get("ResponseMetadata", {}).get("HTTPStatusCode")
    try:
        status = int(status) if status is not None else None
    except (TypeError, ValueError):
        status = None
    if status is None and code.isdigit():
        status = int(code)
    if status is None:
        return RECOVERABLE
    if status in (408, 429) or status >= 500:
        return RECOVERABLE
    if 400 <= status < 500:
        return FATAL
    return RECOVERABLE


def _classify_structured(error: BaseException) -> ErrorClass | None:
    for exc in _chain(error):
        if isinstance(exc, TransferError):
            return RECOVERABLE if exc.recoverable else FATAL
        if isinstance(exc, botocore_exceptions.ClientError):
            return classify_client_error(exc)
        if isinstance(exc, _FATAL_TYPES):
            return FATAL
        if isinstance(exc, _RECOVERABLE_TYPES):
            return RECOVERABLE
        if isinstance(exc, OSError):
            # Local I/O: the file vanished, is unreadable, or similar.
            return FATAL
    return None


def _classify_text(message: str) -> ErrorClass:
    tokens = set(_TOKEN_RE.findall(message))
    if tokens & FATAL_CODES:
        return FATAL
    if tokens & RECOVERABLE_CODES:
        return RECOVERABLE

    lowered = message.lower()
    if any(phrase in lowered for phrase in _FATAL_PHRASES):
        return FATAL
    if any(phrase in lowered for phrase in _RECOVERABLE_PHRASES):
        return RECOVERABLE

    logger.debug("Unclassified upload error, assuming recoverable: %s", message)
    return RECOVERABLE


def _chain(error: BaseException):
    seen: set[int] = set()
    current: BaseException | None = error
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        yield current
        current = current.__cause__ or current.__context__
