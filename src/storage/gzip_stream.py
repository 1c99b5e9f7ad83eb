# src/storage/gzip_stream.py — v1
"""Read-side gzip compression of a byte stream.

``GzipStream`` wraps a readable binary file and yields gzip-framed bytes as it
is read, one source chunk at a time, so neither the whole file nor its
compressed copy is ever held in memory or written to disk.
"""

from __future__ import annotations

import io
import zlib
from typing import BinaryIO

from bucketsync.core.errors import TransferError

DEFAULT_CHUNK_SIZE = 64 * 1024
_GZIP_WBITS = 16 + zlib.MAX_WBITS


class GzipStream(io.RawIOBase):
    """Readable, non-seekable stream of the gzip-compressed source bytes.

    Read errors from the source propagate unchanged; compressor failures are
    raised as fatal ``TransferError``.
    """

    def __init__(
        self,
        source: BinaryIO,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        compresslevel: int = 9,
    ) -> None:
        super().__init__()
        self._source = source
        self._chunk_size = chunk_size
        self._compressor = zlib.compressobj(compresslevel, zlib.DEFLATED, _GZIP_WBITS)
        self._buffer = bytearray()
        self._eof = False
        self.bytes_in = 0
        self.bytes_out = 0

    def readable(self) -> bool:
        return True

    def readinto(self, b) -> int:  # type: ignore[override]
        wanted = len(b)
        while len(self._buffer) < wanted and not self._eof:
            self._fill()
        n = min(wanted, len(self._buffer))
        b[:n] = self._buffer[:n]
        del self._buffer[:n]
        self.bytes_out += n
        return n

    def _fill(self) -> None:
        chunk = self._source.read(self._chunk_size)
        try:
            if chunk:
                self.bytes_in += len(chunk)
                self._buffer += self._compressor.compress(chunk)
            else:
                self._buffer += self._compressor.flush()
                self._eof = True
        except zlib.error as e:
            raise TransferError(
                f"compression error: {e}", recoverable=False, code="CompressionFailed",
            ) from e

    def close(self) -> None:
        if not self.closed:
            try:
                self._source.close()
            finally:
                super().close()
