from __future__ import annotations

import gzip
import logging
import zlib

from .errors import CompressionError


logger = logging.getLogger(__name__)

GZIP_MAGIC = b"\x1f\x8b"


def compress(data: bytes, *, level: int = 9) -> bytes:
    """Gzip `data` in one shot.

    `mtime=0` keeps the output a pure function of the input and level.
    """
    if not 0 <= level <= 9:
        raise ValueError("level must be between 0 and 9")
    out = gzip.compress(bytes(data), compresslevel=level, mtime=0)
    logger.debug("compressed %d -> %d bytes (level=%d)", len(data), len(out), level)
    return out


def decompress(data: bytes) -> bytes:
    """
    Inverse of `compress`.

    Raises CompressionError on empty input, a missing gzip header, a truncated
    stream or a CRC/length mismatch.
    """
    if not data:
        raise CompressionError("Compressed stream is empty")
    if bytes(data[:2]) != GZIP_MAGIC:
        raise CompressionError("Missing gzip header")
    try:
        out = gzip.decompress(bytes(data))
    except (OSError, EOFError, zlib.error) as exc:
        # BadGzipFile (an OSError) covers bad headers and CRC/length mismatches
        raise CompressionError(f"Malformed gzip stream: {exc}") from exc
    logger.debug("decompressed %d -> %d bytes", len(data), len(out))
    return out


__all__ = ["compress", "decompress"]
