"""gzip codec for warm and cold tier payloads.

Compressed payloads carry a two-byte ``GZ`` marker so they can be recognised
without external metadata:

    b"GZ" + gzip(JSON text or raw bytes)
"""

from __future__ import annotations

import gzip
import json
import logging
import zlib
from typing import Any

import numpy as np

from strata.cache.serialization import is_bytes_like, to_json_bytes
from strata.cache.tiers import CacheTier
from strata.errors import CompressionError, ErrorCode

logger = logging.getLogger(__name__)

MAGIC = b"GZ"


def is_compressed(value: Any) -> bool:
    """Check if a value is a marked compressed payload."""
    return is_bytes_like(value) and len(value) > len(MAGIC) and bytes(value[:2]) == MAGIC


class CompressionCodec:
    """Compresses values above a size threshold for the slower tiers."""

    def __init__(self, enabled: bool = True, threshold_bytes: int = 1024, level: int = 6) -> None:
        """Initialize codec.

        Args:
            enabled: When False, should_compress always returns False.
            threshold_bytes: Minimum value size worth compressing.
            level: gzip compression level.
        """
        self.enabled = enabled
        self.threshold_bytes = threshold_bytes
        self.level = level

    def should_compress(self, value: Any, size_bytes: int, target_tier: CacheTier) -> bool:
        """Decide whether a value bound for ``target_tier`` gets compressed."""
        if not self.enabled or target_tier == CacheTier.HOT:
            return False
        if size_bytes < self.threshold_bytes:
            return False
        if isinstance(value, np.ndarray):
            # Arrays keep their dtype and shape only when stored raw
            return False
        return not is_compressed(value)

    def compress(self, value: Any) -> bytes:
        """Serialize (if needed) and gzip a value, prefixed with the marker.

        Raises:
            SerializationError: If a non-binary value is not JSON-compatible.
            CompressionError: If gzip fails.
        """
        data = bytes(value) if is_bytes_like(value) else to_json_bytes(value)
        try:
            return MAGIC + gzip.compress(data, compresslevel=self.level)
        except (OSError, ValueError, zlib.error) as e:
            raise CompressionError(f"gzip failed for {len(data)} bytes", cause=e) from e

    def decompress(self, data: bytes, as_bytes: bool = False) -> Any:
        """Strip the marker and gunzip a payload.

        Args:
            data: Payload produced by compress().
            as_bytes: Return the raw decompressed bytes without trying JSON.

        Returns:
            Parsed JSON value, or the decompressed bytes if parsing fails.

        Raises:
            CompressionError: If the payload is not a valid compressed value.
        """
        if not is_compressed(data):
            raise CompressionError(
                "Payload is missing the compression marker",
                code=ErrorCode.CACHE_DECOMPRESSION_FAILED,
            )
        try:
            raw = gzip.decompress(bytes(data[len(MAGIC) :]))
        except (OSError, EOFError, zlib.error) as e:
            raise CompressionError(
                "gunzip failed", code=ErrorCode.CACHE_DECOMPRESSION_FAILED, cause=e
            ) from e

        if as_bytes:
            return raw
        try:
            return json.loads(raw)
        except (UnicodeDecodeError, json.JSONDecodeError):
            return raw

    def is_compressed(self, value: Any) -> bool:
        return is_compressed(value)
