"""Size, canonical form and content hash of cache values."""

from __future__ import annotations

import hashlib
import json
import logging
import struct
from typing import Any

import numpy as np

from strata.errors import SerializationError

logger = logging.getLogger(__name__)

# Size assumed for values with no serialized form
DEFAULT_SIZE_ESTIMATE = 1024

_BYTES_TYPES = (bytes, bytearray, memoryview)


def is_bytes_like(value: Any) -> bool:
    """Return True for raw binary payloads."""
    return isinstance(value, _BYTES_TYPES)


def to_json_bytes(value: Any, sort_keys: bool = False) -> bytes:
    """Serialize a value to compact JSON text.

    Args:
        value: JSON-compatible value.
        sort_keys: Sort dict keys so equal mappings serialize identically.

    Returns:
        UTF-8 encoded JSON, in insertion order unless ``sort_keys`` is set.

    Raises:
        SerializationError: If the value is not JSON-compatible.
    """
    try:
        return json.dumps(
            value, separators=(",", ":"), ensure_ascii=False, sort_keys=sort_keys
        ).encode()
    except (TypeError, ValueError) as e:
        raise SerializationError(
            f"Cannot serialize value of type {type(value).__name__}", cause=e
        ) from e


def serialize_value(value: Any) -> tuple[bytes, str]:
    """Serialize a value to canonical bytes.

    Args:
        value: Value to serialize.

    Returns:
        Tuple of (serialized bytes, type string).

    Raises:
        SerializationError: If the value has no canonical form.
    """
    if isinstance(value, np.ndarray):
        buffer = value.tobytes()
        shape_bytes = struct.pack(f"{len(value.shape)}I", *value.shape)
        dtype_bytes = str(value.dtype).encode()
        header = struct.pack("II", len(shape_bytes), len(dtype_bytes))
        return header + shape_bytes + dtype_bytes + buffer, "numpy"
    elif is_bytes_like(value):
        return bytes(value), "bytes"
    elif isinstance(value, str):
        return value.encode(), "str"
    else:
        return to_json_bytes(value, sort_keys=True), "json"


def calculate_size(value: Any) -> int:
    """Estimate the serialized size of a value in bytes.

    Falls back to DEFAULT_SIZE_ESTIMATE for values that cannot be serialized.
    """
    if isinstance(value, np.ndarray):
        return int(value.nbytes)
    elif is_bytes_like(value):
        return len(value)
    elif isinstance(value, str):
        return len(value.encode())
    try:
        return len(to_json_bytes(value))
    except SerializationError:
        return DEFAULT_SIZE_ESTIMATE


def calculate_hash(value: Any) -> str | None:
    """SHA-256 of a value's canonical form, tagged by type.

    Returns:
        Hex digest, or None if the value has no canonical form (such values
        are never deduplicated).
    """
    try:
        data, value_type = serialize_value(value)
    except SerializationError:
        logger.debug("No content hash for value of type %s", type(value).__name__)
        return None
    digest = hashlib.sha256()
    digest.update(value_type.encode())
    digest.update(b"\x00")
    digest.update(data)
    return digest.hexdigest()
