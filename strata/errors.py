"""Unified exception hierarchy for Strata.

All Strata-specific exceptions inherit from StrataError, so callers can catch
one type and still inspect a machine-readable code.

Exception Hierarchy:
    StrataError (base)
    +-- ConfigurationError - Configuration and settings issues
    +-- ValidationError - Invalid arguments (unknown tier, bad priority)
    +-- CacheError - Cache write path failures
        +-- SerializationError - Value has no serialized form
        +-- CompressionError - gzip encode/decode failed
        +-- CapacityError - Value cannot fit in the target tier
        +-- DependencyCycleError - Dependencies would form a cycle

Cache failures are normally reported through ``SetResult.error`` rather than
raised to the caller; the cache is best-effort and never load-bearing.

Usage:
    from strata.errors import CacheError

    result = cache.set("report", payload)
    if not result:
        logger.warning("Not cached: %s (code: %s)", result.error, result.error.code)
"""

from __future__ import annotations

from enum import Enum
from typing import Any


class ErrorCode(str, Enum):
    """Standard error codes for Strata errors."""

    # Configuration errors (CFG_*)
    CFG_INVALID = "CFG_INVALID"
    CFG_MISSING = "CFG_MISSING"

    # Validation errors (VAL_*)
    VAL_INVALID_INPUT = "VAL_INVALID_INPUT"
    VAL_UNKNOWN_TIER = "VAL_UNKNOWN_TIER"
    VAL_UNKNOWN_PRIORITY = "VAL_UNKNOWN_PRIORITY"

    # Cache errors (CACHE_*)
    CACHE_STORAGE_FAILED = "CACHE_STORAGE_FAILED"
    CACHE_SERIALIZATION_FAILED = "CACHE_SERIALIZATION_FAILED"
    CACHE_COMPRESSION_FAILED = "CACHE_COMPRESSION_FAILED"
    CACHE_DECOMPRESSION_FAILED = "CACHE_DECOMPRESSION_FAILED"
    CACHE_CAPACITY_EXCEEDED = "CACHE_CAPACITY_EXCEEDED"
    CACHE_DEPENDENCY_CYCLE = "CACHE_DEPENDENCY_CYCLE"

    # Generic errors
    UNKNOWN = "UNKNOWN"


class StrataError(Exception):
    """Base exception for all Strata errors.

    Attributes:
        message: Human-readable error message.
        code: Machine-readable error code from ErrorCode enum.
        details: Optional additional context about the error.
        cause: Optional original exception that caused this error.
    """

    default_message: str = "An error occurred"
    default_code: ErrorCode = ErrorCode.UNKNOWN

    def __init__(
        self,
        message: str | None = None,
        *,
        code: ErrorCode | None = None,
        details: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        """Initialize a Strata error.

        Args:
            message: Human-readable error message.
            code: Error code for programmatic handling.
            details: Additional context as key-value pairs.
            cause: Original exception that caused this error.
        """
        self.message = message or self.default_message
        self.code = code or self.default_code
        self.details = details or {}
        self.cause = cause

        super().__init__(self.message)

        if cause is not None:
            self.__cause__ = cause

    def __str__(self) -> str:
        """Return human-readable representation."""
        return self.message

    def __repr__(self) -> str:
        """Return detailed representation for debugging."""
        parts = [f"{self.__class__.__name__}({self.message!r}"]
        if self.code != self.default_code:
            parts.append(f", code={self.code.value!r}")
        if self.details:
            parts.append(f", details={self.details!r}")
        if self.cause:
            parts.append(f", cause={self.cause!r}")
        parts.append(")")
        return "".join(parts)

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logs and stats payloads.

        Returns:
            Dictionary with error, code, and detail fields.
        """
        result: dict[str, Any] = {
            "error": self.__class__.__name__,
            "code": self.code.value,
            "detail": self.message,
        }
        if self.details:
            result["details"] = self.details
        return result


class ConfigurationError(StrataError):
    """Raised for configuration and settings issues."""

    default_message = "Configuration error"
    default_code = ErrorCode.CFG_INVALID

    def __init__(
        self,
        message: str | None = None,
        *,
        config_key: str | None = None,
        config_path: str | None = None,
        code: ErrorCode | None = None,
        details: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        details = details or {}
        if config_key:
            details["config_key"] = config_key
        if config_path:
            details["config_path"] = config_path
        super().__init__(message, code=code, details=details, cause=cause)


class ValidationError(StrataError):
    """Raised for invalid arguments to the cache API.

    Examples:
        - Unknown tier name
        - Unknown priority name
    """

    default_message = "Validation error"
    default_code = ErrorCode.VAL_INVALID_INPUT

    def __init__(
        self,
        message: str | None = None,
        *,
        field: str | None = None,
        value: Any = None,
        expected: str | None = None,
        code: ErrorCode | None = None,
        details: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        """Initialize a validation error.

        Args:
            message: Human-readable error message.
            field: Name of the argument that failed validation.
            value: The invalid value (will be converted to string).
            expected: Description of expected value/format.
            code: Error code for programmatic handling.
            details: Additional context as key-value pairs.
            cause: Original exception that caused this error.
        """
        details = details or {}
        if field:
            details["field"] = field
        if value is not None:
            details["value"] = str(value)
        if expected:
            details["expected"] = expected
        super().__init__(message, code=code, details=details, cause=cause)


class CacheError(StrataError):
    """Cache operation failed."""

    default_message = "Cache operation failed"
    default_code = ErrorCode.CACHE_STORAGE_FAILED

    def __init__(
        self,
        message: str | None = None,
        *,
        key: str | None = None,
        tier: str | None = None,
        code: ErrorCode | None = None,
        details: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        """Initialize a cache error.

        Args:
            message: Human-readable error message.
            key: Cache key involved in the failure.
            tier: Tier name involved in the failure.
            code: Error code for programmatic handling.
            details: Additional context as key-value pairs.
            cause: Original exception that caused this error.
        """
        details = details or {}
        if key is not None:
            details["key"] = key
        if tier is not None:
            details["tier"] = tier
        super().__init__(message, code=code, details=details, cause=cause)


class SerializationError(CacheError):
    """Value could not be turned into bytes."""

    default_message = "Value is not serializable"
    default_code = ErrorCode.CACHE_SERIALIZATION_FAILED


class CompressionError(CacheError):
    """Compressing or decompressing a payload failed."""

    default_message = "Compression failed"
    default_code = ErrorCode.CACHE_COMPRESSION_FAILED


class CapacityError(CacheError):
    """Value is larger than the tier can ever hold."""

    default_message = "Value exceeds tier capacity"
    default_code = ErrorCode.CACHE_CAPACITY_EXCEEDED


class DependencyCycleError(CacheError):
    """Declared dependencies would make cascade deletion cyclic."""

    default_message = "Dependency cycle detected"
    default_code = ErrorCode.CACHE_DEPENDENCY_CYCLE


def unknown_tier(value: Any) -> ValidationError:
    """Create a ValidationError for a tier name that does not exist."""
    return ValidationError(
        f"Unknown cache tier: {value!r}",
        field="tier",
        value=value,
        expected="one of: hot, warm, cold",
        code=ErrorCode.VAL_UNKNOWN_TIER,
    )


def unknown_priority(value: Any) -> ValidationError:
    """Create a ValidationError for a priority name that does not exist."""
    return ValidationError(
        f"Unknown priority: {value!r}",
        field="priority",
        value=value,
        expected="one of: low, normal, high",
        code=ErrorCode.VAL_UNKNOWN_PRIORITY,
    )


__all__ = [
    "CacheError",
    "CapacityError",
    "CompressionError",
    "ConfigurationError",
    "DependencyCycleError",
    "ErrorCode",
    "SerializationError",
    "StrataError",
    "ValidationError",
    "unknown_priority",
    "unknown_tier",
]
