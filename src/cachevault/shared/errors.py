"""CacheVault Error Handling Module

This module defines the error handling system for CacheVault, providing
structured error classes with context information.

The error hierarchy follows these principles:
- One Source of Truth: All error codes are defined in ErrorCode enum
- Structured Context: ErrorContext provides additional information
- Proper Exception Chaining: Original exceptions are preserved
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from pathlib import Path
from typing import Any, Union

# Type alias for primitive context values (str, int, float, bool only)
PrimitiveContextValue = Union[str, int, float, bool]


class ErrorCode(str, Enum):
    """Error codes for CacheVault.

    This enum serves as the single source of truth for all error codes
    used throughout the package.
    """

    # File System Errors
    DIRECTORY_CREATION_FAILED = "DIRECTORY_CREATION_FAILED"

    # Validation Errors
    VALIDATION_ERROR = "VALIDATION_ERROR"

    # Cache Errors
    CACHE_READ_FAILED = "CACHE_READ_FAILED"
    CACHE_WRITE_FAILED = "CACHE_WRITE_FAILED"
    CACHE_CORRUPTED = "CACHE_CORRUPTED"
    CACHE_SERIALIZATION_ERROR = "CACHE_SERIALIZATION_ERROR"

    # Declaration Errors
    DECLARATION_ACCESS_FAILED = "DECLARATION_ACCESS_FAILED"

    # Configuration Errors
    CONFIG_ERROR = "CONFIG_ERROR"
    CONFIG_MISSING = "CONFIG_MISSING"
    CONFIG_INVALID = "CONFIG_INVALID"


def _coerce_primitives(value: Any | None) -> dict[str, PrimitiveContextValue] | None:
    """Coerce additional_data values to primitives.

    Converts Path, Enum, Decimal to primitive types.

    Args:
        value: Input dictionary or None

    Returns:
        Dictionary with primitive values only, or None

    Raises:
        TypeError: If value is not a dict or contains unconvertible types
    """
    if value is None:
        return None

    if not isinstance(value, dict):
        error_msg = f"additional_data must be dict, got {type(value).__name__}"
        raise TypeError(error_msg)

    coerced: dict[str, PrimitiveContextValue] = {}
    for key, val in value.items():
        if isinstance(val, (str, int, float, bool)):
            coerced[key] = val
        elif isinstance(val, Path):
            coerced[key] = str(val)
        elif isinstance(val, Enum):
            coerced[key] = val.value
        elif isinstance(val, Decimal):
            coerced[key] = float(val)
        elif val is None:
            continue
        else:
            error_msg = (
                f"Cannot coerce {type(val).__name__} to primitive type. "
                f"Only str, int, float, bool, Path, Enum, Decimal are allowed."
            )
            raise TypeError(error_msg)

    return coerced


@dataclass(frozen=True)
class ErrorContext:
    """Context information for errors.

    Only primitive types (str, int, float, bool) are kept in
    additional_data so the context can always be logged as JSON.
    ``None`` values are dropped during coercion.

    Attributes:
        file_path: Optional file path associated with the error
        operation: Optional operation name that caused the error
        additional_data: Optional dict with primitive values only
    """

    file_path: str | None = None
    operation: str | None = None
    additional_data: dict[str, PrimitiveContextValue] | None = None

    def __post_init__(self) -> None:
        """Coerce additional_data to primitives."""
        if self.additional_data is not None:
            coerced = _coerce_primitives(self.additional_data)
            object.__setattr__(self, "additional_data", coerced)

    def as_dict(self) -> dict[str, Any]:
        """Export the set fields as a dict for logging.

        Returns:
            Dictionary with a guaranteed additional_data key.

        Example:
            >>> ErrorContext(file_path="/test").as_dict()
            {'file_path': '/test', 'additional_data': {}}
        """
        data: dict[str, Any] = {}
        if self.file_path is not None:
            data["file_path"] = self.file_path
        if self.operation is not None:
            data["operation"] = self.operation
        data["additional_data"] = dict(self.additional_data or {})
        return data


class CacheVaultError(Exception):
    """Base exception class for all CacheVault errors."""

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        context: ErrorContext | None = None,
        original_error: Exception | None = None,
    ) -> None:
        """Initialize CacheVaultError.

        Args:
            code: Error code from ErrorCode enum
            message: Human-readable error message
            context: Additional context information
            original_error: Original exception that caused this error
        """
        self.code = code
        self.message = message
        self.context = context or ErrorContext()
        self.original_error = original_error

        super().__init__(f"{code.value}: {message}")

    def __str__(self) -> str:
        """Return string representation of the error."""
        return f"{self.code.value}: {self.message}"

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging.

        Returns:
            Dictionary with code, message, context and original_error
        """
        return {
            "code": self.code.value,
            "message": self.message,
            "context": self.context.as_dict(),
            "original_error": str(self.original_error) if self.original_error else None,
        }


class DomainError(CacheVaultError):
    """Domain-specific errors.

    Raised when cache rules are violated or persisted data does not
    match the expected shape.

    Examples:
    - Empty cache key or negative time-to-live
    - Corrupted cache file
    - Value that cannot be serialized
    """


class InfrastructureError(CacheVaultError):
    """Infrastructure-related errors.

    Raised when interacting with the file system fails.

    Examples:
    - Cache file cannot be read or written
    - Cache directory cannot be created
    """


class ApplicationError(CacheVaultError):
    """Application-level errors, typically configuration problems."""


class DeclarationAccessError(DomainError):
    """A cacheable declaration could not be read.

    The scanner records these and moves on to the next declaration.
    """

    def __init__(
        self,
        message: str,
        declaration_name: str,
        context: ErrorContext | None = None,
        original_error: Exception | None = None,
    ) -> None:
        super().__init__(
            ErrorCode.DECLARATION_ACCESS_FAILED,
            message,
            context,
            original_error,
        )
        self.declaration_name = declaration_name


# Convenience functions for common error scenarios
def create_validation_error(
    message: str,
    field: str | None = None,
    operation: str | None = None,
    original_error: Exception | None = None,
) -> DomainError:
    """Create a validation error with context."""
    additional_data: dict[str, PrimitiveContextValue] | None = (
        {"field": field} if field else None
    )
    context = ErrorContext(
        operation=operation,
        additional_data=additional_data,
    )
    return DomainError(
        ErrorCode.VALIDATION_ERROR,
        message,
        context,
        original_error,
    )


def create_cache_read_error(
    file_path: str,
    operation: str | None = None,
    original_error: Exception | None = None,
) -> InfrastructureError:
    """Create a cache read error with context."""
    context = ErrorContext(
        file_path=file_path,
        operation=operation,
        additional_data={"io_error": str(original_error)} if original_error else None,
    )
    return InfrastructureError(
        ErrorCode.CACHE_READ_FAILED,
        f"Failed to read cache file: {file_path}",
        context,
        original_error,
    )


def create_cache_write_error(
    file_path: str,
    operation: str | None = None,
    original_error: Exception | None = None,
) -> InfrastructureError:
    """Create a cache write error with context."""
    context = ErrorContext(
        file_path=file_path,
        operation=operation,
        additional_data={"io_error": str(original_error)} if original_error else None,
    )
    return InfrastructureError(
        ErrorCode.CACHE_WRITE_FAILED,
        f"Failed to write cache file: {file_path}",
        context,
        original_error,
    )


def create_config_error(
    message: str,
    config_key: str | None = None,
    code: ErrorCode = ErrorCode.CONFIG_ERROR,
    operation: str | None = None,
    original_error: Exception | None = None,
) -> ApplicationError:
    """Create a configuration error with context."""
    additional_data: dict[str, PrimitiveContextValue] | None = (
        {"config_key": config_key} if config_key else None
    )
    context = ErrorContext(
        operation=operation,
        additional_data=additional_data,
    )
    return ApplicationError(
        code,
        message,
        context,
        original_error,
    )
