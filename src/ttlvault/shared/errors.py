"""TTLVault Error Handling Module

This module defines the error handling system for TTLVault, providing
structured error classes with context information.

The error hierarchy follows these principles:
- One Source of Truth: All error codes are defined in ErrorCode enum
- Structured Context: ErrorContext provides additional information
- Proper Exception Chaining: Original exceptions are preserved
- Logical outcomes (cache miss, rename target exists) are return values,
  never exceptions
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from pathlib import Path
from typing import Any, Union

# Type alias for primitive context values (str, int, float, bool only)
PrimitiveContextValue = Union[str, int, float, bool]

# Default keys to mask in safe_dict
SAFE_DICT_MASK_KEYS: tuple[str, ...] = ()


class ErrorCode(str, Enum):
    """Error codes for TTLVault.

    This enum serves as the single source of truth for all error codes
    used throughout the package.
    """

    # Storage engine errors
    STORAGE_OPEN_FAILED = "STORAGE_OPEN_FAILED"
    STORAGE_CONFIGURE_FAILED = "STORAGE_CONFIGURE_FAILED"
    STORAGE_CLOSED = "STORAGE_CLOSED"
    TRANSACTION_BEGIN_FAILED = "TRANSACTION_BEGIN_FAILED"
    TRANSACTION_COMMIT_FAILED = "TRANSACTION_COMMIT_FAILED"
    TRANSACTION_INACTIVE = "TRANSACTION_INACTIVE"
    TABLE_ACCESS_FAILED = "TABLE_ACCESS_FAILED"
    CURSOR_CLOSED = "CURSOR_CLOSED"
    SCHEMA_INVALID = "SCHEMA_INVALID"

    # Concurrency errors
    LOCK_CONTENTION = "LOCK_CONTENTION"

    # Cache errors
    KEY_EXISTS = "KEY_EXISTS"
    INDEX_CORRUPTION = "INDEX_CORRUPTION"
    EVICTION_FAILED = "EVICTION_FAILED"

    # Validation errors
    VALIDATION_ERROR = "VALIDATION_ERROR"
    INVALID_KEY = "INVALID_KEY"
    INVALID_TTL = "INVALID_TTL"
    INVALID_VALUE = "INVALID_VALUE"
    INVALID_PATH = "INVALID_PATH"

    # Configuration errors
    CONFIGURATION_ERROR = "CONFIGURATION_ERROR"
    CONFIG_MISSING = "CONFIG_MISSING"

    # CLI errors
    CLI_UNEXPECTED_ERROR = "CLI_UNEXPECTED_ERROR"


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

    Only primitive types (str, int, float, bool) are allowed in
    additional_data to ensure safe serialization.

    Attributes:
        file_path: Optional file path associated with the error
        operation: Optional operation name that caused the error
        additional_data: Optional dict with primitive values only
    """

    file_path: str | None = None
    operation: str | None = None
    additional_data: dict[str, PrimitiveContextValue] | None = None

    def __post_init__(self) -> None:
        """Post-initialization validation and coercion."""
        if self.additional_data is not None:
            coerced = _coerce_primitives(self.additional_data)
            object.__setattr__(self, "additional_data", coerced)

    def safe_dict(self, *, mask_keys: tuple[str, ...] | None = None) -> dict[str, Any]:
        """Export context as dict for logging and error reporting.

        Args:
            mask_keys: Fields to exclude from output. Defaults to SAFE_DICT_MASK_KEYS.

        Returns:
            Dictionary with masked fields and guaranteed additional_data key.
        """
        if mask_keys is None:
            mask_keys = SAFE_DICT_MASK_KEYS

        data: dict[str, Any] = {}
        if self.file_path is not None and "file_path" not in mask_keys:
            data["file_path"] = self.file_path
        if self.operation is not None and "operation" not in mask_keys:
            data["operation"] = self.operation

        if self.additional_data is not None and "additional_data" not in mask_keys:
            data["additional_data"] = self.additional_data
        else:
            data["additional_data"] = {}

        return data


class TTLVaultError(Exception):
    """Base exception class for all TTLVault errors."""

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        context: ErrorContext | None = None,
        original_error: Exception | None = None,
    ) -> None:
        """Initialize TTLVaultError.

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

        formatted_message = f"{code.value}: {message}"
        super().__init__(formatted_message)

    def __str__(self) -> str:
        """Return string representation of the error."""
        return f"{self.code.value}: {self.message}"

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging.

        Returns:
            Dictionary representation of the error with code, message,
            context, and original_error (if present)
        """
        return {
            "code": self.code.value,
            "message": self.message,
            "context": self.context.safe_dict(),
            "original_error": str(self.original_error) if self.original_error else None,
        }


class DomainError(TTLVaultError):
    """Domain-specific errors.

    These errors occur when cache rules are violated or stored data
    breaks an invariant.
    """


class InfrastructureError(TTLVaultError):
    """Infrastructure-related errors.

    These errors occur when interacting with the storage engine or the
    file system.
    """


class ApplicationError(TTLVaultError):
    """Application-level errors (configuration, command handling)."""


class StorageError(InfrastructureError):
    """Storage engine fault.

    Raised for open, configure, transaction and table access failures.
    The message names the failing operation and, where one is involved,
    the table.
    """


class LockContentionError(StorageError):
    """A non-blocking transaction could not acquire the write lock.

    Callers are expected to retry; the cache state is unchanged.
    """

    retryable = True


class StorageClosedError(StorageError):
    """Operation attempted on a closed storage environment."""


class KeyExistsError(StorageError):
    """Insert-if-absent found the key already present."""


class IndexCorruptionError(DomainError):
    """The key-value table and the expiry index disagree."""


class CacheValidationError(DomainError):
    """Invalid argument passed to the cache facade."""


class EvictionError(TTLVaultError):
    """Eviction stopped by an error.

    Attributes:
        evicted: Number of entries evicted before the failure. The
            enclosing transaction was aborted, so these removals were
            rolled back with it.
    """

    def __init__(
        self,
        message: str,
        evicted: int,
        context: ErrorContext | None = None,
        original_error: Exception | None = None,
    ) -> None:
        super().__init__(ErrorCode.EVICTION_FAILED, message, context, original_error)
        self.evicted = evicted


class CliError(ApplicationError):
    """CLI-specific error with enhanced context for command-line operations."""

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        context: ErrorContext | None = None,
        original_error: Exception | None = None,
        command: str | None = None,
        exit_code: int = 1,
    ):
        super().__init__(code, message, context, original_error)
        self.command = command
        self.exit_code = exit_code


def create_storage_error(
    message: str,
    operation: str,
    table: str | None = None,
    code: ErrorCode = ErrorCode.TABLE_ACCESS_FAILED,
    original_error: Exception | None = None,
) -> StorageError:
    """Create a storage error naming the operation and table."""
    additional_data: dict[str, PrimitiveContextValue] | None = (
        {"table": table} if table else None
    )
    context = ErrorContext(operation=operation, additional_data=additional_data)
    return StorageError(code, message, context, original_error)


def create_lock_contention_error(
    operation: str,
    original_error: Exception | None = None,
) -> LockContentionError:
    """Create a retryable lock contention error."""
    return LockContentionError(
        ErrorCode.LOCK_CONTENTION,
        f"{operation}: write lock is held by another transaction, retry later",
        ErrorContext(operation=operation),
        original_error,
    )


def create_index_corruption_error(
    table: str,
    key: str,
    operation: str,
    detail: str = "expiration not found",
) -> IndexCorruptionError:
    """Create an index corruption error naming the table and key."""
    return IndexCorruptionError(
        ErrorCode.INDEX_CORRUPTION,
        f"index {table!r} is corrupt: {detail} for {key!r}",
        ErrorContext(
            operation=operation,
            additional_data={"table": table, "key": key},
        ),
    )


def create_validation_error(
    message: str,
    field: str,
    code: ErrorCode = ErrorCode.VALIDATION_ERROR,
) -> CacheValidationError:
    """Create a facade validation error."""
    return CacheValidationError(
        code,
        message,
        ErrorContext(operation="validate", additional_data={"field": field}),
    )


def create_cli_error(
    message: str,
    command: str | None = None,
    operation: str | None = None,
    original_error: BaseException | None = None,
    exit_code: int = 1,
    code: ErrorCode = ErrorCode.CLI_UNEXPECTED_ERROR,
) -> CliError:
    """Create a CLI error with context."""
    additional_data: dict[str, PrimitiveContextValue] | None = (
        {"command": command} if command else None
    )
    context = ErrorContext(
        operation=operation,
        additional_data=additional_data,
    )
    return CliError(
        code,
        message,
        context,
        original_error,
        command,
        exit_code,
    )
