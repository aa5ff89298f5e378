"""
Result and Error Handling
=========================

A generic outcome type that carries either a success value or a categorized
failure, plus helpers that run an operation and convert any anticipated
exception into a failed Result at the component boundary.

Failure taxonomy:
- NETWORK: route source or other remote call failed
- STORAGE: repository read or write failed
- MALFORMED_RESPONSE: a collaborator returned data that could not be parsed
- CANCELLED: the operation was cancelled (expected, not shown to users)
- VALIDATION: input rejected by a validator
- UNEXPECTED: anything else
"""

from __future__ import annotations

import asyncio
import enum
import json
import logging
import sqlite3
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Generic, TypeVar

from crowd_heatmap.tracking.dataclasses import ValidationError

logger = logging.getLogger(__name__)

T = TypeVar("T")

ErrorCallback = Callable[[str, "FailureKind"], None]


class TrackingError(Exception):
    """Base class for collaborator failures raised inside this package."""

    pass


class NetworkError(TrackingError):
    """A remote call (e.g. route fetch) failed."""

    pass


class StorageError(TrackingError):
    """A repository operation failed."""

    pass


class MalformedResponseError(TrackingError):
    """A collaborator returned data that could not be interpreted."""

    pass


class ResultError(Exception):
    """Raised by `Result.unwrap()` on a failed Result."""

    def __init__(self, failure: Failure) -> None:
        super().__init__(failure.message)
        self.failure = failure


class FailureKind(enum.Enum):
    NETWORK = "network"
    STORAGE = "storage"
    MALFORMED_RESPONSE = "malformed_response"
    CANCELLED = "cancelled"
    VALIDATION = "validation"
    UNEXPECTED = "unexpected"


USER_MESSAGES: dict[FailureKind, str] = {
    FailureKind.NETWORK: "Network connection failed. Please check your internet connection.",
    FailureKind.STORAGE: "Database error occurred. Your data may not be saved.",
    FailureKind.MALFORMED_RESPONSE: "Failed to process server response.",
    FailureKind.CANCELLED: "Operation cancelled",
    FailureKind.UNEXPECTED: "An unexpected error occurred.",
}


@dataclass(frozen=True)
class Failure:
    """A categorized failure.

    Attributes:
        kind: Failure category
        message: Short user-facing message
        cause: Original exception, kept for logging
    """

    kind: FailureKind
    message: str
    cause: BaseException | None = None


@dataclass(frozen=True)
class Result(Generic[T]):
    """Either a success value or a Failure.

    Build with `Result.ok(value)` or `Result.fail(kind, message, cause)`.

    Example:
        >>> result = Result.ok([1, 2, 3])
        >>> result.is_success
        True
        >>> Result.fail(FailureKind.STORAGE, "disk full").value_or([])
        []
    """

    value: T | None = None
    failure: Failure | None = None

    @classmethod
    def ok(cls, value: T) -> Result[T]:
        return cls(value=value)

    @classmethod
    def fail(
        cls,
        kind: FailureKind,
        message: str,
        cause: BaseException | None = None,
    ) -> Result[T]:
        return cls(failure=Failure(kind, message, cause))

    @classmethod
    def from_failure(cls, failure: Failure) -> Result[T]:
        return cls(failure=failure)

    @property
    def is_success(self) -> bool:
        return self.failure is None

    @property
    def error_message(self) -> str | None:
        return self.failure.message if self.failure is not None else None

    @property
    def kind(self) -> FailureKind | None:
        return self.failure.kind if self.failure is not None else None

    def unwrap(self) -> T:
        """Return the success value.

        Raises:
            ResultError: If this Result is a failure
        """
        if self.failure is not None:
            raise ResultError(self.failure)
        return self.value  # type: ignore[return-value]

    def value_or(self, default: T) -> T:
        if self.failure is not None:
            return default
        return self.value  # type: ignore[return-value]


def classify_exception(exc: BaseException) -> Failure:
    """Map an exception onto the failure taxonomy.

    Args:
        exc: The exception raised by a collaborator or by internal code

    Returns:
        Failure with a short user-facing message and the exception as cause
    """
    if isinstance(exc, asyncio.CancelledError):
        kind = FailureKind.CANCELLED
    elif isinstance(exc, ValidationError):
        return Failure(FailureKind.VALIDATION, str(exc), exc)
    elif isinstance(exc, (NetworkError, ConnectionError, TimeoutError)):
        kind = FailureKind.NETWORK
    elif isinstance(exc, (StorageError, sqlite3.Error)):
        kind = FailureKind.STORAGE
    elif isinstance(exc, (MalformedResponseError, json.JSONDecodeError, KeyError)):
        kind = FailureKind.MALFORMED_RESPONSE
    else:
        kind = FailureKind.UNEXPECTED
    return Failure(kind, USER_MESSAGES[kind], exc)


def _report(failure: Failure, operation_name: str, on_error: ErrorCallback | None) -> None:
    if failure.kind is FailureKind.CANCELLED:
        logger.info("Operation cancelled: %s", operation_name)
        return
    logger.error(
        "%s error in %s",
        failure.kind.value,
        operation_name,
        exc_info=failure.cause,
    )
    if on_error is not None:
        on_error(failure.message, failure.kind)


async def execute_with_error_handling(
    operation: Callable[[], Awaitable[T]],
    operation_name: str,
    on_error: ErrorCallback | None = None,
) -> Result[T]:
    """Await `operation()` and convert any failure into a failed Result.

    Args:
        operation: Zero-argument coroutine function to run
        operation_name: Name used in log records
        on_error: Called with (message, kind) for every failure except
            cancellation

    Returns:
        Result wrapping the operation's return value or the classified failure
    """
    try:
        value = await operation()
    except asyncio.CancelledError as exc:
        _report(classify_exception(exc), operation_name, on_error)
        raise
    except Exception as exc:
        failure = classify_exception(exc)
        _report(failure, operation_name, on_error)
        return Result.from_failure(failure)
    return Result.ok(value)


def run_with_error_handling(
    operation: Callable[[], T],
    operation_name: str,
    on_error: ErrorCallback | None = None,
) -> Result[T]:
    """Synchronous counterpart of `execute_with_error_handling`."""
    try:
        value = operation()
    except Exception as exc:
        failure = classify_exception(exc)
        _report(failure, operation_name, on_error)
        return Result.from_failure(failure)
    return Result.ok(value)

