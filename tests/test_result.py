"""
Tests for Result and exception classification.
"""

import asyncio
import json
import sqlite3

import pytest

from crowd_heatmap.result import (
    USER_MESSAGES,
    Failure,
    FailureKind,
    MalformedResponseError,
    NetworkError,
    Result,
    ResultError,
    StorageError,
    classify_exception,
    execute_with_error_handling,
    run_with_error_handling,
)
from crowd_heatmap.tracking.dataclasses import ValidationError


class TestResult:
    """Tests for the Result container."""

    def test_ok(self) -> None:
        result = Result.ok(42)
        assert result.is_success
        assert result.unwrap() == 42
        assert result.error_message is None
        assert result.kind is None

    def test_ok_with_none_value_is_success(self) -> None:
        assert Result.ok(None).is_success

    def test_fail(self) -> None:
        result: Result[int] = Result.fail(FailureKind.NETWORK, "offline")
        assert not result.is_success
        assert result.kind is FailureKind.NETWORK
        assert result.error_message == "offline"
        assert result.value_or(-1) == -1

    def test_unwrap_failure_raises(self) -> None:
        failure = Failure(FailureKind.STORAGE, "disk full")
        with pytest.raises(ResultError, match="disk full") as excinfo:
            Result.from_failure(failure).unwrap()
        assert excinfo.value.failure is failure


class TestClassifyException:
    """Tests for classify_exception."""

    @pytest.mark.parametrize(
        "exc, kind",
        [
            (NetworkError("down"), FailureKind.NETWORK),
            (ConnectionResetError(), FailureKind.NETWORK),
            (TimeoutError(), FailureKind.NETWORK),
            (StorageError("locked"), FailureKind.STORAGE),
            (sqlite3.OperationalError("locked"), FailureKind.STORAGE),
            (MalformedResponseError("bad"), FailureKind.MALFORMED_RESPONSE),
            (json.JSONDecodeError("bad", "{", 0), FailureKind.MALFORMED_RESPONSE),
            (KeyError("points"), FailureKind.MALFORMED_RESPONSE),
            (asyncio.CancelledError(), FailureKind.CANCELLED),
            (ZeroDivisionError(), FailureKind.UNEXPECTED),
        ],
    )
    def test_kinds(self, exc: BaseException, kind: FailureKind) -> None:
        failure = classify_exception(exc)
        assert failure.kind is kind
        assert failure.message == USER_MESSAGES[kind]
        assert failure.cause is exc

    def test_validation_keeps_message(self) -> None:
        failure = classify_exception(ValidationError("latitude out of range"))
        assert failure.kind is FailureKind.VALIDATION
        assert failure.message == "latitude out of range"


class TestExecuteWithErrorHandling:
    """Tests for the async and sync boundary helpers."""

    def test_success(self) -> None:
        async def operation() -> str:
            return "done"

        result = asyncio.run(execute_with_error_handling(operation, "Op"))
        assert result.unwrap() == "done"

    def test_failure_reported_to_callback(self) -> None:
        reported = []

        async def operation() -> None:
            raise StorageError("boom")

        result = asyncio.run(
            execute_with_error_handling(
                operation, "Op", on_error=lambda msg, kind: reported.append((msg, kind))
            )
        )
        assert result.kind is FailureKind.STORAGE
        assert reported == [(USER_MESSAGES[FailureKind.STORAGE], FailureKind.STORAGE)]

    def test_failure_is_logged(self, caplog: pytest.LogCaptureFixture) -> None:
        async def operation() -> None:
            raise NetworkError("unreachable")

        with caplog.at_level("ERROR", logger="crowd_heatmap"):
            asyncio.run(execute_with_error_handling(operation, "FetchRoute"))
        assert any("FetchRoute" in record.getMessage() for record in caplog.records)

    def test_cancellation_propagates_without_callback(self) -> None:
        reported = []

        async def operation() -> None:
            raise asyncio.CancelledError()

        async def scenario() -> None:
            await execute_with_error_handling(
                operation, "Op", on_error=lambda msg, kind: reported.append(kind)
            )

        with pytest.raises(asyncio.CancelledError):
            asyncio.run(scenario())
        assert reported == []

    def test_sync_variant(self) -> None:
        ok = run_with_error_handling(lambda: 3, "Add")
        failed = run_with_error_handling(lambda: {}["missing"], "Lookup")
        assert ok.unwrap() == 3
        assert failed.kind is FailureKind.MALFORMED_RESPONSE
