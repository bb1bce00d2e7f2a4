"""
Tests for store commit retry.

Tests cover:
- Transient error classification
- Retry until success
- Exhaustion and non-transient errors
"""

import pytest
from sqlalchemy.exc import DBAPIError, IntegrityError, OperationalError

from indexer.utils.db_retry import is_transient_db_error, run_with_commit_retry
from indexer.utils.exceptions import (
    MalformedEventError,
    OutOfOrderEventError,
    ReorgBelowWatermarkError,
    StoreCommitError,
    is_fatal,
    is_recoverable,
    is_retryable,
)


def _operational() -> OperationalError:
    return OperationalError("COMMIT", {}, Exception("database is locked"))


def _integrity() -> IntegrityError:
    return IntegrityError("INSERT", {}, Exception("UNIQUE constraint failed"))


class TestTransientClassification:
    """Test is_transient_db_error and exception categories."""

    def test_operational_error_is_transient(self):
        assert is_transient_db_error(_operational()) is True

    def test_integrity_error_is_not_transient(self):
        assert is_transient_db_error(_integrity()) is False

    def test_plain_exception_is_not_transient(self):
        assert is_transient_db_error(ValueError("x")) is False

    def test_categories(self):
        assert is_recoverable(MalformedEventError("bad"))
        assert is_recoverable(OutOfOrderEventError("1_1_0", "1_2_0"))
        assert is_retryable(StoreCommitError("down"))
        assert not is_retryable(_integrity())
        assert is_fatal(ReorgBelowWatermarkError(1, 5, 10))

    def test_invalidated_connection_is_retryable(self):
        dropped = DBAPIError("SELECT 1", {}, Exception("server closed the connection"),
                             connection_invalidated=True)

        assert is_retryable(dropped)
        assert not is_recoverable(dropped)


class TestRunWithCommitRetry:
    """Test run_with_commit_retry."""

    @pytest.mark.asyncio
    async def test_retries_until_success(self):
        attempts = []
        retries = []

        async def operation():
            attempts.append(1)
            if len(attempts) < 3:
                raise _operational()
            return "ok"

        result = await run_with_commit_retry(
            operation,
            max_retries=5,
            delay_base=0,
            on_retry=lambda attempt, error: retries.append(attempt),
        )

        assert result == "ok"
        assert len(attempts) == 3
        assert retries == [1, 2]

    @pytest.mark.asyncio
    async def test_exhaustion_raises_store_commit_error(self):
        async def operation():
            raise _operational()

        with pytest.raises(StoreCommitError) as exc_info:
            await run_with_commit_retry(operation, max_retries=2, delay_base=0)

        assert isinstance(exc_info.value.__cause__, OperationalError)

    @pytest.mark.asyncio
    async def test_non_transient_error_propagates_immediately(self):
        attempts = []

        async def operation():
            attempts.append(1)
            raise _integrity()

        with pytest.raises(IntegrityError):
            await run_with_commit_retry(operation, max_retries=5, delay_base=0)

        assert len(attempts) == 1
