"""
Unit Tests for DatabaseRetryPolicy
==================================

Test Coverage
-------------
- Success without retries
- Retry of conflicts and outages up to the attempt ceiling
- Immediate propagation of non-retriable errors
- Backoff growth, cap and jitter
- Metrics emitted per attempt and on give-up
"""

import pytest

from src.core.config.config import Config
from src.core.database.metrics import DatabaseMetrics
from src.core.database.retry_policy import DatabaseRetryConfig, DatabaseRetryPolicy
from src.modules.shared.exceptions import (
    StoreUnavailableError,
    ValidationError,
    WriteConflictError,
)


def _policy(max_attempts=5, initial=0, maximum=0, jitter=0) -> DatabaseRetryPolicy:
    return DatabaseRetryPolicy(
        DatabaseRetryConfig(
            max_attempts=max_attempts,
            initial_backoff_ms=initial,
            max_backoff_ms=maximum,
            jitter_ms=jitter,
        )
    )


class _Flaky:
    """Fails with ``error`` for the first ``failures`` calls."""

    def __init__(self, failures: int, error: Exception) -> None:
        self.failures = failures
        self.error = error
        self.calls = 0

    async def __call__(self) -> str:
        self.calls += 1
        if self.calls <= self.failures:
            raise self.error
        return "ok"


@pytest.mark.unit
class TestRetryExecution:
    async def test_success_on_first_attempt(self):
        operation = _Flaky(0, WriteConflictError("u", 1))

        result = await _policy().execute(operation, operation_name="test.op")

        assert result == "ok"
        assert operation.calls == 1
        assert DatabaseMetrics.snapshot()["retry_attempts"] == 0

    async def test_conflicts_are_retried(self):
        # Arrange
        operation = _Flaky(3, WriteConflictError("u", 1))

        # Act
        result = await _policy().execute(operation, operation_name="test.op")

        # Assert
        assert result == "ok"
        assert operation.calls == 4
        snapshot = DatabaseMetrics.snapshot()
        assert snapshot["retry_attempts"] == 3
        assert snapshot["retry_give_ups"] == 0
        assert snapshot["by_operation"]["test.op"]["retry_attempts"] == 3

    async def test_gives_up_after_max_attempts(self):
        # Arrange
        operation = _Flaky(10, StoreUnavailableError("op", "down"))

        # Act
        with pytest.raises(StoreUnavailableError):
            await _policy(max_attempts=5).execute(operation, operation_name="test.op")

        # Assert
        assert operation.calls == 5
        assert DatabaseMetrics.snapshot()["retry_give_ups"] == 1

    async def test_non_retriable_error_propagates_immediately(self):
        operation = _Flaky(10, ValidationError("xp_delta", "bad"))

        with pytest.raises(ValidationError):
            await _policy().execute(operation, operation_name="test.op")

        assert operation.calls == 1
        assert DatabaseMetrics.snapshot()["retry_attempts"] == 0

    async def test_unexpected_errors_are_not_retried(self):
        operation = _Flaky(10, KeyError("boom"))

        with pytest.raises(KeyError):
            await _policy().execute(operation, operation_name="test.op")

        assert operation.calls == 1

    async def test_sleeps_between_attempts(self, mocker):
        # Arrange
        sleep = mocker.patch("src.core.database.retry_policy.asyncio.sleep", new=mocker.AsyncMock())
        operation = _Flaky(2, WriteConflictError("u", 1))

        # Act
        await _policy(initial=25, maximum=500).execute(operation, operation_name="test.op")

        # Assert
        assert [c.args[0] for c in sleep.await_args_list] == [0.025, 0.05]


@pytest.mark.unit
class TestBackoff:
    def test_exponential_growth_is_capped(self):
        policy = _policy(initial=25, maximum=150)

        assert [policy._compute_backoff_ms(a) for a in range(1, 6)] == [25, 50, 100, 150, 150]

    def test_jitter_is_bounded(self):
        policy = _policy(initial=10, maximum=10, jitter=5)

        for _ in range(50):
            assert 10 <= policy._compute_backoff_ms(1) <= 15

    def test_rejects_zero_attempts(self):
        with pytest.raises(ValueError):
            DatabaseRetryConfig(max_attempts=0, initial_backoff_ms=0, max_backoff_ms=0, jitter_ms=0)

    def test_from_config_defaults(self):
        policy = DatabaseRetryPolicy.from_config()

        assert policy.max_attempts == Config.PROGRESSION_RETRY_MAX_ATTEMPTS == 5
