"""
Tests for sardis_recovery.retry.
"""
from __future__ import annotations

import pytest

from sardis_recovery.exceptions import GuardianValidationError, LedgerUnavailableError
from sardis_recovery.retry import RetryConfig, RetryExhausted, retry_async


FAST = RetryConfig(max_retries=2, base_delay=0.0, jitter=0.0)


class Flaky:
    def __init__(self, failures, exc=LedgerUnavailableError):
        self.failures = failures
        self.exc = exc
        self.calls = 0

    async def __call__(self, value):
        self.calls += 1
        if self.calls <= self.failures:
            raise self.exc("transient")
        return value


class TestRetryConfig:
    def test_delay_doubles_and_is_capped(self):
        config = RetryConfig(base_delay=1.0, max_delay=3.0, jitter=0.0)
        assert config.calculate_delay(0) == 1.0
        assert config.calculate_delay(1) == 2.0
        assert config.calculate_delay(5) == 3.0

    def test_jitter_stays_in_range(self):
        config = RetryConfig(base_delay=1.0, jitter=0.5)
        for _ in range(50):
            assert 0.5 <= config.calculate_delay(0) <= 1.5

    def test_retries_ledger_failures_only_by_default(self):
        config = RetryConfig()
        assert config.should_retry(LedgerUnavailableError("down"))
        assert not config.should_retry(GuardianValidationError("bad"))


class TestRetryAsync:
    @pytest.mark.asyncio
    async def test_succeeds_after_transient_failures(self):
        func = Flaky(failures=2)
        assert await retry_async(func, "ok", config=FAST) == "ok"
        assert func.calls == 3

    @pytest.mark.asyncio
    async def test_exhausted(self):
        func = Flaky(failures=10)
        with pytest.raises(RetryExhausted) as exc_info:
            await retry_async(func, "ok", config=FAST)

        assert func.calls == 3
        assert exc_info.value.attempts == 3
        assert isinstance(exc_info.value.last_error, LedgerUnavailableError)

    @pytest.mark.asyncio
    async def test_single_attempt_without_retries(self):
        func = Flaky(failures=1)
        with pytest.raises(RetryExhausted) as exc_info:
            await retry_async(func, "ok", config=RetryConfig(max_retries=0))
        assert exc_info.value.attempts == 1
        assert func.calls == 1

    @pytest.mark.asyncio
    async def test_other_errors_raised_immediately(self):
        func = Flaky(failures=1, exc=GuardianValidationError)
        with pytest.raises(GuardianValidationError):
            await retry_async(func, "ok", config=FAST)
        assert func.calls == 1
