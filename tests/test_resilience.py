"""Tests for the retry helpers used by outbound calls."""

import pytest
from unittest.mock import AsyncMock, patch

from config.settings import ResilienceSettings
from resilience.retry import (
    RetryConfig,
    RetryExhausted,
    async_retry,
    retry_call,
)


class TestRetryConfig:
    """Tests for RetryConfig class."""

    def test_default_values(self):
        config = RetryConfig()
        assert config.max_attempts == 3
        assert config.base_delay == 0.5
        assert config.max_delay == 8.0
        assert config.retryable_exceptions == (Exception,)
        assert config.non_retryable_exceptions == ()

    def test_from_settings_with_overrides(self):
        settings = ResilienceSettings(retry_max_attempts=5, retry_base_delay=0.2)
        config = RetryConfig.from_settings(settings, retryable_exceptions=(ConnectionError,))
        assert config.max_attempts == 5
        assert config.base_delay == 0.2
        assert config.retryable_exceptions == (ConnectionError,)

    def test_calculate_delay_exponential_backoff(self):
        """Delay should double each attempt."""
        config = RetryConfig(base_delay=0.5, backoff_multiplier=2.0, jitter=0)
        assert [config.calculate_delay(n) for n in (1, 2, 3)] == [0.5, 1.0, 2.0]

    def test_calculate_delay_respects_max(self):
        config = RetryConfig(base_delay=4.0, max_delay=6.0, jitter=0)
        assert config.calculate_delay(1) == 4.0
        assert config.calculate_delay(2) == 6.0  # Capped

    def test_calculate_delay_with_jitter(self):
        config = RetryConfig(base_delay=1.0, jitter=0.5)
        delays = [config.calculate_delay(1) for _ in range(50)]
        assert all(0.5 <= d <= 1.5 for d in delays)

    def test_should_retry(self):
        config = RetryConfig(
            retryable_exceptions=(OSError,),
            non_retryable_exceptions=(FileNotFoundError,),
        )
        assert config.should_retry(ConnectionError("reset")) is True
        assert config.should_retry(FileNotFoundError("gone")) is False
        assert config.should_retry(ValueError("bad")) is False


class TestRetryCall:
    """Tests for retry_call and the async_retry decorator."""

    async def test_success_first_time(self):
        func = AsyncMock(return_value="ok")
        assert await retry_call(func, 1, key="v", config=RetryConfig(base_delay=0)) == "ok"
        func.assert_awaited_once_with(1, key="v")

    async def test_recovers_after_transient_failure(self):
        func = AsyncMock(side_effect=[ConnectionError("reset"), "ok"])
        with patch("resilience.retry.asyncio.sleep", new=AsyncMock()) as sleep:
            result = await retry_call(func, config=RetryConfig(jitter=0))
        assert result == "ok"
        sleep.assert_awaited_once_with(0.5)

    async def test_exhausted(self):
        func = AsyncMock(side_effect=ConnectionError("down"))
        with pytest.raises(RetryExhausted) as exc_info:
            await retry_call(func, config=RetryConfig(max_attempts=3, base_delay=0, jitter=0))

        assert exc_info.value.attempts == 3
        assert isinstance(exc_info.value.last_exception, ConnectionError)
        assert func.await_count == 3

    async def test_non_retryable_propagates(self):
        func = AsyncMock(side_effect=KeyError("missing"))
        config = RetryConfig(base_delay=0, retryable_exceptions=(ConnectionError,))
        with pytest.raises(KeyError):
            await retry_call(func, config=config)
        assert func.await_count == 1

    async def test_decorator_with_kwargs(self):
        call_count = 0

        @async_retry(max_attempts=2, base_delay=0)
        async def flaky():
            nonlocal call_count
            call_count += 1
            if call_count < 2:
                raise TimeoutError("slow")
            return call_count

        assert await flaky() == 2

    async def test_decorator_with_config(self):
        @async_retry(config=RetryConfig(max_attempts=2, base_delay=0))
        async def always_fails():
            raise ConnectionError("down")

        with pytest.raises(RetryExhausted):
            await always_fails()
