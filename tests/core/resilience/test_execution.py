"""Tests for with_resilience (timeout per attempt wrapped by retry)."""

import asyncio

import pytest

from signlink.core.resilience import (
    DEFAULT_RESILIENCE_CONFIG,
    OperationTimeoutError,
    ResilienceConfig,
    RetryExhaustedError,
    with_resilience,
)


async def _no_sleep(seconds: float) -> None:
    return None


class TestResilienceConfig:
    """Tests for ResilienceConfig defaults and derived configs."""

    def test_defaults(self):
        cfg = DEFAULT_RESILIENCE_CONFIG
        assert cfg.timeout_ms == 30000
        assert cfg.max_retries == 3
        assert cfg.base_delay_ms == 1000
        assert cfg.max_delay_ms == 10000
        assert cfg.backoff_multiplier == 2
        assert cfg.enable_retry is True
        assert cfg.enable_timeout is True

    def test_derived_configs(self):
        def hook(attempt, failure, delay_ms):
            return None

        cfg = ResilienceConfig(
            timeout_ms=5000,
            timeout_message="agent silent",
            cancel_on_timeout=True,
            max_retries=1,
            on_retry=hook,
        )
        timeout = cfg.timeout_config()
        retry = cfg.retry_config()
        assert timeout.timeout_ms == 5000
        assert timeout.effective_message == "agent silent"
        assert timeout.cancel_on_timeout is True
        assert retry.max_retries == 1
        assert retry.on_retry is hook

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"timeout_ms": 0},
            {"max_retries": -2},
            {"base_delay_ms": 500, "max_delay_ms": 100},
            {"backoff_multiplier": 0.5},
        ],
    )
    def test_invalid_values(self, kwargs):
        with pytest.raises(ValueError):
            ResilienceConfig(**kwargs)


class TestWithResilience:
    """Tests for with_resilience."""

    @pytest.mark.asyncio
    async def test_success(self):
        async def operation():
            return "version 1.0"

        assert await with_resilience(operation) == "version 1.0"

    @pytest.mark.asyncio
    async def test_every_attempt_times_out(self):
        """timeout_ms=50, max_retries=1: two invocations, then exhaustion."""
        release = asyncio.Event()
        calls = [0]

        async def never_settles():
            calls[0] += 1
            await release.wait()

        with pytest.raises(RetryExhaustedError) as exc_info:
            await with_resilience(
                never_settles,
                ResilienceConfig(timeout_ms=50, max_retries=1),
                sleep_func=_no_sleep,
            )

        assert calls[0] == 2
        assert exc_info.value.attempts == 2
        assert isinstance(exc_info.value.last_error, OperationTimeoutError)
        assert exc_info.value.last_error.timeout_ms == 50
        release.set()
        await asyncio.sleep(0)

    @pytest.mark.asyncio
    async def test_fresh_timeout_per_attempt(self):
        """Each attempt gets the full budget, not the remainder."""
        calls = [0]

        async def slowish_then_ok():
            calls[0] += 1
            await asyncio.sleep(0.03)
            if calls[0] < 3:
                raise ConnectionError("connection reset")
            return "ok"

        result = await with_resilience(
            slowish_then_ok,
            ResilienceConfig(timeout_ms=500, max_retries=3),
            sleep_func=_no_sleep,
        )
        assert result == "ok"
        assert calls[0] == 3

    @pytest.mark.asyncio
    async def test_retry_disabled_surfaces_timeout(self):
        release = asyncio.Event()

        async def never_settles():
            await release.wait()

        with pytest.raises(OperationTimeoutError):
            await with_resilience(
                never_settles,
                ResilienceConfig(timeout_ms=20, enable_retry=False),
            )
        release.set()
        await asyncio.sleep(0)

    @pytest.mark.asyncio
    async def test_timeout_disabled_allows_slow_operation(self):
        async def slow():
            await asyncio.sleep(0.05)
            return "finished"

        result = await with_resilience(
            slow,
            ResilienceConfig(timeout_ms=10, enable_timeout=False),
        )
        assert result == "finished"

    @pytest.mark.asyncio
    async def test_both_disabled_runs_once_unwrapped(self):
        """With both toggles off a transient failure propagates as-is."""
        calls = [0]
        error = ConnectionError("network unreachable")

        async def failing():
            calls[0] += 1
            raise error

        with pytest.raises(ConnectionError) as exc_info:
            await with_resilience(
                failing,
                ResilienceConfig(enable_retry=False, enable_timeout=False),
            )

        assert exc_info.value is error
        assert calls[0] == 1

    @pytest.mark.asyncio
    async def test_application_failure_not_retried(self):
        calls = [0]

        async def rejected():
            calls[0] += 1
            raise Exception("wrong password")

        with pytest.raises(Exception, match="wrong password"):
            await with_resilience(rejected, sleep_func=_no_sleep)
        assert calls[0] == 1

    @pytest.mark.asyncio
    async def test_on_retry_receives_timeouts(self):
        seen = []
        release = asyncio.Event()

        async def never_settles():
            await release.wait()

        with pytest.raises(RetryExhaustedError):
            await with_resilience(
                never_settles,
                ResilienceConfig(
                    timeout_ms=20,
                    max_retries=2,
                    on_retry=lambda attempt, failure, delay: seen.append((attempt, type(failure))),
                ),
                sleep_func=_no_sleep,
            )

        assert seen == [(1, OperationTimeoutError), (2, OperationTimeoutError)]
        release.set()
        await asyncio.sleep(0)

    @pytest.mark.asyncio
    async def test_cancel_on_timeout_releases_each_attempt(self):
        """With cancel_on_timeout every timed-out attempt is cleaned up."""
        cleanups = [0]

        async def holds_socket():
            try:
                await asyncio.sleep(10)
            finally:
                cleanups[0] += 1

        with pytest.raises(RetryExhaustedError):
            await with_resilience(
                holds_socket,
                ResilienceConfig(timeout_ms=20, max_retries=1, cancel_on_timeout=True),
                sleep_func=_no_sleep,
            )

        assert cleanups[0] == 2
