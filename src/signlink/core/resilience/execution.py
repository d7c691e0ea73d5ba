"""Combined timeout and retry execution.

with_resilience builds the effective operation in a fixed order: the
timeout guard wraps each single attempt, and the retry engine wraps the
guarded attempt. Every retry therefore gets a fresh timeout budget.
"""

import random
from typing import Awaitable, Callable, Optional, TypeVar

from signlink.core.resilience.models import ResilienceConfig, SleepFunc
from signlink.core.resilience.retry import with_retry
from signlink.core.resilience.timeout import with_timeout

T = TypeVar("T")


async def with_resilience(
    func: Callable[[], Awaitable[T]],
    config: Optional[ResilienceConfig] = None,
    *,
    rng: Optional[random.Random] = None,
    sleep_func: Optional[SleepFunc] = None,
) -> T:
    """Execute an async function with timeout and retry.

    Execution order:
    1. Guard each attempt with the timeout (if enable_timeout)
    2. Retry retryable failures with jittered backoff (if enable_retry)

    With both toggles off the raw function runs exactly once.

    Args:
        func: Async function to execute (no arguments; use lambda for args).
        config: Combined settings (defaults to DEFAULT_RESILIENCE_CONFIG values).
        rng: Injectable Random instance for deterministic jitter in tests.
        sleep_func: Injectable sleep function for the retry delays.

    Returns:
        Result from the function on success.

    Raises:
        OperationTimeoutError: If an attempt times out and retry is disabled.
        RetryExhaustedError: If all attempts failed with retryable failures.
        Exception: The original failure if it is not retryable.

    Example:
        >>> result = await with_resilience(
        ...     lambda: agent.sign(payload),
        ...     ResilienceConfig(timeout_ms=30000, max_retries=3),
        ... )
    """
    cfg = config or ResilienceConfig()

    if cfg.enable_timeout:
        timeout_config = cfg.timeout_config()

        def guarded() -> Awaitable[T]:
            return with_timeout(func, timeout_config)

        operation: Callable[[], Awaitable[T]] = guarded
    else:
        operation = func

    if cfg.enable_retry:
        return await with_retry(
            operation,
            cfg.retry_config(),
            rng=rng,
            sleep_func=sleep_func,
        )

    return await operation()
