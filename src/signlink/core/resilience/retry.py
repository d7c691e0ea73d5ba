"""Async retry with exponential backoff and jitter.

Standalone retry utility that can be used independently of the timeout
guard. Attempts are strictly sequential: attempt N+1 starts only after
attempt N has failed and its backoff delay has elapsed.
"""

import logging
import random
from typing import Awaitable, Callable, Optional, TypeVar

from signlink.core.errors.resilience import DelayCancelledError, RetryExhaustedError
from signlink.core.observability import audit_log, truncate_message
from signlink.core.resilience.backoff import calculate_backoff_delay
from signlink.core.resilience.classify import classify_error, is_transient_error
from signlink.core.resilience.delay import cancellable_sleep
from signlink.core.resilience.models import RetryConfig, SleepFunc

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def with_retry(
    func: Callable[[], Awaitable[T]],
    config: Optional[RetryConfig] = None,
    *,
    rng: Optional[random.Random] = None,
    sleep_func: Optional[SleepFunc] = None,
) -> T:
    """Retry an async function on retryable failures with increasing delays.

    Non-retryable failures propagate unchanged on first occurrence. When
    every attempt fails with a retryable failure, RetryExhaustedError is
    raised carrying the attempt count and the last failure.

    Args:
        func: Async function to retry (no arguments; use lambda for args).
        config: Retry settings (defaults: 3 retries, 1000-10000 ms, x2).
        rng: Injectable Random instance for deterministic jitter in tests.
        sleep_func: Injectable sleep function for time control in tests.

    Returns:
        Result from the function on success.

    Raises:
        RetryExhaustedError: If all ``max_retries + 1`` attempts failed.
        DelayCancelledError: If the config's cancel token fired during a delay.
        Exception: The original failure if it is not retryable.

    Example:
        >>> result = await with_retry(
        ...     lambda: agent.call("version"),
        ...     RetryConfig(max_retries=3, on_retry=lambda a, e, d: print(a, d)),
        ... )

    Testing example:
        >>> sleep_times = []
        >>> async def fake_sleep(s): sleep_times.append(s)
        >>> await with_retry(func, rng=random.Random(42), sleep_func=fake_sleep)
    """
    cfg = config or RetryConfig()
    retryable = cfg.is_retryable or is_transient_error
    max_attempts = cfg.max_retries + 1
    last_exception: Optional[Exception] = None

    for attempt in range(1, max_attempts + 1):
        try:
            return await func()
        except Exception as e:
            last_exception = e

            if attempt > cfg.max_retries:
                break

            if not retryable(e):
                logger.debug(
                    "Not retrying %s (classified %s) on attempt %d",
                    type(e).__name__,
                    classify_error(e).value,
                    attempt,
                )
                raise

            delay_ms = calculate_backoff_delay(
                attempt,
                cfg.base_delay_ms,
                cfg.max_delay_ms,
                cfg.backoff_multiplier,
                rng=rng,
            )

            audit_log(
                "retry_attempt",
                attempt=attempt,
                max_attempts=max_attempts,
                delay_ms=delay_ms,
                error_type=classify_error(e).value,
                error_message=truncate_message(e),
            )

            if cfg.on_retry is not None:
                cfg.on_retry(attempt, e, delay_ms)

        try:
            await cancellable_sleep(delay_ms / 1000, cfg.cancel_token, sleep_func)
        except DelayCancelledError as cancelled:
            audit_log("delay_cancelled", attempt=attempt, delay_ms=delay_ms)
            raise cancelled from last_exception

    audit_log(
        "retry_exhausted",
        attempts=max_attempts,
        error_message=truncate_message(last_exception),
    )
    raise RetryExhaustedError(
        f"Operation failed after {max_attempts} attempts",
        attempts=max_attempts,
        last_error=last_exception,
    ) from last_exception
