"""Exponential backoff with symmetric jitter."""

import math
import random
from typing import Optional

# Fractional jitter applied around the clamped delay (+/- 25%)
JITTER_FRACTION = 0.25


def backoff_midpoint(
    attempt: int,
    base_delay_ms: int,
    max_delay_ms: int,
    multiplier: float,
) -> float:
    """Non-jittered delay for ``attempt``: ``base * multiplier**(attempt-1)`` capped at max."""
    if attempt < 1:
        raise ValueError(f"attempt is 1-based, got {attempt}")
    try:
        exponential = base_delay_ms * (multiplier ** (attempt - 1))
    except OverflowError:
        exponential = math.inf
    return min(exponential, max_delay_ms)


def calculate_backoff_delay(
    attempt: int,
    base_delay_ms: int,
    max_delay_ms: int,
    multiplier: float,
    *,
    rng: Optional[random.Random] = None,
) -> int:
    """Calculate the delay before the next retry using exponential backoff.

    Jitter of +/-25% around the clamped delay keeps clients that failed
    together from retrying together.

    Args:
        attempt: Current attempt number (1-based).
        base_delay_ms: Delay for the first retry, in milliseconds.
        max_delay_ms: Cap applied before jitter, in milliseconds.
        multiplier: Growth factor per attempt.
        rng: Injectable Random instance for deterministic testing.

    Returns:
        Delay in whole milliseconds, in ``[0, floor(max_delay_ms * 1.25)]``.

    Example:
        >>> calculate_backoff_delay(1, 1000, 10000, 2)  # ~1000 (750-1250)
        >>> calculate_backoff_delay(3, 1000, 10000, 2)  # ~4000 (3000-5000)
    """
    clamped = backoff_midpoint(attempt, base_delay_ms, max_delay_ms, multiplier)
    _rng = rng or random
    jitter_range = clamped * JITTER_FRACTION
    jittered = clamped + _rng.uniform(-jitter_range, jitter_range)
    return max(0, math.floor(jittered))
