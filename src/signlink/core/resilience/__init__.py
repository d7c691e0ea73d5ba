"""Timeout, retry and failure classification for agent calls.

Centralized resilience utilities including:
- Failure classification (transient / application / unknown)
- Jittered exponential backoff
- Per-attempt timeout guard
- Retry engine with cancellable delays
- with_resilience combining all of the above behind one config
"""

from signlink.core.errors.resilience import (
    DelayCancelledError,
    OperationTimeoutError,
    RetryExhaustedError,
)
from signlink.core.resilience.backoff import (
    JITTER_FRACTION,
    backoff_midpoint,
    calculate_backoff_delay,
)
from signlink.core.resilience.classify import (
    APPLICATION_ERROR_PATTERNS,
    TRANSIENT_CLOSE_CODES,
    TRANSIENT_ERROR_PATTERNS,
    classify_error,
    is_retry_exhausted_error,
    is_timeout_error,
    is_transient_error,
)
from signlink.core.resilience.delay import (
    CancellableDelay,
    CancellationToken,
    cancellable_sleep,
    create_cancellable_delay,
)
from signlink.core.resilience.execution import with_resilience
from signlink.core.resilience.models import (
    DEFAULT_RESILIENCE_CONFIG,
    ErrorType,
    ResilienceConfig,
    RetryConfig,
    SleepFunc,
    TimeoutConfig,
)
from signlink.core.resilience.retry import with_retry
from signlink.core.resilience.timeout import with_timeout

__all__ = [
    # Models & enums
    "ErrorType",
    "TimeoutConfig",
    "RetryConfig",
    "ResilienceConfig",
    "DEFAULT_RESILIENCE_CONFIG",
    "SleepFunc",
    # Classification
    "TRANSIENT_CLOSE_CODES",
    "APPLICATION_ERROR_PATTERNS",
    "TRANSIENT_ERROR_PATTERNS",
    "classify_error",
    "is_transient_error",
    "is_timeout_error",
    "is_retry_exhausted_error",
    # Backoff
    "JITTER_FRACTION",
    "backoff_midpoint",
    "calculate_backoff_delay",
    # Delay
    "CancellationToken",
    "CancellableDelay",
    "cancellable_sleep",
    "create_cancellable_delay",
    # Execution
    "with_timeout",
    "with_retry",
    "with_resilience",
    # Error re-exports
    "OperationTimeoutError",
    "RetryExhaustedError",
    "DelayCancelledError",
]
