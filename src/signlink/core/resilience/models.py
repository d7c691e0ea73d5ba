"""Resilience data models, enums, and protocols.

Defines the core types used across the resilience sub-package:
- ErrorType enum for failure classification
- TimeoutConfig, RetryConfig and ResilienceConfig for per-call tuning
- SleepFunc protocol for injectable async sleep
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Callable, Optional, Protocol

if TYPE_CHECKING:
    from signlink.core.resilience.delay import CancellationToken

# Defaults shared by every config object
DEFAULT_TIMEOUT_MS = 30000
DEFAULT_MAX_RETRIES = 3
DEFAULT_BASE_DELAY_MS = 1000
DEFAULT_MAX_DELAY_MS = 10000
DEFAULT_BACKOFF_MULTIPLIER = 2.0

RetryablePredicate = Callable[[object], bool]
RetryCallback = Callable[[int, object, int], None]


class ErrorType(str, Enum):
    """Classification of failures for retry decisions."""

    TRANSIENT = "transient"
    APPLICATION = "application"
    UNKNOWN = "unknown"


class SleepFunc(Protocol):
    """Protocol for injectable sleep function."""

    async def __call__(self, seconds: float) -> None: ...


def _validate_retry_fields(
    max_retries: int,
    base_delay_ms: int,
    max_delay_ms: int,
    backoff_multiplier: float,
) -> None:
    if max_retries < 0:
        raise ValueError(f"max_retries must be >= 0, got {max_retries}")
    if base_delay_ms <= 0:
        raise ValueError(f"base_delay_ms must be > 0, got {base_delay_ms}")
    if max_delay_ms < base_delay_ms:
        raise ValueError(
            f"max_delay_ms ({max_delay_ms}) must be >= base_delay_ms ({base_delay_ms})"
        )
    if backoff_multiplier <= 1:
        raise ValueError(f"backoff_multiplier must be > 1, got {backoff_multiplier}")


def _validate_timeout(timeout_ms: int) -> None:
    if timeout_ms <= 0:
        raise ValueError(f"timeout_ms must be > 0, got {timeout_ms}")


@dataclass(frozen=True)
class TimeoutConfig:
    """Timeout settings for a single guarded call.

    Attributes:
        timeout_ms: Deadline in milliseconds.
        message: Message for the raised OperationTimeoutError.
        cancel_on_timeout: Cancel the late operation instead of leaving it
            running. Needed when the operation owns resources (sockets) that
            must be released on every exit path.
    """

    timeout_ms: int = DEFAULT_TIMEOUT_MS
    message: Optional[str] = None
    cancel_on_timeout: bool = False

    def __post_init__(self) -> None:
        _validate_timeout(self.timeout_ms)

    @property
    def effective_message(self) -> str:
        return self.message or f"Operation timed out after {self.timeout_ms}ms"


@dataclass(frozen=True)
class RetryConfig:
    """Retry settings for a single call.

    ``is_retryable`` defaults to classification-based retry (transient and
    unknown failures). ``on_retry`` receives ``(attempt, failure, delay_ms)``
    before each wait.
    """

    max_retries: int = DEFAULT_MAX_RETRIES
    base_delay_ms: int = DEFAULT_BASE_DELAY_MS
    max_delay_ms: int = DEFAULT_MAX_DELAY_MS
    backoff_multiplier: float = DEFAULT_BACKOFF_MULTIPLIER
    is_retryable: Optional[RetryablePredicate] = None
    on_retry: Optional[RetryCallback] = None
    cancel_token: Optional[CancellationToken] = None

    def __post_init__(self) -> None:
        _validate_retry_fields(
            self.max_retries, self.base_delay_ms, self.max_delay_ms, self.backoff_multiplier
        )

    @property
    def max_attempts(self) -> int:
        return self.max_retries + 1


@dataclass(frozen=True)
class ResilienceConfig:
    """Combined timeout and retry settings for with_resilience.

    Timeout applies per attempt; every retry gets a fresh budget.
    """

    # Timeout
    timeout_ms: int = DEFAULT_TIMEOUT_MS
    timeout_message: Optional[str] = None
    cancel_on_timeout: bool = False

    # Retry
    max_retries: int = DEFAULT_MAX_RETRIES
    base_delay_ms: int = DEFAULT_BASE_DELAY_MS
    max_delay_ms: int = DEFAULT_MAX_DELAY_MS
    backoff_multiplier: float = DEFAULT_BACKOFF_MULTIPLIER
    is_retryable: Optional[RetryablePredicate] = None
    on_retry: Optional[RetryCallback] = None
    cancel_token: Optional[CancellationToken] = None

    # Toggles
    enable_timeout: bool = True
    enable_retry: bool = True

    def __post_init__(self) -> None:
        _validate_timeout(self.timeout_ms)
        _validate_retry_fields(
            self.max_retries, self.base_delay_ms, self.max_delay_ms, self.backoff_multiplier
        )

    def timeout_config(self) -> TimeoutConfig:
        return TimeoutConfig(
            timeout_ms=self.timeout_ms,
            message=self.timeout_message,
            cancel_on_timeout=self.cancel_on_timeout,
        )

    def retry_config(self) -> RetryConfig:
        return RetryConfig(
            max_retries=self.max_retries,
            base_delay_ms=self.base_delay_ms,
            max_delay_ms=self.max_delay_ms,
            backoff_multiplier=self.backoff_multiplier,
            is_retryable=self.is_retryable,
            on_retry=self.on_retry,
            cancel_token=self.cancel_token,
        )


DEFAULT_RESILIENCE_CONFIG = ResilienceConfig()
