"""Resilience error classes.

Raised by the timeout guard, the retry engine and the cancellable delay.
Classified failures (transient/application/unknown) are not types; see
signlink.core.resilience.classify.
"""

from __future__ import annotations

from typing import Optional


class OperationTimeoutError(TimeoutError):
    """Operation did not settle within its time budget.

    Attributes:
        message: Human-readable description of the timeout.
        timeout_ms: The timeout duration that was exceeded, in milliseconds.
    """

    def __init__(self, message: str, timeout_ms: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.timeout_ms = timeout_ms


class RetryExhaustedError(Exception):
    """All retry attempts failed with retryable errors.

    Attributes:
        attempts: Total number of invocations made (max_retries + 1).
        last_error: The failure raised by the final attempt.
    """

    def __init__(
        self,
        message: str,
        attempts: int,
        last_error: object = None,
    ):
        super().__init__(message)
        self.message = message
        self.attempts = attempts
        self.last_error = last_error


class DelayCancelledError(Exception):
    """A cancellable delay was aborted before it elapsed."""

    def __init__(self, message: str = "Delay cancelled"):
        super().__init__(message)
        self.message = message
