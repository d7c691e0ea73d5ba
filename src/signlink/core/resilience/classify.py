"""Failure classification for retry decisions.

Maps any failure value (exception, close code, message string) to an
ErrorType. Classification is pure and never raises.
"""

from typing import Optional

from signlink.core.errors.resilience import RetryExhaustedError
from signlink.core.resilience.models import ErrorType

# WebSocket close codes worth retrying: going away (1001), abnormal closure
# (1006), internal error (1011), service restart (1012), try again later
# (1013), bad gateway (1014).
TRANSIENT_CLOSE_CODES: frozenset[int] = frozenset({1001, 1006, 1011, 1012, 1013, 1014})

# Agent-reported failures that no retry can fix. Both the readable phrasing
# and the agent's compact exception names are matched.
APPLICATION_ERROR_PATTERNS: tuple[str, ...] = (
    "wrong password",
    "invalid key",
    "certificate expired",
    "certificate not yet valid",
    "key not found",
    "certificate revoked",
    "badpaddingexception",
    "invalidkeyexception",
    "certificateexpired",
    "certificatenotyetvalid",
    "invalidpassword",
    "keynotfound",
    "certificaterevoked",
)

TRANSIENT_ERROR_PATTERNS: tuple[str, ...] = (
    "network",
    "connection",
    "timeout",
    "timed out",
    "econnrefused",
    "econnreset",
    "refused",
    "reset",
    "socket",
    "websocket",
)


def _close_code(failure: object) -> Optional[int]:
    """Extract a transport close code, if the failure is or carries one."""
    if isinstance(failure, bool):
        return None
    if isinstance(failure, int):
        return int(failure)
    code = getattr(failure, "close_code", None)
    if isinstance(code, int) and not isinstance(code, bool):
        return int(code)
    return None


def _message(failure: object) -> Optional[str]:
    if isinstance(failure, str):
        return failure
    if isinstance(failure, BaseException):
        try:
            return str(failure)
        except Exception:
            return None
    return None


def classify_error(failure: object) -> ErrorType:
    """Classify a failure as transient, application, or unknown.

    - Transient failures are connectivity problems that may resolve on retry
    - Application failures are agent-side rejections that will not
    - Unknown failures cannot be classified

    Args:
        failure: Any failure value: an exception, an integer close code,
            an object with a ``close_code`` attribute, or a message string.

    Returns:
        The failure classification.

    Example:
        >>> classify_error(1006)
        <ErrorType.TRANSIENT: 'transient'>
        >>> classify_error(Exception("Certificate expired"))
        <ErrorType.APPLICATION: 'application'>
    """
    code = _close_code(failure)
    if code is not None:
        return ErrorType.TRANSIENT if code in TRANSIENT_CLOSE_CODES else ErrorType.APPLICATION

    # Covers OperationTimeoutError and asyncio.TimeoutError
    if isinstance(failure, TimeoutError):
        return ErrorType.TRANSIENT

    message = _message(failure)
    if message:
        lowered = message.lower()
        if any(pattern in lowered for pattern in APPLICATION_ERROR_PATTERNS):
            return ErrorType.APPLICATION
        if any(pattern in lowered for pattern in TRANSIENT_ERROR_PATTERNS):
            return ErrorType.TRANSIENT

    return ErrorType.UNKNOWN


def is_transient_error(failure: object) -> bool:
    """Default retry predicate: transient and unknown failures are retryable."""
    return classify_error(failure) in (ErrorType.TRANSIENT, ErrorType.UNKNOWN)


def is_timeout_error(failure: object) -> bool:
    return isinstance(failure, TimeoutError)


def is_retry_exhausted_error(failure: object) -> bool:
    return isinstance(failure, RetryExhaustedError)
