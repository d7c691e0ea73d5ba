"""Error hierarchy for signlink.

Usage:
    from signlink.core.errors import OperationTimeoutError, RetryExhaustedError
"""

from signlink.core.errors.agent import AgentRequestError
from signlink.core.errors.resilience import (
    DelayCancelledError,
    OperationTimeoutError,
    RetryExhaustedError,
)

__all__ = [
    "AgentRequestError",
    "DelayCancelledError",
    "OperationTimeoutError",
    "RetryExhaustedError",
]
