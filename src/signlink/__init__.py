"""Resilient detection of and communication with a local signing agent.

Usage:
    from signlink import ResilienceConfig, with_resilience, detect_agent

    status = await detect_agent(PageContext(origin="https://example.uz"))
    result = await with_resilience(lambda: client.version(), ResilienceConfig(max_retries=2))
"""

from signlink.core.connection_state import (
    ConnectionSnapshot,
    ConnectionState,
    ConnectionStateTracker,
    RetryInfo,
)
from signlink.core.detection import (
    ConnectionProbe,
    ConnectionStatus,
    PageContext,
    detect_agent,
    fetch_agent_version,
    get_agent_download_url,
    get_agent_websocket_url,
    is_agent_available,
)
from signlink.core.errors import AgentRequestError
from signlink.core.resilience import (
    DEFAULT_RESILIENCE_CONFIG,
    CancellationToken,
    DelayCancelledError,
    ErrorType,
    OperationTimeoutError,
    ResilienceConfig,
    RetryConfig,
    RetryExhaustedError,
    TimeoutConfig,
    calculate_backoff_delay,
    classify_error,
    create_cancellable_delay,
    is_retry_exhausted_error,
    is_timeout_error,
    is_transient_error,
    with_resilience,
    with_retry,
    with_timeout,
)

__version__ = "0.1.0"

__all__ = [
    # Resilience
    "ErrorType",
    "TimeoutConfig",
    "RetryConfig",
    "ResilienceConfig",
    "DEFAULT_RESILIENCE_CONFIG",
    "classify_error",
    "is_transient_error",
    "is_timeout_error",
    "is_retry_exhausted_error",
    "calculate_backoff_delay",
    "CancellationToken",
    "create_cancellable_delay",
    "with_timeout",
    "with_retry",
    "with_resilience",
    "OperationTimeoutError",
    "RetryExhaustedError",
    "DelayCancelledError",
    "AgentRequestError",
    # Detection
    "PageContext",
    "ConnectionStatus",
    "ConnectionProbe",
    "detect_agent",
    "fetch_agent_version",
    "is_agent_available",
    "get_agent_websocket_url",
    "get_agent_download_url",
    # Connection state
    "ConnectionState",
    "RetryInfo",
    "ConnectionSnapshot",
    "ConnectionStateTracker",
]
