"""Connection lifecycle tracking driven by resilience telemetry.

The tracker is the only writer of connection state. Consumers read it via
properties or snapshot(), and observe changes with subscribe(); there is
no public setter. State moves only in response to telemetry:

    DISCONNECTED | ERROR     → CONNECTING   (operation start)
    CONNECTING | RETRYING    → CONNECTED    (success)
    CONNECTING | CONNECTED   → RETRYING     (retry scheduled)
    CONNECTING | RETRYING    → ERROR        (exhaustion or non-retryable failure)
    any                      → DISCONNECTED (explicit reset)

ERROR is not terminal; the next operation re-enters CONNECTING.

Example:
    >>> tracker = ConnectionStateTracker()
    >>> version = await tracker.run(lambda: agent.version(), name="version")
    >>> tracker.state
    <ConnectionState.CONNECTED: 'connected'>
"""

import asyncio
import dataclasses
import logging
import random
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Awaitable, Callable, List, Optional, TypeVar

from signlink.core.errors.resilience import RetryExhaustedError
from signlink.core.observability import audit_log, truncate_message
from signlink.core.resilience import ResilienceConfig, SleepFunc, with_resilience

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ConnectionState(str, Enum):
    """Connection lifecycle state."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    RETRYING = "retrying"
    ERROR = "error"


class TelemetryEvent(str, Enum):
    """Resilience telemetry the tracker reacts to."""

    START = "start"
    SUCCESS = "success"
    RETRY = "retry"
    FAILURE = "failure"


# --- Transition rules: event -> {current state: next state} ---

CONNECTION_TRANSITIONS: dict[TelemetryEvent, dict[ConnectionState, ConnectionState]] = {
    TelemetryEvent.START: {
        ConnectionState.DISCONNECTED: ConnectionState.CONNECTING,
        ConnectionState.ERROR: ConnectionState.CONNECTING,
    },
    TelemetryEvent.SUCCESS: {
        ConnectionState.CONNECTING: ConnectionState.CONNECTED,
        ConnectionState.RETRYING: ConnectionState.CONNECTED,
        ConnectionState.CONNECTED: ConnectionState.CONNECTED,
    },
    TelemetryEvent.RETRY: {
        ConnectionState.CONNECTING: ConnectionState.RETRYING,
        ConnectionState.CONNECTED: ConnectionState.RETRYING,
        ConnectionState.RETRYING: ConnectionState.RETRYING,  # later attempts
    },
    TelemetryEvent.FAILURE: {
        ConnectionState.CONNECTING: ConnectionState.ERROR,
        ConnectionState.RETRYING: ConnectionState.ERROR,
    },
}


@dataclass(frozen=True)
class RetryInfo:
    """Details of the retry in progress; present only while RETRYING."""

    operation: str
    attempt: int
    max_attempts: int
    last_failure_message: str


@dataclass(frozen=True)
class ConnectionSnapshot:
    """Immutable view of the tracker at one instant."""

    state: ConnectionState
    retry_info: Optional[RetryInfo]
    last_error: Optional[str]
    failure_count: int
    last_success_at: Optional[datetime]

    @property
    def is_connected(self) -> bool:
        return self.state == ConnectionState.CONNECTED


StateListener = Callable[[ConnectionState, ConnectionState, ConnectionSnapshot], None]


def _failure_message(failure: object) -> str:
    if isinstance(failure, RetryExhaustedError) and failure.last_error is not None:
        return f"{failure.message}: {failure.last_error}"
    return str(failure) or type(failure).__name__


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ConnectionStateTracker:
    """State machine mirroring resilience telemetry into a connection state.

    Single-writer: only the record_* handlers (fed by run() or by a caller
    wiring its own with_resilience telemetry) and reset() change state.
    """

    def __init__(self, clock: Optional[Callable[[], datetime]] = None) -> None:
        self._clock = clock or _utcnow
        self._state = ConnectionState.DISCONNECTED
        self._retry_info: Optional[RetryInfo] = None
        self._last_error: Optional[str] = None
        self._failure_count = 0
        self._last_success_at: Optional[datetime] = None
        self._listeners: List[StateListener] = []

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def retry_info(self) -> Optional[RetryInfo]:
        return self._retry_info

    @property
    def last_error(self) -> Optional[str]:
        return self._last_error

    @property
    def failure_count(self) -> int:
        return self._failure_count

    @property
    def last_success_at(self) -> Optional[datetime]:
        return self._last_success_at

    @property
    def is_connected(self) -> bool:
        return self._state == ConnectionState.CONNECTED

    def snapshot(self) -> ConnectionSnapshot:
        return ConnectionSnapshot(
            state=self._state,
            retry_info=self._retry_info,
            last_error=self._last_error,
            failure_count=self._failure_count,
            last_success_at=self._last_success_at,
        )

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        """Register a state-change listener.

        Args:
            listener: Called with ``(old_state, new_state, snapshot)`` after
                every change of state.

        Returns:
            A callable that removes the listener.
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    # --- Transitions ---

    def _next_state(self, event: TelemetryEvent) -> Optional[ConnectionState]:
        target = CONNECTION_TRANSITIONS[event].get(self._state)
        if target is None:
            logger.debug("Ignoring %s telemetry in state %s", event.value, self._state.value)
        return target

    def _move_to(self, target: ConnectionState) -> None:
        old = self._state
        self._state = target
        if old == target:
            return
        audit_log(
            "connection_state_change",
            old_state=old.value,
            new_state=target.value,
            failure_count=self._failure_count,
        )
        snapshot = self.snapshot()
        for listener in list(self._listeners):
            try:
                listener(old, target, snapshot)
            except Exception:
                logger.exception("Connection state listener failed")

    def record_start(self) -> None:
        """An operation is starting."""
        target = self._next_state(TelemetryEvent.START)
        if target is not None:
            self._move_to(target)

    def record_success(self) -> None:
        """An operation succeeded: clear retry info and the failure counter."""
        target = self._next_state(TelemetryEvent.SUCCESS)
        if target is None:
            return
        self._retry_info = None
        self._failure_count = 0
        self._last_error = None
        self._last_success_at = self._clock()
        self._move_to(target)

    def record_retry(
        self,
        operation: str,
        attempt: int,
        max_attempts: int,
        failure: object,
    ) -> None:
        """The retry engine scheduled another attempt after ``failure``."""
        target = self._next_state(TelemetryEvent.RETRY)
        if target is None:
            return
        self._retry_info = RetryInfo(
            operation=operation,
            attempt=attempt,
            max_attempts=max_attempts,
            last_failure_message=truncate_message(_failure_message(failure)),
        )
        self._move_to(target)

    def record_failure(self, failure: object) -> None:
        """An operation failed terminally (exhausted or non-retryable)."""
        message = _failure_message(failure)
        target = self._next_state(TelemetryEvent.FAILURE)
        if target is None:
            # Still reachable; keep the state but remember what went wrong
            self._last_error = message
            return
        self._retry_info = None
        self._last_error = message
        self._failure_count += 1
        self._move_to(target)

    def reset(self) -> None:
        """Return to DISCONNECTED and forget all history."""
        self._retry_info = None
        self._last_error = None
        self._failure_count = 0
        self._last_success_at = None
        self._move_to(ConnectionState.DISCONNECTED)

    # --- Driving an operation ---

    async def run(
        self,
        func: Callable[[], Awaitable[T]],
        *,
        name: str = "operation",
        config: Optional[ResilienceConfig] = None,
        rng: Optional[random.Random] = None,
        sleep_func: Optional[SleepFunc] = None,
    ) -> T:
        """Execute ``func`` through with_resilience, mirroring its telemetry.

        The caller's own ``on_retry`` hook in ``config`` still fires, after
        the tracker has recorded the retry.

        Args:
            func: Async function to execute (no arguments; use lambda for args).
            name: Operation name reported in RetryInfo.
            config: Resilience settings (defaults apply when omitted).
            rng: Injectable Random instance for deterministic jitter in tests.
            sleep_func: Injectable sleep function for the retry delays.

        Returns:
            Result from the function on success.
        """
        cfg = config or ResilienceConfig()
        caller_on_retry = cfg.on_retry
        max_attempts = cfg.max_retries + 1

        def on_retry(attempt: int, failure: object, delay_ms: int) -> None:
            self.record_retry(name, attempt, max_attempts, failure)
            if caller_on_retry is not None:
                caller_on_retry(attempt, failure, delay_ms)

        effective = dataclasses.replace(cfg, on_retry=on_retry)

        self.record_start()
        try:
            result = await with_resilience(func, effective, rng=rng, sleep_func=sleep_func)
        except asyncio.CancelledError:
            self.record_failure(f"{name} cancelled")
            raise
        except Exception as e:
            self.record_failure(e)
            raise
        self.record_success()
        return result
