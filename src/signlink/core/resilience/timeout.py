"""Deadline guard for async operations.

Races an operation against a timer. The operation is started as a task;
if the timer wins, OperationTimeoutError is raised and the operation's late
outcome is discarded. The operation keeps running unless the config asks
for it to be cancelled, in which case the guard waits for the operation's
cleanup to finish before raising.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Optional, TypeVar

from signlink.core.errors.resilience import OperationTimeoutError
from signlink.core.observability import audit_log
from signlink.core.resilience.models import TimeoutConfig

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _discard_late_outcome(task: "asyncio.Future[object]") -> None:
    """Retrieve a late task's exception so it is not reported as unhandled."""
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.debug("Discarding late failure of timed-out operation: %r", exc)


async def with_timeout(
    func: Callable[[], Awaitable[T]],
    config: Optional[TimeoutConfig] = None,
) -> T:
    """Run ``func`` with a deadline.

    Args:
        func: Async function to run (no arguments; use lambda for args).
        config: Timeout settings (defaults to a 30000 ms budget).

    Returns:
        Result from the function if it settles first.

    Raises:
        OperationTimeoutError: If the deadline passes first.
        Exception: The operation's own failure if it settles first.

    Example:
        >>> result = await with_timeout(
        ...     lambda: client.version(),
        ...     TimeoutConfig(timeout_ms=5000, message="Version call timed out"),
        ... )
    """
    cfg = config or TimeoutConfig()
    task = asyncio.ensure_future(func())

    try:
        done, _ = await asyncio.wait({task}, timeout=cfg.timeout_ms / 1000)
    except asyncio.CancelledError:
        # The caller was cancelled; do not leave an orphaned operation behind
        task.cancel()
        raise

    if task in done:
        return task.result()

    audit_log(
        "operation_timeout",
        timeout_ms=cfg.timeout_ms,
        cancelled=cfg.cancel_on_timeout,
    )
    if cfg.cancel_on_timeout:
        # Let the operation's cleanup (finally blocks) finish before reporting
        task.cancel()
        await asyncio.wait({task})
        _discard_late_outcome(task)
    else:
        task.add_done_callback(_discard_late_outcome)
    raise OperationTimeoutError(cfg.effective_message, cfg.timeout_ms)
