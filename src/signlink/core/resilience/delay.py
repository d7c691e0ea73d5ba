"""Cancellable delays for the retry engine.

A CancellationToken is handed to the wait primitive; cancelling the token
rejects any delay currently waiting on it with DelayCancelledError. Tokens
are one-shot: once cancelled they stay cancelled.

Example:
    >>> token = CancellationToken()
    >>> delay = create_cancellable_delay(5000, token=token)
    >>> # elsewhere: token.cancel() or delay.cancel()
    >>> await delay.wait()
"""

import asyncio
from typing import Optional

from signlink.core.errors.resilience import DelayCancelledError
from signlink.core.resilience.models import SleepFunc


class CancellationToken:
    """One-shot cancellation signal shared between a caller and a delay."""

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self._reason = "Delay cancelled"

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def reason(self) -> str:
        return self._reason

    def cancel(self, reason: Optional[str] = None) -> None:
        """Signal cancellation. Repeated calls keep the first reason."""
        if self._event.is_set():
            return
        if reason:
            self._reason = reason
        self._event.set()

    async def wait(self) -> None:
        """Suspend until the token is cancelled."""
        await self._event.wait()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise DelayCancelledError(self._reason)


async def cancellable_sleep(
    seconds: float,
    token: Optional[CancellationToken] = None,
    sleep_func: Optional[SleepFunc] = None,
) -> None:
    """Sleep for ``seconds`` unless ``token`` is cancelled first.

    Args:
        seconds: Delay length in seconds.
        token: Optional cancellation token. Without one this is a plain sleep.
        sleep_func: Injectable sleep function for time control in tests.

    Raises:
        DelayCancelledError: If the token is cancelled before or during the wait.
    """
    _sleep = sleep_func or asyncio.sleep
    if token is None:
        await _sleep(seconds)
        return

    token.raise_if_cancelled()

    sleeper = asyncio.ensure_future(_sleep(seconds))
    watcher = asyncio.ensure_future(token.wait())
    try:
        await asyncio.wait({sleeper, watcher}, return_when=asyncio.FIRST_COMPLETED)
    finally:
        for task in (sleeper, watcher):
            if not task.done():
                task.cancel()

    # Cancellation wins a tie with an elapsed timer
    token.raise_if_cancelled()
    # Surface errors raised by an injected sleep function
    sleeper.result()


class CancellableDelay:
    """A single delay that can be aborted from outside the waiting coroutine."""

    def __init__(
        self,
        delay_ms: int,
        token: Optional[CancellationToken] = None,
        sleep_func: Optional[SleepFunc] = None,
    ) -> None:
        if delay_ms < 0:
            raise ValueError(f"delay_ms must be >= 0, got {delay_ms}")
        self.delay_ms = delay_ms
        self.token = token or CancellationToken()
        self._sleep_func = sleep_func

    async def wait(self) -> None:
        await cancellable_sleep(self.delay_ms / 1000, self.token, self._sleep_func)

    def cancel(self, reason: Optional[str] = None) -> None:
        self.token.cancel(reason)


def create_cancellable_delay(
    delay_ms: int,
    *,
    token: Optional[CancellationToken] = None,
    sleep_func: Optional[SleepFunc] = None,
) -> CancellableDelay:
    """Create a delay of ``delay_ms`` milliseconds that can be cancelled."""
    return CancellableDelay(delay_ms, token=token, sleep_func=sleep_func)
