"""Debounce gate: run only the last of a burst of scheduled calls."""

import asyncio
from collections.abc import Awaitable, Callable

from loguru import logger

from roomfinder.config import DEBOUNCE_DELAY_SECONDS
from roomfinder.core.cancellation import CancellationToken

DebouncedCallback = Callable[[CancellationToken], Awaitable[None]]


class DebounceGate:
    """Delays a callback until scheduling pauses for `delay` seconds.

    Each schedule() cancels the pending invocation. The callback receives the
    token of its invocation and must check it before writing state after any
    await of its own.
    """

    def __init__(self, delay: float = DEBOUNCE_DELAY_SECONDS) -> None:
        self.delay = delay
        self._task: asyncio.Task[None] | None = None
        self._token: CancellationToken | None = None
        self._closed = False

    @property
    def pending(self) -> bool:
        return self._task is not None and not self._task.done()

    def schedule(self, callback: DebouncedCallback) -> None:
        """Replace any pending invocation with callback. Needs a running loop."""
        if self._closed:
            logger.debug("Debounce gate closed, dropping scheduled call")
            return
        self.cancel()
        token = CancellationToken()
        self._token = token
        self._task = asyncio.get_running_loop().create_task(self._run(callback, token))

    def cancel(self) -> None:
        if self._token is not None:
            self._token.cancel()
            self._token = None
        if self._task is not None:
            if not self._task.done():
                self._task.cancel()
            self._task = None

    def close(self) -> None:
        """Cancel and refuse further scheduling. Used on teardown."""
        self.cancel()
        self._closed = True

    async def wait(self) -> None:
        """Wait until no invocation is pending.

        Cancelling the waiter leaves the pending invocation running.
        """
        while self._task is not None and not self._task.done():
            task = self._task
            await asyncio.wait({task})
            if not task.cancelled():
                task.result()

    async def _run(self, callback: DebouncedCallback, token: CancellationToken) -> None:
        await asyncio.sleep(self.delay)
        if token.cancelled:
            return
        await callback(token)
