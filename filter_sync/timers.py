"""Cancellable timer abstraction used for debouncing.

The orchestrator only needs start(delay, fn) -> handle and cancel(handle),
so tests can swap in a scheduler driven by a fake clock.
"""

import asyncio
from typing import Any, Callable, Optional


class AbstractScheduler:
    """Interface for timer schedulers."""

    def start(self, delay: float, fn: Callable[[], None]) -> Any:
        #Run fn once after delay seconds and return a handle for cancel()
        raise NotImplementedError

    def cancel(self, handle: Any) -> None:
        #Cancel a pending timer; unknown or already fired handles are ignored
        raise NotImplementedError


class AsyncioScheduler(AbstractScheduler):
    """Timers on the running asyncio event loop."""

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None) -> None:
        self._loop = loop

    def start(self, delay: float, fn: Callable[[], None]) -> asyncio.TimerHandle:
        loop = self._loop or asyncio.get_running_loop()
        return loop.call_later(delay, fn)

    def cancel(self, handle: asyncio.TimerHandle) -> None:
        handle.cancel()
