"""Cancellable trailing-edge debounce with a depth-1 write-behind queue."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import Any, Generic, TypeVar

T = TypeVar("T")

_MISSING: Any = object()


class DebouncedCall(Generic[T]):
    """Run *callback* with the latest scheduled value once calls go quiet.

    Only the most recent value is kept: scheduling again replaces the
    pending value and restarts the timer. Fired callbacks run as tasks on
    the loop and are tracked so teardown can await them.
    """

    def __init__(
        self,
        delay: float,
        callback: Callable[[T], Awaitable[None]],
        *,
        loop: asyncio.AbstractEventLoop | None = None,
    ) -> None:
        if delay < 0:
            raise ValueError(f"delay must be >= 0, got {delay}")
        self._delay = delay
        self._callback = callback
        self._loop = loop
        self._pending: Any = _MISSING
        self._handle: asyncio.TimerHandle | None = None
        self._in_flight: set[asyncio.Task[None]] = set()

    @property
    def delay(self) -> float:
        return self._delay

    @property
    def has_pending(self) -> bool:
        return self._pending is not _MISSING

    @property
    def pending(self) -> T | None:
        return None if self._pending is _MISSING else self._pending

    @property
    def in_flight(self) -> int:
        return len(self._in_flight)

    def _get_loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        return self._loop

    def schedule(self, value: T) -> None:
        """Replace the pending value and restart the quiet period."""
        loop = self._get_loop()
        if self._handle is not None:
            self._handle.cancel()
        self._pending = value
        self._handle = loop.call_later(self._delay, self._fire)

    def cancel(self) -> bool:
        """Drop the pending value. Returns ``True`` if one was pending."""
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None
        had_pending = self.has_pending
        self._pending = _MISSING
        return had_pending

    def _take(self) -> Any:
        value = self._pending
        self._pending = _MISSING
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None
        return value

    def _fire(self) -> None:
        self._handle = None
        value = self._take()
        if value is _MISSING:
            return
        task = self._get_loop().create_task(self._callback(value))
        self._in_flight.add(task)
        task.add_done_callback(self._in_flight.discard)

    async def flush(self) -> bool:
        """Run the pending value now. Returns ``True`` if one was pending."""
        value = self._take()
        if value is _MISSING:
            return False
        await self._callback(value)
        return True

    async def drain(self) -> None:
        """Wait for callbacks that already fired."""
        if self._in_flight:
            await asyncio.gather(*list(self._in_flight), return_exceptions=True)
