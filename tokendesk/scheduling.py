"""asyncio timers: latest-wins debouncing, periodic refresh and display windows."""

import asyncio
from typing import Any, Awaitable, Callable, Optional

from loguru import logger


class Debouncer:
    """
    Run the most recent call after ``delay`` seconds of quiet.

    Each :meth:`call` cancels the pending one. A sequence token guards the
    result: if a newer call was made while the coroutine was running, its
    result is dropped instead of being delivered to ``on_result``.
    """

    def __init__(
        self,
        delay: float,
        on_result: Callable[[Any], None],
        on_error: Optional[Callable[[BaseException], None]] = None,
    ):
        self.delay = delay
        self.on_result = on_result
        self.on_error = on_error
        self._sequence = 0
        self._task: Optional[asyncio.Task] = None

    @property
    def sequence(self) -> int:
        return self._sequence

    @property
    def pending(self) -> bool:
        return self._task is not None and not self._task.done()

    def call(self, factory: Callable[[], Awaitable[Any]]) -> asyncio.Task:
        """Schedule ``factory()`` to run after the delay, superseding earlier calls."""
        self.cancel()
        self._sequence += 1
        self._task = asyncio.ensure_future(self._run(self._sequence, factory))
        return self._task

    def is_latest(self, token: int) -> bool:
        return token == self._sequence

    async def _run(self, token: int, factory: Callable[[], Awaitable[Any]]) -> None:
        await asyncio.sleep(self.delay)
        try:
            result = await factory()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            if self.is_latest(token) and self.on_error is not None:
                self.on_error(e)
            return
        if self.is_latest(token):
            self.on_result(result)
        else:
            logger.debug(f"Dropping stale result for call {token}")

    def cancel(self) -> None:
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None

    def invalidate(self) -> None:
        """Cancel the pending call and make any in-flight result stale."""
        self.cancel()
        self._sequence += 1


class PeriodicTask:
    """Call an async function every ``interval`` seconds until stopped."""

    def __init__(self, interval: float, func: Callable[[], Awaitable[Any]], name: str = "periodic"):
        if interval <= 0:
            raise ValueError("interval must be > 0")
        self.interval = interval
        self.func = func
        self.name = name
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.ensure_future(self._loop())

    async def _loop(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            try:
                await self.func()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.warning(f"{self.name} refresh failed: {e}")

    async def stop(self) -> None:
        if self._task is None:
            return
        task, self._task = self._task, None
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass


class DisplayTimer:
    """Run a callback once after a fixed display window; re-arming replaces it."""

    def __init__(self, delay: float, callback: Callable[[], None]):
        self.delay = delay
        self.callback = callback
        self._handle: Optional[asyncio.TimerHandle] = None

    @property
    def armed(self) -> bool:
        return self._handle is not None

    def arm(self) -> None:
        self.cancel()
        loop = asyncio.get_running_loop()
        self._handle = loop.call_later(self.delay, self._fire)

    def _fire(self) -> None:
        self._handle = None
        self.callback()

    def cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None
