"""Named, cancelable timers and polling loops on the asyncio event loop."""

from __future__ import annotations

import asyncio
import inspect
from typing import Any, Awaitable, Callable, Union

from ..core.logger import get_logger


logger = get_logger("floatchat.scheduler")

Callback = Callable[[], Union[None, Awaitable[Any]]]


class Scheduler:
    """Owns one handle per name: periodic loops and one-shot delayed tasks.

    Every callback runs on the event loop thread, so a callback body is an
    atomic step with respect to the others until it awaits.
    """

    def __init__(self) -> None:
        self._loops: dict[str, asyncio.Task[None]] = {}
        self._timers: dict[str, asyncio.TimerHandle] = {}
        self._tasks: set[asyncio.Task[Any]] = set()

    # ------------------------------------------------------------------ #
    # Periodic loops
    # ------------------------------------------------------------------ #
    def start_loop(self, name: str, interval: float, callback: Callback, *, replace: bool = False) -> bool:
        """Run ``callback`` every ``interval`` seconds until cancelled.

        Starting a loop that already runs is a no-op unless ``replace``.
        """
        if self.is_running(name):
            if not replace:
                return False
            self.cancel(name)
        loop = asyncio.get_running_loop()
        task = loop.create_task(self._run_loop(name, interval, callback), name=f"loop:{name}")
        self._loops[name] = task
        return True

    def is_running(self, name: str) -> bool:
        task = self._loops.get(name)
        return task is not None and not task.done()

    async def _run_loop(self, name: str, interval: float, callback: Callback) -> None:
        current = asyncio.current_task()
        try:
            while True:
                await asyncio.sleep(interval)
                await self._invoke(name, callback)
        finally:
            if self._loops.get(name) is current:
                del self._loops[name]

    # ------------------------------------------------------------------ #
    # One-shot delayed tasks
    # ------------------------------------------------------------------ #
    def call_later(self, name: str, delay: float, callback: Callback) -> None:
        """Schedule ``callback`` once; replaces a pending task of the same name."""
        self._cancel_timer(name)
        loop = asyncio.get_running_loop()
        self._timers[name] = loop.call_later(max(0.0, delay), self._fire, name, callback)

    def pending(self, name: str) -> bool:
        return name in self._timers

    def _fire(self, name: str, callback: Callback) -> None:
        self._timers.pop(name, None)
        try:
            result = callback()
        except Exception:
            logger.exception("Delayed task %s failed", name)
            return
        if inspect.isawaitable(result):
            task = asyncio.ensure_future(self._await_detached(name, result))
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)

    async def _await_detached(self, name: str, awaitable: Awaitable[Any]) -> None:
        try:
            await awaitable
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("Delayed task %s failed", name)

    # ------------------------------------------------------------------ #
    # Cancellation
    # ------------------------------------------------------------------ #
    def cancel(self, name: str) -> bool:
        """Cancel the loop or delayed task registered under ``name``."""
        cancelled = self._cancel_timer(name)
        task = self._loops.pop(name, None)
        if task is not None and not task.done():
            task.cancel()
            cancelled = True
        return cancelled

    def shutdown(self) -> None:
        for name in list(self._timers):
            self._cancel_timer(name)
        for name in list(self._loops):
            self.cancel(name)
        for task in list(self._tasks):
            task.cancel()
        self._tasks.clear()

    def _cancel_timer(self, name: str) -> bool:
        handle = self._timers.pop(name, None)
        if handle is None:
            return False
        handle.cancel()
        return True

    @staticmethod
    async def _invoke(name: str, callback: Callback) -> None:
        try:
            result = callback()
            if inspect.isawaitable(result):
                await result
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("Scheduled loop %s failed", name)
