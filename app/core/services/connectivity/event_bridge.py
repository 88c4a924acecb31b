"""Turns platform connectivity signals into connection manager calls."""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import Awaitable, Callable, Optional, Set

from app.core.config import settings
from app.core.services.connectivity.manager import ConnectionManager

logger = logging.getLogger(__name__)


class Signal(str, Enum):
    ONLINE = "online"
    OFFLINE = "offline"
    VISIBLE = "visible"
    CHECK_CONNECTION = "check-connection"


class Debouncer:
    """Runs ``callback`` once ``delay`` seconds after the last trigger."""

    def __init__(self, delay: float, callback: Callable[[], Awaitable[object]]) -> None:
        self._delay = max(0.0, float(delay))
        self._callback = callback
        self._task: Optional[asyncio.Task] = None

    @property
    def pending(self) -> bool:
        return self._task is not None and not self._task.done()

    def trigger(self) -> None:
        self.cancel()
        self._task = asyncio.create_task(self._run())

    def cancel(self) -> bool:
        if not self.pending:
            return False
        self._task.cancel()
        return True

    async def wait(self) -> None:
        if self._task is not None:
            await asyncio.gather(self._task, return_exceptions=True)

    async def _run(self) -> None:
        await asyncio.sleep(self._delay)
        try:
            await self._callback()
        except Exception:
            logger.exception("Debounced callback failed")


class EventBridge:
    """Single consumer of connectivity signals.

    Offline signals act immediately; online and visibility signals wait for
    the network to settle so a burst of them yields one check.
    """

    def __init__(
        self,
        manager: ConnectionManager,
        *,
        settle_delay: float = settings.CONNECTIVITY_SETTLE_DELAY,
    ) -> None:
        self._manager = manager
        self._queue: "asyncio.Queue[Signal]" = asyncio.Queue()
        self._debouncer = Debouncer(settle_delay, manager.run_full_check)
        self._consumer: Optional[asyncio.Task] = None
        self._tasks: Set[asyncio.Task] = set()

    @property
    def debouncer(self) -> Debouncer:
        return self._debouncer

    def emit(self, signal: Signal | str) -> Signal:
        signal = Signal(signal)
        self._queue.put_nowait(signal)
        return signal

    def start(self) -> None:
        if self._consumer is not None and not self._consumer.done():
            return
        self._consumer = asyncio.create_task(self._consume(), name="connectivity-event-bridge")

    async def stop(self) -> None:
        self._debouncer.cancel()
        tasks = [t for t in self._tasks if not t.done()]
        if self._consumer is not None and not self._consumer.done():
            tasks.append(self._consumer)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        await self._debouncer.wait()
        self._consumer = None

    async def drain(self) -> None:
        """Wait until every queued signal has been dispatched."""
        await self._queue.join()

    async def _consume(self) -> None:
        while True:
            signal = await self._queue.get()
            try:
                self.handle(signal)
            except Exception:
                logger.exception("Failed to handle connectivity signal %s", signal.value)
            finally:
                self._queue.task_done()

    def handle(self, signal: Signal) -> None:
        logger.info("Connectivity signal received: %s", signal.value)
        if signal == Signal.OFFLINE:
            self._debouncer.cancel()
            if self._manager.policy().bypass_checks:
                logger.info("Offline signal ignored; connection checks are bypassed")
                return
            self._manager.mark_offline()
        elif signal in (Signal.ONLINE, Signal.VISIBLE):
            self._debouncer.trigger()
        elif signal == Signal.CHECK_CONNECTION:
            self._spawn(self._manager.manual_check())

    def _spawn(self, coro: Awaitable[object]) -> None:
        task = asyncio.ensure_future(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
