"""Clock and timer interface used by the room lifecycle.

Production code schedules on the running asyncio loop; tests substitute a
virtual-time implementation so grace periods and owner timeouts can be
advanced deterministically.
"""

import asyncio
import time
from typing import Callable, Protocol


class TimerHandle(Protocol):
    """A scheduled callback that can be cancelled."""

    def cancel(self) -> None: ...


class Scheduler(Protocol):
    """Wall clock plus one-shot timers."""

    def time(self) -> float:
        """Current time in seconds since the epoch."""
        ...

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        """Run ``callback`` once after ``delay`` seconds."""
        ...


class LoopScheduler:
    """Scheduler backed by the running asyncio event loop.

    Callbacks run on the loop thread, so they are serialized with every
    connection handler.
    """

    def time(self) -> float:
        return time.time()

    def call_later(self, delay: float, callback: Callable[[], None]) -> asyncio.TimerHandle:
        return asyncio.get_running_loop().call_later(delay, callback)


def now_ms(scheduler: Scheduler) -> int:
    """Scheduler time as epoch milliseconds, the unit used on the wire."""
    return int(scheduler.time() * 1000)
