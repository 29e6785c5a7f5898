"""Timer-driven room cleanup: owner timeout sweep and empty-room grace timers."""

import logging
from typing import Callable

from watchroom.models.events import DeletionReason
from watchroom.services.registry import RoomRegistry
from watchroom.services.scheduler import Scheduler, TimerHandle, now_ms

logger = logging.getLogger(__name__)

ExpireCallback = Callable[[str, DeletionReason | None], object]


class CleanupScheduler:
    """Deletes rooms nobody is keeping alive.

    Two independent mechanisms:

    - a recurring sweep that expires rooms whose owner heartbeat is older
      than ``owner_timeout_seconds``;
    - one grace timer per emptied room, deleting it if nobody rejoins
      within ``grace_period_seconds``.

    Deletion itself is delegated to ``on_expired`` so that it goes through
    the same broadcast path as an explicit disband.
    """

    def __init__(
        self,
        registry: RoomRegistry,
        scheduler: Scheduler,
        on_expired: ExpireCallback,
        grace_period_seconds: float = 30,
        owner_timeout_seconds: float = 300,
        interval_seconds: float = 30,
    ):
        self.registry = registry
        self.scheduler = scheduler
        self.on_expired = on_expired
        self.grace_period_seconds = grace_period_seconds
        self.owner_timeout_seconds = owner_timeout_seconds
        self.interval_seconds = interval_seconds
        # room_id -> armed grace timer, at most one per room
        self._grace_timers: dict[str, TimerHandle] = {}
        self._sweep_handle: TimerHandle | None = None
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    def start(self) -> None:
        """Start the recurring owner-timeout sweep."""
        if self._running:
            return
        self._running = True
        self._schedule_sweep()
        logger.info(f"Cleanup sweep started (every {self.interval_seconds}s)")

    def stop(self) -> None:
        """Stop the sweep and cancel every armed grace timer."""
        self._running = False
        if self._sweep_handle is not None:
            self._sweep_handle.cancel()
            self._sweep_handle = None
        for handle in self._grace_timers.values():
            handle.cancel()
        self._grace_timers.clear()
        logger.info("Cleanup sweep stopped")

    def _schedule_sweep(self) -> None:
        self._sweep_handle = self.scheduler.call_later(self.interval_seconds, self._run_sweep)

    def _run_sweep(self) -> None:
        self._sweep_handle = None
        try:
            self.sweep()
        except Exception as e:
            logger.exception(f"Error during cleanup sweep: {e}")
        finally:
            if self._running:
                self._schedule_sweep()

    def sweep(self) -> list[str]:
        """Expire every room whose owner heartbeat has timed out.

        Returns the ids of the expired rooms.
        """
        now = now_ms(self.scheduler)
        timeout_ms = self.owner_timeout_seconds * 1000
        expired = [
            room.id
            for room in self.registry.rooms()
            if now - room.last_owner_heartbeat > timeout_ms
        ]
        for room_id in expired:
            logger.info(f"Room {room_id} owner heartbeat timed out, deleting")
            self.on_expired(room_id, DeletionReason.OWNER_TIMEOUT)
        return expired

    def arm(self, room_id: str, delay: float | None = None) -> None:
        """Arm the grace timer of an emptied room.

        Arming a room that already has a timer is a bug in the caller: the
        previous timer must be cancelled or have fired first.
        """
        if room_id in self._grace_timers:
            raise RuntimeError(f"Grace timer already armed for room {room_id}")
        if delay is None:
            delay = self.grace_period_seconds
        self._grace_timers[room_id] = self.scheduler.call_later(
            delay, lambda: self._grace_expired(room_id)
        )
        logger.info(f"Room {room_id} is empty, deleting in {delay}s unless someone rejoins")

    def cancel(self, room_id: str) -> bool:
        """Cancel the grace timer of a room. False if none was armed."""
        handle = self._grace_timers.pop(room_id, None)
        if handle is None:
            return False
        handle.cancel()
        logger.info(f"Cancelled deletion timer for room {room_id}")
        return True

    def is_armed(self, room_id: str) -> bool:
        return room_id in self._grace_timers

    def _grace_expired(self, room_id: str) -> None:
        # A fired timer is spent; drop it so it is never cancelled afterwards
        self._grace_timers.pop(room_id, None)
        room = self.registry.get(room_id)
        if room is None or room.member_count > 0:
            return
        logger.info(f"Room {room_id} grace period expired, deleting")
        self.on_expired(room_id, None)
