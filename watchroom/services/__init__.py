"""Services for WatchRoom."""

from watchroom.services.ids import IdGenerator
from watchroom.services.registry import RoomRegistry
from watchroom.services.connections import ConnectionIndex
from watchroom.services.cleanup import CleanupScheduler
from watchroom.services.scheduler import LoopScheduler, Scheduler
from watchroom.services.event_router import EventRouter, Emitter

__all__ = [
    "IdGenerator",
    "RoomRegistry",
    "ConnectionIndex",
    "CleanupScheduler",
    "LoopScheduler",
    "Scheduler",
    "EventRouter",
    "Emitter",
]
