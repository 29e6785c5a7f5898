"""API routers for WatchRoom."""

from watchroom.routers.rooms import router as rooms_router
from watchroom.routers.websocket import router as websocket_router

__all__ = [
    "rooms_router",
    "websocket_router",
]
