"""Room listing API endpoints."""

from typing import Any
from fastapi import APIRouter, Depends, Request

from watchroom.services.event_router import EventRouter

router = APIRouter(prefix="/rooms", tags=["rooms"])


def get_event_router(request: Request) -> EventRouter:
    """Dependency for the application's event router."""
    return request.app.state.event_router


@router.get("")
async def list_public_rooms(
    event_router: EventRouter = Depends(get_event_router),
) -> list[dict[str, Any]]:
    """List public rooms.

    Same snapshots as the room:list socket request; passwords and owner
    tokens are never included.
    """
    return await event_router.list_rooms()
