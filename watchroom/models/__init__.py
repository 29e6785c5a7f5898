"""Pydantic models for WatchRoom."""

from watchroom.models.room import (
    WireModel,
    Member,
    PlaybackState,
    ChannelState,
    RoomState,
    Room,
    RoomCreate,
    RoomJoin,
    RoomResponse,
)
from watchroom.models.chat import (
    MessageKind,
    ChatMessage,
    ChatMessageCreate,
)
from watchroom.models.connection import (
    ConnectionInfo,
    StoredRoomInfo,
)
from watchroom.models.events import (
    ClientEvent,
    ServerEvent,
    DeletionReason,
    Envelope,
    SignalingRequest,
    REQUEST_EVENTS,
)

__all__ = [
    # Room models
    "WireModel",
    "Member",
    "PlaybackState",
    "ChannelState",
    "RoomState",
    "Room",
    "RoomCreate",
    "RoomJoin",
    "RoomResponse",
    # Chat models
    "MessageKind",
    "ChatMessage",
    "ChatMessageCreate",
    # Connection models
    "ConnectionInfo",
    "StoredRoomInfo",
    # Event models
    "ClientEvent",
    "ServerEvent",
    "DeletionReason",
    "Envelope",
    "SignalingRequest",
    "REQUEST_EVENTS",
]
