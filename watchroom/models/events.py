"""Event names and envelopes exchanged over the room connection."""

from enum import Enum
from typing import Any
from pydantic import BaseModel, Field

from watchroom.models.room import WireModel


class ClientEvent(str, Enum):
    """Events sent by clients."""
    # Requests (acknowledged exactly once)
    ROOM_CREATE = "room:create"
    ROOM_JOIN = "room:join"
    ROOM_LIST = "room:list"
    # Messages (fire-and-forget)
    ROOM_LEAVE = "room:leave"
    PLAY_UPDATE = "play:update"
    PLAY_SEEK = "play:seek"
    PLAY_PLAY = "play:play"
    PLAY_PAUSE = "play:pause"
    PLAY_CHANGE = "play:change"
    LIVE_CHANGE = "live:change"
    CHAT_MESSAGE = "chat:message"
    VOICE_OFFER = "voice:offer"
    VOICE_ANSWER = "voice:answer"
    VOICE_ICE = "voice:ice"
    HEARTBEAT = "heartbeat"
    # Raised by the transport when a connection closes
    DISCONNECT = "disconnect"


class ServerEvent(str, Enum):
    """Events pushed to clients."""
    ACK = "ack"
    PING = "ping"
    MEMBER_JOINED = "room:member-joined"
    MEMBER_LEFT = "room:member-left"
    ROOM_DELETED = "room:deleted"
    PLAY_UPDATE = "play:update"
    PLAY_SEEK = "play:seek"
    PLAY_PLAY = "play:play"
    PLAY_PAUSE = "play:pause"
    PLAY_CHANGE = "play:change"
    LIVE_CHANGE = "live:change"
    CHAT_MESSAGE = "chat:message"
    VOICE_OFFER = "voice:offer"
    VOICE_ANSWER = "voice:answer"
    VOICE_ICE = "voice:ice"


REQUEST_EVENTS = frozenset({
    ClientEvent.ROOM_CREATE.value,
    ClientEvent.ROOM_JOIN.value,
    ClientEvent.ROOM_LIST.value,
})

# Signaling event -> name of the opaque payload field it carries
SIGNALING_PAYLOAD_FIELDS = {
    ClientEvent.VOICE_OFFER: "offer",
    ClientEvent.VOICE_ANSWER: "answer",
    ClientEvent.VOICE_ICE: "candidate",
}


class DeletionReason(str, Enum):
    """Why a room was deleted, sent with room:deleted."""
    OWNER_LEFT = "owner_left"
    OWNER_TIMEOUT = "owner_timeout"


class Envelope(BaseModel):
    """A frame received from a client."""
    event: str = Field(..., min_length=1)
    data: Any = None
    ack: int | str | None = None

    @property
    def is_request(self) -> bool:
        return self.event in REQUEST_EVENTS


class SignalingRequest(WireModel):
    """WebRTC signaling payload addressed to one peer."""
    target_user_id: str = Field(..., min_length=1)
    offer: Any = None
    answer: Any = None
    candidate: Any = None
