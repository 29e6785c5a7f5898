"""Chat message models for WatchRoom."""

from enum import Enum
from pydantic import Field

from watchroom.models.room import WireModel


class MessageKind(str, Enum):
    """Kind of chat message."""
    TEXT = "text"
    EMOJI = "emoji"


class ChatMessageCreate(WireModel):
    """Chat message as sent by a client."""
    content: str = Field(..., min_length=1)
    kind: MessageKind = Field(default=MessageKind.TEXT, alias="type")


class ChatMessage(WireModel):
    """Chat message as broadcast to the room.

    Sender identity comes from the connection index, never from the payload.
    """
    id: str
    sender_id: str = Field(..., alias="userId")
    sender_name: str = Field(..., alias="userName")
    content: str
    kind: MessageKind = Field(..., alias="type")
    timestamp: int

    model_config = {"frozen": True}
