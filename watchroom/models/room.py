"""Room models for WatchRoom."""

from typing import Annotated, Any, Literal, Union
from pydantic import BaseModel, Field, computed_field, field_validator
from pydantic.alias_generators import to_camel


class WireModel(BaseModel):
    """Base model for payloads exchanged with clients (camelCase on the wire)."""

    model_config = {
        "alias_generator": to_camel,
        "populate_by_name": True,
    }

    def to_wire(self) -> dict[str, Any]:
        """Serialize using wire aliases, dropping unset optionals."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class PlaybackState(WireModel):
    """Video-on-demand playback state."""
    type: Literal["play"]
    url: str = ""
    current_time: float = 0
    is_playing: bool = False
    video_id: str = ""
    video_name: str = ""
    video_year: str | None = None
    search_title: str | None = None
    episode: int | None = None
    source: str = ""

    model_config = {"extra": "allow"}


class ChannelState(WireModel):
    """Live channel state."""
    type: Literal["live"]
    channel_id: str
    channel_name: str = ""
    channel_url: str = ""

    model_config = {"extra": "allow"}


RoomState = Annotated[Union[PlaybackState, ChannelState], Field(discriminator="type")]


class Member(WireModel):
    """A participant bound to a room.

    ``id`` is the membership identity and stays stable when the owner
    reclaims the room from a new connection; ``connection_id`` follows the
    transport connection currently representing the member.
    """
    id: str
    connection_id: str
    name: str
    is_owner: bool = False
    last_heartbeat: int


class Room(WireModel):
    """A watch room as held by the registry."""
    id: str
    name: str
    description: str = ""
    password: str | None = Field(default=None, exclude=True)
    is_public: bool = True
    owner_id: str
    owner_name: str
    owner_token: str = Field(..., exclude=True)
    member_count: int = 0
    current_state: RoomState | None = None
    created_at: int
    last_owner_heartbeat: int

    @computed_field(alias="hasPassword")
    @property
    def has_password(self) -> bool:
        return bool(self.password)

    def snapshot(self, include_owner_token: bool = False) -> dict[str, Any]:
        """Room as sent to clients.

        The password is never included; the owner token only when asked,
        which is the create-room reply to the creating connection.
        """
        data = self.model_dump(mode="json", by_alias=True)
        if include_owner_token:
            data["ownerToken"] = self.owner_token
        return data


def _blank_to_none(value: str | None) -> str | None:
    if value is None:
        return None
    return value if value.strip() else None


class RoomCreate(WireModel):
    """Payload of a create-room request."""
    name: str = Field(..., min_length=1, max_length=100)
    description: str = Field(default="", max_length=500)
    password: str | None = Field(default=None, max_length=100)
    is_public: bool = True
    user_name: str = Field(..., min_length=1, max_length=50)

    @field_validator("name", "user_name")
    @classmethod
    def _strip(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("must not be blank")
        return value

    @field_validator("password")
    @classmethod
    def _normalize_password(cls, value: str | None) -> str | None:
        return _blank_to_none(value)


class RoomJoin(WireModel):
    """Payload of a join-room request."""
    room_id: str = Field(..., min_length=1, max_length=32)
    password: str | None = Field(default=None, max_length=100)
    user_name: str = Field(..., min_length=1, max_length=50)
    owner_token: str | None = None

    @field_validator("room_id")
    @classmethod
    def _normalize_room_id(cls, value: str) -> str:
        return value.strip().upper()

    @field_validator("user_name")
    @classmethod
    def _strip(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("must not be blank")
        return value

    @field_validator("password", "owner_token")
    @classmethod
    def _blank_to_none(cls, value: str | None) -> str | None:
        return _blank_to_none(value)


class RoomResponse(WireModel):
    """Acknowledgement of a create-room or join-room request."""
    success: bool
    room: dict[str, Any] | None = None
    members: list[Member] | None = None
    error: str | None = None
