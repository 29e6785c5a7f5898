"""Connection and reconnection models for WatchRoom."""

from pydantic import Field

from watchroom.models.room import RoomJoin, WireModel


class ConnectionInfo(WireModel):
    """What room and identity a live connection currently represents."""
    room_id: str
    user_id: str
    user_name: str
    is_owner: bool = False


class StoredRoomInfo(WireModel):
    """Reconnection record kept by the client between page loads.

    ``timestamp`` is epoch milliseconds of when the record was written.
    """
    room_id: str = Field(..., min_length=1)
    room_name: str | None = None
    is_owner: bool = False
    user_name: str = Field(..., min_length=1)
    password: str | None = None
    owner_token: str | None = None
    timestamp: int

    def is_fresh(self, now_ms: int, max_age_seconds: float) -> bool:
        """Whether the record is recent enough to auto-rejoin with."""
        return now_ms - self.timestamp <= max_age_seconds * 1000

    def to_join_request(self, now_ms: int, max_age_seconds: float) -> RoomJoin | None:
        """Build the join request for an auto-rejoin, or None if the record is stale."""
        if not self.is_fresh(now_ms, max_age_seconds):
            return None
        return RoomJoin(
            room_id=self.room_id,
            password=self.password,
            user_name=self.user_name,
            owner_token=self.owner_token,
        )
