"""In-memory registry of rooms and their members."""

import logging

from watchroom.models.room import Member, Room, RoomCreate, RoomState
from watchroom.services.ids import IdGenerator
from watchroom.services.scheduler import Scheduler, now_ms

logger = logging.getLogger(__name__)


class RoomRegistry:
    """Owns every Room record and its member map.

    ``member_count`` is derived: each mutator recomputes it from the member
    map and re-checks the room invariants before returning. Rooms are keyed
    by id, members by their membership id.
    """

    def __init__(self, ids: IdGenerator, scheduler: Scheduler):
        self.ids = ids
        self.scheduler = scheduler
        self._rooms: dict[str, Room] = {}
        self._members: dict[str, dict[str, Member]] = {}
        self._last_message_at: dict[str, int] = {}

    def __len__(self) -> int:
        return len(self._rooms)

    def __contains__(self, room_id: object) -> bool:
        return room_id in self._rooms

    def _now(self) -> int:
        return now_ms(self.scheduler)

    def _generate_room_id(self) -> str:
        """Generate a room id not currently in use."""
        max_attempts = 10
        for _ in range(max_attempts):
            room_id = self.ids.room_id()
            if room_id not in self._rooms:
                return room_id
        raise RuntimeError("Failed to generate unique room id")

    def _sync(self, room_id: str) -> None:
        """Recompute member_count and check invariants after a mutation."""
        room = self._rooms[room_id]
        members = self._members[room_id]
        room.member_count = len(members)
        self.check_invariants(room_id)

    def check_invariants(self, room_id: str) -> None:
        room = self._rooms[room_id]
        members = self._members[room_id]
        assert room.member_count == len(members), (
            f"Room {room_id} member_count {room.member_count} != {len(members)} members"
        )
        owners = [m.id for m in members.values() if m.is_owner]
        assert len(owners) <= 1, f"Room {room_id} has several owners: {owners}"

    def create(self, spec: RoomCreate, owner_connection_id: str) -> Room:
        """Create a room with the creator as its sole, owning member."""
        room_id = self._generate_room_id()
        now = self._now()
        room = Room(
            id=room_id,
            name=spec.name,
            description=spec.description,
            password=spec.password,
            is_public=spec.is_public,
            owner_id=owner_connection_id,
            owner_name=spec.user_name,
            owner_token=self.ids.owner_token(),
            created_at=now,
            last_owner_heartbeat=now,
        )
        owner = Member(
            id=owner_connection_id,
            connection_id=owner_connection_id,
            name=spec.user_name,
            is_owner=True,
            last_heartbeat=now,
        )
        self._rooms[room_id] = room
        self._members[room_id] = {owner.id: owner}
        self._sync(room_id)
        return room

    def get(self, room_id: str) -> Room | None:
        return self._rooms.get(room_id)

    def rooms(self) -> list[Room]:
        return list(self._rooms.values())

    def list_public(self) -> list[Room]:
        return [room for room in self._rooms.values() if room.is_public]

    def members(self, room_id: str) -> list[Member]:
        return list(self._members.get(room_id, {}).values())

    def get_member(self, room_id: str, member_id: str) -> Member | None:
        return self._members.get(room_id, {}).get(member_id)

    def owner_member(self, room_id: str) -> Member | None:
        return next(
            (m for m in self._members.get(room_id, {}).values() if m.is_owner),
            None,
        )

    def apply_membership(
        self,
        room_id: str,
        *,
        add: Member | None = None,
        remove: str | None = None,
    ) -> Room | None:
        """Add and/or remove a member.

        ``add`` replaces any member with the same id. Returns None for an
        unknown room.
        """
        room = self._rooms.get(room_id)
        if room is None:
            return None

        members = self._members[room_id]
        if remove is not None:
            members.pop(remove, None)
        if add is not None:
            members[add.id] = add
        self._sync(room_id)
        return room

    def reassign_owner(self, room_id: str, member_id: str, connection_id: str) -> Member | None:
        """Make ``member_id`` the owner, now represented by ``connection_id``."""
        room = self._rooms.get(room_id)
        member = self.get_member(room_id, member_id)
        if room is None or member is None:
            return None

        for other in self._members[room_id].values():
            other.is_owner = other.id == member_id
        now = self._now()
        member.connection_id = connection_id
        member.last_heartbeat = now
        room.owner_id = connection_id
        room.last_owner_heartbeat = now
        self._sync(room_id)
        return member

    def set_state(self, room_id: str, state: RoomState) -> Room | None:
        room = self._rooms.get(room_id)
        if room is None:
            return None
        room.current_state = state
        return room

    def touch_member(self, room_id: str, member_id: str) -> bool:
        """Refresh a member's heartbeat. False if room or member is gone."""
        member = self.get_member(room_id, member_id)
        if member is None:
            return False
        member.last_heartbeat = self._now()
        return True

    def touch_owner(self, room_id: str) -> bool:
        room = self._rooms.get(room_id)
        if room is None:
            return False
        room.last_owner_heartbeat = self._now()
        return True

    def next_message_timestamp(self, room_id: str) -> int:
        """Server timestamp for a chat message, never earlier than the previous one."""
        timestamp = max(self._now(), self._last_message_at.get(room_id, 0))
        self._last_message_at[room_id] = timestamp
        return timestamp

    def delete(self, room_id: str) -> Room | None:
        """Remove a room and its member map."""
        room = self._rooms.pop(room_id, None)
        self._members.pop(room_id, None)
        self._last_message_at.pop(room_id, None)
        if room is not None:
            logger.info(f"Room {room_id} removed from registry")
        return room
