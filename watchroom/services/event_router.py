"""Room event dispatcher: authorization, state changes and relays."""

import logging
import secrets
from functools import partial
from typing import Any, Awaitable, Callable, Protocol, Sequence

from pydantic import TypeAdapter, ValidationError

from watchroom.config import Settings, get_settings
from watchroom.models.chat import ChatMessage, ChatMessageCreate
from watchroom.models.connection import ConnectionInfo
from watchroom.models.events import (
    REQUEST_EVENTS,
    SIGNALING_PAYLOAD_FIELDS,
    ClientEvent,
    DeletionReason,
    ServerEvent,
    SignalingRequest,
)
from watchroom.models.room import (
    ChannelState,
    Member,
    PlaybackState,
    Room,
    RoomCreate,
    RoomJoin,
    RoomResponse,
)
from watchroom.services.cleanup import CleanupScheduler
from watchroom.services.connections import ConnectionIndex
from watchroom.services.errors import (
    InvalidPassword,
    MalformedRequest,
    RoomError,
    RoomNotFound,
    Unauthorized,
)
from watchroom.services.ids import IdGenerator
from watchroom.services.registry import RoomRegistry
from watchroom.services.scheduler import LoopScheduler, Scheduler, now_ms

logger = logging.getLogger(__name__)

_seek_time = TypeAdapter(float)


class Emitter(Protocol):
    """Outbound side of the transport."""

    def emit(self, connection_ids: Sequence[str], event: str, data: Any = None) -> None:
        """Queue ``event`` for each connection, in call order."""
        ...


RequestHandler = Callable[[str, Any], Awaitable[Any]]
MessageHandler = Callable[[str, Any], None]


class EventRouter:
    """Dispatches client events against the room registry.

    Events come in two categories. Requests (create, join, list) are
    coroutines answered exactly once; failures become ``success: false``
    responses. Messages are synchronous relays; anything the sender is not
    allowed to do, or sends without being in a room, is dropped silently.

    Handlers never await between reading and mutating registry state, so
    on a single event loop every event is applied atomically.
    """

    def __init__(
        self,
        emitter: Emitter,
        scheduler: Scheduler | None = None,
        settings: Settings | None = None,
        ids: IdGenerator | None = None,
    ):
        self.settings = settings or get_settings()
        self.emitter = emitter
        self.scheduler = scheduler or LoopScheduler()
        self.ids = ids or IdGenerator(
            room_id_length=self.settings.room_id_length,
            owner_token_bytes=self.settings.owner_token_bytes,
        )
        self.registry = RoomRegistry(self.ids, self.scheduler)
        self.connections = ConnectionIndex()
        self.cleanup = CleanupScheduler(
            self.registry,
            self.scheduler,
            on_expired=self.delete_room,
            grace_period_seconds=self.settings.grace_period_seconds,
            owner_timeout_seconds=self.settings.owner_timeout_seconds,
            interval_seconds=self.settings.cleanup_interval_seconds,
        )

        self._request_handlers: dict[ClientEvent, RequestHandler] = {
            ClientEvent.ROOM_CREATE: self._create_request,
            ClientEvent.ROOM_JOIN: self._join_request,
            ClientEvent.ROOM_LIST: self._list_request,
        }
        self._message_handlers: dict[ClientEvent, MessageHandler] = {
            ClientEvent.ROOM_LEAVE: self.leave_room,
            ClientEvent.DISCONNECT: self.leave_room,
            ClientEvent.PLAY_UPDATE: self.play_update,
            ClientEvent.PLAY_SEEK: self.play_seek,
            ClientEvent.PLAY_PLAY: partial(self._relay_transport, ServerEvent.PLAY_PLAY),
            ClientEvent.PLAY_PAUSE: partial(self._relay_transport, ServerEvent.PLAY_PAUSE),
            ClientEvent.PLAY_CHANGE: self.play_change,
            ClientEvent.LIVE_CHANGE: self.live_change,
            ClientEvent.CHAT_MESSAGE: self.chat_message,
            ClientEvent.VOICE_OFFER: partial(self.relay_signal, ClientEvent.VOICE_OFFER),
            ClientEvent.VOICE_ANSWER: partial(self.relay_signal, ClientEvent.VOICE_ANSWER),
            ClientEvent.VOICE_ICE: partial(self.relay_signal, ClientEvent.VOICE_ICE),
            ClientEvent.HEARTBEAT: self.heartbeat,
        }

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    @staticmethod
    def is_request(event: str) -> bool:
        return event in REQUEST_EVENTS

    async def handle_request(self, connection_id: str, event: str, data: Any = None) -> Any:
        """Run a request event and return its acknowledgement payload."""
        try:
            handler = self._request_handlers[ClientEvent(event)]
        except (ValueError, KeyError):
            return RoomResponse(success=False, error=f"Unknown request: {event}").to_wire()

        try:
            return await handler(connection_id, data)
        except ValidationError as e:
            field = ".".join(str(part) for part in e.errors()[0]["loc"]) or "payload"
            return RoomResponse(
                success=False,
                error=f"{MalformedRequest.message}: invalid {field}",
            ).to_wire()
        except RoomError as e:
            return RoomResponse(success=False, error=str(e)).to_wire()
        except Exception as e:
            logger.exception(f"Error handling {event} from {connection_id}: {e}")
            return RoomResponse(success=False, error="Internal server error").to_wire()

    def handle_message(self, connection_id: str, event: str, data: Any = None) -> None:
        """Run a fire-and-forget event. Never reports errors to the sender."""
        try:
            handler = self._message_handlers[ClientEvent(event)]
        except (ValueError, KeyError):
            logger.debug(f"Ignoring unknown event {event!r} from {connection_id}")
            return

        try:
            handler(connection_id, data)
        except ValidationError:
            logger.debug(f"Dropping malformed {event} from {connection_id}")
        except Unauthorized:
            logger.debug(f"Dropping {event} from {connection_id}: sender is not the owner")

    def disconnect(self, connection_id: str) -> None:
        self.handle_message(connection_id, ClientEvent.DISCONNECT.value)

    # ------------------------------------------------------------------
    # Requests
    # ------------------------------------------------------------------

    async def _create_request(self, connection_id: str, data: Any) -> dict[str, Any]:
        response = await self.create_room(connection_id, RoomCreate.model_validate(data or {}))
        return response.to_wire()

    async def _join_request(self, connection_id: str, data: Any) -> dict[str, Any]:
        response = await self.join_room(connection_id, RoomJoin.model_validate(data or {}))
        return response.to_wire()

    async def _list_request(self, connection_id: str, data: Any) -> list[dict[str, Any]]:
        return await self.list_rooms()

    async def create_room(self, connection_id: str, spec: RoomCreate) -> RoomResponse:
        """Create a room owned by ``connection_id``.

        The reply is the only message that ever carries the owner token.
        """
        if self.connections.lookup(connection_id) is not None:
            self.leave_room(connection_id)

        room = self.registry.create(spec, connection_id)
        self.connections.bind(
            connection_id,
            ConnectionInfo(
                room_id=room.id,
                user_id=connection_id,
                user_name=spec.user_name,
                is_owner=True,
            ),
        )
        logger.info(f"Room created: {room.id} by {spec.user_name}")
        return RoomResponse(success=True, room=room.snapshot(include_owner_token=True))

    async def join_room(self, connection_id: str, request: RoomJoin) -> RoomResponse:
        """Join a room, reclaiming ownership when the owner token matches."""
        room = self.registry.get(request.room_id)
        if room is None:
            raise RoomNotFound()
        if room.password and room.password != request.password:
            raise InvalidPassword()

        reclaiming = self._owner_token_matches(room, request.owner_token)
        current = self.connections.lookup(connection_id)
        if current is not None:
            if current.room_id == room.id:
                if current.is_owner or not reclaiming:
                    # Joining again from the same connection changes nothing
                    return self._join_response(room.id)
                # A plain member presenting the token is promoted to owner
                self._drop_member(connection_id)
            else:
                self.leave_room(connection_id)
                room = self.registry.get(request.room_id)
                if room is None:
                    raise RoomNotFound()

        room_id = room.id
        self.cleanup.cancel(room_id)

        if reclaiming:
            member = self._reclaim_ownership(room_id, connection_id, request.user_name)
            logger.info(f"Owner {request.user_name} reconnected to room {room_id}")
        else:
            member = Member(
                id=self._new_member_id(room_id, connection_id),
                connection_id=connection_id,
                name=request.user_name,
                is_owner=False,
                last_heartbeat=now_ms(self.scheduler),
            )
            self.registry.apply_membership(room_id, add=member)
            logger.info(f"User {request.user_name} joined room {room_id}")

        self.connections.bind(
            connection_id,
            ConnectionInfo(
                room_id=room_id,
                user_id=member.id,
                user_name=member.name,
                is_owner=member.is_owner,
            ),
        )
        self.emitter.emit(
            self._others(room_id, connection_id),
            ServerEvent.MEMBER_JOINED.value,
            member.to_wire(),
        )
        return self._join_response(room_id)

    @staticmethod
    def _owner_token_matches(room: Room, token: str | None) -> bool:
        if not token:
            return False
        return secrets.compare_digest(token.encode(), room.owner_token.encode())

    def _reclaim_ownership(self, room_id: str, connection_id: str, user_name: str) -> Member:
        """Rebind the owner member to a new connection.

        The owner keeps its membership id; the connection that represented
        it before (if still bound) no longer speaks for the room.
        """
        owner = self.registry.owner_member(room_id)
        if owner is None:
            owner = Member(
                id=self._new_member_id(room_id, connection_id),
                connection_id=connection_id,
                name=user_name,
                is_owner=True,
                last_heartbeat=now_ms(self.scheduler),
            )
            self.registry.apply_membership(room_id, add=owner)
        elif owner.connection_id != connection_id:
            self.connections.unbind(owner.connection_id)

        return self.registry.reassign_owner(room_id, owner.id, connection_id)

    def _new_member_id(self, room_id: str, connection_id: str) -> str:
        """Membership id for a new member joining from ``connection_id``.

        The connection id is used unless a member already holds it, which
        happens when the owner reclaimed the room and its old connection
        joins again.
        """
        if self.registry.get_member(room_id, connection_id) is None:
            return connection_id
        member_id = self.ids.connection_id()
        while self.registry.get_member(room_id, member_id) is not None:
            member_id = self.ids.connection_id()
        return member_id

    def _drop_member(self, connection_id: str) -> None:
        """Remove a non-owner member without touching the grace timer."""
        info = self.connections.unbind(connection_id)
        self.registry.apply_membership(info.room_id, remove=info.user_id)
        self.emitter.emit(
            self._everyone(info.room_id), ServerEvent.MEMBER_LEFT.value, info.user_id
        )

    def _join_response(self, room_id: str) -> RoomResponse:
        room = self.registry.get(room_id)
        return RoomResponse(
            success=True,
            room=room.snapshot(),
            members=self.registry.members(room_id),
        )

    async def list_rooms(self) -> list[dict[str, Any]]:
        return [room.snapshot() for room in self.registry.list_public()]

    # ------------------------------------------------------------------
    # Leave / delete
    # ------------------------------------------------------------------

    def leave_room(self, connection_id: str, data: Any = None) -> None:
        """Handle an explicit leave or a lost connection.

        The owner leaving disbands the room. Otherwise the member is removed
        and, if the room is now empty, its grace timer is armed.
        """
        info = self.connections.unbind(connection_id)
        if info is None:
            return
        room_id = info.room_id
        if self.registry.get(room_id) is None:
            return

        if info.is_owner:
            self._disband(room_id, info)
            return

        self.registry.apply_membership(room_id, remove=info.user_id)
        logger.info(f"User {info.user_name} left room {room_id}")
        self.emitter.emit(self._everyone(room_id), ServerEvent.MEMBER_LEFT.value, info.user_id)

        room = self.registry.get(room_id)
        if room.member_count == 0:
            self.cleanup.arm(room_id)

    def _disband(self, room_id: str, owner: ConnectionInfo) -> None:
        self.registry.apply_membership(room_id, remove=owner.user_id)
        logger.info(f"Owner {owner.user_name} left room {room_id}, disbanding")
        self.emitter.emit(
            self._everyone(room_id),
            ServerEvent.ROOM_DELETED.value,
            {"reason": DeletionReason.OWNER_LEFT.value},
        )
        self.delete_room(room_id, notify=False)

    def delete_room(
        self,
        room_id: str,
        reason: DeletionReason | None = None,
        notify: bool = True,
    ) -> bool:
        """Delete a room, evicting every connection still bound to it."""
        if self.registry.get(room_id) is None:
            return False

        recipients = self._everyone(room_id)
        if notify:
            payload = {"reason": reason.value} if reason is not None else None
            self.emitter.emit(recipients, ServerEvent.ROOM_DELETED.value, payload)

        for connection_id in self.connections.connections_for_room(room_id):
            self.connections.unbind(connection_id)
        self.registry.delete(room_id)
        self.cleanup.cancel(room_id)
        logger.info(f"Deleted room {room_id}" + (f" ({reason.value})" if reason else ""))
        return True

    # ------------------------------------------------------------------
    # Relays
    # ------------------------------------------------------------------

    def _context(self, connection_id: str) -> ConnectionInfo | None:
        """Identity of a connection bound to a live room, or None."""
        info = self.connections.lookup(connection_id)
        if info is None or self.registry.get(info.room_id) is None:
            return None
        return info

    def _owner_context(self, connection_id: str) -> ConnectionInfo | None:
        """Like _context, but raises Unauthorized unless the sender owns the room."""
        info = self._context(connection_id)
        if info is None:
            return None
        if not info.is_owner or self.registry.get(info.room_id).owner_id != connection_id:
            raise Unauthorized()
        return info

    def _everyone(self, room_id: str) -> list[str]:
        return [m.connection_id for m in self.registry.members(room_id)]

    def _others(self, room_id: str, connection_id: str) -> list[str]:
        return [cid for cid in self._everyone(room_id) if cid != connection_id]

    def play_update(self, connection_id: str, data: Any) -> None:
        # Position updates are owner-authoritative; see play_seek for the transport commands
        info = self._owner_context(connection_id)
        if info is None:
            return
        state = PlaybackState.model_validate(data)
        self.registry.set_state(info.room_id, state)
        self.emitter.emit(
            self._others(info.room_id, connection_id),
            ServerEvent.PLAY_UPDATE.value,
            data,
        )

    def play_seek(self, connection_id: str, data: Any) -> None:
        info = self._context(connection_id)
        if info is None:
            return
        _seek_time.validate_python(data, strict=True)
        self.emitter.emit(
            self._others(info.room_id, connection_id),
            ServerEvent.PLAY_SEEK.value,
            data,
        )

    def _relay_transport(self, event: ServerEvent, connection_id: str, data: Any = None) -> None:
        """Relay play/pause from any member of the room."""
        info = self._context(connection_id)
        if info is None:
            return
        self.emitter.emit(self._others(info.room_id, connection_id), event.value)

    def play_change(self, connection_id: str, data: Any) -> None:
        info = self._owner_context(connection_id)
        if info is None:
            return
        state = PlaybackState.model_validate(data)
        self.registry.set_state(info.room_id, state)
        self.emitter.emit(
            self._others(info.room_id, connection_id),
            ServerEvent.PLAY_CHANGE.value,
            data,
        )

    def live_change(self, connection_id: str, data: Any) -> None:
        info = self._owner_context(connection_id)
        if info is None:
            return
        state = ChannelState.model_validate(data)
        self.registry.set_state(info.room_id, state)
        self.emitter.emit(
            self._others(info.room_id, connection_id),
            ServerEvent.LIVE_CHANGE.value,
            data,
        )

    def chat_message(self, connection_id: str, data: Any) -> None:
        """Broadcast a chat message to the whole room, sender included."""
        info = self._context(connection_id)
        if info is None:
            return
        incoming = ChatMessageCreate.model_validate(data)
        if not incoming.content.strip() or len(incoming.content) > self.settings.max_chat_length:
            logger.debug(f"Dropping chat message from {connection_id}: empty or too long")
            return

        timestamp = self.registry.next_message_timestamp(info.room_id)
        message = ChatMessage(
            id=self.ids.message_id(timestamp),
            sender_id=info.user_id,
            sender_name=info.user_name,
            content=incoming.content,
            kind=incoming.kind,
            timestamp=timestamp,
        )
        self.emitter.emit(
            self._everyone(info.room_id),
            ServerEvent.CHAT_MESSAGE.value,
            message.to_wire(),
        )

    def relay_signal(self, event: ClientEvent, connection_id: str, data: Any) -> None:
        """Forward a WebRTC signaling payload to one peer of the same room."""
        info = self._context(connection_id)
        if info is None:
            return
        request = SignalingRequest.model_validate(data)
        target = self._resolve_peer(info.room_id, request.target_user_id)
        if target is None:
            logger.debug(f"Dropping {event.value} from {connection_id}: unknown target")
            return

        field = SIGNALING_PAYLOAD_FIELDS[event]
        self.emitter.emit(
            [target],
            ServerEvent(event.value).value,
            {"userId": info.user_id, field: getattr(request, field)},
        )

    def _resolve_peer(self, room_id: str, target: str) -> str | None:
        """Connection id for a member id or connection id within ``room_id``."""
        member = self.registry.get_member(room_id, target)
        if member is not None:
            return member.connection_id
        info = self.connections.lookup(target)
        if info is not None and info.room_id == room_id:
            return target
        return None

    def heartbeat(self, connection_id: str, data: Any = None) -> None:
        info = self._context(connection_id)
        if info is None:
            return
        if not self.registry.touch_member(info.room_id, info.user_id):
            return
        if info.is_owner:
            self.registry.touch_owner(info.room_id)
