"""Index of live connections to the room identity they represent."""

from watchroom.models.connection import ConnectionInfo


class ConnectionIndex:
    """Maps a connection id to its room, member identity and owner flag.

    This is the only place the router learns who a connection is; identity
    fields inside client payloads are never trusted.
    """

    def __init__(self):
        self._bindings: dict[str, ConnectionInfo] = {}

    def __len__(self) -> int:
        return len(self._bindings)

    def __contains__(self, connection_id: object) -> bool:
        return connection_id in self._bindings

    def bind(self, connection_id: str, info: ConnectionInfo) -> None:
        self._bindings[connection_id] = info

    def lookup(self, connection_id: str) -> ConnectionInfo | None:
        return self._bindings.get(connection_id)

    def unbind(self, connection_id: str) -> ConnectionInfo | None:
        return self._bindings.pop(connection_id, None)

    def connections_for_room(self, room_id: str) -> list[str]:
        return [cid for cid, info in self._bindings.items() if info.room_id == room_id]
