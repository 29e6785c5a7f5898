"""Identifier generation for rooms, owner tokens, messages and connections."""

import secrets
import string

# Uppercase letters and digits without the easily confused 0/O/1/I
ROOM_ID_ALPHABET = (
    (string.ascii_uppercase + string.digits)
    .replace("0", "")
    .replace("O", "")
    .replace("I", "")
    .replace("1", "")
)


class IdGenerator:
    """Produces random identifiers."""

    def __init__(self, room_id_length: int = 6, owner_token_bytes: int = 16):
        self.room_id_length = room_id_length
        self.owner_token_bytes = owner_token_bytes

    def room_id(self) -> str:
        """Short, human-shareable room identifier."""
        return "".join(secrets.choice(ROOM_ID_ALPHABET) for _ in range(self.room_id_length))

    def owner_token(self) -> str:
        """Secret used by a reconnecting owner to reclaim the room."""
        return secrets.token_urlsafe(self.owner_token_bytes)

    def message_id(self, timestamp_ms: int) -> str:
        return f"{timestamp_ms}-{secrets.token_hex(4)}"

    def connection_id(self) -> str:
        return secrets.token_urlsafe(15)
