"""Errors surfaced to clients through request acknowledgements."""


class RoomError(Exception):
    """Base class for user-facing room errors."""

    message = "Room request failed"

    def __init__(self, message: str | None = None):
        super().__init__(message or self.message)


class RoomNotFound(RoomError):
    message = "Room not found"


class InvalidPassword(RoomError):
    message = "Invalid password"


class Unauthorized(RoomError):
    message = "Not allowed"


class MalformedRequest(RoomError):
    message = "Malformed request"
