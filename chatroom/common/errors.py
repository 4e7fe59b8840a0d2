"""
Error taxonomy for the chatroom.

None of these are fatal: every one of them is handled at the point where a
single inbound event is processed, and the rest of the room keeps going.
"""


class ChatroomError(Exception):
    """Base class for all chatroom errors."""


class ProtocolError(ChatroomError):
    """An inbound frame is not a valid event (bad JSON, unknown type, missing field)."""


class InvalidUsername(ChatroomError):
    """Username is empty, whitespace-only, not a string, or too long."""


class UsernameTaken(ChatroomError):
    """Another active connection already holds this exact username."""

    def __init__(self, username: str):
        super().__init__(f"Username '{username}' is already taken")
        self.username = username


class AlreadyJoined(ChatroomError):
    """The connection has already been admitted once."""

    def __init__(self, connection_id: str):
        super().__init__(f"Connection {connection_id} has already joined")
        self.connection_id = connection_id


class IdentityNotFound(ChatroomError):
    """No active identity is registered under this username."""

    def __init__(self, username: str):
        super().__init__(f"No active identity for username '{username}'")
        self.username = username


class InvalidTransition(ChatroomError):
    """A connection was asked to move to a state it cannot reach."""


class DeliveryFailure(ChatroomError):
    """An outbound frame could not be handed to one connection's transport."""

    def __init__(self, connection_id: str, reason: str = ''):
        super().__init__(f"Delivery to {connection_id} failed{': ' + reason if reason else ''}")
        self.connection_id = connection_id
        self.reason = reason


class FrameTooLarge(ProtocolError):
    """A newline-delimited frame exceeded the stream limit and was skipped."""
