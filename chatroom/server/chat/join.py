"""
Join protocol.

Validates a candidate identity and admits it into the registry. A rejected
join is recoverable: the connection stays open in CONNECTING and the client
may retry with another username.
"""

from dataclasses import dataclass
from typing import Any, Optional, Union

from chatroom.common.constants import JoinRejectReasons, MAX_USERNAME_LENGTH, USERNAME_TAKEN_MESSAGE
from chatroom.common.errors import AlreadyJoined, InvalidUsername, UsernameTaken
from chatroom.common.protocol_definitions import Identity
from chatroom.server.chat.lifecycle import Connection, ConnectionState
from chatroom.server.chat.registry import IdentityRegistry


@dataclass(frozen=True)
class JoinAccepted:
    identity: Identity


@dataclass(frozen=True)
class JoinRejected:
    reason: str
    message: str


JoinResult = Union[JoinAccepted, JoinRejected]


class JoinProtocol:
    """Admits connections into the identity registry."""

    def __init__(self, registry: IdentityRegistry, max_username_length: int = MAX_USERNAME_LENGTH):
        self.registry = registry
        self.max_username_length = max_username_length

    def validate_username(self, username: Any) -> str:
        if not isinstance(username, str) or not username.strip():
            raise InvalidUsername("Username must not be empty")
        if len(username) > self.max_username_length:
            raise InvalidUsername(f"Username must be at most {self.max_username_length} characters")
        return username

    def join(self, connection: Connection, username: Any, avatar: Optional[str] = None) -> JoinResult:
        """Try to admit ``connection`` as ``username``.

        On success the registry holds the new identity and the connection is
        ACTIVE. On rejection neither is changed.
        """
        if connection.state is not ConnectionState.CONNECTING:
            return JoinRejected(JoinRejectReasons.ALREADY_JOINED, "You have already joined the chat.")

        try:
            username = self.validate_username(username)
            identity = self.registry.admit(connection.connection_id, username, avatar)
        except InvalidUsername as e:
            return JoinRejected(JoinRejectReasons.INVALID_USERNAME, str(e))
        except UsernameTaken:
            return JoinRejected(JoinRejectReasons.USERNAME_TAKEN, USERNAME_TAKEN_MESSAGE)
        except AlreadyJoined:
            return JoinRejected(JoinRejectReasons.ALREADY_JOINED, "You have already joined the chat.")

        connection.activate(identity.username)
        return JoinAccepted(identity)
