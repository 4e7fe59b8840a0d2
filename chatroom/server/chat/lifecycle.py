"""
Connection lifecycle.

Each transport session is wrapped in a Connection that moves
CONNECTING -> ACTIVE -> TERMINATED (or straight to TERMINATED if it never
joins). There is no way back from TERMINATED; a reconnecting client gets a new
Connection.
"""

from enum import Enum
from typing import Callable, Optional

from chatroom.common.errors import DeliveryFailure, InvalidTransition


class ConnectionState(Enum):
    CONNECTING = 'connecting'
    ACTIVE = 'active'
    TERMINATED = 'terminated'


_TRANSITIONS = {
    ConnectionState.CONNECTING: {ConnectionState.ACTIVE, ConnectionState.TERMINATED},
    ConnectionState.ACTIVE: {ConnectionState.TERMINATED},
    ConnectionState.TERMINATED: set(),
}


class Connection:
    """One live transport session as seen by the chat core."""

    def __init__(self, connection_id: str, send: Callable[[str], None], peer=None):
        self.connection_id = connection_id
        self.peer = peer
        self.state = ConnectionState.CONNECTING
        self.username: Optional[str] = None
        self._send = send  # must not block; the transport queues the frame

    @property
    def is_active(self) -> bool:
        return self.state is ConnectionState.ACTIVE

    @property
    def is_terminated(self) -> bool:
        return self.state is ConnectionState.TERMINATED

    def _transition(self, new_state: ConnectionState):
        if new_state not in _TRANSITIONS[self.state]:
            raise InvalidTransition(
                f"Connection {self.connection_id} cannot go from {self.state.value} to {new_state.value}"
            )
        self.state = new_state

    def activate(self, username: str):
        """Mark the connection as joined under ``username``."""
        self._transition(ConnectionState.ACTIVE)
        self.username = username

    def terminate(self):
        self._transition(ConnectionState.TERMINATED)

    def deliver(self, payload: str):
        """Hand an encoded frame to the transport."""
        if self.is_terminated:
            raise DeliveryFailure(self.connection_id, "connection terminated")
        try:
            self._send(payload)
        except Exception as e:
            raise DeliveryFailure(self.connection_id, str(e) or type(e).__name__) from e

    def __repr__(self):
        return f"Connection(id={self.connection_id!r}, state={self.state.value}, username={self.username!r})"
