"""
Identity registry.

Tracks which usernames are held by which active connections. Entries are keyed
by username, so two active identities can never share one.
"""

from dataclasses import replace
from typing import Dict, List, Optional

from chatroom.common.errors import AlreadyJoined, IdentityNotFound, UsernameTaken
from chatroom.common.protocol_definitions import Identity


class IdentityRegistry:
    """Authoritative set of currently active identities."""

    def __init__(self):
        self._identities: Dict[str, Identity] = {}  # username -> identity, in admission order
        self._usernames: Dict[str, str] = {}  # connection id -> username

    def admit(self, connection_id: str, username: str, avatar: Optional[str] = None) -> Identity:
        """Register ``username`` for ``connection_id``.

        Raises UsernameTaken if another connection holds the exact same
        username, and AlreadyJoined if this connection was admitted before.
        """
        if connection_id in self._usernames:
            raise AlreadyJoined(connection_id)
        if username in self._identities:
            raise UsernameTaken(username)

        identity = Identity(username=username, avatar=avatar, is_online=True)
        self._identities[username] = identity
        self._usernames[connection_id] = username
        return identity

    def remove(self, connection_id: str) -> Optional[Identity]:
        """Drop the identity held by ``connection_id``; None if it never joined."""
        username = self._usernames.pop(connection_id, None)
        if username is None:
            return None
        return self._identities.pop(username, None)

    def update_avatar(self, username: str, avatar: Optional[str]) -> Identity:
        """Replace the avatar reference of a registered username."""
        identity = self._identities.get(username)
        if identity is None:
            raise IdentityNotFound(username)
        updated = replace(identity, avatar=avatar)
        self._identities[username] = updated
        return updated

    def snapshot(self) -> List[Identity]:
        """Active identities, first occurrence per username."""
        seen = set()
        identities = []
        for identity in self._identities.values():
            if identity.username in seen:
                continue
            seen.add(identity.username)
            identities.append(identity)
        return identities

    def get(self, username: str) -> Optional[Identity]:
        return self._identities.get(username)

    def username_for(self, connection_id: str) -> Optional[str]:
        return self._usernames.get(connection_id)

    def __contains__(self, username: str) -> bool:
        return username in self._identities

    def __len__(self) -> int:
        return len(self._identities)
