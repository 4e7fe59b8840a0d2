"""
Broadcast dispatcher.

This module fans outbound frames out to connections. Delivery is best effort
per connection: one stale connection never blocks the others.
"""

from typing import Dict, List

from chatroom.common.errors import DeliveryFailure
from chatroom.common.protocol_definitions import (
    ChatEvent, Identity, create_event_message, create_users_message, encode_message
)
from chatroom.server.chat.lifecycle import Connection
from chatroom.server.utils.logger import logger


class BroadcastDispatcher:
    """Sends frames to one connection or to every active connection."""

    def __init__(self, connections: Dict[str, Connection]):
        self.connections = connections  # shared with the hub, connection id -> Connection

    def unicast(self, connection: Connection, message: dict) -> bool:
        """Send a JSON message to a specific connection."""
        try:
            connection.deliver(encode_message(message))
            return True
        except DeliveryFailure as e:
            logger.log_delivery_failure(connection.connection_id, e)
            return False

    def broadcast(self, message: dict) -> List[str]:
        """
        Send a JSON message to every connection that is active right now.
        Returns the ids of connections that could not be reached.
        """
        payload = encode_message(message)
        targets = [connection for connection in self.connections.values() if connection.is_active]
        failed = []

        for connection in targets:
            try:
                connection.deliver(payload)
            except DeliveryFailure as e:
                logger.log_delivery_failure(connection.connection_id, e)
                failed.append(connection.connection_id)

        logger.debug(f"[BROADCAST] type={message.get('type')} to {len(targets)} connections, {len(failed)} failed")
        return failed

    def broadcast_presence(self, identities: List[Identity]) -> List[str]:
        return self.broadcast(create_users_message(identities))

    def broadcast_event(self, event: ChatEvent) -> List[str]:
        return self.broadcast(create_event_message(event))
