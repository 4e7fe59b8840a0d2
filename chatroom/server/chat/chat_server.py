"""
Chat server module.

ChatServer is the single owner of the identity registry, the message log and
the connection table. Transports submit inbound events; one consumer task
dispatches them strictly in arrival order. ``dispatch`` never awaits, so an
event is fully applied (state changes and outbound frames queued) before the
next one starts.
"""

import asyncio
from typing import Dict, Optional

from chatroom.common.constants import MessageKinds
from chatroom.common.errors import IdentityNotFound
from chatroom.common.protocol_definitions import (
    new_chat_event, create_users_message, create_history_message, create_join_success_message,
    create_join_error_message, create_error_message
)
from chatroom.server.chat.broadcaster import BroadcastDispatcher
from chatroom.server.chat.events import (
    AvatarUpdateRequested, ConnectionClosed, ConnectionOpened, InboundEvent, JoinRequested,
    MalformedEvent, MessagePosted
)
from chatroom.server.chat.join import JoinAccepted, JoinProtocol
from chatroom.server.chat.lifecycle import Connection
from chatroom.server.chat.message_log import MessageLog
from chatroom.server.chat.registry import IdentityRegistry
from chatroom.server.utils.config import ServerConfig
from chatroom.server.utils.logger import logger


class ChatServer:
    """Server-side chat functionality."""

    def __init__(self, config: Optional[ServerConfig] = None):
        self.config = config or ServerConfig()
        self.registry = IdentityRegistry()
        self.message_log = MessageLog(max_events=self.config.max_chat_history)
        self.connections: Dict[str, Connection] = {}  # connection id -> Connection
        self.dispatcher = BroadcastDispatcher(self.connections)
        self.join_protocol = JoinProtocol(self.registry, self.config.max_username_length)
        self.events: asyncio.Queue = asyncio.Queue()

    async def submit(self, event: InboundEvent):
        """Queue an inbound event for the dispatch loop."""
        await self.events.put(event)

    async def run(self):
        """Consume inbound events forever, one at a time."""
        while True:
            event = await self.events.get()
            try:
                self.dispatch(event)
            except Exception as e:
                logger.log_error(f"dispatch of {type(event).__name__}", e)
            finally:
                self.events.task_done()

    def dispatch(self, event: InboundEvent):
        """Apply a single inbound event."""
        if isinstance(event, ConnectionOpened):
            self.handle_connect(event)
        elif isinstance(event, JoinRequested):
            self.handle_join(event)
        elif isinstance(event, MessagePosted):
            self.handle_message(event)
        elif isinstance(event, AvatarUpdateRequested):
            self.handle_update_avatar(event)
        elif isinstance(event, ConnectionClosed):
            self.handle_disconnect(event)
        elif isinstance(event, MalformedEvent):
            self.handle_malformed(event)
        else:
            logger.warning(f"Unknown event {event!r}")

    def handle_connect(self, event: ConnectionOpened):
        """Register a new connection and replay presence and history to it alone."""
        if event.connection_id in self.connections:
            logger.warning(f"Duplicate connection id={event.connection_id} ignored")
            return

        connection = Connection(event.connection_id, event.send, event.peer)
        self.connections[connection.connection_id] = connection
        logger.log_connection(event.peer, connection.connection_id)

        self.dispatcher.unicast(connection, create_users_message(self.registry.snapshot()))
        self.dispatcher.unicast(connection, create_history_message(self.message_log.all()))

    def handle_join(self, event: JoinRequested):
        """Process join request."""
        connection = self._get_connection(event.connection_id)
        if connection is None:
            return

        result = self.join_protocol.join(connection, event.username, event.avatar)
        if not isinstance(result, JoinAccepted):
            logger.log_join_rejected(event.username, connection.connection_id, result.reason)
            self.dispatcher.unicast(connection, create_join_error_message(result.reason, result.message))
            return

        logger.log_join(result.identity.username, connection.connection_id)
        self.dispatcher.unicast(connection, create_join_success_message(result.identity))

        # Broadcast updated presence to ALL active connections (including the new user)
        logger.info(f"[PRESENCE] {self.get_participant_count()} participant(s) online")
        self.dispatcher.broadcast_presence(self.registry.snapshot())

    def handle_message(self, event: MessagePosted):
        """Append a chat event and broadcast it to all."""
        connection = self._get_connection(event.connection_id)
        if connection is None:
            return
        if not connection.is_active:
            logger.warning(f"Message from id={connection.connection_id} before join discarded")
            self.dispatcher.unicast(connection, create_error_message("Join the chat before sending messages"))
            return

        sender = self.registry.get(connection.username)
        chat_event = new_chat_event(
            sender_username=connection.username,
            content=event.content,
            sender_avatar=sender.avatar if sender else None,
            image=event.image,
            audio=event.audio,
            audio_meta=event.audio_meta
        )
        sequence = self.message_log.append(chat_event)

        summary = event.content if chat_event.kind == MessageKinds.TEXT else f"{event.content} <{chat_event.kind}>"
        logger.log_chat(connection.username, connection.connection_id, chat_event.kind, summary, sequence)

        self.dispatcher.broadcast_event(chat_event)

    def handle_update_avatar(self, event: AvatarUpdateRequested):
        """Replace a user's avatar and broadcast the new presence list."""
        try:
            self.registry.update_avatar(event.username, event.avatar)
        except IdentityNotFound:
            logger.log_avatar_update(event.username, found=False)
            return

        logger.log_avatar_update(event.username, found=True)
        self.dispatcher.broadcast_presence(self.registry.snapshot())

    def handle_disconnect(self, event: ConnectionClosed):
        """Remove client and notify others."""
        connection = self.connections.pop(event.connection_id, None)
        if connection is None:
            logger.debug(f"Close for unknown connection id={event.connection_id} ignored")
            return

        connection.terminate()
        identity = self.registry.remove(connection.connection_id)
        logger.log_disconnect(identity.username if identity else None, connection.connection_id)

        if identity is not None:
            logger.info(f"[PRESENCE] {self.get_participant_count()} participant(s) online")
            self.dispatcher.broadcast_presence(self.registry.snapshot())

    def handle_malformed(self, event: MalformedEvent):
        """Discard an unusable frame and tell its sender why."""
        logger.warning(f"Malformed event from id={event.connection_id}: {event.reason}")
        connection = self._get_connection(event.connection_id)
        if connection is not None:
            self.dispatcher.unicast(connection, create_error_message(event.reason))

    def _get_connection(self, connection_id: str) -> Optional[Connection]:
        connection = self.connections.get(connection_id)
        if connection is None:
            logger.warning(f"Event for unknown connection id={connection_id} dropped")
        return connection

    def get_participant_count(self) -> int:
        """Get the number of joined users."""
        return len(self.registry)

    def get_connection_count(self) -> int:
        """Get the number of open connections, joined or not."""
        return len(self.connections)
