"""
Chat client module.

This module handles client-side chat messaging functionality.
"""

import asyncio
from typing import Callable, List, Optional

from chatroom.common.constants import MessageTypes
from chatroom.common.protocol_definitions import (
    AudioMeta, create_chat_message, create_join_message, create_update_avatar_message, encode_message
)
from chatroom.client.utils.logger import logger


class ChatClient:
    """Client-side chat functionality over a newline-delimited JSON stream."""

    def __init__(self, writer: Optional[asyncio.StreamWriter] = None):
        self.writer = writer
        self.message_handler: Optional[Callable] = None

        # Local view of the room, rebuilt from users/history on every connect
        self.username: Optional[str] = None  # set only once the server accepts a join
        self.requested_username: Optional[str] = None
        self.joined = False
        self.last_join_error: Optional[dict] = None
        self.users: List[dict] = []
        self.messages: List[dict] = []

    def set_writer(self, writer: asyncio.StreamWriter):
        """Set the writer for sending messages."""
        self.writer = writer
        self.joined = False

    def set_message_handler(self, handler: Callable):
        """Set a callback invoked with every incoming frame after local state is updated."""
        self.message_handler = handler

    async def send_message(self, message: dict) -> bool:
        """Send a JSON message to the server."""
        if not self.writer:
            logger.error("[ERROR] Not connected to server")
            return False

        try:
            self.writer.write(encode_message(message).encode('utf-8') + b'\n')
            await self.writer.drain()
            return True
        except (ConnectionError, OSError) as e:
            logger.error(f"[ERROR] Failed to send message: {e}")
            return False

    async def join(self, username: str, avatar: Optional[str] = None) -> bool:
        self.requested_username = username
        self.last_join_error = None
        logger.show_join_info(username)
        return await self.send_message(create_join_message(username, avatar))

    async def send_text(self, content: str) -> bool:
        return await self.send_message(create_chat_message(content))

    async def send_image(self, image: str, caption: str = '') -> bool:
        return await self.send_message(create_chat_message(caption, image=image))

    async def send_audio(self, audio: str, caption: str = '', meta: Optional[AudioMeta] = None) -> bool:
        return await self.send_message(create_chat_message(caption, audio=audio, audio_meta=meta))

    async def update_avatar(self, avatar: Optional[str]) -> bool:
        if not self.joined:
            logger.error("[ERROR] Join before changing avatar")
            return False
        return await self.send_message(create_update_avatar_message(self.username, avatar))

    async def handle_message(self, message: dict):
        """Handle different types of messages from server."""
        msg_type = message.get('type', '')

        if msg_type == MessageTypes.USERS:
            self.users = message.get('users', [])
            logger.show_users(self.users)
        elif msg_type == MessageTypes.HISTORY:
            self._handle_history_message(message)
        elif msg_type == MessageTypes.MESSAGE:
            self._handle_chat_message(message.get('message', {}))
        elif msg_type == MessageTypes.JOIN_SUCCESS:
            self.joined = True
            self.username = message.get('username', self.requested_username)
            logger.show_join_success(self.username)
        elif msg_type == MessageTypes.JOIN_ERROR:
            # a rejected join leaves any earlier accepted identity in place
            self.last_join_error = message
            logger.show_join_error(message.get('message', 'Join rejected'))
        elif msg_type == MessageTypes.ERROR:
            logger.error(f"[ERROR] Server error: {message.get('message', 'Unknown error')}")
        else:
            logger.warning(f"Unknown message type '{msg_type}' from server")

        if self.message_handler:
            await self.message_handler(message)

    def _handle_history_message(self, message: dict):
        """Replace the local history with the server's replay."""
        self.messages = list(message.get('messages', []))
        count = message.get('count', len(self.messages))

        if count > 0:
            print(f"\n[HISTORY] Loading {count} previous message(s):")
            print("-" * 50)
            for msg in self.messages:
                print(self.format_message(msg))
            print("-" * 50)
        else:
            print("[HISTORY] No previous messages")

    def _handle_chat_message(self, msg: dict):
        self.messages.append(msg)
        # Don't echo our own messages
        if msg.get('username') != self.username:
            print(self.format_message(msg))

    @staticmethod
    def format_message(msg: dict) -> str:
        timestamp = msg.get('timestamp', '')
        username = msg.get('username', 'unknown')
        content = msg.get('content', '')
        kind = msg.get('kind', 'text')
        if kind == 'image':
            content = f"{content} [image]".strip()
        elif kind == 'audio':
            title = (msg.get('audio_meta') or {}).get('title') or 'audio'
            content = f"{content} [{title}]".strip()
        return f"[{timestamp[:19]}] {username}: {content}"
