"""
Chat module for server-side messaging functionality.

Handles:
- User presence tracking
- Message history management
- Chat message broadcasting
"""

from chatroom.server.chat.chat_server import ChatServer

__all__ = ['ChatServer']
