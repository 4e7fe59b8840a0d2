"""
Shared constants for the realtime chatroom.

This module contains all constants used across client and server components.
"""

# Network Configuration
DEFAULT_HOST = 'localhost'
DEFAULT_SERVER_HOST = '0.0.0.0'
DEFAULT_PORT = 3000
DEFAULT_TRANSPORT = 'ws'
TRANSPORTS = ('ws', 'tcp')

# Limits
MAX_MESSAGE_BYTES = 8 * 1024 * 1024  # image/avatar references may be inline data URLs
MAX_USERNAME_LENGTH = 32
OUTBOX_SIZE = 1000  # queued outbound frames per connection
CLIENT_STREAM_LIMIT = 8 * MAX_MESSAGE_BYTES  # a history replay carries many messages in one frame

# Chat History (None keeps every message for the life of the process)
MAX_CHAT_HISTORY = None

# Logging
LOG_DIR = 'logs'
CHAT_LOG_FILE = 'chat_history.log'

# Client reconnect
MAX_RETRY_ATTEMPTS = 5
RECONNECT_DELAY_BASE = 1.0

# Join rejection reasons
USERNAME_TAKEN_MESSAGE = 'Username already taken. Please choose another.'


class JoinRejectReasons:
    USERNAME_TAKEN = 'username_taken'
    INVALID_USERNAME = 'invalid_username'
    ALREADY_JOINED = 'already_joined'


class MessageKinds:
    TEXT = 'text'
    IMAGE = 'image'
    AUDIO = 'audio'


# Message Types
class MessageTypes:
    # Client to Server
    JOIN = 'join'
    MESSAGE = 'message'
    UPDATE_AVATAR = 'update_avatar'

    # Server to Client
    USERS = 'users'
    HISTORY = 'history'
    JOIN_SUCCESS = 'join_success'
    JOIN_ERROR = 'join_error'
    ERROR = 'error'
    # MESSAGE is also used for the broadcast of a new chat event
