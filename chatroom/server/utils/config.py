"""
Server configuration module.

This module handles server-side configuration settings.
"""

import os
import ssl
from typing import Mapping, Optional

from chatroom.common.constants import (
    DEFAULT_SERVER_HOST, DEFAULT_PORT, DEFAULT_TRANSPORT, TRANSPORTS, MAX_CHAT_HISTORY,
    MAX_MESSAGE_BYTES, MAX_USERNAME_LENGTH, OUTBOX_SIZE, LOG_DIR
)


class ServerConfig:
    """Server configuration class."""

    def __init__(self, host: str = DEFAULT_SERVER_HOST, port: int = DEFAULT_PORT,
                 transport: str = DEFAULT_TRANSPORT, max_chat_history: Optional[int] = MAX_CHAT_HISTORY,
                 ssl_certfile: Optional[str] = None, ssl_keyfile: Optional[str] = None):
        if transport not in TRANSPORTS:
            raise ValueError(f"Unknown transport '{transport}', expected one of {', '.join(TRANSPORTS)}")
        if max_chat_history is not None and max_chat_history <= 0:
            raise ValueError("max_chat_history must be positive or None")

        self.host = host
        self.port = port
        self.transport = transport

        # TLS (WebSocket transport only)
        self.ssl_certfile = ssl_certfile
        self.ssl_keyfile = ssl_keyfile

        # Logging configuration
        self.logs_dir = LOG_DIR
        self.chat_log_enabled = True

        # Chat settings
        self.max_chat_history = max_chat_history
        self.max_username_length = MAX_USERNAME_LENGTH

        # Connection settings
        self.max_message_bytes = MAX_MESSAGE_BYTES
        self.outbox_size = OUTBOX_SIZE

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> 'ServerConfig':
        """Build a configuration from PORT, HOST, SSL_CERT_PATH, SSL_KEY_PATH and CHATROOM_TRANSPORT."""
        environ = os.environ if environ is None else environ
        port = environ.get('PORT')
        return cls(
            host=environ.get('HOST', DEFAULT_SERVER_HOST),
            port=int(port) if port else DEFAULT_PORT,
            transport=environ.get('CHATROOM_TRANSPORT', DEFAULT_TRANSPORT),
            ssl_certfile=environ.get('SSL_CERT_PATH') or None,
            ssl_keyfile=environ.get('SSL_KEY_PATH') or None
        )

    @property
    def tls_enabled(self) -> bool:
        return bool(self.ssl_certfile and self.ssl_keyfile)

    def create_ssl_context(self) -> Optional[ssl.SSLContext]:
        """Create a server TLS context when both certificate and key are set."""
        if not self.tls_enabled:
            return None
        context = ssl.create_default_context(ssl.Purpose.CLIENT_AUTH)
        context.load_cert_chain(self.ssl_certfile, self.ssl_keyfile)
        return context

    def get_connection_info(self):
        """Get connection information."""
        return {
            'host': self.host,
            'port': self.port,
            'transport': self.transport,
            'tls': self.tls_enabled
        }

    def get_limits(self):
        """Get chat and connection limits."""
        return {
            'max_chat_history': self.max_chat_history,
            'max_username_length': self.max_username_length,
            'max_message_bytes': self.max_message_bytes,
            'outbox_size': self.outbox_size
        }

    def get_log_settings(self):
        """Get logging settings."""
        return {
            'logs_dir': self.logs_dir,
            'chat_log_enabled': self.chat_log_enabled
        }
