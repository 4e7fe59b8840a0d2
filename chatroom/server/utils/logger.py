"""
Server logging module.

This module handles server-side logging functionality.
"""

import logging
from datetime import datetime
from pathlib import Path
from typing import Optional

from chatroom.common.constants import LOG_DIR, CHAT_LOG_FILE


class ServerLogger:
    """Server logging class."""

    def __init__(self, logs_dir: str = LOG_DIR, log_level: int = logging.INFO, chat_log_enabled: bool = True):
        self.logs_dir = Path(logs_dir)
        self.chat_log_enabled = chat_log_enabled

        # Set up main logger
        self.logger = logging.getLogger('chatroom_server')
        self.logger.setLevel(log_level)

        # Remove existing handlers
        for handler in self.logger.handlers[:]:
            self.logger.removeHandler(handler)

        # Create console handler
        console_handler = logging.StreamHandler()
        console_handler.setLevel(log_level)

        # Create formatter
        formatter = logging.Formatter(
            '%(asctime)s [%(levelname)s] %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        )
        console_handler.setFormatter(formatter)

        # Add handler to logger
        self.logger.addHandler(console_handler)

        self.chat_log_path = self.logs_dir / CHAT_LOG_FILE

    def configure(self, logs_dir: Optional[str] = None, log_level: Optional[int] = None,
                  chat_log_enabled: Optional[bool] = None):
        """Apply settings from the server configuration."""
        if logs_dir is not None:
            self.logs_dir = Path(logs_dir)
            self.chat_log_path = self.logs_dir / CHAT_LOG_FILE
        if log_level is not None:
            self.logger.setLevel(log_level)
            for handler in self.logger.handlers:
                handler.setLevel(log_level)
        if chat_log_enabled is not None:
            self.chat_log_enabled = chat_log_enabled

    def info(self, message: str):
        """Log info message."""
        self.logger.info(message)

    def error(self, message: str):
        """Log error message."""
        self.logger.error(message)

    def warning(self, message: str):
        """Log warning message."""
        self.logger.warning(message)

    def debug(self, message: str):
        """Log debug message."""
        self.logger.debug(message)

    def log_connection(self, peer, connection_id: str):
        """Log client connection."""
        self.info(f"New connection from {peer}, assigned id={connection_id}")

    def log_join(self, username: str, connection_id: str):
        """Log accepted join."""
        self.info(f"User '{username}' joined (id={connection_id})")

    def log_join_rejected(self, username, connection_id: str, reason: str):
        """Log rejected join."""
        self.info(f"Join rejected for {username!r} (id={connection_id}): {reason}")

    def log_disconnect(self, username: Optional[str], connection_id: str):
        """Log client disconnect."""
        if username is None:
            self.info(f"Connection id={connection_id} closed before joining")
        else:
            self.info(f"User {username} (id={connection_id}) disconnected")

    def log_chat(self, username: str, connection_id: str, kind: str, content: str, sequence: int):
        """Log chat message."""
        self.info(f"Chat #{sequence} [{kind}] from {username} (id={connection_id}): {content}")
        if self.chat_log_enabled:
            self._write_to_file(self.chat_log_path,
                                f"{datetime.now().isoformat()} | #{sequence} | {kind} | {username} | {content}")

    def log_avatar_update(self, username: str, found: bool):
        """Log avatar update."""
        if found:
            self.info(f"Avatar updated for {username}")
        else:
            self.warning(f"Avatar update for unknown user '{username}' dropped")

    def log_delivery_failure(self, connection_id: str, error: Exception):
        """Log a failed send to one connection."""
        self.warning(f"Failed to deliver to id={connection_id}: {error}")

    def log_error(self, operation: str, error: Exception):
        """Log error with operation context."""
        self.error(f"Error in {operation}: {error}")

    def _write_to_file(self, file_path: Path, content: str):
        """Write content to log file."""
        try:
            file_path.parent.mkdir(parents=True, exist_ok=True)
            with open(file_path, 'a', encoding='utf-8') as f:
                f.write(content + '\n')
        except OSError as e:
            self.error(f"Failed to write to log file {file_path}: {e}")


# Global logger instance
logger = ServerLogger()
