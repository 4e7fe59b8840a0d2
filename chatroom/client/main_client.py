#!/usr/bin/env python3
"""
Realtime Chatroom Client - Main Entry Point

Terminal client for the TCP transport. It connects, joins, prints room
traffic and sends each stdin line as a chat message.
"""

import argparse
import asyncio
import json
import sys
from typing import Optional

from chatroom.client.chat.chat_client import ChatClient
from chatroom.client.utils.logger import logger
from chatroom.common.constants import (
    CLIENT_STREAM_LIMIT, DEFAULT_HOST, DEFAULT_PORT, MAX_RETRY_ATTEMPTS, RECONNECT_DELAY_BASE
)
from chatroom.common.errors import FrameTooLarge
from chatroom.common.protocol_definitions import read_frame


class ChatroomClient:
    """Main client class: connection management around a ChatClient."""

    def __init__(self, host: str = DEFAULT_HOST, port: int = DEFAULT_PORT, username: str = 'anonymous',
                 avatar: Optional[str] = None):
        self.host = host
        self.port = port
        self.username = username
        self.avatar = avatar
        self.reader: Optional[asyncio.StreamReader] = None
        self.writer: Optional[asyncio.StreamWriter] = None
        self.running = False
        self.chat_client = ChatClient()

    async def connect(self, retry_count: int = MAX_RETRY_ATTEMPTS, base_delay: float = RECONNECT_DELAY_BASE):
        """Establish connection to the server with retry logic and exponential backoff."""
        attempt = 0

        while attempt < retry_count:
            try:
                self.reader, self.writer = await asyncio.open_connection(
                    self.host, self.port, limit=CLIENT_STREAM_LIMIT
                )
                logger.log_connection(self.host, self.port, True)
                self.running = True
                self.chat_client.set_writer(self.writer)
                return True
            except OSError as e:
                attempt += 1
                logger.log_connection(self.host, self.port, False)
                logger.log_error("connection", e)

                if attempt < retry_count:
                    delay = base_delay * (2 ** (attempt - 1))
                    logger.info(f"[INFO] Retrying connection in {delay}s (attempt {attempt}/{retry_count})...")
                    await asyncio.sleep(delay)
                else:
                    logger.error(f"[ERROR] Failed to connect after {retry_count} attempts")
        return False

    async def listen_for_messages(self):
        """Read frames until the server goes away, then reconnect and rejoin."""
        while self.running:
            try:
                data = await read_frame(self.reader)
            except asyncio.CancelledError:
                break
            except FrameTooLarge:
                logger.error(f"[ERROR] Skipped a frame larger than {CLIENT_STREAM_LIMIT} bytes")
                continue
            except (ConnectionError, OSError) as e:
                logger.error(f"[ERROR] Connection lost: {e}")
                data = b''

            if not data:
                if self.running and await self._reconnect():
                    continue
                self.running = False
                break

            try:
                await self.chat_client.handle_message(json.loads(data.decode('utf-8')))
            except (json.JSONDecodeError, UnicodeDecodeError) as e:
                logger.error(f"[ERROR] Malformed JSON received: {e}")

    async def _reconnect(self):
        """Reconnect with backoff; the server replays users and history on connect."""
        logger.info("[INFO] Server closed connection, attempting to reconnect...")
        if await self.connect(base_delay=RECONNECT_DELAY_BASE):
            await self.chat_client.join(self.chat_client.username or self.username, self.avatar)
            return True
        return False

    async def handle_command(self, line: str) -> bool:
        """Handle a slash command; returns False for unknown commands."""
        command, _, rest = line.partition(' ')
        rest = rest.strip()

        if command == '/avatar':
            self.avatar = rest or None
            await self.chat_client.update_avatar(self.avatar)
        elif command == '/image' and rest:
            image, _, caption = rest.partition(' ')
            await self.chat_client.send_image(image, caption)
        elif command == '/name' and rest:
            await self.chat_client.join(rest, self.avatar)
        elif command == '/users':
            logger.show_users(self.chat_client.users)
        elif command == '/help':
            logger.show_interactive_mode_info()
        else:
            return False
        return True

    async def interactive_mode(self):
        """Run client with interactive chat input."""
        if not await self.connect():
            return

        await self.chat_client.join(self.username, self.avatar)
        listener_task = asyncio.create_task(self.listen_for_messages())
        logger.show_interactive_mode_info()

        try:
            loop = asyncio.get_running_loop()
            while self.running:
                user_input = await loop.run_in_executor(None, sys.stdin.readline)
                if not user_input:
                    break
                line = user_input.strip()
                if not line:
                    continue
                if line.startswith('/'):
                    if not await self.handle_command(line):
                        logger.warning(f"Unknown command: {line}")
                    continue
                if not self.chat_client.joined:
                    logger.warning("Not joined yet; use /name <username> to pick another name")
                    continue
                await self.chat_client.send_text(line)
        except asyncio.CancelledError:
            pass
        finally:
            self.running = False
            listener_task.cancel()
            try:
                await listener_task
            except asyncio.CancelledError:
                pass

            if self.writer:
                self.writer.close()
                try:
                    await self.writer.wait_closed()
                except (ConnectionError, OSError):
                    pass

            logger.info("[INFO] Disconnected from server")


def main(argv=None):
    """Main entry point."""
    parser = argparse.ArgumentParser(description='Realtime Chatroom Client')
    parser.add_argument('--username', type=str, default=None,
                        help='Username for chat (default: asked on start)')
    parser.add_argument('--avatar', type=str, default=None,
                        help='Avatar reference (URL or data URL)')
    parser.add_argument('--server-ip', type=str, default=DEFAULT_HOST,
                        help=f'Server IP address (default: {DEFAULT_HOST})')
    parser.add_argument('--port', type=int, default=DEFAULT_PORT,
                        help=f'Server port of a --transport tcp server (default: {DEFAULT_PORT})')
    args = parser.parse_args(argv)

    username = args.username or input("Enter username: ").strip() or "anonymous"
    client = ChatroomClient(args.server_ip, args.port, username, args.avatar)

    try:
        asyncio.run(client.interactive_mode())
    except KeyboardInterrupt:
        print("\n[INFO] Client terminated")


if __name__ == "__main__":
    main()
