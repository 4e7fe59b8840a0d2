#!/usr/bin/env python3
"""
Realtime Chatroom Server - Main Entry Point

This module wires the chat hub to a transport and runs both until interrupted.
"""

import argparse
import asyncio
import logging
from typing import Optional

from chatroom.common.constants import TRANSPORTS
from chatroom.server.chat.chat_server import ChatServer
from chatroom.server.transport.tcp_transport import TcpTransport
from chatroom.server.transport.ws_transport import WebSocketTransport
from chatroom.server.utils.config import ServerConfig
from chatroom.server.utils.logger import logger


class ChatroomServer:
    """Main server class that integrates the hub and its transport."""

    def __init__(self, config: Optional[ServerConfig] = None):
        self.config = config or ServerConfig()
        self.chat_server = ChatServer(self.config)

        if self.config.transport == 'tcp':
            self.transport = TcpTransport(self.chat_server, self.config.host, self.config.port)
        else:
            self.transport = WebSocketTransport(self.chat_server, self.config.host, self.config.port)

        self.hub_task: Optional[asyncio.Task] = None

    async def start(self):
        """Start the dispatch loop and bind the transport."""
        def done_callback(task):
            if not task.cancelled() and task.exception():
                logger.error(f"Chat hub task failed with exception: {task.exception()}")

        self.hub_task = asyncio.create_task(self.chat_server.run())
        self.hub_task.add_done_callback(done_callback)
        await self.transport.start()
        logger.info(f"[CONFIG] Limits: {self.config.get_limits()}")
        logger.info(f"[CONFIG] Logging: {self.config.get_log_settings()}")

    async def serve_forever(self):
        await self.start()
        try:
            await self.transport.serve_forever()
        finally:
            await self.stop()

    async def stop(self):
        await self.transport.stop()
        if self.hub_task is not None:
            self.hub_task.cancel()
            try:
                await self.hub_task
            except asyncio.CancelledError:
                pass
            self.hub_task = None


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description='Realtime Chatroom Server')
    parser.add_argument('--host', type=str, default=None,
                        help='Host to bind to (default: $HOST or 0.0.0.0)')
    parser.add_argument('--port', type=int, default=None,
                        help='Port to listen on (default: $PORT or 3000)')
    parser.add_argument('--transport', choices=TRANSPORTS, default=None,
                        help='ws for WebSocket clients, tcp for line-delimited JSON (default: ws)')
    parser.add_argument('--max-history', type=int, default=None,
                        help='Keep only the most recent N messages (default: keep all)')
    parser.add_argument('--max-message-bytes', type=int, default=None,
                        help='Largest inbound frame accepted')
    parser.add_argument('--ssl-cert', type=str, default=None,
                        help='TLS certificate (default: $SSL_CERT_PATH)')
    parser.add_argument('--ssl-key', type=str, default=None,
                        help='TLS private key (default: $SSL_KEY_PATH)')
    parser.add_argument('--logs-dir', type=str, default=None,
                        help='Directory for the chat history log (default: logs)')
    parser.add_argument('--no-chat-log', action='store_true',
                        help='Do not write chat lines to the history log file')
    parser.add_argument('--log-level', type=str, default='INFO',
                        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
                        help='Console log level (default: INFO)')
    return parser


def config_from_args(args: argparse.Namespace, environ=None) -> ServerConfig:
    """Environment defaults overridden by command-line flags."""
    config = ServerConfig.from_env(environ)
    if args.host is not None:
        config.host = args.host
    if args.port is not None:
        config.port = args.port
    if args.transport is not None:
        config.transport = args.transport
    if args.max_history is not None:
        if args.max_history <= 0:
            raise ValueError("--max-history must be positive")
        config.max_chat_history = args.max_history
    if args.max_message_bytes is not None:
        config.max_message_bytes = args.max_message_bytes
    if args.ssl_cert is not None:
        config.ssl_certfile = args.ssl_cert
    if args.ssl_key is not None:
        config.ssl_keyfile = args.ssl_key
    if args.logs_dir is not None:
        config.logs_dir = args.logs_dir
    if args.no_chat_log:
        config.chat_log_enabled = False
    return config


def main(argv=None):
    args = build_parser().parse_args(argv)

    try:
        config = config_from_args(args)
        logger.configure(
            logs_dir=config.logs_dir,
            log_level=getattr(logging, args.log_level),
            chat_log_enabled=config.chat_log_enabled
        )
        server = ChatroomServer(config)
        logger.info(f"Server binding to {config.host}:{config.port} ({config.transport})")
        asyncio.run(server.serve_forever())
    except KeyboardInterrupt:
        logger.info("Server shutting down...")
    except Exception as e:
        logger.log_error("server", e)
        raise SystemExit(1)


if __name__ == "__main__":
    main()
