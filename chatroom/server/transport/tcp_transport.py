"""
TCP transport.

Line-delimited JSON over asyncio streams. Each accepted socket gets a reader
loop that submits inbound events to the chat hub and a writer task that
drains the connection's outbox.
"""

import asyncio
import itertools
from typing import Optional

from chatroom.common.errors import FrameTooLarge
from chatroom.common.protocol_definitions import read_frame
from chatroom.server.chat.chat_server import ChatServer
from chatroom.server.chat.events import ConnectionClosed, ConnectionOpened, MalformedEvent, parse_client_event
from chatroom.server.utils.logger import logger


class TcpTransport:
    """Serves the chat hub over newline-delimited JSON on TCP."""

    def __init__(self, chat_server: ChatServer, host: str, port: int):
        self.chat_server = chat_server
        self.config = chat_server.config
        self.host = host
        self.port = port
        self.server: Optional[asyncio.AbstractServer] = None
        self._ids = itertools.count(1)
        self._writers = set()

    async def handle_client(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter):
        """Handle individual client connection."""
        peer = writer.get_extra_info('peername')
        connection_id = f"tcp-{next(self._ids)}"
        outbox: asyncio.Queue = asyncio.Queue(maxsize=self.config.outbox_size)
        self._writers.add(writer)

        def send(payload: str):
            try:
                outbox.put_nowait(payload)
            except asyncio.QueueFull:
                writer.close()  # slow consumer; the client reconnects and gets a fresh replay
                raise

        writer_task = asyncio.create_task(self._drain_outbox(connection_id, outbox, writer))
        await self.chat_server.submit(ConnectionOpened(connection_id, send, peer))

        try:
            while True:
                try:
                    data = await read_frame(reader)
                except FrameTooLarge as e:
                    logger.warning(f"Message too large from id={connection_id}")
                    await self.chat_server.submit(MalformedEvent(connection_id, str(e)))
                    continue
                if not data:
                    break
                if not data.strip():
                    continue

                event = parse_client_event(connection_id, data)
                logger.debug(f"Received from id={connection_id}: {type(event).__name__}")
                await self.chat_server.submit(event)

        except asyncio.CancelledError:
            logger.info(f"Connection cancelled for id={connection_id}")
            raise
        except (ConnectionError, OSError) as e:
            logger.error(f"Socket error for id={connection_id}: {e}")
        finally:
            await self.chat_server.submit(ConnectionClosed(connection_id))
            writer_task.cancel()
            self._writers.discard(writer)
            writer.close()

    async def _drain_outbox(self, connection_id: str, outbox: asyncio.Queue, writer: asyncio.StreamWriter):
        try:
            while True:
                payload = await outbox.get()
                writer.write(payload.encode('utf-8') + b'\n')
                await writer.drain()
        except asyncio.CancelledError:
            pass
        except (ConnectionError, OSError) as e:
            logger.error(f"Failed to send to id={connection_id}: {e}")
            writer.close()

    async def start(self):
        """Start listening; returns once the socket is bound."""
        self.server = await asyncio.start_server(
            self.handle_client,
            self.host,
            self.port,
            limit=self.config.max_message_bytes
        )
        addr = ', '.join(str(sock.getsockname()) for sock in self.server.sockets)
        logger.info(f"TCP chat server listening on {addr}")

    @property
    def bound_port(self) -> int:
        return self.server.sockets[0].getsockname()[1]

    async def serve_forever(self):
        if self.server is None:
            await self.start()
        async with self.server:
            await self.server.serve_forever()

    async def stop(self):
        if self.server is not None:
            self.server.close()
            for writer in list(self._writers):
                writer.close()
            await self.server.wait_closed()
            logger.info("TCP chat server stopped")

