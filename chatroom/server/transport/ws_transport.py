"""
WebSocket transport.

One JSON object per text frame, served with the ``websockets`` asyncio server.
This is the channel browser clients use.
"""

import asyncio

from websockets.asyncio.server import ServerConnection, serve
from websockets.exceptions import ConnectionClosed as WSConnectionClosed

from chatroom.server.chat.chat_server import ChatServer
from chatroom.server.chat.events import ConnectionClosed, ConnectionOpened, MalformedEvent, parse_client_event
from chatroom.server.utils.logger import logger


class WebSocketTransport:
    """Serves the chat hub over WebSocket."""

    def __init__(self, chat_server: ChatServer, host: str, port: int):
        self.chat_server = chat_server
        self.config = chat_server.config
        self.host = host
        self.port = port
        self.server = None
        self._close_tasks = set()

    async def handle_connection(self, sock: ServerConnection):
        connection_id = str(sock.id)
        outbox: asyncio.Queue = asyncio.Queue(maxsize=self.config.outbox_size)

        def send(payload: str):
            try:
                outbox.put_nowait(payload)
            except asyncio.QueueFull:
                # slow consumer; closing makes the reader loop below finish
                task = asyncio.ensure_future(sock.close(code=1008, reason="outbox full"))
                self._close_tasks.add(task)
                task.add_done_callback(self._close_done)
                raise

        writer_task = asyncio.create_task(self._drain_outbox(connection_id, outbox, sock))
        await self.chat_server.submit(ConnectionOpened(connection_id, send, sock.remote_address))

        try:
            async for raw in sock:
                if isinstance(raw, bytes):
                    await self.chat_server.submit(MalformedEvent(connection_id, "Binary frames are not supported"))
                    continue
                event = parse_client_event(connection_id, raw)
                logger.debug(f"[WS] Received from id={connection_id}: {type(event).__name__}")
                await self.chat_server.submit(event)
        except WSConnectionClosed as e:
            logger.debug(f"[WS] Connection id={connection_id} closed abruptly: {e}")
        finally:
            await self.chat_server.submit(ConnectionClosed(connection_id))
            writer_task.cancel()

    def _close_done(self, task: asyncio.Task):
        self._close_tasks.discard(task)
        if not task.cancelled() and task.exception():
            logger.error(f"[WS] Failed to close slow connection: {task.exception()}")

    async def _drain_outbox(self, connection_id: str, outbox: asyncio.Queue, sock: ServerConnection):
        try:
            while True:
                payload = await outbox.get()
                await sock.send(payload)
        except asyncio.CancelledError:
            pass
        except WSConnectionClosed:
            logger.debug(f"[WS] Dropping outbox of closed connection id={connection_id}")

    async def start(self):
        """Start listening; returns once the socket is bound."""
        ssl_context = self.config.create_ssl_context()
        self.server = await serve(
            self.handle_connection,
            self.host,
            self.port,
            max_size=self.config.max_message_bytes,
            ssl=ssl_context
        )
        scheme = 'wss' if ssl_context else 'ws'
        addr = ', '.join(str(sock.getsockname()) for sock in self.server.sockets)
        logger.info(f"WebSocket chat server ({scheme}) listening on {addr}")

    @property
    def bound_port(self) -> int:
        return list(self.server.sockets)[0].getsockname()[1]

    async def serve_forever(self):
        if self.server is None:
            await self.start()
        await self.server.wait_closed()

    async def stop(self):
        if self.server is not None:
            self.server.close()
            await self.server.wait_closed()
            logger.info("WebSocket chat server stopped")
