#!/usr/bin/env python3
"""
Tests for the terminal chat client.
"""

import asyncio
import json
import unittest
from unittest.mock import AsyncMock, MagicMock, patch

from chatroom.client.chat.chat_client import ChatClient
from chatroom.client.main_client import ChatroomClient
from chatroom.server.main_server import ChatroomServer
from chatroom.server.utils.config import ServerConfig


def make_writer():
    writer = MagicMock()
    writer.drain = AsyncMock()
    return writer


def sent_frames(writer):
    return [json.loads(call.args[0]) for call in writer.write.call_args_list]


class TestChatClient(unittest.IsolatedAsyncioTestCase):
    """Test cases for ChatClient state handling."""

    def setUp(self):
        self.writer = make_writer()
        self.client = ChatClient(self.writer)

    async def test_send_without_writer_fails(self):
        client = ChatClient()

        self.assertFalse(await client.send_text("hi"))

    async def test_send_failure_is_reported(self):
        self.writer.drain.side_effect = ConnectionResetError("gone")

        self.assertFalse(await self.client.send_text("hi"))

    async def test_join_sends_join_frame(self):
        await self.client.join("alice", "a.png")

        self.assertEqual(sent_frames(self.writer), [{"type": "join", "username": "alice", "avatar": "a.png"}])
        self.assertEqual(self.client.requested_username, "alice")
        self.assertIsNone(self.client.username)

    async def test_frames_are_newline_terminated(self):
        await self.client.send_text("hi")

        self.assertTrue(self.writer.write.call_args.args[0].endswith(b'\n'))

    async def test_update_avatar_requires_username(self):
        self.assertFalse(await self.client.update_avatar("a.png"))
        self.writer.write.assert_not_called()

    async def test_rejected_join_does_not_claim_username(self):
        await self.client.join("alice")
        await self.client.handle_message({"type": "join_error", "reason": "username_taken", "message": "taken"})
        self.writer.write.reset_mock()

        self.assertFalse(await self.client.update_avatar("evil.png"))

        self.assertIsNone(self.client.username)
        self.writer.write.assert_not_called()

    async def test_avatar_update_uses_accepted_username(self):
        await self.client.join("alice")
        await self.client.handle_message({"type": "join_success", "username": "alice", "avatar": None})
        self.writer.write.reset_mock()

        self.assertTrue(await self.client.update_avatar("new.png"))

        self.assertEqual(sent_frames(self.writer), [{"type": "update_avatar", "username": "alice", "avatar": "new.png"}])

    async def test_rejected_rename_keeps_joined_identity(self):
        await self.client.join("alice")
        await self.client.handle_message({"type": "join_success", "username": "alice"})
        await self.client.join("bob")
        await self.client.handle_message({"type": "join_error", "reason": "already_joined", "message": "joined"})

        self.assertTrue(self.client.joined)
        self.assertEqual(self.client.username, "alice")

    async def test_join_success_and_error(self):
        await self.client.join("alice")
        await self.client.handle_message({"type": "join_error", "reason": "username_taken", "message": "taken"})

        self.assertFalse(self.client.joined)
        self.assertEqual(self.client.last_join_error["reason"], "username_taken")

        await self.client.handle_message({"type": "join_success", "username": "alice"})

        self.assertTrue(self.client.joined)

    async def test_history_then_live_messages(self):
        await self.client.handle_message({"type": "history", "count": 1, "messages": [
            {"id": "1", "kind": "text", "username": "bob", "content": "old", "timestamp": "t"}
        ]})
        await self.client.handle_message({"type": "message", "message": {
            "id": "2", "kind": "text", "username": "bob", "content": "new", "timestamp": "t"
        }})

        self.assertEqual([m["content"] for m in self.client.messages], ["old", "new"])

    async def test_users_replace_presence(self):
        await self.client.handle_message({"type": "users", "users": [{"username": "a"}, {"username": "b"}]})
        await self.client.handle_message({"type": "users", "users": [{"username": "b"}]})

        self.assertEqual(self.client.users, [{"username": "b"}])

    async def test_handler_receives_every_frame(self):
        handler = AsyncMock()
        self.client.set_message_handler(handler)

        await self.client.handle_message({"type": "error", "message": "x"})

        handler.assert_awaited_once_with({"type": "error", "message": "x"})

    def test_set_writer_resets_joined(self):
        self.client.joined = True

        self.client.set_writer(make_writer())

        self.assertFalse(self.client.joined)

    def test_format_message(self):
        base = {"timestamp": "2024-01-01T10:00:00.123456", "username": "alice"}
        cases = [
            ({"kind": "text", "content": "hi"}, "[2024-01-01T10:00:00] alice: hi"),
            ({"kind": "image", "content": ""}, "[2024-01-01T10:00:00] alice: [image]"),
            ({"kind": "audio", "content": "listen", "audio_meta": {"title": "Song"}},
             "[2024-01-01T10:00:00] alice: listen [Song]"),
            ({"kind": "audio", "content": "", "audio_meta": {"title": None}}, "[2024-01-01T10:00:00] alice: [audio]"),
        ]
        for extra, expected in cases:
            with self.subTest(kind=extra["kind"]):
                self.assertEqual(ChatClient.format_message({**base, **extra}), expected)


class TestClientCommands(unittest.IsolatedAsyncioTestCase):
    """Test cases for slash command handling."""

    def setUp(self):
        self.client = ChatroomClient(username="alice")
        self.client.chat_client = MagicMock()
        self.client.chat_client.update_avatar = AsyncMock()
        self.client.chat_client.send_image = AsyncMock()
        self.client.chat_client.join = AsyncMock()
        self.client.chat_client.users = []

    async def test_avatar_command(self):
        self.assertTrue(await self.client.handle_command("/avatar pic.png"))

        self.client.chat_client.update_avatar.assert_awaited_once_with("pic.png")
        self.assertEqual(self.client.avatar, "pic.png")

    async def test_avatar_command_without_argument_clears(self):
        await self.client.handle_command("/avatar")

        self.client.chat_client.update_avatar.assert_awaited_once_with(None)

    async def test_image_command_with_caption(self):
        await self.client.handle_command("/image img.png look at this")

        self.client.chat_client.send_image.assert_awaited_once_with("img.png", "look at this")

    async def test_name_command_rejoins(self):
        await self.client.handle_command("/name bob")

        self.client.chat_client.join.assert_awaited_once_with("bob", None)

    async def test_unknown_command(self):
        self.assertFalse(await self.client.handle_command("/dance"))
        self.assertFalse(await self.client.handle_command("/image"))


class TestClientListener(unittest.IsolatedAsyncioTestCase):
    """Test cases for the receive loop."""

    def make_client(self, limit=1024):
        client = ChatroomClient(username="alice")
        client.reader = asyncio.StreamReader(limit=limit)
        client.running = True
        client._reconnect = AsyncMock(return_value=False)
        return client

    async def test_frame_over_stream_limit_is_skipped(self):
        client = self.make_client()
        client.reader.feed_data(b'{"type":"message","message":{"content":"' + b"x" * 5000 + b'"}}\n')
        client.reader.feed_data(b'{"type":"users","users":[{"username":"bob"}]}\n')
        client.reader.feed_eof()

        await asyncio.wait_for(client.listen_for_messages(), 5)

        self.assertEqual(client.chat_client.messages, [])
        self.assertEqual(client.chat_client.users, [{"username": "bob"}])
        client._reconnect.assert_awaited_once()

    async def test_malformed_frame_is_skipped(self):
        client = self.make_client()
        client.reader.feed_data(b"{oops\n")
        client.reader.feed_data(b'{"type":"users","users":[{"username":"bob"}]}\n')
        client.reader.feed_eof()

        await asyncio.wait_for(client.listen_for_messages(), 5)

        self.assertFalse(client.running)
        self.assertEqual(client.chat_client.users, [{"username": "bob"}])

    async def test_reconnect_rejoins_with_accepted_name_only(self):
        client = ChatroomClient(username="carol")
        client.connect = AsyncMock(return_value=True)
        client.chat_client.join = AsyncMock(return_value=True)
        client.chat_client.requested_username = "alice"

        self.assertTrue(await client._reconnect())

        client.chat_client.join.assert_awaited_once_with("carol", None)


class TestClientAgainstServer(unittest.IsolatedAsyncioTestCase):
    """Runs the client against a live TCP server."""

    async def asyncSetUp(self):
        self.server = ChatroomServer(ServerConfig(host='127.0.0.1', port=0, transport='tcp'))
        await self.server.start()
        self.port = self.server.transport.bound_port
        self.clients = []

    async def asyncTearDown(self):
        for client in self.clients:
            client.running = False
            client.listener.cancel()
            try:
                await client.listener
            except asyncio.CancelledError:
                pass
            client.writer.close()
        await self.server.stop()

    async def start_client(self, username):
        client = ChatroomClient('127.0.0.1', self.port, username)
        self.assertTrue(await client.connect(retry_count=1))
        client.listener = asyncio.create_task(client.listen_for_messages())
        self.clients.append(client)
        return client

    async def wait_for(self, predicate):
        async def poll():
            while not predicate():
                await asyncio.sleep(0.01)
        await asyncio.wait_for(poll(), 5)

    async def test_join_and_chat(self):
        alice = await self.start_client("alice")
        await alice.chat_client.join("alice")
        await self.wait_for(lambda: alice.chat_client.joined)

        bob = await self.start_client("bob")
        await bob.chat_client.join("alice")
        await self.wait_for(lambda: bob.chat_client.last_join_error is not None)
        self.assertEqual(bob.chat_client.last_join_error["reason"], "username_taken")

        await bob.chat_client.join("bob")
        await self.wait_for(lambda: bob.chat_client.joined)
        await self.wait_for(lambda: len(alice.chat_client.users) == 2)

        await alice.chat_client.send_text("hello bob")
        await self.wait_for(lambda: bob.chat_client.messages)

        self.assertEqual(bob.chat_client.messages[0]["username"], "alice")
        self.assertEqual(bob.chat_client.messages[0]["content"], "hello bob")

    async def test_rejected_client_cannot_change_taken_avatar(self):
        alice = await self.start_client("alice")
        await alice.chat_client.join("alice", "alice.png")
        await self.wait_for(lambda: alice.chat_client.joined)

        mallory = await self.start_client("mallory")
        await mallory.chat_client.join("alice")
        await self.wait_for(lambda: mallory.chat_client.last_join_error is not None)

        self.assertFalse(await mallory.chat_client.update_avatar("evil.png"))

        self.assertIsNone(mallory.chat_client.username)
        self.assertEqual(self.server.chat_server.registry.get("alice").avatar, "alice.png")

    async def test_frames_larger_than_default_stream_limit(self):
        image = "data:image/png;base64," + "A" * 100_000

        alice = await self.start_client("alice")
        await alice.chat_client.join("alice")
        await self.wait_for(lambda: alice.chat_client.joined)
        await alice.chat_client.send_image(image, "big picture")
        await self.wait_for(lambda: alice.chat_client.messages)

        bob = await self.start_client("bob")
        await self.wait_for(lambda: bob.chat_client.messages)

        self.assertEqual(bob.chat_client.messages[0]["image"], image)
        self.assertFalse(bob.listener.done())
        self.assertFalse(alice.listener.done())

    async def test_connect_failure_gives_up(self):
        client = ChatroomClient('127.0.0.1', self.port, "alice")

        with patch('asyncio.open_connection', side_effect=ConnectionRefusedError("refused")), \
                patch('asyncio.sleep', new=AsyncMock()) as sleep:
            self.assertFalse(await client.connect(retry_count=3, base_delay=1.0))

        self.assertEqual([call.args[0] for call in sleep.await_args_list], [1.0, 2.0])


if __name__ == '__main__':
    unittest.main()
