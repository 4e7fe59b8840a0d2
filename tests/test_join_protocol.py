#!/usr/bin/env python3
"""
Unit tests for the join protocol.
"""

import unittest
from unittest.mock import Mock

from chatroom.common.constants import JoinRejectReasons, USERNAME_TAKEN_MESSAGE
from chatroom.server.chat.join import JoinAccepted, JoinProtocol, JoinRejected
from chatroom.server.chat.lifecycle import Connection, ConnectionState
from chatroom.server.chat.registry import IdentityRegistry


class TestJoinProtocol(unittest.TestCase):
    """Test cases for JoinProtocol."""

    def setUp(self):
        self.registry = IdentityRegistry()
        self.protocol = JoinProtocol(self.registry, max_username_length=10)

    def connection(self, connection_id):
        return Connection(connection_id, Mock())

    def test_valid_join_is_accepted(self):
        conn = self.connection("c1")

        result = self.protocol.join(conn, "alice", "a.png")

        self.assertIsInstance(result, JoinAccepted)
        self.assertEqual(result.identity.avatar, "a.png")
        self.assertTrue(conn.is_active)
        self.assertIn("alice", self.registry)

    def test_taken_username_is_rejected(self):
        self.protocol.join(self.connection("c1"), "alice")
        conn = self.connection("c2")

        result = self.protocol.join(conn, "alice")

        self.assertEqual(result, JoinRejected(JoinRejectReasons.USERNAME_TAKEN, USERNAME_TAKEN_MESSAGE))
        self.assertIs(conn.state, ConnectionState.CONNECTING)
        self.assertIsNone(self.registry.username_for("c2"))
        self.assertEqual(len(self.registry), 1)

    def test_rejected_connection_may_retry(self):
        self.protocol.join(self.connection("c1"), "alice")
        conn = self.connection("c2")

        self.protocol.join(conn, "alice")
        result = self.protocol.join(conn, "bob")

        self.assertIsInstance(result, JoinAccepted)
        self.assertEqual(conn.username, "bob")

    def test_empty_or_non_string_usernames_are_invalid(self):
        for username in ["", "   ", "\t\n", None, 42, ["alice"]]:
            with self.subTest(username=username):
                conn = self.connection(f"c-{username!r}")
                result = self.protocol.join(conn, username)
                self.assertIsInstance(result, JoinRejected)
                self.assertEqual(result.reason, JoinRejectReasons.INVALID_USERNAME)
                self.assertFalse(conn.is_active)
        self.assertEqual(len(self.registry), 0)

    def test_username_length_limit(self):
        self.assertIsInstance(self.protocol.join(self.connection("c1"), "a" * 10), JoinAccepted)

        result = self.protocol.join(self.connection("c2"), "b" * 11)

        self.assertEqual(result.reason, JoinRejectReasons.INVALID_USERNAME)

    def test_username_is_stored_exactly_as_sent(self):
        conn = self.connection("c1")

        self.protocol.join(conn, " carol")

        self.assertIn(" carol", self.registry)
        self.assertNotIn("carol", self.registry)

    def test_active_connection_cannot_join_again(self):
        conn = self.connection("c1")
        self.protocol.join(conn, "alice")

        result = self.protocol.join(conn, "bob")

        self.assertEqual(result.reason, JoinRejectReasons.ALREADY_JOINED)
        self.assertEqual([i.username for i in self.registry.snapshot()], ["alice"])


if __name__ == '__main__':
    unittest.main()
