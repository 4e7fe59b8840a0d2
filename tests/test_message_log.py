#!/usr/bin/env python3
"""
Unit tests for the message log.
"""

import unittest

from chatroom.common.protocol_definitions import new_chat_event
from chatroom.server.chat.message_log import MessageLog


def make_events(count):
    return [new_chat_event("alice", f"message {i}") for i in range(count)]


class TestMessageLog(unittest.TestCase):
    """Test cases for MessageLog."""

    def test_append_returns_increasing_sequence(self):
        log = MessageLog()
        events = make_events(3)

        self.assertEqual([log.append(e) for e in events], [0, 1, 2])

    def test_all_preserves_append_order(self):
        log = MessageLog()
        events = make_events(10)
        for event in events:
            log.append(event)

        self.assertEqual(log.all(), events)
        self.assertEqual(len(log), 10)

    def test_all_returns_a_copy(self):
        log = MessageLog()
        log.append(make_events(1)[0])

        log.all().clear()

        self.assertEqual(len(log.all()), 1)

    def test_unbounded_by_default(self):
        log = MessageLog()
        for event in make_events(1500):
            log.append(event)

        self.assertIsNone(log.max_events)
        self.assertEqual(len(log), 1500)

    def test_bounded_window_keeps_most_recent_in_order(self):
        log = MessageLog(max_events=3)
        events = make_events(5)

        indices = [log.append(e) for e in events]

        self.assertEqual(indices, [0, 1, 2, 3, 4])
        self.assertEqual(log.all(), events[2:])
        self.assertEqual(log.total_appended, 5)
        self.assertEqual(len(log), 3)

    def test_rejects_non_positive_bound(self):
        with self.assertRaises(ValueError):
            MessageLog(max_events=0)


if __name__ == '__main__':
    unittest.main()
