"""
Message log.

Append-only history shared by every client. The order of appends is the order
in which every observer sees the events.
"""

from collections import deque
from typing import List, Optional

from chatroom.common.protocol_definitions import ChatEvent


class MessageLog:
    """Ordered chat history, optionally limited to the most recent ``max_events``."""

    def __init__(self, max_events: Optional[int] = None):
        if max_events is not None and max_events <= 0:
            raise ValueError("max_events must be positive or None")
        self.max_events = max_events
        self._events = deque(maxlen=max_events)
        self._total_appended = 0

    def append(self, event: ChatEvent) -> int:
        """Add an event and return its absolute sequence index."""
        self._events.append(event)
        sequence = self._total_appended
        self._total_appended += 1
        return sequence

    def all(self) -> List[ChatEvent]:
        """Retained events in append order."""
        return list(self._events)

    @property
    def total_appended(self) -> int:
        return self._total_appended

    def __len__(self) -> int:
        return len(self._events)
