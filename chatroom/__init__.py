"""
Realtime chatroom.

Multi-client chat with presence, unique usernames, history replay and
ordered broadcast over WebSocket or line-delimited JSON on TCP.
"""

__version__ = "1.0.0"
