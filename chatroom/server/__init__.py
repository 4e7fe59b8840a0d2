"""
Server package for the realtime chatroom.

This package contains all server-side functionality including:
- Identity registry and message log
- Connection lifecycle and join protocol
- Broadcast fan-out
- WebSocket and TCP transports
- Configuration and utilities
"""
