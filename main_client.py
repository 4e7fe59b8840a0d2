#!/usr/bin/env python3
"""
Realtime Chatroom Client - Main Entry Point

Usage:
    python main_client.py [--username NAME] [--server-ip HOST] [--port PORT]

The terminal client talks to a server started with ``--transport tcp``.
"""

if __name__ == "__main__":
    from chatroom.client.main_client import main

    main()
