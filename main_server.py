#!/usr/bin/env python3
"""
Realtime Chatroom Server - Main Entry Point

Usage:
    python main_server.py

Optional arguments:
    --host HOST           Bind address (default: $HOST or 0.0.0.0)
    --port PORT           Listen port (default: $PORT or 3000)
    --transport {ws,tcp}  WebSocket or line-delimited JSON over TCP (default: ws)
    --max-history N       Keep only the most recent N messages (default: all)
    --ssl-cert PATH       TLS certificate (default: $SSL_CERT_PATH)
    --ssl-key PATH        TLS private key (default: $SSL_KEY_PATH)
    --logs-dir DIR        Chat history log directory (default: logs)
    --log-level LEVEL     Console log level (default: INFO)
"""

if __name__ == "__main__":
    from chatroom.server.main_server import main

    main()
