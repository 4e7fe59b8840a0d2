"""
Client package for the realtime chatroom.

Contains a protocol client for the TCP transport and a terminal front end.
"""
