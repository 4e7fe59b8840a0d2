"""
Shared definitions for client and server: constants, wire protocol, errors.
"""
