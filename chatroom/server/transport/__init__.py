"""
Transports that carry chat frames between clients and the chat hub.
"""
