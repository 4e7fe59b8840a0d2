import logging

from chatroom.server.utils.logger import logger

# Keep test runs quiet and do not write logs/chat_history.log
logger.configure(log_level=logging.WARNING, chat_log_enabled=False)
