"""Anonymous relay bot for Telegram group chats."""

__version__ = "0.1.0"
