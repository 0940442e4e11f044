"""Outbound Telegram calls used by the relay.

Thin wrapper over ``telegram.Bot`` exposing only the handful of Bot API
methods the router needs.  Errors are raised as ``telegram.error.TelegramError``
and handled by the caller; nothing here retries.
"""
import logging
from typing import Optional

from telegram import Bot, InlineKeyboardMarkup

logger = logging.getLogger(__name__)


class TelegramSender:
    """Sends messages and callback answers through the Telegram Bot API."""

    def __init__(self, bot_token: str, bot: Optional[Bot] = None):
        self.bot = bot or Bot(token=bot_token)
        self._started = False

    async def start(self):
        """Open the HTTP connection pool and fetch the bot's identity."""
        await self.bot.initialize()
        self._started = True
        logger.info(f"Telegram sender ready as @{self.bot.username}")

    async def stop(self):
        if self._started:
            await self.bot.shutdown()
            self._started = False

    async def send_text(
        self,
        chat_id: int,
        text: str,
        reply_markup: Optional[InlineKeyboardMarkup] = None,
    ):
        await self.bot.send_message(chat_id=chat_id, text=text, reply_markup=reply_markup)

    async def send_photo(self, chat_id: int, file_id: str, caption: Optional[str] = None):
        await self.bot.send_photo(chat_id=chat_id, photo=file_id, caption=caption)

    async def send_animation(
        self,
        chat_id: int,
        file_id: str,
        duration: int,
        width: int,
        height: int,
        caption: Optional[str] = None,
    ):
        await self.bot.send_animation(
            chat_id=chat_id,
            animation=file_id,
            duration=duration,
            width=width,
            height=height,
            caption=caption,
        )

    async def answer_callback(self, query_id: str, text: Optional[str] = None):
        await self.bot.answer_callback_query(callback_query_id=query_id, text=text)

    async def set_webhook(
        self,
        url: str,
        certificate: Optional[str] = None,
        secret_token: Optional[str] = None,
    ) -> bool:
        """Register ``url`` as the webhook, uploading a self-signed cert if given."""
        if certificate:
            with open(certificate, "rb") as cert:
                return await self.bot.set_webhook(
                    url=url, certificate=cert, secret_token=secret_token
                )
        return await self.bot.set_webhook(url=url, secret_token=secret_token)
