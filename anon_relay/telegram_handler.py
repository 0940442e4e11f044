"""Update router for the anonymous relay bot.

Receives decoded webhook payloads from the gateway (main.py), decides what to
do with each one, and issues the resulting Bot API calls through the sender.

Architecture overview:
  Telegram Cloud  ──webhook POST──►  FastAPI /update (main.py)
                                        │
                                        ▼
                                RelayBotHandler.handle_webhook()
                                        │
                          ┌─────────────┼──────────────────┐
                          ▼             ▼                  ▼
                     /send command   private message    button click
                          │             │                  │
                ┌─────────┴───┐         │           ┌──────┴───────┐
                ▼             ▼         ▼           ▼              ▼
           private chat   group chat   relay or   "select"      "send_to:<id>"
           (show menu)    (join)       show menu  (chat list)   (pick target)

User experience flow:
  1) In a group, a user sends /send.  The bot records that the user may relay
     into that group and confirms in the group.
  2) In a private chat with the bot, the user gets a "Choose a chat" button,
     then a list of the groups they joined.
  3) After picking a group, everything the user writes to the bot privately
     (text, photos, GIFs) is re-sent into that group by the bot, without the
     user's name.

Key design decisions:
  - Every outbound call is best-effort.  A failed send is logged and counted;
    the remaining actions for the same update still run.  No retries.
  - A failed snapshot write after a join is logged only; the in-memory store
    stays authoritative and the next successful save catches up.
  - Payloads that do not match the update schema are skipped silently.
    Telegram does not act on error responses anyway.
"""
import logging
from typing import Optional

from telegram import InlineKeyboardButton, InlineKeyboardMarkup
from telegram.error import TelegramError

from anon_relay.callback_data import (
    ActionSend,
    SendTo,
    decode_callback_data,
    encode_callback_data,
)
from anon_relay.entities import (
    CallbackEvent,
    CallbackQuery,
    Message,
    MessageEvent,
    User,
    classify_update,
)
from anon_relay.errors import StorageError
from anon_relay.metrics import (
    COMMAND_TOTAL,
    FORWARDED_TOTAL,
    SEND_ERRORS,
    STORAGE_ERRORS,
    UPDATE_TOTAL,
)
from anon_relay.services.chat_store import MembershipStore
from anon_relay.services.relay_targets import RelayTargetRegistry

logger = logging.getLogger(__name__)


def _parse_command(text: Optional[str]) -> Optional[str]:
    """Return the command name of ``/name@bot args`` style text, else None."""
    if not text or not text.startswith("/"):
        return None
    token = text.split(maxsplit=1)[0][1:]
    name = token.split("@", 1)[0]
    return name or None


def _user_tag(user: User) -> str:
    return f"@{user.username}" if user.username else "anonymous"


class RelayBotHandler:
    """Routes inbound updates to join, menu, selection and relay behaviors."""

    # ---------------------------------------------------------------------------
    # Texts
    # ---------------------------------------------------------------------------
    MENU_TEXT = "Send an anonymous message to one of your group chats."
    MENU_BUTTON_TEXT = "Choose a chat"
    CHOOSE_CHAT_TEXT = "Where should your messages go?"
    WRITE_NOW_TEXT = "Write your message now."
    JOINED_TEXT = "{tag} can now send anonymous messages to this chat."
    ALREADY_JOINED_TEXT = "{tag} can already send anonymous messages to this chat."

    JOIN_COMMAND = "send"
    # Private-only alias; Telegram clients send /start when a chat is opened.
    START_COMMAND = "start"

    def __init__(self, sender, chats: MembershipStore, targets: RelayTargetRegistry):
        """Initialize the router.

        Args:
            sender: Outbound Bot API wrapper (see sender.TelegramSender).
            chats: Membership store shared by all requests.
            targets: Relay target registry shared by all requests.
        """
        self.sender = sender
        self.chats = chats
        self.targets = targets

    # ------------------------------------------------------------------
    # Webhook entry point (called by main.py's FastAPI route)
    # ------------------------------------------------------------------

    async def handle_webhook(self, update_data) -> str:
        """Classify a raw webhook payload and dispatch it.

        Returns:
            The kind of event handled: "message", "callback" or "ignored".
        """
        event = classify_update(update_data)

        if isinstance(event, MessageEvent):
            kind = "message"
            await self.handle_message(event.message)
        elif isinstance(event, CallbackEvent):
            kind = "callback"
            await self.handle_callback(event.query)
        else:
            kind = "ignored"
            logger.info(f"Skipping update {event.update_id}: {event.reason}")

        UPDATE_TOTAL.labels(kind=kind).inc()
        return kind

    # ------------------------------------------------------------------
    # Messages
    # ------------------------------------------------------------------

    async def handle_message(self, message: Message):
        user = message.from_user
        if user is None or user.is_bot:
            logger.debug(f"Ignoring message {message.message_id} without a human sender")
            return

        command = _parse_command(message.text)
        chat = message.chat

        if command == self.JOIN_COMMAND:
            COMMAND_TOTAL.labels(command=command).inc()
            if chat.is_private:
                await self._send_menu(chat.id)
            else:
                await self._join(user, message)
        elif command == self.START_COMMAND and chat.is_private:
            COMMAND_TOTAL.labels(command=command).inc()
            await self._send_menu(chat.id)
        elif chat.is_private:
            await self._relay(user, message)
        else:
            logger.debug(f"Ignoring non-command message in chat {chat.id}")

    async def _join(self, user: User, message: Message):
        chat = message.chat
        added = await self.chats.add_member(user.id, chat)

        if added:
            logger.info(f"User {user.id} joined chat {chat.id}")
            try:
                await self.chats.save()
            except StorageError as e:
                STORAGE_ERRORS.labels(store="chats").inc()
                logger.error(f"Failed to persist membership of {user.id} in {chat.id}: {e}")
            text = self.JOINED_TEXT.format(tag=_user_tag(user))
        else:
            text = self.ALREADY_JOINED_TEXT.format(tag=_user_tag(user))

        await self._call("sendMessage", self.sender.send_text(chat.id, text))

    async def _relay(self, user: User, message: Message):
        target = await self.targets.get(user.id)
        if target is None:
            await self._send_menu(message.chat.id)
            return

        forwarded = 0

        if message.text:
            forwarded += 1
            if await self._call("sendMessage", self.sender.send_text(target, message.text)):
                FORWARDED_TOTAL.labels(kind="text").inc()

        photo = message.largest_photo()
        if photo is not None:
            forwarded += 1
            if await self._call(
                "sendPhoto",
                self.sender.send_photo(target, photo.file_id, caption=message.caption),
            ):
                FORWARDED_TOTAL.labels(kind="photo").inc()

        animation = message.animation
        if animation is not None:
            forwarded += 1
            if await self._call(
                "sendAnimation",
                self.sender.send_animation(
                    target,
                    animation.file_id,
                    duration=animation.duration,
                    width=animation.width,
                    height=animation.height,
                    caption=message.caption,
                ),
            ):
                FORWARDED_TOTAL.labels(kind="animation").inc()

        if forwarded:
            logger.info(f"Relayed {forwarded} item(s) from {user.id} to chat {target}")
        else:
            logger.info(f"Nothing to relay in message {message.message_id} from {user.id}")

    # ------------------------------------------------------------------
    # Button clicks
    # ------------------------------------------------------------------

    async def handle_callback(self, query: CallbackQuery):
        user = query.from_user
        if user.is_bot:
            logger.debug(f"Ignoring callback {query.id} from bot {user.id}")
            return

        # Reply where the button was; an inaccessible message still carries
        # its chat, otherwise fall back to the user's private chat.
        reply_chat_id = query.message.chat.id if query.message is not None else user.id
        data = decode_callback_data(query.data)

        if isinstance(data, ActionSend):
            await self._offer_chats(query, user, reply_chat_id)
        elif isinstance(data, SendTo):
            await self._select_target(query, user, data.chat_id, reply_chat_id)
        else:
            logger.info(f"Unknown callback data from {user.id}: {query.data!r}")
            await self._call("answerCallbackQuery", self.sender.answer_callback(query.id))

    async def _offer_chats(self, query: CallbackQuery, user: User, reply_chat_id: int):
        chats = await self.chats.get_chats_for_user(user.id)
        # Chats without a title cannot be labelled, so they are not offered.
        titled = sorted(
            (chat for chat in chats if chat.title and chat.title.strip()),
            key=lambda chat: (chat.title.lower(), chat.id),
        )
        if not titled:
            logger.info(f"User {user.id} has no chats to choose from")
            return

        keyboard = InlineKeyboardMarkup(
            [
                [
                    InlineKeyboardButton(
                        chat.title,
                        callback_data=encode_callback_data(SendTo(chat.id)),
                    )
                ]
                for chat in titled
            ]
        )
        await self._call(
            "sendMessage",
            self.sender.send_text(reply_chat_id, self.CHOOSE_CHAT_TEXT, reply_markup=keyboard),
        )
        await self._call("answerCallbackQuery", self.sender.answer_callback(query.id))

    async def _select_target(
        self, query: CallbackQuery, user: User, chat_id: int, reply_chat_id: int
    ):
        await self.targets.set(user.id, chat_id)
        logger.info(f"User {user.id} now relays to chat {chat_id}")
        try:
            await self.targets.save()
        except StorageError as e:
            STORAGE_ERRORS.labels(store="targets").inc()
            logger.error(f"Failed to persist relay target of {user.id}: {e}")

        await self._call("answerCallbackQuery", self.sender.answer_callback(query.id))
        await self._call("sendMessage", self.sender.send_text(reply_chat_id, self.WRITE_NOW_TEXT))

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _send_menu(self, chat_id: int):
        keyboard = InlineKeyboardMarkup(
            [[
                InlineKeyboardButton(
                    self.MENU_BUTTON_TEXT,
                    callback_data=encode_callback_data(ActionSend()),
                )
            ]]
        )
        await self._call(
            "sendMessage",
            self.sender.send_text(chat_id, self.MENU_TEXT, reply_markup=keyboard),
        )

    async def _call(self, method: str, call) -> bool:
        """Await one outbound call; log and count failures instead of raising."""
        try:
            await call
            return True
        except TelegramError as e:
            SEND_ERRORS.labels(method=method).inc()
            logger.error(f"Telegram {method} failed: {e}")
            return False
