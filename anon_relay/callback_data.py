"""Inline button payloads.

Telegram hands ``callback_data`` back to us verbatim as a string (max 64
bytes), so each button action is encoded as one short token:

    ActionSend          -> "select"
    SendTo(-100123)     -> "send_to:-100123"
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Union

ACTION_SEND_TOKEN = "select"
SEND_TO_PREFIX = "send_to:"


@dataclass(frozen=True)
class ActionSend:
    """Ask for the list of chats the user can relay into."""


@dataclass(frozen=True)
class SendTo:
    """Pick ``chat_id`` as the relay target."""

    chat_id: int


CallbackData = Union[ActionSend, SendTo]


def encode_callback_data(data: CallbackData) -> str:
    if isinstance(data, ActionSend):
        return ACTION_SEND_TOKEN
    if isinstance(data, SendTo):
        return f"{SEND_TO_PREFIX}{data.chat_id}"
    raise TypeError(f"Unsupported callback data: {data!r}")


def decode_callback_data(raw: Optional[str]) -> Optional[CallbackData]:
    """Parse a button payload; returns None for anything unrecognised."""
    if not raw:
        return None
    if raw == ACTION_SEND_TOKEN:
        return ActionSend()
    if raw.startswith(SEND_TO_PREFIX):
        value = raw[len(SEND_TO_PREFIX):]
        digits = value[1:] if value.startswith("-") else value
        if digits.isascii() and digits.isdigit():
            return SendTo(chat_id=int(value))
    return None
