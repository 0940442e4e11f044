"""Inbound Telegram update envelope and its classification.

Only the fields the relay actually reads are modelled; unknown fields are
ignored.  A payload is turned into exactly one of three events:

  - ``MessageEvent``   - the update carries a message (wins if both are set)
  - ``CallbackEvent``  - the update carries a button click and no message
  - ``IgnoredEvent``   - neither, or the payload does not match the schema
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError


class ChatType(str, Enum):
    PRIVATE = "private"
    GROUP = "group"
    SUPERGROUP = "supergroup"
    CHANNEL = "channel"


class _Entity(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class User(_Entity):
    id: int
    is_bot: bool
    username: Optional[str] = None


class Chat(_Entity):
    id: int
    type: ChatType
    title: Optional[str] = None

    @property
    def is_private(self) -> bool:
        return self.type == ChatType.PRIVATE


class PhotoSize(_Entity):
    file_id: str
    width: int
    height: int
    file_size: Optional[int] = None


class Animation(_Entity):
    file_id: str
    width: int
    height: int
    duration: int


class Message(_Entity):
    message_id: int
    from_user: Optional[User] = Field(default=None, alias="from")
    chat: Chat
    date: int
    text: Optional[str] = None
    caption: Optional[str] = None
    photo: Optional[list[PhotoSize]] = None
    animation: Optional[Animation] = None

    def largest_photo(self) -> Optional[PhotoSize]:
        """Return the biggest size of the attached photo, if any."""
        if not self.photo:
            return None
        return max(self.photo, key=lambda size: size.width * size.height)


class CallbackQuery(_Entity):
    id: str
    from_user: User = Field(alias="from")
    # Telegram may send an "inaccessible" message here (date == 0); the chat
    # id is still usable for replies.
    message: Optional[Message] = None
    data: Optional[str] = None


class Update(_Entity):
    update_id: int
    message: Optional[Message] = None
    callback_query: Optional[CallbackQuery] = None


@dataclass(frozen=True)
class MessageEvent:
    update_id: int
    message: Message


@dataclass(frozen=True)
class CallbackEvent:
    update_id: int
    query: CallbackQuery


@dataclass(frozen=True)
class IgnoredEvent:
    reason: str
    update_id: Optional[int] = None


UpdateEvent = Union[MessageEvent, CallbackEvent, IgnoredEvent]


def classify_update(payload: Any) -> UpdateEvent:
    """Validate a raw webhook payload and classify it.

    Never raises for bad input: schema mismatches become ``IgnoredEvent``.
    """
    try:
        update = Update.model_validate(payload)
    except ValidationError as e:
        return IgnoredEvent(reason=f"invalid payload ({e.error_count()} errors)")

    if update.message is not None:
        return MessageEvent(update_id=update.update_id, message=update.message)
    if update.callback_query is not None:
        return CallbackEvent(update_id=update.update_id, query=update.callback_query)
    return IgnoredEvent(reason="no message or callback query", update_id=update.update_id)
