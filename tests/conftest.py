import pytest
from telegram.error import NetworkError


class FakeSender:
    """Records outbound calls instead of talking to Telegram."""

    def __init__(self):
        self.calls = []
        self.failing = set()
        self.started = False

    async def _record(self, method, **kwargs):
        self.calls.append((method, kwargs))
        if method in self.failing:
            raise NetworkError(f"{method} failed")

    async def start(self):
        self.started = True

    async def stop(self):
        self.started = False

    async def send_text(self, chat_id, text, reply_markup=None):
        await self._record("send_text", chat_id=chat_id, text=text, reply_markup=reply_markup)

    async def send_photo(self, chat_id, file_id, caption=None):
        await self._record("send_photo", chat_id=chat_id, file_id=file_id, caption=caption)

    async def send_animation(self, chat_id, file_id, duration, width, height, caption=None):
        await self._record(
            "send_animation",
            chat_id=chat_id,
            file_id=file_id,
            duration=duration,
            width=width,
            height=height,
            caption=caption,
        )

    async def answer_callback(self, query_id, text=None):
        await self._record("answer_callback", query_id=query_id, text=text)

    def methods(self):
        return [method for method, _ in self.calls]


def make_user(user_id=42, username="alice", is_bot=False):
    user = {"id": user_id, "is_bot": is_bot, "first_name": "Test"}
    if username is not None:
        user["username"] = username
    return user


def make_chat(chat_id=42, chat_type="private", title=None):
    chat = {"id": chat_id, "type": chat_type}
    if title is not None:
        chat["title"] = title
    return chat


def make_message(text=None, user=None, chat=None, message_id=1, **extra):
    message = {
        "message_id": message_id,
        "from": user if user is not None else make_user(),
        "chat": chat if chat is not None else make_chat(),
        "date": 1_700_000_000,
    }
    if text is not None:
        message["text"] = text
    message.update(extra)
    return message


def make_update(message=None, callback_query=None, update_id=1000):
    update = {"update_id": update_id}
    if message is not None:
        update["message"] = message
    if callback_query is not None:
        update["callback_query"] = callback_query
    return update


def make_callback(data, user=None, message=None, query_id="cb-1"):
    query = {
        "id": query_id,
        "from": user if user is not None else make_user(),
        "chat_instance": "instance-1",
    }
    if message is not None:
        query["message"] = message
    if data is not None:
        query["data"] = data
    return query


@pytest.fixture
def sender():
    return FakeSender()
