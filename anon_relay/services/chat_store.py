"""JSON-file backed registry of group chats and the users who joined them.

Every group-like chat where at least one user ran the join command is kept as
a ``ChatInfo`` record.  Alongside the chat table the store maintains a reverse
index (user id → chat ids) so that listing a user's chats does not need a scan.

Snapshot file layout (rewritten wholesale on every save):

    [
      {"id": -100123, "title": "Team chat", "members": [11, 42]},
      ...
    ]

Both tables are guarded by a single reader/writer lock, so readers never see a
chat whose member set disagrees with the reverse index.  File I/O happens in a
worker thread and never while that lock is held.
"""
from __future__ import annotations

import asyncio
import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Optional, Union

from pydantic import BaseModel, Field, TypeAdapter, ValidationError

from anon_relay.entities import Chat
from anon_relay.errors import StorageError
from anon_relay.services.rwlock import AsyncRWLock

logger = logging.getLogger(__name__)

PathLike = Union[str, os.PathLike]


class ChatInfo(BaseModel):
    """A group-like chat that users have opted into relaying to."""

    id: int
    title: Optional[str] = None
    members: set[int] = Field(default_factory=set)


_SNAPSHOT_ADAPTER = TypeAdapter(list[ChatInfo])


def _read_snapshot(path: Path) -> list[ChatInfo]:
    if not path.exists():
        return []
    try:
        raw = path.read_bytes()
    except OSError as e:
        raise StorageError(f"Failed to read chats file {path}: {e}") from e
    try:
        return _SNAPSHOT_ADAPTER.validate_json(raw)
    except ValidationError as e:
        raise StorageError(f"Corrupt chats file {path}: {e}") from e


def _write_snapshot(path: Path, chats: list[ChatInfo]) -> None:
    payload = [
        {"id": chat.id, "title": chat.title, "members": sorted(chat.members)}
        for chat in sorted(chats, key=lambda c: c.id)
    ]
    data = json.dumps(payload, indent=2, ensure_ascii=False)

    # Write next to the target and swap it in, so a crash mid-write never
    # leaves a truncated snapshot behind.
    tmp_path = None
    try:
        fd, tmp_path = tempfile.mkstemp(prefix=f".{path.name}.", dir=path.parent)
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(data)
        os.replace(tmp_path, path)
    except OSError as e:
        if tmp_path and os.path.exists(tmp_path):
            os.remove(tmp_path)
        raise StorageError(f"Failed to save chats data to {path}: {e}") from e


class MembershipStore:
    """Concurrent chat → members table with a user → chats reverse index."""

    def __init__(self, chats: Optional[list[ChatInfo]] = None, path: Optional[PathLike] = None):
        self._path = Path(path) if path is not None else None
        self._lock = AsyncRWLock()
        # Serializes file writes; each save snapshots after acquiring it, so
        # the last write to land is always the newest state.
        self._save_lock = asyncio.Lock()
        self._chats: dict[int, ChatInfo] = {}
        self._users_to_chats: dict[int, set[int]] = {}
        for chat in chats or []:
            self._chats[chat.id] = chat
            for user_id in chat.members:
                self._users_to_chats.setdefault(user_id, set()).add(chat.id)

    @classmethod
    async def open(cls, path: PathLike) -> "MembershipStore":
        """Load the store from a snapshot file.

        A missing file yields an empty store.

        Raises:
            StorageError: If the file exists but cannot be read or parsed.
        """
        path = Path(path)
        chats = await asyncio.to_thread(_read_snapshot, path)
        store = cls(chats, path=path)
        logger.info(
            f"Loaded {len(chats)} chats for {len(store._users_to_chats)} users from {path}"
        )
        return store

    @property
    def path(self) -> Optional[Path]:
        return self._path

    async def get_chat(self, chat_id: int) -> Optional[ChatInfo]:
        async with self._lock.read():
            chat = self._chats.get(chat_id)
            return chat.model_copy(deep=True) if chat is not None else None

    async def get_chats_for_user(self, user_id: int) -> list[ChatInfo]:
        """Return copies of every chat the user has joined (unordered)."""
        async with self._lock.read():
            chat_ids = self._users_to_chats.get(user_id)
            if not chat_ids:
                return []
            return [
                self._chats[chat_id].model_copy(deep=True)
                for chat_id in chat_ids
                if chat_id in self._chats
            ]

    async def add_member(self, user_id: int, chat: Chat) -> bool:
        """Record that ``user_id`` opted into relaying to ``chat``.

        Returns:
            True if the membership is new, False if the user was already a
            member.  Callers persist only on True.
        """
        async with self._lock.write():
            saved = self._chats.get(chat.id)
            if saved is None:
                saved = ChatInfo(id=chat.id, title=chat.title)
                self._chats[chat.id] = saved

            if user_id in saved.members:
                return False

            saved.members.add(user_id)
            self._users_to_chats.setdefault(user_id, set()).add(chat.id)
            return True

    async def save(self, path: Optional[PathLike] = None) -> None:
        """Write the full chat table to the snapshot file.

        Raises:
            StorageError: If no path is known or the write fails.  The
                in-memory state stays authoritative either way.
        """
        target = Path(path) if path is not None else self._path
        if target is None:
            raise StorageError("No chats file configured")

        async with self._save_lock:
            async with self._lock.read():
                snapshot = [chat.model_copy(deep=True) for chat in self._chats.values()]
            await asyncio.to_thread(_write_snapshot, target, snapshot)
        logger.debug(f"Saved {len(snapshot)} chats to {target}")
