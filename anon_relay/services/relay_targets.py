"""Per-user relay target selection.

Maps a user id to the chat their private messages are currently forwarded
into.  Read on every private message, written only when the user picks a chat
from the button list, so it has its own lock rather than sharing the
membership store's.

Persistence is optional: without a file the registry lives only for the
lifetime of the process and users simply pick their chat again after a
restart.
"""
from __future__ import annotations

import asyncio
import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Optional, Union

from pydantic import TypeAdapter, ValidationError

from anon_relay.errors import StorageError
from anon_relay.services.rwlock import AsyncRWLock

logger = logging.getLogger(__name__)

PathLike = Union[str, os.PathLike]

_TARGETS_ADAPTER = TypeAdapter(dict[int, int])


def _read_targets(path: Path) -> dict[int, int]:
    if not path.exists():
        return {}
    try:
        raw = path.read_bytes()
    except OSError as e:
        raise StorageError(f"Failed to read relay targets file {path}: {e}") from e
    try:
        return _TARGETS_ADAPTER.validate_json(raw)
    except ValidationError as e:
        raise StorageError(f"Corrupt relay targets file {path}: {e}") from e


def _write_targets(path: Path, targets: dict[int, int]) -> None:
    data = json.dumps({str(k): v for k, v in sorted(targets.items())}, indent=2)
    tmp_path = None
    try:
        fd, tmp_path = tempfile.mkstemp(prefix=f".{path.name}.", dir=path.parent)
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(data)
        os.replace(tmp_path, path)
    except OSError as e:
        if tmp_path and os.path.exists(tmp_path):
            os.remove(tmp_path)
        raise StorageError(f"Failed to save relay targets to {path}: {e}") from e


class RelayTargetRegistry:
    """Concurrent user → target chat mapping."""

    def __init__(self, targets: Optional[dict[int, int]] = None, path: Optional[PathLike] = None):
        self._path = Path(path) if path is not None else None
        self._lock = AsyncRWLock()
        self._save_lock = asyncio.Lock()
        self._targets: dict[int, int] = dict(targets or {})

    @classmethod
    async def open(cls, path: Optional[PathLike] = None) -> "RelayTargetRegistry":
        """Create a registry, loading saved targets when ``path`` is given."""
        if path is None:
            return cls()
        path = Path(path)
        targets = await asyncio.to_thread(_read_targets, path)
        logger.info(f"Loaded {len(targets)} relay targets from {path}")
        return cls(targets, path=path)

    @property
    def persistent(self) -> bool:
        return self._path is not None

    async def get(self, user_id: int) -> Optional[int]:
        async with self._lock.read():
            return self._targets.get(user_id)

    async def set(self, user_id: int, chat_id: int) -> None:
        async with self._lock.write():
            self._targets[user_id] = chat_id

    async def save(self) -> None:
        """Persist targets if a file is configured; no-op otherwise.

        Raises:
            StorageError: If the write fails.
        """
        if self._path is None:
            return
        async with self._save_lock:
            async with self._lock.read():
                snapshot = dict(self._targets)
            await asyncio.to_thread(_write_targets, self._path, snapshot)
