"""Process-wide application state shared by every request."""
import logging
from dataclasses import dataclass
from typing import Optional

from anon_relay.config import Settings
from anon_relay.sender import TelegramSender
from anon_relay.services.chat_store import MembershipStore
from anon_relay.services.relay_targets import RelayTargetRegistry
from anon_relay.telegram_handler import RelayBotHandler

logger = logging.getLogger(__name__)


@dataclass
class AppState:
    settings: Settings
    chats: MembershipStore
    targets: RelayTargetRegistry
    sender: object
    handler: RelayBotHandler
    owns_sender: bool = False

    @classmethod
    async def create(cls, settings: Settings, sender=None) -> "AppState":
        """Open both stores and start the sender.

        Raises:
            StorageError: If a snapshot file is present but unreadable.
        """
        chats = await MembershipStore.open(settings.chats_file)
        targets = await RelayTargetRegistry.open(settings.relay_targets_file)
        if not targets.persistent:
            logger.info("Relay targets are kept in memory only")

        owns_sender = sender is None
        if owns_sender:
            sender = TelegramSender(settings.bot_token)
            await sender.start()

        handler = RelayBotHandler(sender=sender, chats=chats, targets=targets)
        return cls(
            settings=settings,
            chats=chats,
            targets=targets,
            sender=sender,
            handler=handler,
            owns_sender=owns_sender,
        )

    async def close(self):
        """Release resources owned by the state (the sender's HTTP pool)."""
        if self.owns_sender:
            await self.sender.stop()


def get_state(app) -> Optional[AppState]:
    return getattr(app.state, "relay", None)
