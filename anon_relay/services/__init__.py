"""Shared in-process stores for memberships and relay targets."""
from anon_relay.services.chat_store import ChatInfo, MembershipStore
from anon_relay.services.relay_targets import RelayTargetRegistry

__all__ = ["ChatInfo", "MembershipStore", "RelayTargetRegistry"]
