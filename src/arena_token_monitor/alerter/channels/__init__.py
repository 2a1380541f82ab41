"""Outbound notification channels."""

from arena_token_monitor.alerter.channels.arena import ArenaChannel
from arena_token_monitor.alerter.channels.base import ChannelError
from arena_token_monitor.alerter.channels.discord import DiscordChannel

__all__ = [
    "ArenaChannel",
    "ChannelError",
    "DiscordChannel",
]
