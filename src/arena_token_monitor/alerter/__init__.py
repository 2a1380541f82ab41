"""Alerting layer - Arena timeline posts and Discord webhooks."""

from arena_token_monitor.alerter.cache import PostCache
from arena_token_monitor.alerter.channels import ArenaChannel, ChannelError, DiscordChannel
from arena_token_monitor.alerter.dispatcher import NotificationDispatcher
from arena_token_monitor.alerter.formatter import arena_message, discord_payload, format_launch
from arena_token_monitor.alerter.models import (
    Channel,
    DispatchResult,
    FormattedAlert,
    LaunchNotice,
    PostFlags,
    PostKey,
)

__all__ = [
    "ArenaChannel",
    "Channel",
    "ChannelError",
    "DiscordChannel",
    "DispatchResult",
    "FormattedAlert",
    "LaunchNotice",
    "NotificationDispatcher",
    "PostCache",
    "PostFlags",
    "PostKey",
    "arena_message",
    "discord_payload",
    "format_launch",
]
