"""At-most-once launch notification dispatcher.

Each launch is identified by (transaction hash, creator wallet, symbol).
Before a channel is attempted, the persisted flags of the transaction
record and the in-process post cache are consulted; a channel that was
already posted to is skipped.

Arena timeline posts are reserved for champions and heavy hitters.
Regular launches are marked as handled for Arena without a post. Discord
receives every tiered launch, routed to a tier-specific webhook.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from datetime import datetime
from typing import Any

from arena_token_monitor.alerter.cache import DEFAULT_POST_TTL_SECONDS, PostCache
from arena_token_monitor.alerter.channels.arena import ArenaChannel
from arena_token_monitor.alerter.channels.base import ChannelError
from arena_token_monitor.alerter.channels.discord import DiscordChannel
from arena_token_monitor.alerter.formatter import arena_message, discord_payload
from arena_token_monitor.alerter.models import (
    Channel,
    DispatchResult,
    LaunchNotice,
    PostFlags,
    PostKey,
)
from arena_token_monitor.detector.tier import CreatorTier
from arena_token_monitor.ingestor.models import ClassifiedEvent
from arena_token_monitor.profiler.models import CreatorProfile

logger = logging.getLogger(__name__)

DEFAULT_MAX_ATTEMPTS = 2
DEFAULT_RETRY_DELAY_SECONDS = 1.0

SUPPRESSED_POST_TYPE = "regular"

FlagWriter = Callable[[str, Channel], Awaitable[None]]


class NotificationDispatcher:
    """Sends launch notifications to Arena and Discord at most once.

    Example:
        ```python
        dispatcher = NotificationDispatcher(
            arena=ArenaChannel(token),
            discord=DiscordChannel(general_webhook=url),
            flag_writer=record_flag,
        )
        result = await dispatcher.dispatch(event, profile, tier, contracts_created=3)
        ```
    """

    def __init__(
        self,
        *,
        arena: ArenaChannel | None = None,
        discord: DiscordChannel | None = None,
        flag_writer: FlagWriter | None = None,
        cache_ttl_seconds: float = DEFAULT_POST_TTL_SECONDS,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        retry_delay_seconds: float = DEFAULT_RETRY_DELAY_SECONDS,
        dry_run: bool = False,
        caches: dict[Channel, PostCache] | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        """Initialize the dispatcher.

        Args:
            arena: Arena timeline channel, or None to never post there.
            discord: Discord webhook channel, or None to never post there.
            flag_writer: Persists a successful post for (tx hash, channel).
            cache_ttl_seconds: Lifetime of in-process post markers.
            max_attempts: Attempts per channel and launch.
            retry_delay_seconds: Linear backoff unit between attempts.
            dry_run: Format and log notifications without sending them.
            caches: Pre-built post caches, mainly for tests.
            sleep: Awaitable sleep used for the backoff.
        """
        self._arena = arena
        self._discord = discord
        self._flag_writer = flag_writer
        self._max_attempts = max_attempts
        self._retry_delay = retry_delay_seconds
        self._dry_run = dry_run
        self._sleep = sleep
        self._caches = caches or {
            Channel.ARENA: PostCache(cache_ttl_seconds),
            Channel.DISCORD: PostCache(cache_ttl_seconds),
        }

    async def dispatch(
        self,
        event: ClassifiedEvent,
        profile: CreatorProfile | None,
        tier: CreatorTier | None,
        contracts_created: int,
        *,
        flags: PostFlags | None = None,
        now: datetime | None = None,
    ) -> DispatchResult:
        """Notify the channels about a token launch.

        Args:
            event: The classified TOKEN_CREATION event.
            profile: Resolved creator profile.
            tier: Creator tier; None means the launch is not announced.
            contracts_created: Launches by this creator so far.
            flags: Persisted post flags of the transaction record, if loaded.
            now: Timestamp used in the Discord embed.

        Returns:
            DispatchResult describing what was posted, skipped or suppressed.
        """
        result = DispatchResult()
        symbol = event.symbol
        if not symbol:
            logger.warning("No token symbol for %s, skipping notifications", event.transaction.hash)
            return result
        if tier is None or profile is None:
            return result
        if not profile.username:
            logger.info("No username for %s, skipping notifications", event.creator_address)
            return result

        key = PostKey(event.transaction.hash, event.creator_address, symbol)
        if flags is not None:
            self._apply_flags(key, flags, tier)

        notice = LaunchNotice(
            username=profile.username,
            symbol=symbol,
            tier=tier,
            contracts_created=contracts_created,
            name=event.metadata.name if event.metadata else None,
            contract_address=event.token_address,
            profile=profile,
        )

        await self._dispatch_arena(key, notice, result)
        # Discord is attempted whatever happened on Arena.
        await self._dispatch_discord(key, notice, result, now=now)
        return result

    def _apply_flags(self, key: PostKey, flags: PostFlags, tier: CreatorTier) -> None:
        for channel in Channel:
            cache_key = key.cache_key(channel)
            if flags.is_posted(channel) and not self._caches[channel].is_posted(cache_key):
                self._caches[channel].mark(cache_key, tier.value)

    async def _dispatch_arena(self, key: PostKey, notice: LaunchNotice, result: DispatchResult) -> None:
        cache = self._caches[Channel.ARENA]
        cache_key = key.cache_key(Channel.ARENA)
        if cache.is_posted(cache_key):
            logger.info("Already posted to Arena for %s, skipping", key.tx_hash)
            result.arena_skipped = True
            return

        if not notice.tier.posts_to_arena:
            cache.mark(cache_key, SUPPRESSED_POST_TYPE)
            result.suppressed = True
            logger.info("Regular creator @%s, Arena post suppressed", notice.username)
            return

        content = arena_message(notice)
        if self._dry_run:
            logger.info("[DRY RUN] Would post to Arena: %s", content)
            return
        if self._arena is None:
            logger.debug("Arena channel not configured, skipping")
            return

        channel = self._arena

        async def send() -> None:
            await channel.post(content)

        if await self._with_retry(Channel.ARENA, notice, send, result):
            cache.mark(cache_key, notice.tier.value)
            await self._write_flag(key.tx_hash, Channel.ARENA)
            result.arena_posted = True
            logger.info("Posted %s launch by @%s to Arena", notice.tier.value, notice.username)

    async def _dispatch_discord(
        self,
        key: PostKey,
        notice: LaunchNotice,
        result: DispatchResult,
        *,
        now: datetime | None,
    ) -> None:
        cache = self._caches[Channel.DISCORD]
        cache_key = key.cache_key(Channel.DISCORD)
        if cache.is_posted(cache_key):
            logger.info("Already posted to Discord for %s, skipping", key.tx_hash)
            result.discord_skipped = True
            return

        payload = discord_payload(notice, now=now)
        if self._dry_run:
            logger.info("[DRY RUN] Would post to Discord: %s", payload["embeds"])
            return
        if self._discord is None:
            logger.debug("Discord channel not configured, skipping")
            return
        if self._discord.webhook_for(notice.tier) is None:
            logger.debug("No Discord webhook for tier %s, skipping", notice.tier.value)
            return

        channel = self._discord

        async def send() -> None:
            await channel.post(payload, notice.tier)

        if await self._with_retry(Channel.DISCORD, notice, send, result):
            cache.mark(cache_key, notice.tier.value)
            await self._write_flag(key.tx_hash, Channel.DISCORD)
            result.discord_posted = True
            logger.info("Posted %s launch by @%s to Discord", notice.tier.value, notice.username)

    async def _with_retry(
        self,
        channel: Channel,
        notice: LaunchNotice,
        send: Callable[[], Awaitable[None]],
        result: DispatchResult,
    ) -> bool:
        for attempt in range(1, self._max_attempts + 1):
            try:
                await send()
                return True
            except ChannelError as e:
                logger.warning(
                    "%s post attempt %d/%d for @%s failed: %s",
                    channel.value,
                    attempt,
                    self._max_attempts,
                    notice.username,
                    e,
                )
                if attempt == self._max_attempts:
                    result.errors.append(f"{channel.value}: {e}")
            if attempt < self._max_attempts:
                await self._sleep(attempt * self._retry_delay)

        logger.error("All %s post attempts failed for @%s", channel.value, notice.username)
        return False

    async def _write_flag(self, tx_hash: str, channel: Channel) -> None:
        if self._flag_writer is None:
            return
        try:
            await self._flag_writer(tx_hash, channel)
        except Exception as e:
            logger.error("Failed to persist %s post flag for %s: %s", channel.value, tx_hash, e)

    def cache_status(self) -> dict[str, dict[str, Any]]:
        """Size and keys of each channel's post cache."""
        return {
            channel.value: {"size": len(cache), "entries": cache.keys()}
            for channel, cache in self._caches.items()
        }

    def clear_caches(self) -> None:
        for cache in self._caches.values():
            cache.clear()
        logger.info("Cleared post caches")

    def purge_expired(self) -> int:
        """Drop expired post markers from every channel cache."""
        return sum(cache.purge_expired() for cache in self._caches.values())

    async def aclose(self) -> None:
        if self._arena is not None:
            await self._arena.aclose()
        if self._discord is not None:
            await self._discord.aclose()
