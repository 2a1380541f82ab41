"""Main pipeline orchestrator for the Arena Token Monitor.

This module provides the Pipeline class that wires together the chain
poller, persistence, profile resolution, tiering and notification
dispatch, and manages the event flow between them.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from redis.asyncio import Redis

from arena_token_monitor.alerter.channels.arena import ArenaChannel
from arena_token_monitor.alerter.channels.discord import DiscordChannel
from arena_token_monitor.alerter.dispatcher import NotificationDispatcher
from arena_token_monitor.alerter.models import Channel, DispatchResult, PostFlags
from arena_token_monitor.config import Settings, get_settings
from arena_token_monitor.detector.tier import classify_tier
from arena_token_monitor.ingestor.chain import AvalancheClient
from arena_token_monitor.ingestor.models import ClassifiedEvent, MonitorStatus
from arena_token_monitor.ingestor.poller import ChainPoller, EventCallback
from arena_token_monitor.profiler.models import CreatorProfile
from arena_token_monitor.profiler.resolver import ProfileResolver
from arena_token_monitor.storage.database import DatabaseManager
from arena_token_monitor.storage.repos import (
    ContractTransactionDTO,
    ContractTransactionRepository,
    CreatorProfileDTO,
    CreatorProfileRepository,
    CreatorRepository,
    TokenDTO,
    TokenRepository,
)

logger = logging.getLogger(__name__)


class PipelineState(str, Enum):
    """Pipeline lifecycle states."""

    STOPPED = "stopped"
    STARTING = "starting"
    RUNNING = "running"
    STOPPING = "stopping"
    ERROR = "error"


@dataclass
class PipelineStats:
    """Statistics for the pipeline."""

    started_at: datetime | None = None
    transactions_seen: int = 0
    creations_processed: int = 0
    profiles_resolved: int = 0
    notifications_sent: int = 0
    outcomes_discarded: int = 0
    errors: int = 0
    last_event_time: datetime | None = None
    last_error: str | None = None


class Pipeline:
    """Main pipeline orchestrator for the Arena Token Monitor.

    Pipeline flow:
        ChainPoller -> Classifier -> [TOKEN_CREATION] -> Storage -> ProfileResolver
        -> Tier -> NotificationDispatcher -> Storage (post flags)

    Example:
        ```python
        from arena_token_monitor.config import get_settings
        from arena_token_monitor.pipeline import Pipeline

        settings = get_settings()
        pipeline = Pipeline(settings)

        await pipeline.start()
        # Pipeline runs until stop() is called
        await pipeline.stop()
        ```
    """

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        dry_run: bool | None = None,
    ) -> None:
        """Initialize the pipeline.

        Args:
            settings: Application settings. If not provided, uses get_settings().
            dry_run: If True, skip sending notifications. Overrides settings.dry_run.
        """
        self._settings = settings or get_settings()
        self._dry_run = dry_run if dry_run is not None else self._settings.dry_run

        self._state = PipelineState.STOPPED
        self._stats = PipelineStats()

        # Components (initialized in start())
        self._redis: Redis | None = None
        self._db_manager: DatabaseManager | None = None
        self._chain_client: AvalancheClient | None = None
        self._poller: ChainPoller | None = None
        self._resolver: ProfileResolver | None = None
        self._dispatcher: NotificationDispatcher | None = None

        # Synchronization
        self._stop_event: asyncio.Event | None = None
        self._unsubscribe: Callable[[], None] | None = None
        self._discard_outcomes = False

    @property
    def state(self) -> PipelineState:
        """Current pipeline state."""
        return self._state

    @property
    def stats(self) -> PipelineStats:
        """Current pipeline statistics."""
        return self._stats

    @property
    def is_running(self) -> bool:
        """Check if pipeline is running."""
        return self._state == PipelineState.RUNNING

    @property
    def dispatcher(self) -> NotificationDispatcher | None:
        return self._dispatcher

    @property
    def resolver(self) -> ProfileResolver | None:
        return self._resolver

    async def start(self) -> None:
        """Start the pipeline.

        Initializes all components and begins polling the chain.

        Raises:
            RuntimeError: If pipeline is already running.
            Exception: If any component fails to initialize.
        """
        if self._state != PipelineState.STOPPED:
            raise RuntimeError(f"Cannot start pipeline in state {self._state}")

        self._state = PipelineState.STARTING
        self._stop_event = asyncio.Event()
        self._discard_outcomes = False
        logger.info("Starting pipeline...")

        try:
            await self._initialize_components()
            await self._start_background_services()
            self._stats.started_at = datetime.now(UTC)
            self._state = PipelineState.RUNNING
            logger.info("Pipeline started successfully")
        except Exception as e:
            self._state = PipelineState.ERROR
            self._stats.last_error = str(e)
            logger.error("Failed to start pipeline: %s", e)
            await self._cleanup()
            raise

    async def stop(self) -> None:
        """Stop the pipeline gracefully.

        Polling stops at once. Enrichment already scheduled is allowed to
        finish, but its notifications are discarded.
        """
        if self._state == PipelineState.STOPPED:
            return

        self._state = PipelineState.STOPPING
        self._discard_outcomes = True
        logger.info("Stopping pipeline...")

        if self._stop_event:
            self._stop_event.set()

        await self._stop_background_services()
        await self._cleanup()

        self._state = PipelineState.STOPPED
        logger.info("Pipeline stopped")

    async def _initialize_components(self) -> None:
        """Initialize all pipeline components."""
        settings = self._settings

        if settings.redis.url:
            logger.debug("Initializing Redis connection...")
            self._redis = Redis.from_url(settings.redis.url)

        logger.debug("Initializing database manager...")
        self._db_manager = DatabaseManager(settings.database.url)
        await self._db_manager.init_schema_async()

        logger.debug("Initializing Avalanche client...")
        self._chain_client = AvalancheClient(
            settings.avalanche.rpc_url,
            fallback_rpc_url=settings.avalanche.fallback_rpc_url,
            redis=self._redis,
        )
        if not await self._chain_client.health_check():
            logger.warning(
                "Avalanche RPC %s is unreachable, polling will keep retrying",
                settings.avalanche.rpc_url,
            )

        logger.debug("Initializing profile resolver...")
        self._resolver = ProfileResolver(
            arena_api_url=settings.arena.api_url,
            social_api_url=settings.arena.social_api_url,
            api_key=settings.arena.api_key.get_secret_value() if settings.arena.api_key else None,
            cache_ttl_seconds=settings.arena.profile_cache_ttl_seconds,
        )

        logger.debug("Initializing notification dispatcher...")
        arena_channel, discord_channel = self._build_alert_channels()
        self._dispatcher = NotificationDispatcher(
            arena=arena_channel,
            discord=discord_channel,
            flag_writer=self._write_post_flag,
            cache_ttl_seconds=settings.arena.post_cache_ttl_seconds,
            dry_run=self._dry_run,
        )

        logger.debug("Initializing chain poller...")
        self._poller = ChainPoller(
            self._chain_client,
            settings.avalanche.contract_address,
            poll_interval=settings.monitor.poll_interval_seconds,
            block_delay=settings.monitor.block_delay_seconds,
            on_creation=self._on_token_creation,
        )

    def _build_alert_channels(self) -> tuple[ArenaChannel | None, DiscordChannel | None]:
        """Build the enabled notification channels."""
        settings = self._settings
        arena_channel: ArenaChannel | None = None
        discord_channel: DiscordChannel | None = None

        if settings.arena.posting_enabled and settings.arena.bearer_token:
            arena_channel = ArenaChannel(
                settings.arena.bearer_token.get_secret_value(),
                base_url=settings.arena.social_api_url,
            )
            logger.info("Arena timeline channel enabled")

        if settings.discord.enabled:
            discord = settings.discord

            def secret(value: Any) -> str | None:
                return value.get_secret_value() if value else None

            discord_channel = DiscordChannel(
                champions_webhook=secret(discord.webhook_champions),
                heavy_hitters_webhook=secret(discord.webhook_heavy_hitters),
                general_webhook=secret(discord.webhook_general),
            )
            logger.info("Discord channel enabled")

        if arena_channel is None and discord_channel is None:
            logger.warning("No notification channels configured")

        return arena_channel, discord_channel

    async def _start_background_services(self) -> None:
        """Start background services."""
        if self._poller:
            logger.debug("Starting chain poller...")
            # Subscribing starts the poller.
            self._unsubscribe = self._poller.subscribe(self._on_event)

    async def _stop_background_services(self) -> None:
        """Stop background services."""
        if self._unsubscribe:
            self._unsubscribe()
            self._unsubscribe = None

        if self._poller:
            logger.debug("Stopping chain poller...")
            self._poller.stop()
            with contextlib.suppress(asyncio.CancelledError):
                await self._poller.join()

    async def _cleanup(self) -> None:
        """Clean up resources."""
        if self._dispatcher:
            await self._dispatcher.aclose()
            self._dispatcher = None

        if self._resolver:
            await self._resolver.aclose()
            self._resolver = None

        if self._chain_client:
            await self._chain_client.aclose()
            self._chain_client = None

        if self._db_manager:
            await self._db_manager.dispose_async()
            self._db_manager = None

        if self._redis:
            await self._redis.aclose()
            self._redis = None

        self._poller = None
        logger.debug("Resources cleaned up")

    def subscribe(self, callback: EventCallback) -> Callable[[], None]:
        """Receive every classified launch-contract event.

        Raises:
            RuntimeError: If the pipeline has not been started.
        """
        if self._poller is None:
            raise RuntimeError("Pipeline is not started")
        return self._poller.subscribe(callback)

    def status(self) -> MonitorStatus:
        """Synchronous poller status snapshot."""
        if self._poller is None:
            return MonitorStatus(running=False, cursor=0, subscriber_count=0)
        return self._poller.status()

    def _on_event(self, event: ClassifiedEvent) -> None:
        self._stats.transactions_seen += 1
        self._stats.last_event_time = datetime.now(UTC)

    async def _on_token_creation(self, event: ClassifiedEvent) -> None:
        """Enrichment hook scheduled by the poller for every creation."""
        try:
            await self.process_token_creation(event)
        except Exception as e:
            self._stats.errors += 1
            self._stats.last_error = str(e)
            logger.exception("Error processing token creation %s", event.transaction.hash)

    async def process_token_creation(self, event: ClassifiedEvent) -> DispatchResult | None:
        """Persist, enrich, tier and announce one token creation.

        Returns:
            The dispatch result, or None if no notification was attempted.
        """
        if not event.is_token_creation:
            return None
        if self._db_manager is None or self._resolver is None or self._dispatcher is None:
            raise RuntimeError("Pipeline components are not initialized")

        self._stats.creations_processed += 1
        tx_hash = event.transaction.hash
        symbol = event.symbol
        flags, contracts_created = await self._record_creation(event, symbol)
        if not symbol:
            logger.warning(
                "Token creation %s has no decoded symbol, stored transaction only", tx_hash
            )
            return None
        if contracts_created <= 1:
            logger.info(
                "Creator %s has only %d token(s), skipping profile lookup",
                event.creator_address,
                contracts_created,
            )
            return None

        logger.info(
            "Creator %s has %d tokens, checking Arena profile",
            event.creator_address,
            contracts_created,
        )
        profile = await self._resolver.resolve(event.creator_address)
        if profile is None:
            logger.info("No Arena profile for %s, skipping notifications", event.creator_address)
            return None

        self._stats.profiles_resolved += 1
        if event.profile is None:
            event.attach_profile(profile)
        await self._record_profile(tx_hash, profile)

        settings = self._settings.tier
        tier = classify_tier(
            profile,
            contracts_created,
            min_followers=settings.heavy_hitter_min_followers,
            min_key_price_avax=settings.heavy_hitter_min_key_price_avax,
        )
        if tier is None:
            return None

        if self._discard_outcomes:
            self._stats.outcomes_discarded += 1
            logger.info("Pipeline stopping, discarding notification for %s", tx_hash)
            return None

        logger.info(
            "Creator @%s tiered as %s (%d followers, %.4f AVAX ticket)",
            profile.username,
            tier.value,
            profile.follower_count,
            profile.key_price_avax,
        )
        result = await self._dispatcher.dispatch(
            event, profile, tier, contracts_created, flags=flags
        )
        if result.arena_posted:
            self._stats.notifications_sent += 1
        if result.discord_posted:
            self._stats.notifications_sent += 1
        if result.errors:
            self._stats.errors += len(result.errors)
            self._stats.last_error = result.errors[-1]
        return result

    async def _record_creation(
        self, event: ClassifiedEvent, symbol: str | None
    ) -> tuple[PostFlags | None, int]:
        """Store the transaction, token and creator history.

        Without a decoded symbol only the transaction row is written.

        Returns:
            (persisted post flags if the transaction was already known,
            contracts created by this creator). Storage failures degrade to
            (None, 0).
        """
        assert self._db_manager is not None
        tx_hash = event.transaction.hash
        try:
            async with self._db_manager.get_async_session() as session:
                tx_repo = ContractTransactionRepository(session)
                creator_repo = CreatorRepository(session)
                flags = await tx_repo.get_post_flags(tx_hash)
                if flags is None:
                    await tx_repo.upsert(ContractTransactionDTO.from_event(event))
                if not symbol:
                    return flags, 0

                token_id = await TokenRepository(session).upsert(TokenDTO.from_event(event))
                await tx_repo.set_links(tx_hash, token_id=token_id)

                # A known transaction was already counted for its creator.
                creator = (
                    await creator_repo.get_by_wallet(event.creator_address)
                    if flags is not None
                    else None
                )
                if creator is None:
                    creator = await creator_repo.add_contract(
                        event.creator_address,
                        symbol=symbol,
                        transaction_hash=tx_hash,
                        name=event.metadata.name if event.metadata else None,
                        token_address=event.token_address,
                        created_at=event.transaction.timestamp,
                    )
                return flags, creator.contracts_created
        except Exception as e:
            self._stats.errors += 1
            self._stats.last_error = str(e)
            logger.error("Failed to store token creation %s: %s", tx_hash, e)
            return None, 0

    async def _record_profile(self, tx_hash: str, profile: CreatorProfile) -> None:
        assert self._db_manager is not None
        try:
            async with self._db_manager.get_async_session() as session:
                profile_id = await CreatorProfileRepository(session).upsert(
                    CreatorProfileDTO.from_profile(profile)
                )
                await ContractTransactionRepository(session).set_links(
                    tx_hash, creator_profile_id=profile_id
                )
        except Exception as e:
            self._stats.errors += 1
            self._stats.last_error = str(e)
            logger.error("Failed to store profile for %s: %s", profile.wallet_address, e)

    async def _write_post_flag(self, tx_hash: str, channel: Channel) -> None:
        if self._db_manager is None:
            return
        async with self._db_manager.get_async_session() as session:
            updated = await ContractTransactionRepository(session).set_post_flag(tx_hash, channel)
        if not updated:
            logger.warning("No stored transaction %s to flag as posted to %s", tx_hash, channel.value)

    async def run(self) -> None:
        """Start the pipeline and run until interrupted.

        Example:
            ```python
            pipeline = Pipeline()
            try:
                await pipeline.run()
            except KeyboardInterrupt:
                pass
            ```
        """
        await self.start()

        try:
            if self._stop_event:
                await self._stop_event.wait()
        except asyncio.CancelledError:
            pass
        finally:
            await self.stop()

    async def __aenter__(self) -> Pipeline:
        """Async context manager entry."""
        await self.start()
        return self

    async def __aexit__(self, *args: Any) -> None:
        """Async context manager exit."""
        await self.stop()
