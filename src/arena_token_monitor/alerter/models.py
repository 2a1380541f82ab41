"""Data models for the alerter module."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from arena_token_monitor.detector.tier import CreatorTier
    from arena_token_monitor.profiler.models import CreatorProfile


class Channel(str, Enum):
    """Outbound notification channels."""

    ARENA = "arena"
    DISCORD = "discord"


@dataclass(frozen=True)
class PostKey:
    """Idempotency key of a launch notification.

    Wallet and symbol are lower-cased at construction.
    """

    tx_hash: str
    wallet: str
    symbol: str

    def __post_init__(self) -> None:
        object.__setattr__(self, "wallet", self.wallet.lower())
        object.__setattr__(self, "symbol", self.symbol.lower())

    def cache_key(self, channel: Channel) -> str:
        return f"{channel.value}-post-{self.tx_hash}-{self.wallet}-{self.symbol}"


@dataclass(frozen=True)
class PostFlags:
    """Persisted "already posted" flags of a transaction record."""

    posted_to_arena: bool = False
    posted_to_discord: bool = False

    def is_posted(self, channel: Channel) -> bool:
        if channel is Channel.ARENA:
            return self.posted_to_arena
        return self.posted_to_discord


@dataclass(frozen=True)
class LaunchNotice:
    """Everything the formatter needs to announce one launch."""

    username: str
    symbol: str
    tier: CreatorTier
    contracts_created: int
    name: str | None = None
    contract_address: str | None = None
    profile: CreatorProfile | None = None

    @property
    def follower_count(self) -> int:
        return self.profile.follower_count if self.profile else 0

    @property
    def key_price(self) -> int:
        return (self.profile.key_price or 0) if self.profile else 0


@dataclass(frozen=True)
class FormattedAlert:
    """A launch notification rendered for every channel."""

    arena_content: str
    discord_payload: dict[str, Any]


@dataclass
class DispatchResult:
    """Outcome of dispatching one launch."""

    arena_posted: bool = False
    discord_posted: bool = False
    arena_skipped: bool = False
    discord_skipped: bool = False
    suppressed: bool = False
    errors: list[str] = field(default_factory=list)

    @property
    def any_posted(self) -> bool:
        return self.arena_posted or self.discord_posted
