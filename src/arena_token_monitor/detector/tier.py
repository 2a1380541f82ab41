"""Creator tier classification.

A creator's first token never produces a tier: notifications only start from
the second launch by the same wallet.
"""

from __future__ import annotations

from enum import Enum

from arena_token_monitor.profiler.models import CreatorProfile

DEFAULT_HEAVY_HITTER_MIN_FOLLOWERS = 5000
DEFAULT_HEAVY_HITTER_MIN_KEY_PRICE_AVAX = 1.5


class CreatorTier(str, Enum):
    """Notification tier of a token creator."""

    CHAMPION = "champion"
    HEAVY_HITTER = "heavy-hitter"
    REGULAR = "regular"

    @property
    def posts_to_arena(self) -> bool:
        """Whether this tier is published on the Arena timeline."""
        return self is not CreatorTier.REGULAR


def classify_tier(
    profile: CreatorProfile | None,
    contracts_created: int,
    *,
    min_followers: int = DEFAULT_HEAVY_HITTER_MIN_FOLLOWERS,
    min_key_price_avax: float = DEFAULT_HEAVY_HITTER_MIN_KEY_PRICE_AVAX,
) -> CreatorTier | None:
    """Tier a creator, or return None when the launch should not be announced.

    Args:
        profile: Resolved creator profile.
        contracts_created: Launches by this creator, including the current one.
        min_followers: Arena followers that qualify a heavy hitter.
        min_key_price_avax: Ticket price (AVAX) that qualifies a heavy hitter.
    """
    if contracts_created <= 1 or profile is None:
        return None

    if profile.is_champion:
        return CreatorTier.CHAMPION

    if (
        profile.follower_count >= min_followers
        or profile.key_price_avax >= min_key_price_avax
    ):
        return CreatorTier.HEAVY_HITTER

    return CreatorTier.REGULAR
