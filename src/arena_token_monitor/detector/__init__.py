"""Creator tiering layer - Decides which launches are worth announcing."""

from arena_token_monitor.detector.tier import CreatorTier, classify_tier

__all__ = [
    "CreatorTier",
    "classify_tier",
]
