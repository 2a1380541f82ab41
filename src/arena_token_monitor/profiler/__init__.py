"""Creator profiling layer - Arena identity lookup and champion detection."""

from arena_token_monitor.profiler.models import Badge, CreatorProfile
from arena_token_monitor.profiler.resolver import (
    ProfileNotFoundError,
    ProfileResolver,
    ProfileServiceError,
    ProfileTransientError,
    RetryError,
    format_avax,
)

__all__ = [
    "Badge",
    "CreatorProfile",
    "ProfileNotFoundError",
    "ProfileResolver",
    "ProfileServiceError",
    "ProfileTransientError",
    "RetryError",
    "format_avax",
]
