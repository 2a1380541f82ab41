"""Creator profile resolver backed by the Arena identity services.

Resolution runs three optional stages against two services:

1. Handle lookup by wallet address (address lookup service).
2. User lookup by handle (social service), yielding an opaque user id.
3. Share stats and badges by user id (social service).

Every stage degrades on failure. Results, including misses, are memoized
per lower-cased address for a fixed TTL.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable, Iterable
from datetime import UTC, datetime
from typing import Any

import httpx

from arena_token_monitor.profiler.models import (
    CHAMPION_BADGE_TYPE,
    WEI_PER_AVAX,
    Badge,
    CreatorProfile,
    coerce_int,
)

logger = logging.getLogger(__name__)

DEFAULT_ARENA_API_URL = "https://api.arena.trade"
DEFAULT_SOCIAL_API_URL = "https://api.starsarena.com"
ARENA_SOCIAL_ORIGIN = "https://arena.social"
USER_AGENT = "ArenaTokenMonitor/0.1"

DEFAULT_CACHE_TTL_SECONDS = 300
DEFAULT_MAX_RETRIES = 2
DEFAULT_BATCH_SIZE = 3
DEFAULT_BATCH_PAUSE_SECONDS = 1.0

BASE_TIMEOUT_SECONDS = 10.0
TIMEOUT_STEP_SECONDS = 2.0
MAX_BACKOFF_SECONDS = 3.0


class ProfileServiceError(Exception):
    """Base exception for identity service errors."""


class ProfileNotFoundError(ProfileServiceError):
    """Raised when an identity service reports that a record does not exist."""


class ProfileTransientError(ProfileServiceError):
    """Raised for retryable failures (timeouts, 429, 5xx)."""


class RetryError(ProfileServiceError):
    """Raised when every attempt of a call failed."""

    def __init__(self, message: str, last_exception: Exception | None = None) -> None:
        super().__init__(message)
        self.last_exception = last_exception


def format_avax(wei: int | str | None) -> str:
    """Render a wei amount in AVAX with magnitude-dependent precision."""
    try:
        avax = int(wei or 0) / WEI_PER_AVAX
    except (TypeError, ValueError):
        try:
            avax = float(wei or 0) / WEI_PER_AVAX
        except (TypeError, ValueError):
            return "0"
    if avax == 0:
        return "0"
    if avax < 0.0001:
        return f"{avax:.8f}"
    if avax < 1:
        return f"{avax:.4f}"
    return f"{avax:.2f}"


def _backoff_seconds(attempt: int) -> float:
    return min(1.0 * 2 ** (attempt - 1), MAX_BACKOFF_SECONDS)


async def fetch_with_retry(
    client: httpx.AsyncClient,
    method: str,
    url: str,
    *,
    max_retries: int = DEFAULT_MAX_RETRIES,
    sleep: Callable[[float], Any] = asyncio.sleep,
    **kwargs: Any,
) -> httpx.Response:
    """Send a request with bounded retries.

    A successful or 404 response is returned as-is. Other error statuses and
    transport errors are retried with a capped exponential backoff, and the
    timeout grows with every attempt.

    Raises:
        RetryError: If no attempt produced a usable response.
    """
    last_error: Exception | None = None
    for attempt in range(1, max_retries + 1):
        timeout = BASE_TIMEOUT_SECONDS + TIMEOUT_STEP_SECONDS * attempt
        try:
            response = await client.request(method, url, timeout=timeout, **kwargs)
            if response.is_success or response.status_code == 404:
                return response
            last_error = ProfileTransientError(f"HTTP {response.status_code} from {url}")
            logger.debug(
                "Attempt %d/%d for %s returned %d", attempt, max_retries, url, response.status_code
            )
        except httpx.HTTPError as e:
            last_error = e
            logger.debug("Attempt %d/%d for %s failed: %s", attempt, max_retries, url, e)

        if attempt < max_retries:
            await sleep(_backoff_seconds(attempt))

    raise RetryError(f"Failed after {max_retries} attempts: {url}", last_error)


def _parse_iso(value: Any) -> datetime | None:
    if not value or not isinstance(value, str):
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=UTC)


def _parse_epoch(value: Any) -> datetime | None:
    seconds = coerce_int(value, default=0)
    if seconds <= 0:
        return None
    return datetime.fromtimestamp(seconds, tz=UTC)


def _optional_int(*values: Any) -> int | None:
    for value in values:
        if value is not None and value != "":
            return coerce_int(value)
    return None


class ProfileResolver:
    """Resolves wallet addresses to Arena creator profiles.

    Example:
        ```python
        resolver = ProfileResolver(api_key=settings.arena.api_key.get_secret_value())
        profile = await resolver.resolve("0xabc...")
        if profile and profile.is_champion:
            ...
        await resolver.aclose()
        ```
    """

    def __init__(
        self,
        *,
        arena_api_url: str = DEFAULT_ARENA_API_URL,
        social_api_url: str = DEFAULT_SOCIAL_API_URL,
        api_key: str | None = None,
        cache_ttl_seconds: float = DEFAULT_CACHE_TTL_SECONDS,
        max_retries: int = DEFAULT_MAX_RETRIES,
        http_client: httpx.AsyncClient | None = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Any] = asyncio.sleep,
    ) -> None:
        """Initialize the resolver.

        Args:
            arena_api_url: Base URL of the address lookup service.
            social_api_url: Base URL of the social service.
            api_key: Optional bearer key for the address lookup service.
            cache_ttl_seconds: Memoization window, misses included.
            max_retries: Attempts per outbound call.
            http_client: Shared client; one is created (and owned) otherwise.
            clock: Monotonic time source for cache expiry.
            sleep: Awaitable sleep used between retries and batches.
        """
        self._arena_api_url = arena_api_url.rstrip("/")
        self._social_api_url = social_api_url.rstrip("/")
        self._api_key = api_key
        self._cache_ttl = cache_ttl_seconds
        self._max_retries = max_retries
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(headers={"User-Agent": USER_AGENT})
        self._clock = clock
        self._sleep = sleep
        self._cache: dict[str, tuple[CreatorProfile | None, float]] = {}

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> ProfileResolver:
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.aclose()

    # ------------------------------------------------------------------
    # Cache
    # ------------------------------------------------------------------

    def clear_cache(self) -> None:
        logger.info("Clearing profile cache (%d entries)", len(self._cache))
        self._cache.clear()

    def cache_status(self) -> dict[str, Any]:
        """Number of memoized addresses and their keys."""
        return {"size": len(self._cache), "entries": list(self._cache)}

    def _cached(self, key: str) -> tuple[bool, CreatorProfile | None]:
        entry = self._cache.get(key)
        if entry is None:
            return False, None
        profile, stored_at = entry
        if self._clock() - stored_at >= self._cache_ttl:
            del self._cache[key]
            return False, None
        return True, profile

    def _store(self, key: str, profile: CreatorProfile | None) -> None:
        self._cache[key] = (profile, self._clock())

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def resolve(self, address: str) -> CreatorProfile | None:
        """Resolve a wallet address to a profile, or None if nothing is known."""
        key = address.lower()
        hit, cached = self._cached(key)
        if hit:
            logger.debug("Using cached profile for %s", address)
            return cached

        try:
            profile = await self._resolve_uncached(address)
        except Exception as e:
            logger.error("Error fetching Arena profile for %s: %s", address, e)
            profile = None

        self._store(key, profile)
        return profile

    async def force_refresh(self, address: str) -> CreatorProfile | None:
        """Drop any memoized entry and resolve again."""
        self._cache.pop(address.lower(), None)
        return await self.resolve(address)

    async def resolve_many(
        self,
        addresses: Iterable[str],
        *,
        batch_size: int = DEFAULT_BATCH_SIZE,
        pause_seconds: float = DEFAULT_BATCH_PAUSE_SECONDS,
    ) -> dict[str, CreatorProfile | None]:
        """Resolve several addresses in small concurrent batches.

        Returns:
            Mapping of lower-cased address to profile (or None).
        """
        unique = list(dict.fromkeys(addresses))
        results: dict[str, CreatorProfile | None] = {}
        for start in range(0, len(unique), batch_size):
            batch = unique[start : start + batch_size]
            settled = await asyncio.gather(
                *(self.resolve(address) for address in batch), return_exceptions=True
            )
            for address, outcome in zip(batch, settled, strict=True):
                if isinstance(outcome, BaseException):
                    logger.error("Failed to fetch profile for %s: %s", address, outcome)
                    results[address.lower()] = None
                else:
                    results[address.lower()] = outcome
            if start + batch_size < len(unique) and pause_seconds > 0:
                await self._sleep(pause_seconds)
        return results

    # ------------------------------------------------------------------
    # Stages
    # ------------------------------------------------------------------

    async def _resolve_uncached(self, address: str) -> CreatorProfile | None:
        profile, handle = await self._lookup_handle(address)
        if not handle:
            logger.info("No handle found for %s", address)
            return profile

        profile, user_id = await self._lookup_user(address, handle, profile)
        if not user_id:
            if profile is not None:
                profile.is_champion = False
            return profile

        if profile is None:
            profile = CreatorProfile(wallet_address=address, username=handle)
        await self._apply_stats(profile, user_id)
        return profile

    async def _get_json(
        self, url: str, *, params: dict[str, str], headers: dict[str, str]
    ) -> Any | None:
        response = await fetch_with_retry(
            self._client,
            "GET",
            url,
            max_retries=self._max_retries,
            sleep=self._sleep,
            params=params,
            headers=headers,
        )
        if response.status_code == 404:
            raise ProfileNotFoundError(f"Not found: {url}")
        return response.json()

    def _social_headers(self) -> dict[str, str]:
        return {
            "Accept": "application/json",
            "Origin": ARENA_SOCIAL_ORIGIN,
            "Referer": f"{ARENA_SOCIAL_ORIGIN}/",
        }

    async def _lookup_handle(self, address: str) -> tuple[CreatorProfile | None, str | None]:
        headers = {"Accept": "application/json"}
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"
        try:
            data = await self._get_json(
                f"{self._arena_api_url}/user_info",
                params={"user_address": f"eq.{address.lower()}"},
                headers=headers,
            )
        except (ProfileServiceError, ValueError) as e:
            logger.warning("Handle lookup failed for %s: %s", address, e)
            return None, None

        row = data[0] if isinstance(data, list) and data else data
        if not isinstance(row, dict) or not row:
            return None, None

        handle = row.get("twitter_handle") or row.get("twitter_handle_lc") or row.get("handle")
        profile = self._profile_from_lookup(address, row)
        return profile, handle

    def _profile_from_lookup(self, address: str, row: dict[str, Any]) -> CreatorProfile | None:
        username = row.get("twitter_handle") or row.get("twitter_handle_lc")
        display_name = row.get("twitter_username") or row.get("twitter_handle")
        if not (username or display_name):
            return None
        return CreatorProfile(
            wallet_address=address,
            username=username,
            display_name=display_name,
            avatar_url=row.get("twitter_pfp_url"),
            twitter_handle=row.get("twitter_handle"),
            twitter_follower_count=coerce_int(row.get("twitter_followers")),
            joined_at=_parse_epoch(row.get("join_time")),
            key_price=_optional_int(row.get("arena_price"), row.get("key_price")),
            total_holders=_optional_int(row.get("holder_count"), row.get("total_holders")),
            volume=_optional_int(row.get("trade_volume"), row.get("volume")),
            supply=_optional_int(row.get("supply")),
        )

    async def _lookup_user(
        self, address: str, handle: str, profile: CreatorProfile | None
    ) -> tuple[CreatorProfile | None, str | None]:
        try:
            data = await self._get_json(
                f"{self._social_api_url}/user/handle",
                params={"handle": handle},
                headers=self._social_headers(),
            )
        except (ProfileServiceError, ValueError) as e:
            logger.warning("User lookup failed for handle %s: %s", handle, e)
            return profile, None

        user = data.get("user") if isinstance(data, dict) else None
        if not isinstance(user, dict):
            return profile, None

        if profile is None:
            profile = CreatorProfile(
                wallet_address=address,
                username=handle,
                display_name=user.get("twitterName") or handle,
            )

        # lastKeyPrice is the more recent figure when both are present.
        key_price = _optional_int(user.get("lastKeyPrice"), user.get("keyPrice"))
        confirmed = user.get("twitterConfirmed")
        profile.merge_present(
            display_name=user.get("twitterName") or None,
            bio=user.get("twitterDescription") or None,
            avatar_url=user.get("twitterPicture") or user.get("lastLoginTwitterPicture") or None,
            twitter_handle=user.get("twitterHandle") or None,
            verified=bool(confirmed) if confirmed is not None else None,
            follower_count=_optional_int(user.get("followerCount")),
            twitter_follower_count=_optional_int(user.get("twitterFollowerCount")),
            following_count=_optional_int(user.get("followingsCount")),
            token_count=_optional_int(user.get("threadCount")),
            joined_at=_parse_iso(user.get("createdOn")),
            key_price=key_price,
        )

        user_id = user.get("id")
        return profile, str(user_id) if user_id else None

    async def _apply_stats(self, profile: CreatorProfile, user_id: str) -> None:
        try:
            data = await self._get_json(
                f"{self._social_api_url}/shares/stats",
                params={"userId": user_id},
                headers=self._social_headers(),
            )
        except (ProfileServiceError, ValueError) as e:
            logger.warning("Stats lookup failed for user %s: %s", user_id, e)
            profile.badges = ()
            profile.is_champion = False
            return

        if not isinstance(data, dict):
            profile.badges = ()
            profile.is_champion = False
            return

        if data.get("totalHolders") is not None:
            profile.total_holders = coerce_int(data["totalHolders"])
        stats = data.get("stats")
        if isinstance(stats, dict):
            if stats.get("keyPrice") is not None:
                profile.key_price = coerce_int(stats["keyPrice"])
            if stats.get("volume") is not None:
                profile.volume = coerce_int(stats["volume"])
            if stats.get("supply") is not None:
                profile.supply = coerce_int(stats["supply"])

        raw_badges = data.get("badges")
        if not isinstance(raw_badges, list):
            profile.badges = ()
            profile.is_champion = False
            return

        profile.badges = tuple(Badge.from_dict(b) for b in raw_badges if isinstance(b, dict))
        profile.is_champion = any(b.badge_type == CHAMPION_BADGE_TYPE for b in profile.badges)
        if profile.is_champion:
            logger.info("Arena Champion badge found for @%s", profile.username)
