"""Discord webhook channel."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from arena_token_monitor.alerter.channels.base import ChannelError
from arena_token_monitor.detector.tier import CreatorTier

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 10.0


class DiscordChannel:
    """Posts embeds to one of three tier-specific webhooks.

    A tier uses its own webhook when configured and otherwise falls back
    down the chain champions -> heavy hitters -> general.
    """

    def __init__(
        self,
        *,
        champions_webhook: str | None = None,
        heavy_hitters_webhook: str | None = None,
        general_webhook: str | None = None,
        http_client: httpx.AsyncClient | None = None,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
    ) -> None:
        self._champions = champions_webhook
        self._heavy_hitters = heavy_hitters_webhook
        self._general = general_webhook
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(timeout=timeout_seconds)

    def webhook_for(self, tier: CreatorTier) -> str | None:
        """Pick the webhook URL for a tier, or None if nothing usable is set."""
        if tier is CreatorTier.CHAMPION:
            candidates = [self._champions, self._heavy_hitters, self._general]
        elif tier is CreatorTier.HEAVY_HITTER:
            candidates = [self._heavy_hitters, self._general]
        else:
            candidates = [self._general]
        return next((url for url in candidates if url), None)

    async def post(self, payload: dict[str, Any], tier: CreatorTier) -> None:
        """Send a webhook payload to the channel matching ``tier``.

        Raises:
            ChannelError: If no webhook is configured or the post fails.
        """
        url = self.webhook_for(tier)
        if url is None:
            raise ChannelError(f"No Discord webhook configured for tier {tier.value}")

        try:
            response = await self._client.post(url, json=payload)
        except httpx.HTTPError as e:
            raise ChannelError(f"Discord webhook failed: {e}") from e

        if not response.is_success:
            raise ChannelError(
                f"Discord webhook failed: HTTP {response.status_code}: {response.text[:200]}",
                status_code=response.status_code,
            )
        logger.debug("Discord webhook accepted post for tier %s", tier.value)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()
