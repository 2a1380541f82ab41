"""Tests for the Arena and Discord notification channels."""

from __future__ import annotations

import json

import httpx
import pytest

from arena_token_monitor.alerter.channels import ArenaChannel, ChannelError, DiscordChannel
from arena_token_monitor.detector.tier import CreatorTier

CHAMPIONS = "https://discord.test/champions"
HEAVY = "https://discord.test/heavy"
GENERAL = "https://discord.test/general"


def mock_client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


class TestArenaChannel:
    """Tests for ArenaChannel."""

    @pytest.mark.asyncio
    async def test_post_sends_thread(self) -> None:
        requests: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(200, json={"thread": {"id": "t1"}})

        channel = ArenaChannel("token-123", base_url="https://social.test/", http_client=mock_client(handler))
        data = await channel.post("hello<br>world")

        assert data == {"thread": {"id": "t1"}}
        request = requests[0]
        assert str(request.url) == "https://social.test/threads"
        assert request.headers["Authorization"] == "Bearer token-123"
        assert request.headers["Origin"] == "https://arena.social"
        assert json.loads(request.content) == {
            "content": "hello<br>world",
            "POST": [],
            "privacyType": 0,
        }

    @pytest.mark.asyncio
    async def test_error_status_raises(self) -> None:
        channel = ArenaChannel(
            "token",
            http_client=mock_client(lambda request: httpx.Response(401, text="unauthorized")),
        )

        with pytest.raises(ChannelError) as exc_info:
            await channel.post("hi")

        assert exc_info.value.status_code == 401

    @pytest.mark.asyncio
    async def test_transport_error_raises(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("slow", request=request)

        channel = ArenaChannel("token", http_client=mock_client(handler))

        with pytest.raises(ChannelError, match="Arena post failed"):
            await channel.post("hi")


class TestDiscordChannel:
    """Tests for DiscordChannel."""

    def test_webhook_for_each_tier(self) -> None:
        channel = DiscordChannel(
            champions_webhook=CHAMPIONS, heavy_hitters_webhook=HEAVY, general_webhook=GENERAL
        )

        assert channel.webhook_for(CreatorTier.CHAMPION) == CHAMPIONS
        assert channel.webhook_for(CreatorTier.HEAVY_HITTER) == HEAVY
        assert channel.webhook_for(CreatorTier.REGULAR) == GENERAL

    def test_webhook_fallback_chain(self) -> None:
        only_heavy = DiscordChannel(heavy_hitters_webhook=HEAVY)
        assert only_heavy.webhook_for(CreatorTier.CHAMPION) == HEAVY
        assert only_heavy.webhook_for(CreatorTier.REGULAR) is None

        only_general = DiscordChannel(general_webhook=GENERAL)
        assert only_general.webhook_for(CreatorTier.CHAMPION) == GENERAL
        assert only_general.webhook_for(CreatorTier.HEAVY_HITTER) == GENERAL

        only_champions = DiscordChannel(champions_webhook=CHAMPIONS)
        assert only_champions.webhook_for(CreatorTier.HEAVY_HITTER) is None

    @pytest.mark.asyncio
    async def test_post_uses_tier_webhook(self) -> None:
        urls: list[str] = []

        def handler(request: httpx.Request) -> httpx.Response:
            urls.append(str(request.url))
            return httpx.Response(204)

        channel = DiscordChannel(
            champions_webhook=CHAMPIONS,
            general_webhook=GENERAL,
            http_client=mock_client(handler),
        )
        await channel.post({"embeds": []}, CreatorTier.CHAMPION)
        await channel.post({"embeds": []}, CreatorTier.HEAVY_HITTER)

        assert urls == [CHAMPIONS, GENERAL]

    @pytest.mark.asyncio
    async def test_missing_webhook_raises(self) -> None:
        channel = DiscordChannel(champions_webhook=CHAMPIONS)

        with pytest.raises(ChannelError, match="No Discord webhook"):
            await channel.post({"embeds": []}, CreatorTier.REGULAR)

    @pytest.mark.asyncio
    async def test_error_status_raises(self) -> None:
        channel = DiscordChannel(
            general_webhook=GENERAL,
            http_client=mock_client(lambda request: httpx.Response(429, text="rate limited")),
        )

        with pytest.raises(ChannelError) as exc_info:
            await channel.post({"embeds": []}, CreatorTier.REGULAR)

        assert exc_info.value.status_code == 429
