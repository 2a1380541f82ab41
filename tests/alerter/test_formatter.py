"""Tests for launch notification formatting."""

from __future__ import annotations

from datetime import UTC, datetime

import pytest

from arena_token_monitor.alerter.formatter import (
    COLOR_CHAMPION,
    COLOR_HEAVY_HITTER,
    COLOR_REGULAR,
    arena_message,
    discord_embed,
    discord_payload,
    format_followers,
    format_launch,
    format_ticket_price,
    ordinal,
    truncate_contract,
)
from arena_token_monitor.alerter.models import LaunchNotice
from arena_token_monitor.detector.tier import CreatorTier
from arena_token_monitor.profiler.models import CreatorProfile

TOKEN_ADDRESS = "0x1234567890abcdef1234567890abcdef12345678"
NOW = datetime(2026, 3, 1, 12, 0, tzinfo=UTC)


def notice(tier: CreatorTier, *, name: str | None = "Test Token", contracts: int = 3, **profile_kwargs) -> LaunchNotice:
    defaults = {"follower_count": 5000, "key_price": 2 * 10**18}
    defaults.update(profile_kwargs)
    return LaunchNotice(
        username="alice",
        symbol="TEST",
        tier=tier,
        contracts_created=contracts,
        name=name,
        contract_address=TOKEN_ADDRESS,
        profile=CreatorProfile(wallet_address="0x" + "1" * 40, username="alice", **defaults),
    )


class TestHelpers:
    """Tests for the small formatting helpers."""

    @pytest.mark.parametrize(
        ("n", "expected"),
        [
            (1, "1st"),
            (2, "2nd"),
            (3, "3rd"),
            (4, "4th"),
            (11, "11th"),
            (12, "12th"),
            (13, "13th"),
            (21, "21st"),
            (22, "22nd"),
            (23, "23rd"),
            (101, "101st"),
            (111, "111th"),
        ],
    )
    def test_ordinal(self, n, expected) -> None:
        assert ordinal(n) == expected

    def test_format_followers(self) -> None:
        assert format_followers(999) == "999"
        assert format_followers(1000) == "1.0K"
        assert format_followers(12345) == "12.3K"

    def test_format_ticket_price(self) -> None:
        assert format_ticket_price(1.5) == "1.50 AVAX"
        assert format_ticket_price(0.5) == "0.5000 AVAX"

    def test_truncate_contract(self) -> None:
        assert truncate_contract(TOKEN_ADDRESS) == "0x123456...345678"
        assert truncate_contract("0xabc") == "0xabc"


class TestArenaMessage:
    """Tests for Arena timeline post bodies."""

    def test_champion(self) -> None:
        content = arena_message(notice(CreatorTier.CHAMPION))

        assert content == (
            "🏆 Arena Champion @alice (https://arena.social/alice) just launched a new token: "
            "$TEST (Test Token).<br><br>This might be worth watching closely 👀"
        )

    def test_champion_without_name(self) -> None:
        content = arena_message(notice(CreatorTier.CHAMPION, name=None))
        assert "just launched a new token: $TEST.<br><br>" in content

    def test_heavy_hitter(self) -> None:
        content = arena_message(notice(CreatorTier.HEAVY_HITTER))

        assert content.startswith("🚀 A heavy hitter just dropped: @alice")
        assert "launched $TEST (Test Token)." in content
        assert "5,000 followers. Ticket: 2.00 AVAX." in content
        assert content.endswith("Not their first rodeo — pattern or pump incoming?")

    def test_regular(self) -> None:
        content = arena_message(notice(CreatorTier.REGULAR))

        assert content.startswith("⚠️ALERT⚠️<br><br>@alice (https://arena.social/alice)")
        assert "launched the token TEST (Test Token) on arenabook.xyz" in content
        assert "This is their 3rd token so far." in content


class TestDiscordEmbed:
    """Tests for Discord webhook payloads."""

    def test_champion_embed(self) -> None:
        embed = discord_embed(notice(CreatorTier.CHAMPION), now=NOW)

        assert embed["title"] == "🏆 CHAMPION ALERT: @alice created $TEST"
        assert embed["color"] == COLOR_CHAMPION
        assert embed["url"] == "https://arena.xyz/@alice"
        assert embed["description"] == "Token Name: **Test Token**"
        assert embed["timestamp"] == NOW.isoformat()
        assert [f["name"] for f in embed["fields"]] == ["Creator", "Tokens Created"]

    def test_heavy_hitter_embed(self) -> None:
        embed = discord_embed(notice(CreatorTier.HEAVY_HITTER, name=None), now=NOW)

        assert embed["color"] == COLOR_HEAVY_HITTER
        assert embed["description"] == "New token created: **$TEST**"

    def test_regular_embed_has_extra_fields(self) -> None:
        embed = discord_embed(
            notice(CreatorTier.REGULAR, follower_count=1234, key_price=5 * 10**17), now=NOW
        )

        assert embed["color"] == COLOR_REGULAR
        fields = {f["name"]: f["value"] for f in embed["fields"]}
        assert fields["Contract Address"] == (
            f"[0x123456...345678](https://snowtrace.io/address/{TOKEN_ADDRESS})"
        )
        assert fields["Followers"] == "1.2K"
        assert fields["Ticket Price"] == "0.5000 AVAX"
        assert fields["Tokens Created"] == "3"

    def test_payload_wraps_embed(self) -> None:
        payload = discord_payload(notice(CreatorTier.REGULAR), now=NOW)

        assert payload["username"] == "TokenMonitor Bot"
        assert len(payload["embeds"]) == 1

    def test_format_launch(self) -> None:
        alert = format_launch(notice(CreatorTier.CHAMPION), now=NOW)

        assert alert.arena_content.startswith("🏆 Arena Champion")
        assert alert.discord_payload["embeds"][0]["color"] == COLOR_CHAMPION
