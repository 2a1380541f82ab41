"""Launch notification formatter for the Arena timeline and Discord.

This module turns a LaunchNotice into the Arena timeline post body and
the Discord webhook payload. Arena content uses ``<br>`` line breaks.
"""

from __future__ import annotations

from datetime import UTC, datetime

from arena_token_monitor.alerter.models import FormattedAlert, LaunchNotice
from arena_token_monitor.detector.tier import CreatorTier
from arena_token_monitor.profiler.models import WEI_PER_AVAX
from arena_token_monitor.profiler.resolver import format_avax

ARENA_PROFILE_URL = "https://arena.social/{username}"
ARENA_XYZ_PROFILE_URL = "https://arena.xyz/@{username}"
SNOWTRACE_ADDRESS_URL = "https://snowtrace.io/address/{address}"

# Discord embed colors
COLOR_CHAMPION = 0xFFD700  # Gold
COLOR_HEAVY_HITTER = 0xFF4500  # Orange-red
COLOR_REGULAR = 0x3498DB  # Blue

DISCORD_BOT_NAME = "TokenMonitor Bot"
DISCORD_AVATAR_URL = "https://i.imgur.com/4M34hi2.png"
DISCORD_FOOTER = "TokenMonitor by Arena"

_ORDINAL_SUFFIXES = ["th", "st", "nd", "rd"]


def ordinal(n: int) -> str:
    """Return ``n`` with its English ordinal suffix (1st, 2nd, 11th, 23rd)."""
    value = n % 100
    index = (value - 20) % 10 if value >= 20 else value
    suffix = _ORDINAL_SUFFIXES[index] if index < 4 else _ORDINAL_SUFFIXES[0]
    return f"{n}{suffix}"


def format_followers(count: int) -> str:
    """Format a follower count, abbreviating thousands (1.2K)."""
    if count >= 1000:
        return f"{count / 1000:.1f}K"
    return str(count)


def format_ticket_price(avax: float) -> str:
    """Format a ticket price already expressed in AVAX."""
    if avax >= 1:
        return f"{avax:.2f} AVAX"
    return f"{avax:.4f} AVAX"


def truncate_contract(address: str) -> str:
    """Shorten a contract address to its first 8 and last 6 characters."""
    if len(address) <= 14:
        return address
    return f"{address[:8]}...{address[36:]}"


def arena_message(notice: LaunchNotice) -> str:
    """Build the Arena timeline post body for a launch."""
    username = notice.username
    profile_url = ARENA_PROFILE_URL.format(username=username)

    if notice.tier is CreatorTier.CHAMPION:
        token = f"${notice.symbol} ({notice.name})" if notice.name else f"${notice.symbol}"
        return (
            f"🏆 Arena Champion @{username} ({profile_url}) just launched a new token: "
            f"{token}.<br><br>This might be worth watching closely 👀"
        )

    if notice.tier is CreatorTier.HEAVY_HITTER:
        token = f"${notice.symbol}" + (f" ({notice.name})" if notice.name else "")
        ticket = format_avax(notice.key_price)
        closing = (
            "This is their first token — all eyes on the debut."
            if notice.contracts_created == 1
            else "Not their first rodeo — pattern or pump incoming?"
        )
        return (
            f"🚀 A heavy hitter just dropped: @{username} ({profile_url}) launched {token}."
            f"<br><br>{notice.follower_count:,} followers. Ticket: {ticket} AVAX.<br><br>{closing}"
        )

    token = f"{notice.symbol} ({notice.name})" if notice.name else notice.symbol
    return (
        f"⚠️ALERT⚠️<br><br>@{username} ({profile_url}) <br><br>has just launched the token "
        f"{token} on arenabook.xyz. This is their {ordinal(notice.contracts_created)} "
        f"token so far.<br><br> Stay sharp!⚠️"
    )


def discord_embed(notice: LaunchNotice, *, now: datetime | None = None) -> dict[str, object]:
    """Build the Discord embed for a launch."""
    username = notice.username
    profile_url = ARENA_XYZ_PROFILE_URL.format(username=username)

    if notice.tier is CreatorTier.CHAMPION:
        title = f"🏆 CHAMPION ALERT: @{username} created ${notice.symbol}"
        color = COLOR_CHAMPION
    elif notice.tier is CreatorTier.HEAVY_HITTER:
        title = f"🚀 HEAVY HITTER: @{username} created ${notice.symbol}"
        color = COLOR_HEAVY_HITTER
    else:
        title = f"⚠️ NEW TOKEN: @{username} created ${notice.symbol}"
        color = COLOR_REGULAR

    fields: list[dict[str, object]] = [
        {"name": "Creator", "value": f"[@{username}]({profile_url})", "inline": True},
        {"name": "Tokens Created", "value": str(notice.contracts_created), "inline": True},
    ]

    # The general channel gets the extra context the tiered channels omit
    if notice.tier is CreatorTier.REGULAR:
        if notice.contract_address:
            address = notice.contract_address
            fields.append(
                {
                    "name": "Contract Address",
                    "value": f"[{truncate_contract(address)}]({SNOWTRACE_ADDRESS_URL.format(address=address)})",
                    "inline": False,
                }
            )
        fields.append(
            {"name": "Followers", "value": format_followers(notice.follower_count), "inline": True}
        )
        fields.append(
            {
                "name": "Ticket Price",
                "value": format_ticket_price(notice.key_price / WEI_PER_AVAX),
                "inline": True,
            }
        )

    description = (
        f"Token Name: **{notice.name}**" if notice.name else f"New token created: **${notice.symbol}**"
    )
    return {
        "title": title,
        "color": color,
        "url": profile_url,
        "description": description,
        "fields": fields,
        "footer": {"text": DISCORD_FOOTER},
        "timestamp": (now or datetime.now(UTC)).isoformat(),
    }


def discord_payload(notice: LaunchNotice, *, now: datetime | None = None) -> dict[str, object]:
    """Wrap the embed in a webhook payload."""
    return {
        "username": DISCORD_BOT_NAME,
        "avatar_url": DISCORD_AVATAR_URL,
        "embeds": [discord_embed(notice, now=now)],
    }


def format_launch(notice: LaunchNotice, *, now: datetime | None = None) -> FormattedAlert:
    """Render a launch for every channel."""
    return FormattedAlert(
        arena_content=arena_message(notice),
        discord_payload=discord_payload(notice, now=now),
    )
