"""Data models for creator profiles."""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from datetime import datetime
from typing import Any

WEI_PER_AVAX = 10**18

# Badge type the identity service reserves for Arena Champions.
CHAMPION_BADGE_TYPE = 19


def coerce_int(value: Any, default: int = 0) -> int:
    if value is None or value == "":
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        try:
            return int(float(value))
        except (TypeError, ValueError):
            return default


@dataclass(frozen=True)
class Badge:
    """A badge attached to an identity-service user.

    ``badge_type`` is normalized to int here so "19" and 19 compare equal.
    """

    id: str
    user_id: str
    badge_type: int
    order: int = 0

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Badge:
        return cls(
            id=str(data.get("id", "")),
            user_id=str(data.get("userId", "")),
            badge_type=coerce_int(data.get("badgeType"), default=-1),
            order=coerce_int(data.get("order")),
        )


@dataclass
class CreatorProfile:
    """Best-effort social profile of a token creator.

    Built incrementally by the resolver. ``is_champion`` is always a bool:
    an unknown champion status is stored as False.
    """

    wallet_address: str
    username: str | None = None
    display_name: str | None = None
    bio: str | None = None
    avatar_url: str | None = None
    twitter_handle: str | None = None
    telegram_handle: str | None = None
    website_url: str | None = None
    verified: bool = False
    follower_count: int = 0
    twitter_follower_count: int = 0
    following_count: int = 0
    token_count: int = 0
    joined_at: datetime | None = None
    key_price: int | None = None
    total_holders: int | None = None
    volume: int | None = None
    supply: int | None = None
    badges: tuple[Badge, ...] = field(default_factory=tuple)
    is_champion: bool = False

    @property
    def key_price_avax(self) -> float:
        """Ticket price in whole AVAX."""
        if not self.key_price:
            return 0.0
        return self.key_price / WEI_PER_AVAX

    def merge_unset(self, **values: Any) -> None:
        """Set fields that are still unset (None, empty or zero)."""
        for name, value in values.items():
            if value is None:
                continue
            if not getattr(self, name):
                setattr(self, name, value)

    def merge_present(self, **values: Any) -> None:
        """Overwrite fields with every value that is not None."""
        for name, value in values.items():
            if value is not None:
                setattr(self, name, value)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {}
        for f in fields(self):
            value = getattr(self, f.name)
            if isinstance(value, datetime):
                value = value.isoformat()
            elif f.name == "badges":
                value = [
                    {"id": b.id, "userId": b.user_id, "badgeType": b.badge_type, "order": b.order}
                    for b in value
                ]
            data[f.name] = value
        return data
