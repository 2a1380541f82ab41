"""Data models for the ingestor module."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from arena_token_monitor.profiler.models import CreatorProfile


class TransactionKind(str, Enum):
    """Kinds of launch-contract transactions."""

    TOKEN_CREATION = "TOKEN_CREATION"
    BUY = "BUY"
    SELL = "SELL"
    ADD_LIQUIDITY = "ADD_LIQUIDITY"
    REMOVE_LIQUIDITY = "REMOVE_LIQUIDITY"
    APPROVE = "APPROVE"
    TRANSFER = "TRANSFER"
    UNKNOWN = "UNKNOWN"


def _to_hex(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, (bytes, bytearray)):
        return "0x" + bytes(value).hex()
    text = value.hex() if hasattr(value, "hex") and not isinstance(value, str) else str(value)
    return text if text.startswith("0x") else "0x" + text


@dataclass(frozen=True)
class ChainTransaction:
    """A transaction fetched from the chain. Immutable once fetched."""

    hash: str
    from_address: str
    to_address: str | None
    value: int
    block_number: int
    timestamp: datetime
    input: str

    @property
    def selector(self) -> str:
        """First four bytes of the call data as ``0x`` + 8 hex chars."""
        return self.input[:10].lower()

    @classmethod
    def from_web3(cls, tx: dict[str, Any], *, block_timestamp: int) -> ChainTransaction:
        """Create a ChainTransaction from a web3 transaction dict."""
        raw_input = tx.get("input", tx.get("data", "0x"))
        to_address = tx.get("to")
        return cls(
            hash=_to_hex(tx["hash"]),
            from_address=str(tx["from"]),
            to_address=str(to_address) if to_address else None,
            value=int(tx.get("value", 0)),
            block_number=int(tx["blockNumber"]),
            timestamp=datetime.fromtimestamp(int(block_timestamp), tz=UTC),
            input=_to_hex(raw_input) or "0x",
        )


@dataclass(frozen=True)
class TokenMetadata:
    """Token metadata decoded from creation call data."""

    name: str | None = None
    symbol: str | None = None
    total_supply: str | None = None
    creator: str | None = None
    token_address: str | None = None


@dataclass(frozen=True)
class Classification:
    """Result of classifying a selector."""

    kind: TransactionKind
    method: str
    description: str


@dataclass
class ClassifiedEvent:
    """A launch-contract transaction with its classification.

    Only the creator profile may be attached after construction, and only once.
    """

    transaction: ChainTransaction
    kind: TransactionKind
    method: str
    description: str
    metadata: TokenMetadata | None = None
    profile: CreatorProfile | None = field(default=None)

    @property
    def is_token_creation(self) -> bool:
        return self.kind == TransactionKind.TOKEN_CREATION

    @property
    def creator_address(self) -> str:
        """Creator from decoded call data, falling back to the sender."""
        if self.metadata and self.metadata.creator:
            return self.metadata.creator
        return self.transaction.from_address

    @property
    def symbol(self) -> str | None:
        return self.metadata.symbol if self.metadata else None

    @property
    def token_address(self) -> str | None:
        return self.metadata.token_address if self.metadata else None

    def attach_profile(self, profile: CreatorProfile | None) -> None:
        """Attach the resolved creator profile (append-only)."""
        if profile is None:
            return
        if self.profile is not None:
            raise ValueError(f"Profile already attached to event {self.transaction.hash}")
        self.profile = profile


@dataclass(frozen=True)
class TokenLaunch:
    """A decoded ``TokenCreated`` event."""

    token_id: int
    token_address: str
    creator_address: str
    pair_address: str
    token_supply: int
    transaction_hash: str
    block_number: int


@dataclass(frozen=True)
class MonitorStatus:
    """Synchronous snapshot of the poller state."""

    running: bool
    cursor: int
    subscriber_count: int
