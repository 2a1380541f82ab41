"""SQLAlchemy models for persistent storage.

This module defines the database schema for launched tokens, creator
profiles, launch-contract transactions and per-creator launch history.
Token amounts in wei are stored as decimal strings: uint256 values do not
fit the numeric types of every supported backend.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""

    pass


class TokenModel(Base):
    """A token launched through the Arena launch contract."""

    __tablename__ = "tokens"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    address: Mapped[str | None] = mapped_column(String(42), unique=True, nullable=True)
    creator_address: Mapped[str] = mapped_column(String(42), nullable=False)
    name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    symbol: Mapped[str | None] = mapped_column(String(64), nullable=True)
    total_supply: Mapped[str | None] = mapped_column(String(80), nullable=True)
    transaction_hash: Mapped[str] = mapped_column(String(66), unique=True, nullable=False)
    block_number: Mapped[int] = mapped_column(Integer, nullable=False)
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    method_id: Mapped[str] = mapped_column(String(10), nullable=False)
    method_name: Mapped[str] = mapped_column(String(64), nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=lambda: datetime.now(UTC)
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(UTC),
        onupdate=lambda: datetime.now(UTC),
    )

    __table_args__ = (
        Index("idx_tokens_creator", "creator_address"),
        Index("idx_tokens_timestamp", "timestamp"),
    )


class CreatorProfileModel(Base):
    """Last resolved social profile of a creator wallet."""

    __tablename__ = "creator_profiles"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    wallet_address: Mapped[str] = mapped_column(String(42), unique=True, nullable=False)
    username: Mapped[str | None] = mapped_column(String(255), nullable=True)
    display_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    bio: Mapped[str | None] = mapped_column(Text, nullable=True)
    avatar_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    twitter_handle: Mapped[str | None] = mapped_column(String(255), nullable=True)
    telegram_handle: Mapped[str | None] = mapped_column(String(255), nullable=True)
    website_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    verified: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    follower_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    twitter_follower_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    following_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    token_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    joined_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    key_price: Mapped[str | None] = mapped_column(String(80), nullable=True)
    total_holders: Mapped[int | None] = mapped_column(Integer, nullable=True)
    volume: Mapped[str | None] = mapped_column(String(80), nullable=True)
    supply: Mapped[int | None] = mapped_column(Integer, nullable=True)
    badges: Mapped[list[dict[str, Any]]] = mapped_column(JSON, nullable=False, default=list)
    is_champion: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    last_updated: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(UTC),
        onupdate=lambda: datetime.now(UTC),
    )


class ContractTransactionModel(Base):
    """A transaction addressed to the launch contract.

    ``posted_to_arena`` and ``posted_to_discord`` record successful
    notifications so they survive restarts.
    """

    __tablename__ = "contract_transactions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    hash: Mapped[str] = mapped_column(String(66), unique=True, nullable=False)
    from_address: Mapped[str] = mapped_column(String(42), nullable=False)
    to_address: Mapped[str | None] = mapped_column(String(42), nullable=True)
    value_wei: Mapped[str] = mapped_column(String(80), nullable=False, default="0")
    block_number: Mapped[int] = mapped_column(Integer, nullable=False)
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    method_id: Mapped[str] = mapped_column(String(10), nullable=False)
    method_name: Mapped[str] = mapped_column(String(64), nullable=False)
    transaction_type: Mapped[str] = mapped_column(String(32), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    gas_used: Mapped[str | None] = mapped_column(String(80), nullable=True)
    gas_price: Mapped[str | None] = mapped_column(String(80), nullable=True)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="success")
    token_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("tokens.id", ondelete="SET NULL"), nullable=True
    )
    creator_profile_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("creator_profiles.id", ondelete="SET NULL"), nullable=True
    )
    raw_input: Mapped[str | None] = mapped_column(Text, nullable=True)
    posted_to_arena: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    posted_to_discord: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=lambda: datetime.now(UTC)
    )

    __table_args__ = (
        Index("idx_contract_transactions_block", "block_number"),
        Index("idx_contract_transactions_type_ts", "transaction_type", "timestamp"),
        Index("idx_contract_transactions_from", "from_address"),
    )


class CreatorModel(Base):
    """Launch history of a creator wallet."""

    __tablename__ = "creators"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    wallet_address: Mapped[str] = mapped_column(String(42), unique=True, nullable=False)
    contracts_created: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    # [{symbol, name, address, transaction_hash, created_at}, ...]
    contract_tickers: Mapped[list[dict[str, Any]]] = mapped_column(
        JSON, nullable=False, default=list
    )
    first_seen_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    last_contract_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=lambda: datetime.now(UTC)
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(UTC),
        onupdate=lambda: datetime.now(UTC),
    )

    __table_args__ = (
        Index("idx_creators_contracts_created", "contracts_created"),
        Index("idx_creators_last_contract_at", "last_contract_at"),
    )
