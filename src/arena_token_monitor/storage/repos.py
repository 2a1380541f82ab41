"""Repository pattern implementations for data access.

This module provides data access abstractions for launched tokens,
creator profiles, launch-contract transactions and creator launch history.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING, Any

import sqlalchemy as sa
from sqlalchemy import func, or_, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert

from arena_token_monitor.alerter.models import Channel, PostFlags
from arena_token_monitor.storage.models import (
    ContractTransactionModel,
    CreatorModel,
    CreatorProfileModel,
    TokenModel,
)

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from arena_token_monitor.ingestor.models import ClassifiedEvent
    from arena_token_monitor.profiler.models import CreatorProfile

logger = logging.getLogger(__name__)


def _insert_for(session: AsyncSession, model: type[Any]) -> Any:
    """Dialect-specific INSERT supporting ``on_conflict_do_update``."""
    bind = session.bind
    if bind is not None and bind.dialect.name == "sqlite":
        return sqlite_insert(model)
    return pg_insert(model)


def _as_utc(value: datetime | None) -> datetime | None:
    # SQLite hands back naive datetimes.
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


@dataclass
class TokenDTO:
    """Data transfer object for launched tokens."""

    creator_address: str
    transaction_hash: str
    block_number: int
    timestamp: datetime
    method_id: str
    method_name: str
    address: str | None = None
    name: str | None = None
    symbol: str | None = None
    total_supply: str | None = None
    id: int | None = None
    created_at: datetime | None = None

    @classmethod
    def from_model(cls, model: TokenModel) -> TokenDTO:
        return cls(
            id=model.id,
            address=model.address,
            creator_address=model.creator_address,
            name=model.name,
            symbol=model.symbol,
            total_supply=model.total_supply,
            transaction_hash=model.transaction_hash,
            block_number=model.block_number,
            timestamp=_as_utc(model.timestamp),  # type: ignore[arg-type]
            method_id=model.method_id,
            method_name=model.method_name,
            created_at=_as_utc(model.created_at),
        )

    @classmethod
    def from_event(cls, event: ClassifiedEvent) -> TokenDTO:
        tx = event.transaction
        metadata = event.metadata
        return cls(
            address=event.token_address.lower() if event.token_address else None,
            creator_address=event.creator_address.lower(),
            name=metadata.name if metadata else None,
            symbol=metadata.symbol if metadata else None,
            total_supply=metadata.total_supply if metadata else None,
            transaction_hash=tx.hash,
            block_number=tx.block_number,
            timestamp=tx.timestamp,
            method_id=tx.selector,
            method_name=event.method,
        )


@dataclass
class CreatorProfileDTO:
    """Data transfer object for stored creator profiles."""

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
    key_price: str | None = None
    total_holders: int | None = None
    volume: str | None = None
    supply: int | None = None
    badges: list[dict[str, Any]] = field(default_factory=list)
    is_champion: bool = False
    id: int | None = None
    last_updated: datetime | None = None

    @classmethod
    def from_model(cls, model: CreatorProfileModel) -> CreatorProfileDTO:
        return cls(
            id=model.id,
            wallet_address=model.wallet_address,
            username=model.username,
            display_name=model.display_name,
            bio=model.bio,
            avatar_url=model.avatar_url,
            twitter_handle=model.twitter_handle,
            telegram_handle=model.telegram_handle,
            website_url=model.website_url,
            verified=model.verified,
            follower_count=model.follower_count,
            twitter_follower_count=model.twitter_follower_count,
            following_count=model.following_count,
            token_count=model.token_count,
            joined_at=_as_utc(model.joined_at),
            key_price=model.key_price,
            total_holders=model.total_holders,
            volume=model.volume,
            supply=model.supply,
            badges=list(model.badges or []),
            is_champion=model.is_champion,
            last_updated=_as_utc(model.last_updated),
        )

    @classmethod
    def from_profile(cls, profile: CreatorProfile) -> CreatorProfileDTO:
        return cls(
            wallet_address=profile.wallet_address.lower(),
            username=profile.username,
            display_name=profile.display_name,
            bio=profile.bio,
            avatar_url=profile.avatar_url,
            twitter_handle=profile.twitter_handle,
            telegram_handle=profile.telegram_handle,
            website_url=profile.website_url,
            verified=profile.verified,
            follower_count=profile.follower_count,
            twitter_follower_count=profile.twitter_follower_count,
            following_count=profile.following_count,
            token_count=profile.token_count,
            joined_at=profile.joined_at,
            key_price=str(profile.key_price) if profile.key_price is not None else None,
            total_holders=profile.total_holders,
            volume=str(profile.volume) if profile.volume is not None else None,
            supply=profile.supply,
            badges=profile.to_dict()["badges"],
            is_champion=profile.is_champion,
        )


@dataclass
class ContractTransactionDTO:
    """Data transfer object for launch-contract transactions."""

    hash: str
    from_address: str
    to_address: str | None
    value_wei: str
    block_number: int
    timestamp: datetime
    method_id: str
    method_name: str
    transaction_type: str
    description: str = ""
    gas_used: str | None = None
    gas_price: str | None = None
    status: str = "success"
    token_id: int | None = None
    creator_profile_id: int | None = None
    raw_input: str | None = None
    posted_to_arena: bool = False
    posted_to_discord: bool = False
    id: int | None = None
    created_at: datetime | None = None

    @property
    def post_flags(self) -> PostFlags:
        return PostFlags(
            posted_to_arena=self.posted_to_arena,
            posted_to_discord=self.posted_to_discord,
        )

    @classmethod
    def from_model(cls, model: ContractTransactionModel) -> ContractTransactionDTO:
        return cls(
            id=model.id,
            hash=model.hash,
            from_address=model.from_address,
            to_address=model.to_address,
            value_wei=model.value_wei,
            block_number=model.block_number,
            timestamp=_as_utc(model.timestamp),  # type: ignore[arg-type]
            method_id=model.method_id,
            method_name=model.method_name,
            transaction_type=model.transaction_type,
            description=model.description,
            gas_used=model.gas_used,
            gas_price=model.gas_price,
            status=model.status,
            token_id=model.token_id,
            creator_profile_id=model.creator_profile_id,
            raw_input=model.raw_input,
            posted_to_arena=model.posted_to_arena,
            posted_to_discord=model.posted_to_discord,
            created_at=_as_utc(model.created_at),
        )

    @classmethod
    def from_event(cls, event: ClassifiedEvent) -> ContractTransactionDTO:
        tx = event.transaction
        return cls(
            hash=tx.hash,
            from_address=tx.from_address.lower(),
            to_address=tx.to_address.lower() if tx.to_address else None,
            value_wei=str(tx.value),
            block_number=tx.block_number,
            timestamp=tx.timestamp,
            method_id=tx.selector,
            method_name=event.method,
            transaction_type=event.kind.value,
            description=event.description,
            raw_input=tx.input,
        )


@dataclass
class CreatorDTO:
    """Data transfer object for creator launch history."""

    wallet_address: str
    contracts_created: int
    contract_tickers: list[dict[str, Any]]
    first_seen_at: datetime
    last_contract_at: datetime | None = None
    id: int | None = None

    @classmethod
    def from_model(cls, model: CreatorModel) -> CreatorDTO:
        return cls(
            id=model.id,
            wallet_address=model.wallet_address,
            contracts_created=model.contracts_created,
            contract_tickers=list(model.contract_tickers or []),
            first_seen_at=_as_utc(model.first_seen_at),  # type: ignore[arg-type]
            last_contract_at=_as_utc(model.last_contract_at),
        )


@dataclass
class CreatorStats:
    """Aggregate creator figures."""

    total_creators: int
    total_contracts: int
    avg_contracts_per_creator: float
    multi_token_creators: int
    new_creators_last_24h: int
    active_creators_last_24h: int


class TokenRepository:
    """Repository for launched tokens."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get_by_transaction_hash(self, tx_hash: str) -> TokenDTO | None:
        result = await self.session.execute(
            select(TokenModel).where(TokenModel.transaction_hash == tx_hash)
        )
        model = result.scalar_one_or_none()
        return TokenDTO.from_model(model) if model else None

    async def upsert(self, dto: TokenDTO) -> int:
        """Upsert a token by transaction hash and return its row id."""
        values = {
            "address": dto.address,
            "creator_address": dto.creator_address.lower(),
            "name": dto.name,
            "symbol": dto.symbol,
            "total_supply": dto.total_supply,
            "transaction_hash": dto.transaction_hash,
            "block_number": dto.block_number,
            "timestamp": dto.timestamp,
            "method_id": dto.method_id,
            "method_name": dto.method_name,
        }
        now = datetime.now(UTC)
        stmt = _insert_for(self.session, TokenModel).values(**values, created_at=now, updated_at=now)
        stmt = stmt.on_conflict_do_update(
            index_elements=["transaction_hash"],
            set_={
                # Keep a known token address when a replay lacks the receipt.
                "address": sa.func.coalesce(stmt.excluded.address, TokenModel.address),
                "name": stmt.excluded.name,
                "symbol": stmt.excluded.symbol,
                "total_supply": stmt.excluded.total_supply,
                "updated_at": now,
            },
        )
        await self.session.execute(stmt)
        await self.session.flush()

        result = await self.session.execute(
            select(TokenModel.id).where(TokenModel.transaction_hash == dto.transaction_hash)
        )
        return int(result.scalar_one())

    async def list_recent(self, limit: int = 50) -> list[TokenDTO]:
        result = await self.session.execute(
            select(TokenModel).order_by(TokenModel.timestamp.desc()).limit(limit)
        )
        return [TokenDTO.from_model(m) for m in result.scalars().all()]


class CreatorProfileRepository:
    """Repository for stored creator profiles."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get_by_wallet(self, wallet_address: str) -> CreatorProfileDTO | None:
        result = await self.session.execute(
            select(CreatorProfileModel).where(
                CreatorProfileModel.wallet_address == wallet_address.lower()
            )
        )
        model = result.scalar_one_or_none()
        return CreatorProfileDTO.from_model(model) if model else None

    async def upsert(self, dto: CreatorProfileDTO) -> int:
        """Upsert a profile by wallet address and return its row id."""
        wallet = dto.wallet_address.lower()
        values = {
            "wallet_address": wallet,
            "username": dto.username,
            "display_name": dto.display_name,
            "bio": dto.bio,
            "avatar_url": dto.avatar_url,
            "twitter_handle": dto.twitter_handle,
            "telegram_handle": dto.telegram_handle,
            "website_url": dto.website_url,
            "verified": dto.verified,
            "follower_count": dto.follower_count,
            "twitter_follower_count": dto.twitter_follower_count,
            "following_count": dto.following_count,
            "token_count": dto.token_count,
            "joined_at": dto.joined_at,
            "key_price": dto.key_price,
            "total_holders": dto.total_holders,
            "volume": dto.volume,
            "supply": dto.supply,
            "badges": dto.badges,
            "is_champion": dto.is_champion,
        }
        now = datetime.now(UTC)
        stmt = _insert_for(self.session, CreatorProfileModel).values(**values, last_updated=now)
        stmt = stmt.on_conflict_do_update(
            index_elements=["wallet_address"],
            set_={
                **{
                    name: getattr(stmt.excluded, name)
                    for name in values
                    if name != "wallet_address"
                },
                "last_updated": now,
            },
        )
        await self.session.execute(stmt)
        await self.session.flush()

        result = await self.session.execute(
            select(CreatorProfileModel.id).where(CreatorProfileModel.wallet_address == wallet)
        )
        return int(result.scalar_one())


class ContractTransactionRepository:
    """Repository for launch-contract transactions and their post flags."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get_by_hash(self, tx_hash: str) -> ContractTransactionDTO | None:
        result = await self.session.execute(
            select(ContractTransactionModel).where(ContractTransactionModel.hash == tx_hash)
        )
        model = result.scalar_one_or_none()
        return ContractTransactionDTO.from_model(model) if model else None

    async def upsert(self, dto: ContractTransactionDTO) -> int:
        """Upsert a transaction by hash and return its row id.

        Post flags are never cleared by an upsert.
        """
        values = {
            "hash": dto.hash,
            "from_address": dto.from_address.lower(),
            "to_address": dto.to_address.lower() if dto.to_address else None,
            "value_wei": dto.value_wei,
            "block_number": dto.block_number,
            "timestamp": dto.timestamp,
            "method_id": dto.method_id,
            "method_name": dto.method_name,
            "transaction_type": dto.transaction_type,
            "description": dto.description,
            "gas_used": dto.gas_used,
            "gas_price": dto.gas_price,
            "status": dto.status,
            "token_id": dto.token_id,
            "creator_profile_id": dto.creator_profile_id,
            "raw_input": dto.raw_input,
            "posted_to_arena": dto.posted_to_arena,
            "posted_to_discord": dto.posted_to_discord,
        }
        now = datetime.now(UTC)
        stmt = _insert_for(self.session, ContractTransactionModel).values(**values, created_at=now)
        stmt = stmt.on_conflict_do_update(
            index_elements=["hash"],
            set_={
                "method_name": stmt.excluded.method_name,
                "transaction_type": stmt.excluded.transaction_type,
                "description": stmt.excluded.description,
                "token_id": sa.func.coalesce(
                    stmt.excluded.token_id, ContractTransactionModel.token_id
                ),
                "creator_profile_id": sa.func.coalesce(
                    stmt.excluded.creator_profile_id, ContractTransactionModel.creator_profile_id
                ),
            },
        )
        await self.session.execute(stmt)
        await self.session.flush()

        result = await self.session.execute(
            select(ContractTransactionModel.id).where(ContractTransactionModel.hash == dto.hash)
        )
        return int(result.scalar_one())

    async def get_post_flags(self, tx_hash: str) -> PostFlags | None:
        """Return the persisted post flags, or None if the hash is unknown."""
        result = await self.session.execute(
            select(
                ContractTransactionModel.posted_to_arena,
                ContractTransactionModel.posted_to_discord,
            ).where(ContractTransactionModel.hash == tx_hash)
        )
        row = result.one_or_none()
        if row is None:
            return None
        return PostFlags(posted_to_arena=bool(row[0]), posted_to_discord=bool(row[1]))

    async def set_post_flag(self, tx_hash: str, channel: Channel) -> bool:
        """Mark a transaction as posted to ``channel``.

        Returns:
            True if a row was updated.
        """
        column = "posted_to_arena" if channel is Channel.ARENA else "posted_to_discord"
        result = await self.session.execute(
            update(ContractTransactionModel)
            .where(ContractTransactionModel.hash == tx_hash)
            .values({column: True})
        )
        await self.session.flush()
        return bool(result.rowcount)

    async def set_links(
        self,
        tx_hash: str,
        *,
        token_id: int | None = None,
        creator_profile_id: int | None = None,
    ) -> None:
        values: dict[str, int] = {}
        if token_id is not None:
            values["token_id"] = token_id
        if creator_profile_id is not None:
            values["creator_profile_id"] = creator_profile_id
        if not values:
            return
        await self.session.execute(
            update(ContractTransactionModel)
            .where(ContractTransactionModel.hash == tx_hash)
            .values(**values)
        )
        await self.session.flush()

    async def list_recent(
        self, limit: int = 50, *, transaction_type: str | None = None
    ) -> list[ContractTransactionDTO]:
        query = select(ContractTransactionModel)
        if transaction_type is not None:
            query = query.where(ContractTransactionModel.transaction_type == transaction_type)
        query = query.order_by(ContractTransactionModel.timestamp.desc()).limit(limit)
        result = await self.session.execute(query)
        return [ContractTransactionDTO.from_model(m) for m in result.scalars().all()]


class CreatorRepository:
    """Repository for creator launch history."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get_by_wallet(self, wallet_address: str) -> CreatorDTO | None:
        result = await self.session.execute(
            select(CreatorModel).where(CreatorModel.wallet_address == wallet_address.lower())
        )
        model = result.scalar_one_or_none()
        return CreatorDTO.from_model(model) if model else None

    async def add_contract(
        self,
        wallet_address: str,
        *,
        symbol: str,
        transaction_hash: str,
        name: str | None = None,
        token_address: str | None = None,
        created_at: datetime | None = None,
    ) -> CreatorDTO:
        """Record a launch for a creator and return the updated history.

        Replaying a transaction hash that is already recorded changes nothing.
        A symbol already in the ticker list is counted but not appended again.
        """
        wallet = wallet_address.lower()
        now = created_at or datetime.now(UTC)
        ticker = {
            "symbol": symbol,
            "name": name,
            "address": token_address,
            "transaction_hash": transaction_hash,
            "created_at": now.isoformat(),
        }

        result = await self.session.execute(
            select(CreatorModel).where(CreatorModel.wallet_address == wallet)
        )
        model = result.scalar_one_or_none()

        if model is None:
            model = CreatorModel(
                wallet_address=wallet,
                contracts_created=1,
                contract_tickers=[ticker],
                first_seen_at=now,
                last_contract_at=now,
            )
            self.session.add(model)
            await self.session.flush()
            logger.info("New creator %s with first token %s", wallet, symbol)
            return CreatorDTO.from_model(model)

        tickers = list(model.contract_tickers or [])
        if any(t.get("transaction_hash") == transaction_hash for t in tickers):
            logger.debug("Launch %s already recorded for %s", transaction_hash, wallet)
            return CreatorDTO.from_model(model)

        if not any(t.get("symbol") == symbol for t in tickers):
            tickers.append(ticker)

        # Reassign so the JSON column is flagged as modified.
        model.contract_tickers = tickers
        model.contracts_created = model.contracts_created + 1
        model.last_contract_at = now
        await self.session.flush()
        logger.info("Creator %s now has %d tokens", wallet, model.contracts_created)
        return CreatorDTO.from_model(model)

    async def list_creators(self, limit: int = 50) -> list[CreatorDTO]:
        result = await self.session.execute(
            select(CreatorModel)
            .order_by(CreatorModel.contracts_created.desc(), CreatorModel.wallet_address)
            .limit(limit)
        )
        return [CreatorDTO.from_model(m) for m in result.scalars().all()]

    async def top_creators(self, limit: int = 10) -> list[CreatorDTO]:
        """Creators with the most launches."""
        return await self.list_creators(limit)

    async def search(self, term: str, limit: int = 50) -> list[CreatorDTO]:
        """Find creators by wallet fragment or by ticker symbol/name."""
        needle = term.lower()
        result = await self.session.execute(
            select(CreatorModel).where(
                or_(
                    CreatorModel.wallet_address.contains(needle),
                    func.lower(sa.cast(CreatorModel.contract_tickers, sa.Text)).contains(needle),
                )
            )
        )
        matches: list[CreatorDTO] = []
        for model in result.scalars().all():
            dto = CreatorDTO.from_model(model)
            # The JSON text match is coarse; confirm against wallet or ticker fields.
            if needle in dto.wallet_address or any(
                needle in str(t.get("symbol") or "").lower() or needle in str(t.get("name") or "").lower()
                for t in dto.contract_tickers
            ):
                matches.append(dto)
        matches.sort(key=lambda c: c.contracts_created, reverse=True)
        return matches[:limit]

    async def stats(self, *, now: datetime | None = None) -> CreatorStats:
        now = now or datetime.now(UTC)
        day_ago = now - timedelta(hours=24)

        totals = await self.session.execute(
            select(
                func.count(CreatorModel.id),
                func.coalesce(func.sum(CreatorModel.contracts_created), 0),
            )
        )
        total_creators, total_contracts = totals.one()

        multi = await self.session.execute(
            select(func.count(CreatorModel.id)).where(CreatorModel.contracts_created > 1)
        )
        new = await self.session.execute(
            select(func.count(CreatorModel.id)).where(CreatorModel.first_seen_at >= day_ago)
        )
        active = await self.session.execute(
            select(func.count(CreatorModel.id)).where(CreatorModel.last_contract_at >= day_ago)
        )

        total_creators = int(total_creators or 0)
        total_contracts = int(total_contracts or 0)
        return CreatorStats(
            total_creators=total_creators,
            total_contracts=total_contracts,
            avg_contracts_per_creator=(
                round(total_contracts / total_creators, 2) if total_creators else 0.0
            ),
            multi_token_creators=int(multi.scalar_one() or 0),
            new_creators_last_24h=int(new.scalar_one() or 0),
            active_creators_last_24h=int(active.scalar_one() or 0),
        )
