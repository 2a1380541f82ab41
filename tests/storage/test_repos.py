"""Tests for storage repositories."""

from datetime import UTC, datetime, timedelta

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from arena_token_monitor.alerter.models import Channel, PostFlags
from arena_token_monitor.profiler.models import Badge, CreatorProfile
from arena_token_monitor.storage.models import Base
from arena_token_monitor.storage.repos import (
    ContractTransactionDTO,
    ContractTransactionRepository,
    CreatorProfileDTO,
    CreatorProfileRepository,
    CreatorRepository,
    TokenDTO,
    TokenRepository,
)

WALLET = "0xAbCdEf0123456789aBcDeF0123456789AbCdEf01"
NOW = datetime(2026, 3, 1, 12, 0, tzinfo=UTC)

# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture
async def async_engine():
    """Create an async SQLite engine for testing."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        echo=False,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
async def async_session(async_engine) -> AsyncSession:
    """Create an async session for testing."""
    session_factory = async_sessionmaker(bind=async_engine, expire_on_commit=False)
    async with session_factory() as session:
        yield session


@pytest.fixture
def transaction_dto(creation_event) -> ContractTransactionDTO:
    return ContractTransactionDTO.from_event(creation_event)


# ============================================================================
# Token Repository Tests
# ============================================================================


class TestTokenRepository:
    """Tests for TokenRepository."""

    @pytest.mark.asyncio
    async def test_upsert_from_event(self, async_session, creation_event) -> None:
        repo = TokenRepository(async_session)

        token_id = await repo.upsert(TokenDTO.from_event(creation_event))
        stored = await repo.get_by_transaction_hash(creation_event.transaction.hash)

        assert stored is not None
        assert stored.id == token_id
        assert stored.symbol == "TEST"
        assert stored.name == "Test Token"
        assert stored.total_supply == str(10**27)
        assert stored.method_id == "0x0b8c6fec"
        assert stored.timestamp == creation_event.transaction.timestamp

    @pytest.mark.asyncio
    async def test_upsert_keeps_known_address(self, async_session, creation_event) -> None:
        repo = TokenRepository(async_session)
        dto = TokenDTO.from_event(creation_event)
        dto.address = "0x" + "e" * 40
        first_id = await repo.upsert(dto)

        dto.address = None
        second_id = await repo.upsert(dto)

        assert first_id == second_id
        stored = await repo.get_by_transaction_hash(creation_event.transaction.hash)
        assert stored is not None
        assert stored.address == "0x" + "e" * 40

    @pytest.mark.asyncio
    async def test_list_recent(self, async_session, creation_event) -> None:
        repo = TokenRepository(async_session)
        dto = TokenDTO.from_event(creation_event)
        await repo.upsert(dto)
        dto.transaction_hash = "0x" + "b" * 64
        dto.timestamp = dto.timestamp + timedelta(minutes=5)
        await repo.upsert(dto)

        recent = await repo.list_recent(limit=1)

        assert [t.transaction_hash for t in recent] == ["0x" + "b" * 64]


# ============================================================================
# Contract Transaction Repository Tests
# ============================================================================


class TestContractTransactionRepository:
    """Tests for ContractTransactionRepository."""

    @pytest.mark.asyncio
    async def test_unknown_hash_has_no_flags(self, async_session) -> None:
        repo = ContractTransactionRepository(async_session)
        assert await repo.get_post_flags("0x" + "f" * 64) is None

    @pytest.mark.asyncio
    async def test_upsert_and_flags(self, async_session, transaction_dto) -> None:
        repo = ContractTransactionRepository(async_session)
        await repo.upsert(transaction_dto)

        assert await repo.get_post_flags(transaction_dto.hash) == PostFlags()

        assert await repo.set_post_flag(transaction_dto.hash, Channel.ARENA) is True
        flags = await repo.get_post_flags(transaction_dto.hash)
        assert flags == PostFlags(posted_to_arena=True, posted_to_discord=False)

    @pytest.mark.asyncio
    async def test_set_flag_on_unknown_hash(self, async_session) -> None:
        repo = ContractTransactionRepository(async_session)
        assert await repo.set_post_flag("0x" + "f" * 64, Channel.DISCORD) is False

    @pytest.mark.asyncio
    async def test_upsert_never_clears_flags(self, async_session, transaction_dto) -> None:
        repo = ContractTransactionRepository(async_session)
        await repo.upsert(transaction_dto)
        await repo.set_post_flag(transaction_dto.hash, Channel.DISCORD)

        await repo.upsert(transaction_dto)

        stored = await repo.get_by_hash(transaction_dto.hash)
        assert stored is not None
        assert stored.posted_to_discord is True
        assert stored.post_flags.is_posted(Channel.DISCORD)

    @pytest.mark.asyncio
    async def test_set_links(self, async_session, creation_event, transaction_dto) -> None:
        repo = ContractTransactionRepository(async_session)
        await repo.upsert(transaction_dto)
        token_id = await TokenRepository(async_session).upsert(TokenDTO.from_event(creation_event))

        await repo.set_links(transaction_dto.hash, token_id=token_id)

        stored = await repo.get_by_hash(transaction_dto.hash)
        assert stored is not None
        assert stored.token_id == token_id
        assert stored.transaction_type == "TOKEN_CREATION"
        assert stored.value_wei == "0"

    @pytest.mark.asyncio
    async def test_list_recent_by_type(self, async_session, transaction_dto) -> None:
        repo = ContractTransactionRepository(async_session)
        await repo.upsert(transaction_dto)
        transaction_dto.hash = "0x" + "c" * 64
        transaction_dto.transaction_type = "BUY"
        await repo.upsert(transaction_dto)

        buys = await repo.list_recent(transaction_type="BUY")

        assert [t.hash for t in buys] == ["0x" + "c" * 64]


# ============================================================================
# Creator Profile Repository Tests
# ============================================================================


class TestCreatorProfileRepository:
    """Tests for CreatorProfileRepository."""

    @pytest.mark.asyncio
    async def test_upsert_profile(self, async_session) -> None:
        repo = CreatorProfileRepository(async_session)
        profile = CreatorProfile(
            wallet_address=WALLET,
            username="alice",
            follower_count=10,
            key_price=3 * 10**18,
            badges=(Badge(id="b1", user_id="u1", badge_type=19),),
            is_champion=True,
        )

        first_id = await repo.upsert(CreatorProfileDTO.from_profile(profile))
        profile.follower_count = 20
        second_id = await repo.upsert(CreatorProfileDTO.from_profile(profile))

        stored = await repo.get_by_wallet(WALLET.upper().replace("0X", "0x"))
        assert stored is not None
        assert first_id == second_id
        assert stored.wallet_address == WALLET.lower()
        assert stored.follower_count == 20
        assert stored.key_price == str(3 * 10**18)
        assert stored.badges[0]["badgeType"] == 19
        assert stored.is_champion is True


# ============================================================================
# Creator Repository Tests
# ============================================================================


class TestCreatorRepository:
    """Tests for CreatorRepository."""

    @pytest.mark.asyncio
    async def test_first_launch_creates_creator(self, async_session) -> None:
        repo = CreatorRepository(async_session)

        creator = await repo.add_contract(
            WALLET, symbol="ONE", transaction_hash="0x01", name="One", created_at=NOW
        )

        assert creator.wallet_address == WALLET.lower()
        assert creator.contracts_created == 1
        assert [t["symbol"] for t in creator.contract_tickers] == ["ONE"]
        assert creator.first_seen_at == NOW

    @pytest.mark.asyncio
    async def test_new_symbol_is_appended(self, async_session) -> None:
        repo = CreatorRepository(async_session)
        await repo.add_contract(WALLET, symbol="ONE", transaction_hash="0x01", created_at=NOW)

        creator = await repo.add_contract(
            WALLET, symbol="TWO", transaction_hash="0x02", created_at=NOW + timedelta(hours=1)
        )

        assert creator.contracts_created == 2
        assert [t["symbol"] for t in creator.contract_tickers] == ["ONE", "TWO"]
        assert creator.last_contract_at == NOW + timedelta(hours=1)

    @pytest.mark.asyncio
    async def test_duplicate_symbol_counts_without_ticker(self, async_session) -> None:
        repo = CreatorRepository(async_session)
        await repo.add_contract(WALLET, symbol="ONE", transaction_hash="0x01", created_at=NOW)

        creator = await repo.add_contract(WALLET, symbol="ONE", transaction_hash="0x02", created_at=NOW)

        assert creator.contracts_created == 2
        assert len(creator.contract_tickers) == 1

    @pytest.mark.asyncio
    async def test_replayed_transaction_is_ignored(self, async_session) -> None:
        repo = CreatorRepository(async_session)
        await repo.add_contract(WALLET, symbol="ONE", transaction_hash="0x01", created_at=NOW)

        creator = await repo.add_contract(WALLET, symbol="ONE", transaction_hash="0x01", created_at=NOW)

        assert creator.contracts_created == 1

    @pytest.mark.asyncio
    async def test_history_persists_across_sessions(self, async_engine) -> None:
        session_factory = async_sessionmaker(bind=async_engine, expire_on_commit=False)
        async with session_factory() as session:
            await CreatorRepository(session).add_contract(
                WALLET, symbol="ONE", transaction_hash="0x01", created_at=NOW
            )
            await session.commit()
        async with session_factory() as session:
            await CreatorRepository(session).add_contract(
                WALLET, symbol="TWO", transaction_hash="0x02", created_at=NOW
            )
            await session.commit()

        async with session_factory() as session:
            creator = await CreatorRepository(session).get_by_wallet(WALLET)

        assert creator is not None
        assert creator.contracts_created == 2
        assert [t["symbol"] for t in creator.contract_tickers] == ["ONE", "TWO"]

    @pytest.mark.asyncio
    async def test_top_creators_and_search(self, async_session) -> None:
        repo = CreatorRepository(async_session)
        other = "0x" + "2" * 40
        await repo.add_contract(WALLET, symbol="MOON", transaction_hash="0x01", name="Moon Cat", created_at=NOW)
        await repo.add_contract(other, symbol="SUN", transaction_hash="0x02", created_at=NOW)
        await repo.add_contract(other, symbol="STAR", transaction_hash="0x03", created_at=NOW)

        top = await repo.top_creators(limit=1)
        assert [c.wallet_address for c in top] == [other]

        by_ticker = await repo.search("moon")
        assert [c.wallet_address for c in by_ticker] == [WALLET.lower()]

        by_wallet = await repo.search("2222")
        assert [c.wallet_address for c in by_wallet] == [other]

    @pytest.mark.asyncio
    async def test_stats(self, async_session) -> None:
        repo = CreatorRepository(async_session)
        old = NOW - timedelta(days=3)
        await repo.add_contract(WALLET, symbol="A", transaction_hash="0x01", created_at=old)
        await repo.add_contract(WALLET, symbol="B", transaction_hash="0x02", created_at=NOW)
        await repo.add_contract("0x" + "3" * 40, symbol="C", transaction_hash="0x03", created_at=old)

        stats = await repo.stats(now=NOW)

        assert stats.total_creators == 2
        assert stats.total_contracts == 3
        assert stats.avg_contracts_per_creator == 1.5
        assert stats.multi_token_creators == 1
        assert stats.new_creators_last_24h == 0
        assert stats.active_creators_last_24h == 1

    @pytest.mark.asyncio
    async def test_stats_empty(self, async_session) -> None:
        stats = await CreatorRepository(async_session).stats(now=NOW)

        assert stats.total_creators == 0
        assert stats.avg_contracts_per_creator == 0.0
