"""Tests for the Avalanche chain client."""

from __future__ import annotations

import json
from unittest.mock import AsyncMock, MagicMock

import pytest
from web3.exceptions import Web3Exception

from arena_token_monitor.ingestor.chain import AvalancheClient, RPCError, to_plain

# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture
def client() -> AvalancheClient:
    """Client with mocked primary and fallback endpoints."""
    client = AvalancheClient(
        "https://primary.example/rpc",
        fallback_rpc_url="https://fallback.example/rpc",
        max_retries=2,
        retry_delay_seconds=0,
        max_requests_per_second=1000,
    )
    client._w3 = MagicMock()
    client._w3_fallback = MagicMock()
    return client


def sample_block(number: int = 100) -> dict:
    return {
        "number": number,
        "timestamp": 1_700_000_000,
        "hash": b"\x01" * 32,
        "transactions": [{"hash": b"\x02" * 32, "to": "0x" + "1" * 40, "input": "0x"}],
    }


class TestToPlain:
    """Tests for web3 value normalization."""

    def test_nested_bytes_become_hex(self) -> None:
        plain = to_plain(sample_block())

        assert plain["hash"] == "0x" + "01" * 32
        assert plain["transactions"][0]["hash"] == "0x" + "02" * 32
        json.dumps(plain)


class TestExecuteWithRetry:
    """Tests for retry and failover."""

    @pytest.mark.asyncio
    async def test_primary_success(self, client) -> None:
        client._w3.eth.get_block = AsyncMock(return_value=sample_block())

        block = await client.get_block(100)

        assert block["number"] == 100
        assert block["transactions"][0]["hash"] == "0x" + "02" * 32
        client._w3_fallback.eth.get_block.assert_not_called()

    @pytest.mark.asyncio
    async def test_failover_to_fallback(self, client) -> None:
        client._w3.eth.get_block = AsyncMock(side_effect=Web3Exception("primary down"))
        client._w3_fallback.eth.get_block = AsyncMock(return_value=sample_block(7))

        block = await client.get_block(7)

        assert block["number"] == 7
        assert client._w3.eth.get_block.await_count == 2
        assert client._primary_healthy is False

    @pytest.mark.asyncio
    async def test_all_endpoints_fail(self, client) -> None:
        client._w3.eth.get_transaction_receipt = AsyncMock(side_effect=Web3Exception("down"))
        client._w3_fallback.eth.get_transaction_receipt = AsyncMock(
            side_effect=Web3Exception("also down")
        )

        with pytest.raises(RPCError, match="get_transaction_receipt"):
            await client.get_transaction_receipt("0x" + "a" * 64)

    @pytest.mark.asyncio
    async def test_block_number_is_awaitable_property(self, client) -> None:
        async def head() -> int:
            return 12345

        client._w3.eth.block_number = head()

        assert await client.get_block_number() == 12345

    @pytest.mark.asyncio
    async def test_health_check_false_on_failure(self, client) -> None:
        client._execute_with_retry = AsyncMock(side_effect=RPCError("down"))

        assert await client.health_check() is False


class TestBlockCache:
    """Tests for Redis block caching."""

    @pytest.mark.asyncio
    async def test_cache_hit_skips_rpc(self, client) -> None:
        redis = AsyncMock()
        redis.get.return_value = json.dumps({"number": 5, "timestamp": 1, "transactions": []})
        client._redis = redis
        client._w3.eth.get_block = AsyncMock()

        block = await client.get_block(5)

        assert block["number"] == 5
        client._w3.eth.get_block.assert_not_called()

    @pytest.mark.asyncio
    async def test_cache_miss_stores_block(self, client) -> None:
        redis = AsyncMock()
        redis.get.return_value = None
        client._redis = redis
        client._w3.eth.get_block = AsyncMock(return_value=sample_block(9))

        await client.get_block(9)

        redis.set.assert_awaited_once()
        key, value = redis.set.await_args.args
        assert key == "avalanche:block:9:1"
        assert json.loads(value)["number"] == 9

    @pytest.mark.asyncio
    async def test_cache_errors_are_ignored(self, client) -> None:
        redis = AsyncMock()
        redis.get.side_effect = ConnectionError("redis down")
        redis.set.side_effect = ConnectionError("redis down")
        client._redis = redis
        client._w3.eth.get_block = AsyncMock(return_value=sample_block(3))

        block = await client.get_block(3)

        assert block["number"] == 3
