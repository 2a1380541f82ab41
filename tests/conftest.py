"""Pytest configuration and fixtures."""

from __future__ import annotations

from collections.abc import Callable
from datetime import UTC, datetime

import pytest
from eth_abi import encode

from arena_token_monitor.ingestor.classifier import (
    CREATE_TOKEN_V1,
    CREATE_TOKEN_V1_TYPES,
    classify_transaction,
)
from arena_token_monitor.ingestor.models import ChainTransaction, ClassifiedEvent
from arena_token_monitor.profiler.models import CreatorProfile

CREATOR_ADDRESS = "0x1234567890abcdef1234567890abcdef12345678"
CONTRACT_ADDRESS = "0x8315f1eb449Dd4B779495C3A0b05e5d194446c6e"


def _create_token_v1_input(
    name: str = "Test Token", symbol: str = "TEST", supply: int = 10**27
) -> str:
    args = encode(CREATE_TOKEN_V1_TYPES, [name, symbol, supply, 0])
    return CREATE_TOKEN_V1 + args.hex()


@pytest.fixture
def creator_address() -> str:
    """Sample creator wallet."""
    return CREATOR_ADDRESS


@pytest.fixture
def contract_address() -> str:
    """The tracked launch contract."""
    return CONTRACT_ADDRESS


@pytest.fixture
def create_token_input() -> Callable[..., str]:
    """Factory for ``createToken(string,string,uint256,uint256)`` call data."""
    return _create_token_v1_input


@pytest.fixture
def make_transaction() -> Callable[..., ChainTransaction]:
    """Factory for launch-contract transactions (a v1 creation by default)."""

    def factory(
        tx_hash: str = "0x" + "a" * 64,
        *,
        input_data: str | None = None,
        value: int = 0,
        block_number: int = 1000,
        from_address: str = CREATOR_ADDRESS,
    ) -> ChainTransaction:
        return ChainTransaction(
            hash=tx_hash,
            from_address=from_address,
            to_address=CONTRACT_ADDRESS,
            value=value,
            block_number=block_number,
            timestamp=datetime(2026, 3, 1, 12, 0, tzinfo=UTC),
            input=input_data if input_data is not None else _create_token_v1_input(),
        )

    return factory


@pytest.fixture
def creation_event(make_transaction) -> ClassifiedEvent:
    """A decoded v1 token creation."""
    return classify_transaction(make_transaction())


@pytest.fixture
def sample_profile() -> CreatorProfile:
    """A resolved profile below every heavy-hitter threshold."""
    return CreatorProfile(
        wallet_address=CREATOR_ADDRESS,
        username="alice",
        display_name="Alice",
        follower_count=1234,
        key_price=5 * 10**17,
    )
