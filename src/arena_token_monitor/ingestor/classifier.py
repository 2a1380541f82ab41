"""Call-data classification for launch-contract transactions.

Maps 4-byte method selectors to transaction kinds, decodes token metadata
embedded in creation calls, and extracts the launched token address from
``TokenCreated`` receipt logs.
"""

from __future__ import annotations

import logging
from typing import Any

from eth_abi import decode
from eth_abi.exceptions import DecodingError
from web3 import Web3

from arena_token_monitor.ingestor.models import (
    ChainTransaction,
    Classification,
    ClassifiedEvent,
    TokenLaunch,
    TokenMetadata,
    TransactionKind,
)

logger = logging.getLogger(__name__)

CREATE_TOKEN_V1 = "0x0b8c6fec"
CREATE_TOKEN_V2 = "0x30f51a46"

METHOD_SIGNATURES: dict[str, Classification] = {
    CREATE_TOKEN_V1: Classification(TransactionKind.TOKEN_CREATION, "createToken", "Create new token"),
    CREATE_TOKEN_V2: Classification(TransactionKind.TOKEN_CREATION, "createToken", "Create new token"),
    "0x5a46f06c": Classification(TransactionKind.ADD_LIQUIDITY, "createLP", "Add initial liquidity"),
    "0xe8e33700": Classification(TransactionKind.ADD_LIQUIDITY, "addLiquidity", "Add liquidity to pool"),
    "0xbaa2abde": Classification(
        TransactionKind.REMOVE_LIQUIDITY, "removeLiquidity", "Remove liquidity from pool"
    ),
    "0xa6f2ae3a": Classification(TransactionKind.BUY, "buy", "Buy tokens with AVAX"),
    "0x7ff36ab5": Classification(TransactionKind.SELL, "sell", "Sell tokens for AVAX"),
    "0x38ed1739": Classification(TransactionKind.SELL, "swapExactTokensForETH", "Swap tokens for AVAX"),
    "0x7c025200": Classification(TransactionKind.BUY, "swapETHForExactTokens", "Swap AVAX for tokens"),
    "0x095ea7b3": Classification(TransactionKind.APPROVE, "approve", "Approve token spending"),
    "0xa9059cbb": Classification(TransactionKind.TRANSFER, "transfer", "Transfer tokens"),
    "0x23b872dd": Classification(TransactionKind.TRANSFER, "transferFrom", "Transfer tokens from address"),
    "0x2e1a7d4d": Classification(TransactionKind.SELL, "withdraw", "Withdraw AVAX"),
    "0xd0e30db0": Classification(TransactionKind.BUY, "deposit", "Deposit AVAX"),
}

# createToken(string name, string symbol, uint256 totalSupply, uint256 taxPercentage)
CREATE_TOKEN_V1_TYPES = ["string", "string", "uint256", "uint256"]
# Five leading curve/fee parameters precede name, symbol and supply; index 4 is the creator.
CREATE_TOKEN_V2_TYPES = [
    "uint16",
    "uint8",
    "uint128",
    "uint8",
    "address",
    "uint256",
    "string",
    "string",
    "uint256",
]

TOKEN_CREATED_SIGNATURE = (
    "TokenCreated(uint256,(uint128,uint16,uint8,bool,uint8,uint8,uint8,address,address,address),uint256)"
)
TOKEN_CREATED_TOPIC = "0x" + Web3.keccak(text=TOKEN_CREATED_SIGNATURE).hex().removeprefix("0x")
TOKEN_CREATED_DATA_TYPES = [
    "uint256",
    "(uint128,uint16,uint8,bool,uint8,uint8,uint8,address,address,address)",
    "uint256",
]


def classify(selector: str, value: int) -> Classification:
    """Classify a transaction by selector, falling back to heuristics.

    Unknown selectors whose hex text contains "create" or "token" are tagged
    as possible creations; this matches how historical rows were tagged and
    must not change.
    """
    known = METHOD_SIGNATURES.get(selector.lower())
    if known is not None:
        return known

    selector_lower = selector.lower()
    if "create" in selector_lower or "token" in selector_lower:
        return Classification(TransactionKind.TOKEN_CREATION, "unknown_create", "Possible token creation")

    if value > 0:
        return Classification(TransactionKind.BUY, "unknown_buy", "Buy transaction (AVAX sent)")

    return Classification(TransactionKind.UNKNOWN, selector or "unknown", "Unknown transaction type")


def _call_arguments(raw_input: str) -> bytes:
    data = raw_input[2:] if raw_input.startswith("0x") else raw_input
    return bytes.fromhex(data[8:])


def decode_creation(selector: str, raw_input: str) -> TokenMetadata | None:
    """Decode token metadata from createToken call data.

    Returns:
        TokenMetadata, or None for non-creation selectors and malformed input.
    """
    selector = selector.lower()
    try:
        if selector == CREATE_TOKEN_V1:
            name, symbol, total_supply, _tax = decode(CREATE_TOKEN_V1_TYPES, _call_arguments(raw_input))
            return TokenMetadata(name=name, symbol=symbol, total_supply=str(total_supply))
        if selector == CREATE_TOKEN_V2:
            decoded = decode(CREATE_TOKEN_V2_TYPES, _call_arguments(raw_input))
            return TokenMetadata(
                name=decoded[6],
                symbol=decoded[7],
                total_supply=str(decoded[8]),
                creator=Web3.to_checksum_address(decoded[4]),
            )
    except (DecodingError, ValueError, OverflowError) as e:
        logger.warning("Failed to decode token creation data (selector=%s): %s", selector, e)
    return None


def classify_transaction(tx: ChainTransaction) -> ClassifiedEvent:
    """Classify a launch-contract transaction and decode creation metadata."""
    result = classify(tx.selector, tx.value)
    metadata = None
    if result.kind == TransactionKind.TOKEN_CREATION:
        metadata = decode_creation(tx.selector, tx.input)
    return ClassifiedEvent(
        transaction=tx,
        kind=result.kind,
        method=result.method,
        description=result.description,
        metadata=metadata,
    )


def _hex(value: Any) -> str:
    if isinstance(value, (bytes, bytearray)):
        return "0x" + bytes(value).hex()
    text = str(value)
    return text if text.startswith("0x") else "0x" + text


def decode_token_created(log: dict[str, Any]) -> TokenLaunch | None:
    """Decode a ``TokenCreated`` log, returning None for any other log."""
    topics = log.get("topics") or []
    if not topics or _hex(topics[0]).lower() != TOKEN_CREATED_TOPIC:
        return None

    data = log.get("data", b"")
    raw = bytes(data) if isinstance(data, (bytes, bytearray)) else bytes.fromhex(_hex(data)[2:])
    try:
        token_id, params, token_supply = decode(TOKEN_CREATED_DATA_TYPES, raw)
    except (DecodingError, ValueError) as e:
        logger.warning("Failed to decode TokenCreated log: %s", e)
        return None

    return TokenLaunch(
        token_id=int(token_id),
        creator_address=Web3.to_checksum_address(params[7]),
        pair_address=Web3.to_checksum_address(params[8]),
        token_address=Web3.to_checksum_address(params[9]),
        token_supply=int(token_supply),
        transaction_hash=_hex(log.get("transactionHash", "")),
        block_number=int(log.get("blockNumber", 0)),
    )


def extract_token_address(receipt: dict[str, Any], contract_address: str) -> str | None:
    """Find the launched token address in a creation receipt."""
    for log in receipt.get("logs", []):
        if str(log.get("address", "")).lower() != contract_address.lower():
            continue
        launch = decode_token_created(log)
        if launch is not None:
            return launch.token_address
    return None
