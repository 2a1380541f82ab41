"""Data ingestion layer - Launch-contract block polling and classification."""

from arena_token_monitor.ingestor.chain import AvalancheClient, ChainClientError, RPCError
from arena_token_monitor.ingestor.classifier import classify, classify_transaction, decode_creation
from arena_token_monitor.ingestor.models import (
    ChainTransaction,
    ClassifiedEvent,
    MonitorStatus,
    TokenLaunch,
    TokenMetadata,
    TransactionKind,
)
from arena_token_monitor.ingestor.poller import ChainPoller

__all__ = [
    "AvalancheClient",
    "ChainClientError",
    "ChainPoller",
    "ChainTransaction",
    "ClassifiedEvent",
    "MonitorStatus",
    "RPCError",
    "TokenLaunch",
    "TokenMetadata",
    "TransactionKind",
    "classify",
    "classify_transaction",
    "decode_creation",
]
