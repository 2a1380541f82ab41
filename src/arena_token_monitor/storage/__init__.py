"""Storage layer - Database schemas and repositories."""

from arena_token_monitor.storage.database import (
    DatabaseManager,
    create_async_db_engine,
    create_async_session_factory,
    init_async_db,
)
from arena_token_monitor.storage.models import (
    Base,
    ContractTransactionModel,
    CreatorModel,
    CreatorProfileModel,
    TokenModel,
)
from arena_token_monitor.storage.repos import (
    ContractTransactionDTO,
    ContractTransactionRepository,
    CreatorDTO,
    CreatorProfileDTO,
    CreatorProfileRepository,
    CreatorRepository,
    CreatorStats,
    TokenDTO,
    TokenRepository,
)

__all__ = [
    "Base",
    "ContractTransactionDTO",
    "ContractTransactionModel",
    "ContractTransactionRepository",
    "CreatorDTO",
    "CreatorModel",
    "CreatorProfileDTO",
    "CreatorProfileModel",
    "CreatorProfileRepository",
    "CreatorRepository",
    "CreatorStats",
    "DatabaseManager",
    "TokenDTO",
    "TokenModel",
    "TokenRepository",
    "create_async_db_engine",
    "create_async_session_factory",
    "init_async_db",
]
