"""Configuration management service with Pydantic Settings.

This module provides centralized configuration management for the
Arena Token Monitor application, loading and validating environment
variables at startup.
"""

from __future__ import annotations

import logging
from functools import lru_cache
from typing import Literal

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_ENV_FILE = ".env"
_ENV_FILE_ENCODING = "utf-8"

ARENA_LAUNCH_CONTRACT = "0x8315f1eb449Dd4B779495C3A0b05e5d194446c6e"


def _validate_http_url(v: str | None) -> str | None:
    if v is None:
        return v
    if not v.startswith(("http://", "https://")):
        raise ValueError("URL must be an HTTP(S) endpoint")
    return v.rstrip("/")


class DatabaseSettings(BaseSettings):
    """Database connection settings."""

    model_config = SettingsConfigDict(env_prefix="", extra="ignore")

    url: str = Field(
        default="sqlite+aiosqlite:///arena_token_monitor.db",
        alias="DATABASE_URL",
        description="PostgreSQL (or SQLite for local runs) connection string",
    )

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        """Validate database URL format."""
        if not v.startswith(("postgresql://", "postgresql+asyncpg://", "sqlite+aiosqlite://")):
            raise ValueError("DATABASE_URL must be a PostgreSQL or sqlite+aiosqlite connection string")
        return v


class RedisSettings(BaseSettings):
    """Redis connection settings."""

    model_config = SettingsConfigDict(env_prefix="", extra="ignore")

    url: str | None = Field(
        default=None,
        alias="REDIS_URL",
        description="Redis connection string used for the block cache (optional)",
    )

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str | None) -> str | None:
        """Validate Redis URL format."""
        if v is not None and not v.startswith(("redis://", "rediss://")):
            raise ValueError("REDIS_URL must start with redis:// or rediss://")
        return v


class AvalancheSettings(BaseSettings):
    """Avalanche C-chain RPC settings."""

    model_config = SettingsConfigDict(env_prefix="AVALANCHE_", extra="ignore")

    rpc_url: str = Field(
        default="https://api.avax.network/ext/bc/C/rpc",
        alias="AVALANCHE_RPC_URL",
        description="Primary Avalanche C-chain RPC endpoint",
    )
    fallback_rpc_url: str | None = Field(
        default=None,
        alias="AVALANCHE_FALLBACK_RPC_URL",
        description="Fallback Avalanche C-chain RPC endpoint",
    )
    contract_address: str = Field(
        default=ARENA_LAUNCH_CONTRACT,
        alias="AVALANCHE_CONTRACT_ADDRESS",
        description="Arena launch contract to monitor",
    )

    @field_validator("rpc_url", "fallback_rpc_url")
    @classmethod
    def validate_url(cls, v: str | None) -> str | None:
        """Validate RPC URL format."""
        return _validate_http_url(v)

    @field_validator("contract_address")
    @classmethod
    def validate_contract_address(cls, v: str) -> str:
        if not (v.startswith("0x") and len(v) == 42):
            raise ValueError("AVALANCHE_CONTRACT_ADDRESS must be a 0x-prefixed 20-byte address")
        return v


class MonitorSettings(BaseSettings):
    """Block polling settings."""

    model_config = SettingsConfigDict(env_prefix="MONITOR_", extra="ignore")

    poll_interval_seconds: float = Field(
        default=3.0,
        alias="MONITOR_POLL_INTERVAL_SECONDS",
        ge=0.5,
        le=300.0,
        description="Delay between polling ticks",
    )
    block_delay_seconds: float = Field(
        default=0.1,
        alias="MONITOR_BLOCK_DELAY_SECONDS",
        ge=0.0,
        le=10.0,
        description="Pause between consecutive blocks inside one tick",
    )
    backfill_blocks: int = Field(
        default=500,
        alias="MONITOR_BACKFILL_BLOCKS",
        ge=1,
        le=100_000,
        description="How many recent blocks a backfill scans",
    )


class ArenaSettings(BaseSettings):
    """Arena identity services and timeline posting settings."""

    model_config = SettingsConfigDict(env_prefix="ARENA_", extra="ignore")

    api_url: str = Field(
        default="https://api.arena.trade",
        alias="ARENA_API_URL",
        description="Address-to-handle lookup service",
    )
    social_api_url: str = Field(
        default="https://api.starsarena.com",
        alias="ARENA_SOCIAL_API_URL",
        description="Handle, stats and timeline service",
    )
    api_key: SecretStr | None = Field(
        default=None,
        alias="ARENA_API_KEY",
        description="Optional bearer key for the address lookup service",
    )
    bearer_token: SecretStr | None = Field(
        default=None,
        alias="ARENA_BEARER_TOKEN",
        description="Bearer token used to publish timeline posts",
    )
    profile_cache_ttl_seconds: int = Field(
        default=300,
        alias="ARENA_PROFILE_CACHE_TTL_SECONDS",
        ge=1,
        le=24 * 3600,
        description="How long resolved profiles (including misses) are memoized",
    )
    post_cache_ttl_seconds: int = Field(
        default=24 * 3600,
        alias="ARENA_POST_CACHE_TTL_SECONDS",
        ge=60,
        le=30 * 24 * 3600,
        description="In-process TTL for 'already posted' markers",
    )

    @field_validator("api_url", "social_api_url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        """Validate service URL format."""
        return _validate_http_url(v)  # type: ignore[return-value]

    @property
    def posting_enabled(self) -> bool:
        """Check if Arena timeline posting is configured."""
        return self.bearer_token is not None


class DiscordSettings(BaseSettings):
    """Discord notification settings."""

    model_config = SettingsConfigDict(env_prefix="DISCORD_", extra="ignore")

    webhook_champions: SecretStr | None = Field(
        default=None,
        alias="DISCORD_WEBHOOK_CHAMPIONS",
        description="Webhook for champion launches",
    )
    webhook_heavy_hitters: SecretStr | None = Field(
        default=None,
        alias="DISCORD_WEBHOOK_HEAVY_HITTERS",
        description="Webhook for heavy-hitter launches",
    )
    webhook_general: SecretStr | None = Field(
        default=None,
        alias="DISCORD_WEBHOOK_GENERAL",
        description="Webhook for every other qualifying launch",
    )

    @property
    def enabled(self) -> bool:
        """Check if Discord notifications are enabled."""
        return any(
            url is not None
            for url in (self.webhook_champions, self.webhook_heavy_hitters, self.webhook_general)
        )


class TierSettings(BaseSettings):
    """Creator tiering thresholds."""

    model_config = SettingsConfigDict(env_prefix="TIER_", extra="ignore")

    heavy_hitter_min_followers: int = Field(
        default=5000,
        alias="TIER_HEAVY_HITTER_MIN_FOLLOWERS",
        ge=0,
        description="Arena follower count that makes a creator a heavy hitter",
    )
    heavy_hitter_min_key_price_avax: float = Field(
        default=1.5,
        alias="TIER_HEAVY_HITTER_MIN_KEY_PRICE_AVAX",
        ge=0.0,
        description="Ticket price (AVAX) that makes a creator a heavy hitter",
    )


class Settings(BaseSettings):
    """Main application settings.

    Loads configuration from environment variables with support for
    .env files via python-dotenv.

    Example:
        ```python
        from arena_token_monitor.config import get_settings

        settings = get_settings()
        print(settings.avalanche.rpc_url)
        print(settings.log_level)
        ```
    """

    model_config = SettingsConfigDict(
        env_file=_ENV_FILE,
        env_file_encoding=_ENV_FILE_ENCODING,
        extra="ignore",
    )

    # NOTE: Each nested BaseSettings must be given the same env_file, otherwise it
    # will only read from the process environment (and ignore `.env`).
    database: DatabaseSettings = Field(
        default_factory=lambda: DatabaseSettings(
            _env_file=_ENV_FILE,
            _env_file_encoding=_ENV_FILE_ENCODING,
        )
    )
    redis: RedisSettings = Field(
        default_factory=lambda: RedisSettings(
            _env_file=_ENV_FILE,
            _env_file_encoding=_ENV_FILE_ENCODING,
        )
    )
    avalanche: AvalancheSettings = Field(
        default_factory=lambda: AvalancheSettings(
            _env_file=_ENV_FILE,
            _env_file_encoding=_ENV_FILE_ENCODING,
        )
    )
    monitor: MonitorSettings = Field(
        default_factory=lambda: MonitorSettings(
            _env_file=_ENV_FILE,
            _env_file_encoding=_ENV_FILE_ENCODING,
        )
    )
    arena: ArenaSettings = Field(
        default_factory=lambda: ArenaSettings(
            _env_file=_ENV_FILE,
            _env_file_encoding=_ENV_FILE_ENCODING,
        )
    )
    discord: DiscordSettings = Field(
        default_factory=lambda: DiscordSettings(
            _env_file=_ENV_FILE,
            _env_file_encoding=_ENV_FILE_ENCODING,
        )
    )
    tier: TierSettings = Field(
        default_factory=lambda: TierSettings(
            _env_file=_ENV_FILE,
            _env_file_encoding=_ENV_FILE_ENCODING,
        )
    )

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        alias="LOG_LEVEL",
        description="Logging level",
    )
    dry_run: bool = Field(
        default=False,
        alias="DRY_RUN",
        description="Run without sending actual notifications",
    )

    def get_logging_level(self) -> int:
        """Get the numeric logging level."""
        level: int = getattr(logging, self.log_level)
        return level

    def redacted_summary(self) -> dict[str, str | dict[str, str]]:
        """Get a summary of settings with secrets redacted.

        Returns:
            Dictionary of settings with sensitive values masked.
        """
        return {
            "database_url": self._redact_url(self.database.url),
            "redis_url": self._redact_url(self.redis.url) if self.redis.url else "(not set)",
            "avalanche": {
                "rpc_url": self.avalanche.rpc_url,
                "fallback_rpc_url": self.avalanche.fallback_rpc_url or "(not set)",
                "contract_address": self.avalanche.contract_address,
            },
            "monitor": {
                "poll_interval_seconds": str(self.monitor.poll_interval_seconds),
                "block_delay_seconds": str(self.monitor.block_delay_seconds),
                "backfill_blocks": str(self.monitor.backfill_blocks),
            },
            "arena": {
                "api_url": self.arena.api_url,
                "social_api_url": self.arena.social_api_url,
                "api_key": "(set)" if self.arena.api_key else "(not set)",
                "bearer_token": "(set)" if self.arena.bearer_token else "(not set)",
            },
            "discord": {
                "champions": "(set)" if self.discord.webhook_champions else "(not set)",
                "heavy_hitters": "(set)" if self.discord.webhook_heavy_hitters else "(not set)",
                "general": "(set)" if self.discord.webhook_general else "(not set)",
            },
            "tier": {
                "heavy_hitter_min_followers": str(self.tier.heavy_hitter_min_followers),
                "heavy_hitter_min_key_price_avax": str(self.tier.heavy_hitter_min_key_price_avax),
            },
            "log_level": self.log_level,
            "dry_run": str(self.dry_run),
        }

    @staticmethod
    def _redact_url(url: str) -> str:
        """Redact password from URL if present."""
        if "@" in url and "://" in url:
            protocol_end = url.index("://") + 3
            at_pos = url.index("@")
            creds_part = url[protocol_end:at_pos]
            if ":" in creds_part:
                username = creds_part.split(":")[0]
                return f"{url[:protocol_end]}{username}:***@{url[at_pos + 1 :]}"
        return url


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get the application settings singleton.

    Returns:
        The Settings instance.

    Raises:
        ValidationError: If environment variables have invalid values.
    """
    return Settings()


def clear_settings_cache() -> None:
    """Clear the settings cache.

    Useful for testing when you need to reload settings with
    different environment variables.
    """
    get_settings.cache_clear()
