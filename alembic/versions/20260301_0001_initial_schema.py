"""Initial schema for tokens, creator profiles, contract transactions and creators.

Revision ID: 001_initial_schema
Revises:
Create Date: 2026-03-01 00:00:00.000000+00:00
"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "001_initial_schema"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Launched tokens
    op.create_table(
        "tokens",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("address", sa.String(42), nullable=True),
        sa.Column("creator_address", sa.String(42), nullable=False),
        sa.Column("name", sa.String(255), nullable=True),
        sa.Column("symbol", sa.String(64), nullable=True),
        sa.Column("total_supply", sa.String(80), nullable=True),
        sa.Column("transaction_hash", sa.String(66), nullable=False),
        sa.Column("block_number", sa.Integer(), nullable=False),
        sa.Column("timestamp", sa.DateTime(timezone=True), nullable=False),
        sa.Column("method_id", sa.String(10), nullable=False),
        sa.Column("method_name", sa.String(64), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("address"),
        sa.UniqueConstraint("transaction_hash"),
    )
    op.create_index("idx_tokens_creator", "tokens", ["creator_address"])
    op.create_index("idx_tokens_timestamp", "tokens", ["timestamp"])

    # Resolved creator profiles
    op.create_table(
        "creator_profiles",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("wallet_address", sa.String(42), nullable=False),
        sa.Column("username", sa.String(255), nullable=True),
        sa.Column("display_name", sa.String(255), nullable=True),
        sa.Column("bio", sa.Text(), nullable=True),
        sa.Column("avatar_url", sa.Text(), nullable=True),
        sa.Column("twitter_handle", sa.String(255), nullable=True),
        sa.Column("telegram_handle", sa.String(255), nullable=True),
        sa.Column("website_url", sa.Text(), nullable=True),
        sa.Column("verified", sa.Boolean(), nullable=False),
        sa.Column("follower_count", sa.Integer(), nullable=False),
        sa.Column("twitter_follower_count", sa.Integer(), nullable=False),
        sa.Column("following_count", sa.Integer(), nullable=False),
        sa.Column("token_count", sa.Integer(), nullable=False),
        sa.Column("joined_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("key_price", sa.String(80), nullable=True),
        sa.Column("total_holders", sa.Integer(), nullable=True),
        sa.Column("volume", sa.String(80), nullable=True),
        sa.Column("supply", sa.Integer(), nullable=True),
        sa.Column("badges", sa.JSON(), nullable=False),
        sa.Column("is_champion", sa.Boolean(), nullable=False),
        sa.Column("last_updated", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("wallet_address"),
    )

    # Launch-contract transactions with post flags
    op.create_table(
        "contract_transactions",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("hash", sa.String(66), nullable=False),
        sa.Column("from_address", sa.String(42), nullable=False),
        sa.Column("to_address", sa.String(42), nullable=True),
        sa.Column("value_wei", sa.String(80), nullable=False),
        sa.Column("block_number", sa.Integer(), nullable=False),
        sa.Column("timestamp", sa.DateTime(timezone=True), nullable=False),
        sa.Column("method_id", sa.String(10), nullable=False),
        sa.Column("method_name", sa.String(64), nullable=False),
        sa.Column("transaction_type", sa.String(32), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("gas_used", sa.String(80), nullable=True),
        sa.Column("gas_price", sa.String(80), nullable=True),
        sa.Column("status", sa.String(16), nullable=False),
        sa.Column("token_id", sa.Integer(), nullable=True),
        sa.Column("creator_profile_id", sa.Integer(), nullable=True),
        sa.Column("raw_input", sa.Text(), nullable=True),
        sa.Column("posted_to_arena", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("posted_to_discord", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("hash"),
        sa.ForeignKeyConstraint(["token_id"], ["tokens.id"], ondelete="SET NULL"),
        sa.ForeignKeyConstraint(
            ["creator_profile_id"], ["creator_profiles.id"], ondelete="SET NULL"
        ),
    )
    op.create_index("idx_contract_transactions_block", "contract_transactions", ["block_number"])
    op.create_index(
        "idx_contract_transactions_type_ts",
        "contract_transactions",
        ["transaction_type", "timestamp"],
    )
    op.create_index("idx_contract_transactions_from", "contract_transactions", ["from_address"])

    # Creator launch history
    op.create_table(
        "creators",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("wallet_address", sa.String(42), nullable=False),
        sa.Column("contracts_created", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("contract_tickers", sa.JSON(), nullable=False),
        sa.Column("first_seen_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("last_contract_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("wallet_address"),
    )
    op.create_index("idx_creators_contracts_created", "creators", ["contracts_created"])
    op.create_index("idx_creators_last_contract_at", "creators", ["last_contract_at"])


def downgrade() -> None:
    op.drop_index("idx_creators_last_contract_at", table_name="creators")
    op.drop_index("idx_creators_contracts_created", table_name="creators")
    op.drop_table("creators")

    op.drop_index("idx_contract_transactions_from", table_name="contract_transactions")
    op.drop_index("idx_contract_transactions_type_ts", table_name="contract_transactions")
    op.drop_index("idx_contract_transactions_block", table_name="contract_transactions")
    op.drop_table("contract_transactions")

    op.drop_table("creator_profiles")

    op.drop_index("idx_tokens_timestamp", table_name="tokens")
    op.drop_index("idx_tokens_creator", table_name="tokens")
    op.drop_table("tokens")
