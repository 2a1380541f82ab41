"""Command line entry point: ``python -m arena_token_monitor``."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging

from arena_token_monitor.config import get_settings
from arena_token_monitor.ingestor.chain import AvalancheClient
from arena_token_monitor.ingestor.models import TransactionKind
from arena_token_monitor.ingestor.poller import ChainPoller
from arena_token_monitor.pipeline import Pipeline
from arena_token_monitor.profiler.resolver import ProfileResolver, format_avax
from arena_token_monitor.storage.database import DatabaseManager
from arena_token_monitor.storage.repos import CreatorRepository

logger = logging.getLogger("arena_token_monitor")


async def run_monitor(dry_run: bool) -> None:
    pipeline = Pipeline(dry_run=dry_run or None)
    try:
        await pipeline.run()
    finally:
        stats = pipeline.stats
        logger.info(
            "Processed %d transactions, %d creations, %d notifications, %d errors",
            stats.transactions_seen,
            stats.creations_processed,
            stats.notifications_sent,
            stats.errors,
        )


async def run_backfill(limit: int, kind: TransactionKind | None, blocks: int | None) -> None:
    settings = get_settings()
    client = AvalancheClient(
        settings.avalanche.rpc_url,
        fallback_rpc_url=settings.avalanche.fallback_rpc_url,
    )
    poller = ChainPoller(client, settings.avalanche.contract_address)
    try:
        events = await poller.backfill(
            limit,
            kind=kind,
            lookback_blocks=blocks or settings.monitor.backfill_blocks,
        )
    finally:
        await client.aclose()

    for event in events:
        tx = event.transaction
        line = f"{tx.block_number}  {tx.hash}  {event.kind.value:<16} {event.description}"
        if event.symbol:
            line += f"  ${event.symbol}"
        print(line)
    if not events:
        print("No matching transactions found")


async def run_profile(address: str) -> None:
    settings = get_settings()
    async with ProfileResolver(
        arena_api_url=settings.arena.api_url,
        social_api_url=settings.arena.social_api_url,
        api_key=settings.arena.api_key.get_secret_value() if settings.arena.api_key else None,
    ) as resolver:
        profile = await resolver.resolve(address)

    if profile is None:
        print(f"No Arena profile found for {address}")
        return
    print(json.dumps(profile.to_dict(), indent=2, default=str))
    print(f"Ticket price: {format_avax(profile.key_price)} AVAX")


async def run_creators(limit: int, search: str | None) -> None:
    settings = get_settings()
    db = DatabaseManager(settings.database.url)
    try:
        await db.init_schema_async()
        async with db.get_async_session() as session:
            repo = CreatorRepository(session)
            stats = await repo.stats()
            creators = await repo.search(search, limit) if search else await repo.top_creators(limit)
    finally:
        await db.dispose_async()

    print(
        f"{stats.total_creators} creators, {stats.total_contracts} tokens "
        f"({stats.avg_contracts_per_creator:.2f} per creator), "
        f"{stats.multi_token_creators} with more than one token, "
        f"{stats.new_creators_last_24h} new and {stats.active_creators_last_24h} active in 24h"
    )
    for creator in creators:
        tickers = ", ".join(f"${t.get('symbol')}" for t in creator.contract_tickers)
        print(f"{creator.wallet_address}  {creator.contracts_created:>4}  {tickers}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="arena_token_monitor",
        description="Monitor Arena token launches on Avalanche and announce repeat creators",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    run = subparsers.add_parser("run", help="Run the long-lived launch monitor")
    run.add_argument("--dry-run", action="store_true", help="Log notifications instead of sending them")

    backfill = subparsers.add_parser("backfill", help="Print recent launch-contract transactions")
    backfill.add_argument("--limit", type=int, default=50)
    backfill.add_argument(
        "--kind",
        choices=[kind.value for kind in TransactionKind],
        default=None,
        help="Only show transactions of this kind",
    )
    backfill.add_argument("--blocks", type=int, default=None, help="How many recent blocks to scan")

    profile = subparsers.add_parser("profile", help="Resolve and print a creator profile")
    profile.add_argument("address")

    creators = subparsers.add_parser("creators", help="Show stored creator statistics")
    creators.add_argument("--limit", type=int, default=10)
    creators.add_argument("--search", default=None, help="Filter by wallet or ticker")

    return parser


def main(argv: list[str] | None = None) -> None:
    args = build_parser().parse_args(argv)
    settings = get_settings()
    logging.basicConfig(
        level=settings.get_logging_level(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        if args.command == "run":
            asyncio.run(run_monitor(args.dry_run))
        elif args.command == "backfill":
            kind = TransactionKind(args.kind) if args.kind else None
            asyncio.run(run_backfill(args.limit, kind, args.blocks))
        elif args.command == "profile":
            asyncio.run(run_profile(args.address))
        elif args.command == "creators":
            asyncio.run(run_creators(args.limit, args.search))
    except KeyboardInterrupt:
        logger.info("Interrupted")


if __name__ == "__main__":
    main()
