"""Block poller for the Arena launch contract.

The poller advances a block cursor, pulls full-transaction blocks, filters
transactions addressed to the tracked contract, classifies them and hands
the resulting events to subscribers on the next loop turn so a slow or
failing subscriber never stalls block advancement.
"""

from __future__ import annotations

import asyncio
import contextlib
import dataclasses
import inspect
import logging
from collections.abc import Awaitable, Callable, Mapping
from typing import Any, Protocol

from web3 import Web3

from arena_token_monitor.ingestor.classifier import (
    TOKEN_CREATED_TOPIC,
    classify_transaction,
    decode_token_created,
    extract_token_address,
)
from arena_token_monitor.ingestor.models import (
    ChainTransaction,
    ClassifiedEvent,
    MonitorStatus,
    TokenLaunch,
    TokenMetadata,
    TransactionKind,
)

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL_SECONDS = 3.0
DEFAULT_BLOCK_DELAY_SECONDS = 0.1
DEFAULT_BACKFILL_BLOCKS = 500
DEFAULT_BACKFILL_CHUNK_SIZE = 50
DEFAULT_BACKFILL_CHUNK_PAUSE_SECONDS = 0.1

EventCallback = Callable[[ClassifiedEvent], Any]
CreationHandler = Callable[[ClassifiedEvent], Awaitable[None]]


class ChainReader(Protocol):
    """Subset of the chain client the poller depends on."""

    async def get_block_number(self) -> int: ...

    async def get_block(self, block_number: int, *, full_transactions: bool = True) -> dict[str, Any]: ...

    async def get_transaction_receipt(self, tx_hash: str) -> dict[str, Any]: ...

    async def get_logs(self, filter_params: dict[str, Any]) -> list[dict[str, Any]]: ...


class ChainPoller:
    """Polls the chain for launch-contract transactions.

    Lifecycle:
        idle -> (subscribe/start) -> initializing: first tick sets the cursor to
        head - 1 without scanning -> running -> (stop/last unsubscribe) -> idle,
        with the cursor reset to zero.

    Example:
        ```python
        poller = ChainPoller(client, ARENA_LAUNCH_CONTRACT)
        unsubscribe = poller.subscribe(lambda event: print(event.description))
        ...
        unsubscribe()
        await poller.join()
        ```
    """

    def __init__(
        self,
        client: ChainReader,
        contract_address: str,
        *,
        poll_interval: float = DEFAULT_POLL_INTERVAL_SECONDS,
        block_delay: float = DEFAULT_BLOCK_DELAY_SECONDS,
        on_creation: CreationHandler | None = None,
        resolve_token_addresses: bool = True,
    ) -> None:
        """Initialize the poller.

        Args:
            client: Chain read client.
            contract_address: Launch contract whose transactions are tracked.
            poll_interval: Delay after each tick.
            block_delay: Pause between blocks inside one tick.
            on_creation: Enrichment hook scheduled for every token creation.
            resolve_token_addresses: Read creation receipts to find the token address.
        """
        self._client = client
        self._contract_address = contract_address.lower()
        self._contract_checksum = Web3.to_checksum_address(contract_address)
        self._poll_interval = poll_interval
        self._block_delay = block_delay
        self._on_creation = on_creation
        self._resolve_token_addresses = resolve_token_addresses

        self._running = False
        self._cursor = 0
        self._subscribers: list[EventCallback] = []
        self._stop_event: asyncio.Event | None = None
        self._task: asyncio.Task[None] | None = None
        self._pending: set[asyncio.Future[Any]] = set()

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def cursor(self) -> int:
        return self._cursor

    def status(self) -> MonitorStatus:
        """Snapshot of running flag, cursor and subscriber count."""
        return MonitorStatus(
            running=self._running,
            cursor=self._cursor,
            subscriber_count=len(self._subscribers),
        )

    def start(self) -> None:
        """Start polling. Must be called from a running event loop."""
        if self._running:
            logger.info("Contract monitoring is already running")
            return
        self._running = True
        self._stop_event = asyncio.Event()
        self._task = asyncio.create_task(self._run_loop(), name="chain-poller")
        logger.info("Started contract monitoring for %s", self._contract_checksum)

    def stop(self) -> None:
        """Stop polling and reset the cursor.

        In-flight RPC calls are allowed to finish; their results are dropped.
        """
        if not self._running:
            return
        self._running = False
        if self._stop_event:
            self._stop_event.set()
        if self._task and not self._task.done():
            self._task.cancel()
        self._cursor = 0
        logger.info("Stopped contract monitoring")

    async def join(self) -> None:
        """Wait for the polling task and already scheduled work to finish."""
        if self._task:
            with contextlib.suppress(asyncio.CancelledError):
                await self._task
            self._task = None
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    def subscribe(self, callback: EventCallback) -> Callable[[], None]:
        """Register a callback and start polling if idle.

        Returns:
            A function that removes the callback; removing the last one stops
            the poller.
        """
        self._subscribers.append(callback)
        if not self._running:
            self.start()

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)
            if not self._subscribers:
                self.stop()

        return unsubscribe

    async def _run_loop(self) -> None:
        if self._stop_event is None:
            return
        stop_event = self._stop_event
        while not stop_event.is_set():
            try:
                await self.tick()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error("Error in contract monitoring: %s", e)

            try:
                await asyncio.wait_for(stop_event.wait(), timeout=self._poll_interval)
                break
            except TimeoutError:
                pass

    async def tick(self) -> int:
        """Run one polling step.

        Returns:
            Number of events emitted.
        """
        head = await self._client.get_block_number()

        if self._cursor == 0:
            self._cursor = head - 1
            logger.info("Starting monitoring from block %d", self._cursor)
            return 0

        if head <= self._cursor:
            return 0

        logger.debug("New blocks detected: %d to %d", self._cursor + 1, head)
        emitted = 0
        for block_number in range(self._cursor + 1, head + 1):
            if not self._running:
                return emitted
            try:
                for event in await self._scan_block(block_number):
                    self._emit(event)
                    emitted += 1
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.warning("Error processing block %d: %s", block_number, e)

            if block_number < head and self._block_delay > 0:
                await asyncio.sleep(self._block_delay)

        if self._running:
            self._cursor = head
        return emitted

    async def _scan_block(self, block_number: int) -> list[ClassifiedEvent]:
        block = await self._client.get_block(block_number, full_transactions=True)
        timestamp = int(block["timestamp"])
        events: list[ClassifiedEvent] = []
        for tx in block.get("transactions") or []:
            if not isinstance(tx, Mapping):
                continue
            to_address = tx.get("to")
            if not to_address or str(to_address).lower() != self._contract_address:
                continue
            event = classify_transaction(ChainTransaction.from_web3(dict(tx), block_timestamp=timestamp))
            if event.is_token_creation:
                event = await self._with_token_address(event)
                logger.info(
                    "New token creation found: %s - %s", event.transaction.hash, event.description
                )
            events.append(event)
        return events

    async def _with_token_address(self, event: ClassifiedEvent) -> ClassifiedEvent:
        if not self._resolve_token_addresses:
            return event
        try:
            receipt = await self._client.get_transaction_receipt(event.transaction.hash)
        except Exception as e:
            logger.warning("Failed to read receipt for %s: %s", event.transaction.hash, e)
            return event
        token_address = extract_token_address(receipt, self._contract_address)
        if token_address is None:
            return event
        metadata = dataclasses.replace(event.metadata or TokenMetadata(), token_address=token_address)
        return dataclasses.replace(event, metadata=metadata)

    def _emit(self, event: ClassifiedEvent) -> None:
        loop = asyncio.get_running_loop()
        for callback in list(self._subscribers):
            loop.call_soon(self._deliver, callback, event)
        if event.is_token_creation and self._on_creation is not None:
            # Queued after the deliveries above, so subscribers see the event first.
            loop.call_soon(self._spawn, self._on_creation, event)

    def _deliver(self, callback: EventCallback, event: ClassifiedEvent) -> None:
        try:
            result = callback(event)
            if inspect.isawaitable(result):
                self._track(asyncio.ensure_future(result))
        except Exception:
            logger.exception("Error in monitoring callback")

    def _spawn(self, handler: CreationHandler, event: ClassifiedEvent) -> None:
        self._track(asyncio.ensure_future(handler(event)))

    def _track(self, future: asyncio.Future[Any]) -> None:
        self._pending.add(future)
        future.add_done_callback(self._on_done)

    def _on_done(self, future: asyncio.Future[Any]) -> None:
        self._pending.discard(future)
        if future.cancelled():
            return
        exc = future.exception()
        if exc is not None:
            logger.error("Deferred event handler failed: %s", exc)

    async def backfill(
        self,
        limit: int = 50,
        *,
        kind: TransactionKind | None = None,
        lookback_blocks: int = DEFAULT_BACKFILL_BLOCKS,
        chunk_size: int = DEFAULT_BACKFILL_CHUNK_SIZE,
        chunk_pause: float = DEFAULT_BACKFILL_CHUNK_PAUSE_SECONDS,
    ) -> list[ClassifiedEvent]:
        """Scan recent blocks and return classified events, newest first.

        Events are returned to the caller only; subscribers are not notified.
        """
        head = await self._client.get_block_number()
        from_block = max(0, head - lookback_blocks)
        events: list[ClassifiedEvent] = []

        for chunk_start in range(from_block, head + 1, chunk_size):
            chunk_end = min(chunk_start + chunk_size - 1, head)
            for block_number in range(chunk_start, chunk_end + 1):
                try:
                    events.extend(await self._scan_block(block_number))
                except Exception as e:
                    logger.warning("Error processing block %d during backfill: %s", block_number, e)
            if chunk_end < head and chunk_pause > 0:
                await asyncio.sleep(chunk_pause)

        if kind is not None:
            events = [e for e in events if e.kind == kind]
        events.sort(key=lambda e: e.transaction.block_number, reverse=True)
        logger.info("Backfill found %d events in blocks %d-%d", len(events), from_block, head)
        return events[:limit]

    async def recent_token_launches(
        self,
        lookback_blocks: int = DEFAULT_BACKFILL_BLOCKS,
    ) -> list[TokenLaunch]:
        """Read ``TokenCreated`` logs from recent blocks, newest first."""
        head = await self._client.get_block_number()
        logs = await self._client.get_logs(
            {
                "address": self._contract_checksum,
                "fromBlock": max(0, head - lookback_blocks),
                "toBlock": head,
                "topics": [TOKEN_CREATED_TOPIC],
            }
        )
        launches = [launch for log in logs if (launch := decode_token_created(log)) is not None]
        launches.sort(key=lambda launch: launch.block_number, reverse=True)
        return launches
