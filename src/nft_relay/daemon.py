"""Main daemon loop - wires all components together."""

from __future__ import annotations

import asyncio
import logging
import signal
from typing import Coroutine

from nft_relay.api.webhook import WebhookServer
from nft_relay.context import BridgeContext, ConfigError
from nft_relay.evm.poller import BurnLogPoller
from nft_relay.interfaces.poller import LogPoller
from nft_relay.models.config import RelayConfig
from nft_relay.models.events import BurnLogEvent, DepositNotification, Direction
from nft_relay.models.records import UnwrapOutcome, UnwrapStatus
from nft_relay.notify.alchemy import AlchemyNotifyClient
from nft_relay.relay.fees import FeeOracle
from nft_relay.relay.unwrap import UnwrapRelay
from nft_relay.relay.wrap import WrapRelay
from nft_relay.security.signature import SignatureVerifier
from nft_relay.storage.sqlite import SQLiteStateStore

log = logging.getLogger(__name__)

CURSOR_NAME = "destination_unwrap"

# Interrupted before release was attempted, safe to pick up again
RESUMABLE_UNWRAP_STATUSES = [
    UnwrapStatus.DETECTED.value,
    UnwrapStatus.AWAITING_FINALITY.value,
]


class RelayDaemon:
    """Two-way NFT bridge relay.

    Serves the deposit webhook, polls the destination bridge for unwrap
    logs, and runs every wrap and unwrap as its own task.
    """

    def __init__(self, cfg: RelayConfig, ctx: BridgeContext | None = None) -> None:
        self._cfg = cfg
        self._running = False
        self._stop_event = asyncio.Event()
        self._tasks: set[asyncio.Task] = set()
        self._unwrap_tasks: set[asyncio.Task] = set()

        # Core components
        self.ctx = ctx or BridgeContext.from_config(cfg)
        self.store = SQLiteStateStore(cfg.db_path)
        self.fee_oracle = FeeOracle(
            cfg.fees.transfer_gas_units,
            cfg.fees.base_transfer_gas_units,
            cfg.fees.margin_gas_units,
        )
        self.wrap_relay = WrapRelay(self.ctx, self.store, rpc_timeout=cfg.timeouts.rpc)
        self.unwrap_relay = UnwrapRelay(
            self.ctx,
            self.store,
            self.fee_oracle,
            confirmations=cfg.finality.confirmations,
            poll_interval=cfg.finality.poll_interval,
            finality_timeout=cfg.finality.timeout,
            rpc_timeout=cfg.timeouts.rpc,
        )
        self.poller: LogPoller = BurnLogPoller(self.ctx.destination, cfg.destination.start_block)
        self.webhook: WebhookServer | None = None

    @property
    def in_flight(self) -> set[asyncio.Task]:
        return set(self._tasks)

    async def start(self) -> None:
        """Initialize components and run the main loop."""
        log.info("Starting nft_relay daemon")
        log.info("  Listen: %s:%d%s", self._cfg.server.host, self._cfg.server.port,
                 self._cfg.server.route_path)
        log.info("  Origin signer: %s", self.ctx.origin.address)
        log.info("  Destination signer: %s", self.ctx.destination.address)
        log.info("  Custody: %s", self.ctx.custody_address)
        log.info("  Collection: %s", self.ctx.collection_address)
        log.info("  Bridge: %s", self._cfg.destination.bridge_address)
        log.info("  Finality: %d confirmations", self._cfg.finality.confirmations)

        await self.store.initialize()

        # Restore cursor from last run
        saved_block = await self.store.get_cursor(CURSOR_NAME)
        if saved_block is not None:
            self.poller.set_cursor(saved_block)
            log.info("Restored cursor: block %d", saved_block)

        signing_key = await self._resolve_signing_key()
        self.webhook = WebhookServer(
            SignatureVerifier(signing_key),
            self.submit_deposit,
            host=self._cfg.server.host,
            port=self._cfg.server.port,
            route_path=self._cfg.server.route_path,
        )

        self._running = True
        await self.store.log_activity("daemon_started", "Daemon started")

        try:
            await self.webhook.start()
            await self.resume_pending()
            await self._main_loop()
        finally:
            await self._shutdown()

    async def stop(self) -> None:
        """Signal the daemon to stop gracefully."""
        log.info("Stop requested")
        self._running = False
        self._stop_event.set()

    async def _resolve_signing_key(self) -> str:
        if self._cfg.notify.signing_key:
            return self._cfg.notify.signing_key
        if not (self._cfg.notify.auth_token and self._cfg.server.public_url):
            raise ConfigError(
                "no webhook signing key: set notify.signing_key, or notify.auth_token"
                " and server.public_url to register a webhook"
            )
        client = AlchemyNotifyClient(self._cfg.notify.auth_token, timeout=self._cfg.timeouts.rpc)
        return await client.create_address_activity_webhook(
            self._cfg.webhook_url,
            [self.ctx.custody_address],
            network=self._cfg.notify.network,
        )

    # ── Task supervision ───────────────────────────────────

    def _spawn(self, coro: Coroutine, name: str, unwrap: bool = False) -> asyncio.Task:
        task = asyncio.create_task(coro, name=name)
        self._tasks.add(task)
        if unwrap:
            self._unwrap_tasks.add(task)
        task.add_done_callback(self._task_done)
        return task

    def _task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        self._unwrap_tasks.discard(task)
        if task.cancelled():
            log.info("Task %s cancelled", task.get_name())
            return
        exc = task.exception()
        if exc is not None:
            log.error("Task %s failed: %s", task.get_name(), exc, exc_info=exc)

    def submit_deposit(self, notification: DepositNotification) -> asyncio.Task:
        """Schedule a wrap for one notification activity (webhook callback)."""
        return self._spawn(
            self.wrap_relay.handle(notification),
            name=f"wrap:{notification.tx_hash}:{notification.log_index}",
        )

    async def submit_burn(self, entry: BurnLogEvent) -> asyncio.Task | None:
        """Claim a burn log, then schedule its finality wait and release."""
        detected = await self.unwrap_relay.detect(entry)
        if isinstance(detected, UnwrapOutcome):
            return None
        return self._spawn(
            self.unwrap_relay.process(detected),
            name=f"unwrap:{detected.origin_tx_hash}:{detected.log_index}",
            unwrap=True,
        )

    async def resume_pending(self) -> int:
        """Restart finality waits for unwraps interrupted by the last shutdown.

        Requests that reached ``finalized`` may have broadcast a release and
        are left for manual review instead.
        """
        pending = await self.store.get_requests(
            Direction.BURN_TO_UNWRAP, RESUMABLE_UNWRAP_STATUSES,
        )
        for record in pending:
            self._spawn(
                self.unwrap_relay.resume(record),
                name=f"unwrap:{record.tx_hash}:{record.log_index}",
                unwrap=True,
            )

        stuck = await self.store.get_requests(
            Direction.BURN_TO_UNWRAP, [UnwrapStatus.FINALIZED.value],
        )
        for record in stuck:
            log.warning(
                "Unwrap of token %d (tx=%s) was interrupted during release, check manually",
                record.token_id, record.tx_hash,
            )

        if pending:
            log.info("Resumed %d pending unwrap(s)", len(pending))
        return len(pending)

    # ── Main loop ──────────────────────────────────────────

    async def _main_loop(self) -> None:
        """Poll unwrap logs and hand each one to its own task."""
        while self._running:
            try:
                # 1. Poll for new logs
                entries = await self.poller.poll()

                # 2. Claim each before the cursor moves past it
                for entry in entries:
                    await self.submit_burn(entry)

                # 3. Advance and save cursor
                block = self.poller.commit()
                if block is not None:
                    await self.store.set_cursor(CURSOR_NAME, block)

                # 4. Wait before next poll
                await self._sleep(self._cfg.poll_interval)

            except asyncio.CancelledError:
                log.info("Main loop cancelled")
                break
            except Exception as exc:
                log.error("Main loop error: %s", exc, exc_info=True)
                await self.store.log_activity("error", str(exc))
                await self._sleep(self._cfg.error_backoff)

    async def _sleep(self, seconds: float) -> None:
        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            pass

    async def _shutdown(self) -> None:
        if self.webhook:
            await self.webhook.stop()

        # Unwraps short of release are abandoned; they resume on next start
        releasing = self.unwrap_relay.releasing_tasks
        pending = [t for t in self._unwrap_tasks if t not in releasing and not t.done()]
        for task in pending:
            task.cancel()
        if pending:
            log.info("Cancelled %d unwrap(s) awaiting finality", len(pending))

        # Everything else is bounded by RPC and receipt timeouts
        if self._tasks:
            log.info("Waiting for %d in-flight request(s)", len(self._tasks))
            await asyncio.gather(*self._tasks, return_exceptions=True)

        await self.store.log_activity("daemon_stopped", "Daemon stopped")
        await self.store.close()
        await self.ctx.close()
        log.info("Daemon shut down cleanly")


async def run_daemon(cfg: RelayConfig) -> None:
    """Entry point for running the daemon."""
    daemon = RelayDaemon(cfg)

    loop = asyncio.get_running_loop()

    def _signal_handler():
        asyncio.ensure_future(daemon.stop())

    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, _signal_handler)
        except NotImplementedError:
            # Windows doesn't support add_signal_handler
            pass

    await daemon.start()
