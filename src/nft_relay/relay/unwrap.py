"""UnwrapRelay - destination burn log -> finality wait -> origin release -> fee refresh."""

from __future__ import annotations

import asyncio
import logging
import time

from eth_abi import decode as abi_decode
from eth_utils import to_checksum_address

from nft_relay.context import BridgeContext
from nft_relay.evm.abis import UNWRAP_EVENT_TYPES
from nft_relay.interfaces.store import StateStore
from nft_relay.models.config import CONFIRMATION_THRESHOLD
from nft_relay.models.events import BridgeEvent, BurnLogEvent, Direction
from nft_relay.models.records import (
    RequestRecord,
    UnwrapError,
    UnwrapOutcome,
    UnwrapStatus,
)
from nft_relay.relay.fees import FeeOracle

log = logging.getLogger(__name__)

DIRECTION = Direction.BURN_TO_UNWRAP


class DecodeError(ValueError):
    pass


def decode_unwrap_log(entry: BurnLogEvent) -> BridgeEvent:
    """Decode ``(originRecipient, burner, tokenId)`` from an unwrap log payload."""
    try:
        recipient, burner, token_id = abi_decode(UNWRAP_EVENT_TYPES, entry.data)
    except Exception as exc:
        raise DecodeError(f"cannot decode unwrap payload: {exc}") from exc
    return BridgeEvent(
        direction=DIRECTION,
        origin_tx_hash=entry.tx_hash.lower(),
        log_index=entry.log_index,
        contract_address=entry.address,
        from_address=to_checksum_address(burner),
        to_address=to_checksum_address(recipient),
        token_id=int(token_id),
        block_number=entry.block_number,
    )


class UnwrapRelay:
    """Releases custodied tokens for burn logs once they are final.

    Each handle() or process() call is meant to run in its own task. The
    finality wait only suspends that task, so other burn events keep flowing.
    Cancelling a task during the wait leaves the request persisted as
    ``awaiting_finality``; resume() picks it up on the next start.
    """

    def __init__(
        self,
        ctx: BridgeContext,
        store: StateStore,
        fee_oracle: FeeOracle,
        confirmations: int = CONFIRMATION_THRESHOLD,
        poll_interval: float = 12.0,
        finality_timeout: float | None = None,
        rpc_timeout: float = 30.0,
    ) -> None:
        self._ctx = ctx
        self._store = store
        self._fee_oracle = fee_oracle
        self._threshold = confirmations
        self._poll_interval = poll_interval
        self._finality_timeout = finality_timeout
        self._rpc_timeout = rpc_timeout
        self._waiting: set[asyncio.Task] = set()
        self._releasing: set[asyncio.Task] = set()

    @property
    def threshold(self) -> int:
        return self._threshold

    @property
    def waiting_tasks(self) -> set[asyncio.Task]:
        """Tasks currently suspended in the finality gate."""
        return set(self._waiting)

    @property
    def releasing_tasks(self) -> set[asyncio.Task]:
        """Tasks past the finality gate, releasing or refreshing the fee.

        Any other unwrap task can be cancelled and resumed later.
        """
        return set(self._releasing)

    async def handle(self, entry: BurnLogEvent) -> UnwrapOutcome:
        """Run one burn log through every step, finality wait included."""
        detected = await self.detect(entry)
        if isinstance(detected, UnwrapOutcome):
            return detected
        return await self.process(detected)

    async def detect(self, entry: BurnLogEvent) -> BridgeEvent | UnwrapOutcome:
        """Decode and claim a burn log.

        Returns the claimed event, or a terminal outcome for undecodable
        and duplicate logs. Once this returns an event the request is
        durable, so the log cursor may advance past it.
        """
        # 1. Decode
        try:
            event = decode_unwrap_log(entry)
        except DecodeError as exc:
            log.error("Dropping unwrap log %s:%d: %s", entry.tx_hash, entry.log_index, exc)
            await self._store.log_activity(
                UnwrapError.DECODE_FAILED.value, str(exc), tx_hash=entry.tx_hash,
            )
            return UnwrapOutcome(
                status=UnwrapStatus.FAILED,
                error=UnwrapError.DECODE_FAILED,
                detail=str(exc),
            )

        # 2. Dedup
        claimed = await self._store.claim_request(event, UnwrapStatus.DETECTED.value)
        if not claimed:
            log.info(
                "Duplicate unwrap log %s:%d, already handled",
                event.origin_tx_hash, event.log_index,
            )
            return UnwrapOutcome(
                status=UnwrapStatus.DUPLICATE,
                token_id=event.token_id,
                recipient=event.to_address,
            )

        await self._store.log_activity(
            "unwrap_detected",
            f"Burn of token {event.token_id} for {event.to_address}",
            tx_hash=event.origin_tx_hash,
            token_id=event.token_id,
        )
        return event

    async def resume(self, record: RequestRecord) -> UnwrapOutcome:
        """Continue a persisted request that was interrupted before release."""
        event = BridgeEvent(
            direction=DIRECTION,
            origin_tx_hash=record.tx_hash,
            log_index=record.log_index,
            contract_address=record.contract_address,
            from_address=record.from_address,
            to_address=record.to_address,
            token_id=record.token_id,
            block_number=record.block_number,
        )
        log.info(
            "Resuming unwrap of token %d (tx=%s, status=%s)",
            event.token_id, event.origin_tx_hash, record.status,
        )
        return await self.process(event)

    async def process(self, event: BridgeEvent) -> UnwrapOutcome:
        """Wait for finality, release, then refresh the fee."""
        # 3. Initiator, for log context only
        sender = await self._initiator(event.origin_tx_hash)
        log.info(
            "Unwrap: token=%d recipient=%s burner=%s sender=%s tx=%s",
            event.token_id, event.to_address, event.from_address,
            sender or "?", event.origin_tx_hash,
        )

        # 4. Finality gate
        await self._store.update_request(
            DIRECTION, event.origin_tx_hash, event.log_index,
            UnwrapStatus.AWAITING_FINALITY.value,
        )
        confirmations = await self._await_finality(event)
        if confirmations < self._threshold:
            detail = (
                f"only {confirmations}/{self._threshold} confirmations "
                f"after {self._finality_timeout}s"
            )
            log.error("Unwrap of token %d not final: %s", event.token_id, detail)
            return await self._fail(
                event, UnwrapError.FINALITY_TIMEOUT, detail, confirmations,
            )

        # Past the gate, the task runs to completion even during shutdown
        task = asyncio.current_task()
        if task is not None:
            self._releasing.add(task)
        try:
            return await self._release(event, confirmations)
        finally:
            if task is not None:
                self._releasing.discard(task)

    async def _release(self, event: BridgeEvent, confirmations: int) -> UnwrapOutcome:
        await self._store.update_request(
            DIRECTION, event.origin_tx_hash, event.log_index,
            UnwrapStatus.FINALIZED.value, confirmations=confirmations,
        )

        # 5. Release
        result = await self._ctx.origin.release(
            self._ctx.collection_address,
            self._ctx.custody_address,
            event.to_address,
            event.token_id,
        )
        if not result.success:
            # Burned on destination but not released: needs manual remediation
            log.critical(
                "Release of token %d to %s FAILED (burn tx=%s): %s",
                event.token_id, event.to_address, event.origin_tx_hash, result.error,
            )
            return await self._fail(
                event, UnwrapError.RELEASE_FAILED, result.error or "unknown",
                confirmations, tx_hash=result.tx_hash,
            )

        await self._store.update_request(
            DIRECTION, event.origin_tx_hash, event.log_index,
            UnwrapStatus.RELEASED.value, result_tx_hash=result.tx_hash,
        )
        await self._store.log_activity(
            "release_confirmed",
            f"Released token {event.token_id} to {event.to_address}",
            tx_hash=result.tx_hash,
            token_id=event.token_id,
        )

        # 6. Fee refresh (best effort)
        outcome = UnwrapOutcome(
            status=UnwrapStatus.RELEASED,
            token_id=event.token_id,
            recipient=event.to_address,
            confirmations=confirmations,
            release_tx_hash=result.tx_hash,
        )
        try:
            quote = await self._fee_oracle.refresh(
                self._ctx.origin, self._ctx.destination, self._store,
            )
        except Exception as exc:
            log.error("Fee refresh raised after release of token %d: %s", event.token_id, exc)
            quote = None

        if quote is not None:
            await self._store.update_request(
                DIRECTION, event.origin_tx_hash, event.log_index,
                UnwrapStatus.FEE_REFRESHED.value,
            )
            outcome.status = UnwrapStatus.FEE_REFRESHED
            outcome.fee_wei = quote.computed_fee_wei
        return outcome

    async def _initiator(self, tx_hash: str) -> str | None:
        try:
            return await asyncio.wait_for(
                self._ctx.destination.transaction_sender(tx_hash),
                timeout=self._rpc_timeout,
            )
        except Exception as exc:
            log.warning("Could not resolve sender of %s: %s", tx_hash, exc)
            return None

    async def _await_finality(self, event: BridgeEvent) -> int:
        """Poll confirmations until the threshold or the finality timeout.

        Read errors are treated as transient and polled through.
        """
        task = asyncio.current_task()
        if task is not None:
            self._waiting.add(task)
        deadline = (
            time.monotonic() + self._finality_timeout
            if self._finality_timeout is not None else None
        )
        confirmations = 0
        try:
            while True:
                try:
                    confirmations = await asyncio.wait_for(
                        self._ctx.destination.confirmations(event.origin_tx_hash),
                        timeout=self._rpc_timeout,
                    )
                except Exception as exc:
                    log.warning(
                        "Confirmation check failed for %s: %s", event.origin_tx_hash, exc,
                    )
                else:
                    await self._store.update_request(
                        DIRECTION, event.origin_tx_hash, event.log_index,
                        UnwrapStatus.AWAITING_FINALITY.value, confirmations=confirmations,
                    )
                    if confirmations >= self._threshold:
                        log.info(
                            "Burn %s final with %d confirmations",
                            event.origin_tx_hash, confirmations,
                        )
                        return confirmations
                    log.debug(
                        "Burn %s at %d/%d confirmations",
                        event.origin_tx_hash, confirmations, self._threshold,
                    )

                if deadline is not None and time.monotonic() >= deadline:
                    return confirmations
                await asyncio.sleep(self._poll_interval)
        finally:
            if task is not None:
                self._waiting.discard(task)

    async def _fail(
        self,
        event: BridgeEvent,
        error: UnwrapError,
        detail: str,
        confirmations: int,
        tx_hash: str | None = None,
    ) -> UnwrapOutcome:
        await self._store.update_request(
            DIRECTION, event.origin_tx_hash, event.log_index,
            UnwrapStatus.FAILED.value, error=error.value, result_tx_hash=tx_hash,
        )
        await self._store.log_activity(
            error.value,
            f"Unwrap of token {event.token_id} for {event.to_address} failed: {detail}",
            tx_hash=tx_hash or event.origin_tx_hash,
            token_id=event.token_id,
        )
        return UnwrapOutcome(
            status=UnwrapStatus.FAILED,
            token_id=event.token_id,
            recipient=event.to_address,
            confirmations=confirmations,
            release_tx_hash=tx_hash,
            error=error,
            detail=detail,
        )
