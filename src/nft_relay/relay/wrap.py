"""WrapRelay - origin deposit notification -> destination wrap mint."""

from __future__ import annotations

import asyncio
import logging

from nft_relay.context import BridgeContext
from nft_relay.interfaces.store import StateStore
from nft_relay.models.events import DepositNotification, Direction
from nft_relay.models.records import WrapError, WrapOutcome, WrapStatus

log = logging.getLogger(__name__)

DIRECTION = Direction.DEPOSIT_TO_WRAP


class WrapRelay:
    """Turns one authenticated deposit notification into at most one wrap.

    Steps:
    1. Reject anything that is not a single-token transfer into custody
    2. Claim the (tx hash, log index) key in the ledger; duplicates stop here
    3. Read tokenURI from the origin collection
    4. Submit wrapNFT() on the destination bridge and await inclusion

    Failures are terminal for the request and recorded in the ledger.
    """

    def __init__(
        self, ctx: BridgeContext, store: StateStore, rpc_timeout: float = 30.0
    ) -> None:
        self._ctx = ctx
        self._store = store
        self._rpc_timeout = rpc_timeout

    async def handle(self, notification: DepositNotification) -> WrapOutcome:
        # 1. Only single-token deposits into custody are wrappable
        reason = self._unsupported_reason(notification)
        if reason:
            log.info("Ignoring activity %s: %s", notification.tx_hash, reason)
            await self._store.log_activity(
                "wrap_unsupported",
                f"Ignored activity: {reason}",
                tx_hash=notification.tx_hash,
                token_id=notification.token_id,
            )
            return WrapOutcome(
                status=WrapStatus.FAILED,
                token_id=notification.token_id,
                error=WrapError.UNSUPPORTED,
                detail=reason,
            )

        event = notification.to_bridge_event()
        log.info(
            "Deposit: contract=%s token=%d from=%s tx=%s",
            event.contract_address, event.token_id, event.from_address,
            event.origin_tx_hash,
        )

        # 2. Dedup
        claimed = await self._store.claim_request(event, WrapStatus.VERIFIED.value)
        if not claimed:
            log.info(
                "Duplicate deposit %s:%d, already handled",
                event.origin_tx_hash, event.log_index,
            )
            await self._store.log_activity(
                "wrap_duplicate",
                f"Duplicate delivery of {event.origin_tx_hash}:{event.log_index}",
                tx_hash=event.origin_tx_hash,
                token_id=event.token_id,
            )
            return WrapOutcome(status=WrapStatus.DUPLICATE, token_id=event.token_id)

        await self._store.log_activity(
            "deposit_received",
            f"Deposit of token {event.token_id} from {event.from_address}",
            tx_hash=event.origin_tx_hash,
            token_id=event.token_id,
        )

        # 3. Metadata
        try:
            token_uri = await asyncio.wait_for(
                self._ctx.origin.token_uri(event.contract_address, event.token_id),
                timeout=self._rpc_timeout,
            )
        except Exception as exc:
            detail = str(exc) or type(exc).__name__
            log.error("tokenURI(%d) failed on %s: %s", event.token_id, event.contract_address, detail)
            return await self._fail(event, WrapError.METADATA_FETCH_FAILED, detail)

        await self._store.update_request(
            DIRECTION, event.origin_tx_hash, event.log_index,
            WrapStatus.METADATA_FETCHED.value, token_uri=token_uri,
        )

        # 4. Submit wrap
        await self._store.update_request(
            DIRECTION, event.origin_tx_hash, event.log_index, WrapStatus.SUBMITTED.value,
        )
        result = await self._ctx.destination.wrap(
            event.contract_address, event.token_id, token_uri,
        )
        if not result.success:
            outcome = await self._fail(
                event, WrapError.SUBMISSION_FAILED, result.error or "unknown",
                tx_hash=result.tx_hash,
            )
            outcome.token_uri = token_uri
            return outcome

        await self._store.update_request(
            DIRECTION, event.origin_tx_hash, event.log_index,
            WrapStatus.CONFIRMED.value, result_tx_hash=result.tx_hash,
        )
        await self._store.log_activity(
            "wrap_confirmed",
            f"Wrapped token {event.token_id} of {event.contract_address}",
            tx_hash=result.tx_hash,
            token_id=event.token_id,
        )
        log.info("Bridged token %d (tx=%s)", event.token_id, result.tx_hash)
        return WrapOutcome(
            status=WrapStatus.CONFIRMED,
            token_id=event.token_id,
            token_uri=token_uri,
            tx_hash=result.tx_hash,
        )

    def _unsupported_reason(self, n: DepositNotification) -> str | None:
        if n.category != "token":
            return f"category {n.category!r} is not a token transfer"
        if n.token_id is None:
            return "no ERC-721 token id"
        if not n.tx_hash:
            return "no transaction hash"
        if not n.contract_address:
            return "no token contract"
        if not self._ctx.is_custody(n.to_address):
            return "transfer is not into custody"
        return None

    async def _fail(
        self, event, error: WrapError, detail: str, tx_hash: str | None = None
    ) -> WrapOutcome:
        await self._store.update_request(
            DIRECTION, event.origin_tx_hash, event.log_index,
            WrapStatus.FAILED.value, error=error.value, result_tx_hash=tx_hash,
        )
        await self._store.log_activity(
            error.value,
            f"Wrap of token {event.token_id} failed: {detail}",
            tx_hash=tx_hash or event.origin_tx_hash,
            token_id=event.token_id,
        )
        return WrapOutcome(
            status=WrapStatus.FAILED,
            token_id=event.token_id,
            tx_hash=tx_hash,
            error=error,
            detail=detail,
        )
