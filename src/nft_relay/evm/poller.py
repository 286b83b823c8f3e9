"""Unwrap log poller - scans the destination bridge for burn/unwrap logs."""

from __future__ import annotations

import logging

from nft_relay.interfaces.chain import DestinationChain
from nft_relay.models.events import BurnLogEvent

log = logging.getLogger(__name__)

# Upper bound on blocks per eth_getLogs request; most providers cap ranges
MAX_BLOCK_RANGE = 2_000


class BurnLogPoller:
    """Polls eth_getLogs for the unwrap event over successive block ranges.

    The cursor is the last block whose logs have all been handed off.
    poll() only scans: the range it returned is re-scanned on the next
    call until commit() moves the cursor past it. Logs are not gated on
    confirmations here: each event is handed to UnwrapRelay which waits for
    finality itself, so one slow event never holds back the cursor.
    """

    def __init__(
        self,
        chain: DestinationChain,
        start_block: int | None = None,
        max_block_range: int = MAX_BLOCK_RANGE,
    ) -> None:
        self._chain = chain
        self._cursor: int | None = None
        self._scanned: int | None = None
        self._start_block = start_block
        self._max_block_range = max_block_range

    @property
    def cursor(self) -> int | None:
        return self._cursor

    def set_cursor(self, block: int) -> None:
        """Restore cursor from persisted state."""
        self._cursor = block
        self._scanned = None

    async def poll(self) -> list[BurnLogEvent]:
        """Fetch unwrap logs from the block after the cursor up to the chain head.

        On first call (no cursor), starts at start_block or the current head.
        """
        try:
            head = await self._chain.block_number()
        except Exception as exc:
            log.error("Log poll failed reading head: %s", exc)
            raise

        if self._cursor is None:
            if self._start_block is None:
                # Pinned so an uncommitted first range is scanned again
                self._start_block = head
            log.info("No cursor, starting from block %d", self._start_block)
            from_block = self._start_block
        else:
            from_block = self._cursor + 1

        self._scanned = None
        if from_block > head:
            return []

        to_block = min(head, from_block + self._max_block_range - 1)
        try:
            events = await self._chain.get_burn_logs(from_block, to_block)
        except Exception as exc:
            log.error("Log poll failed for blocks %d-%d: %s", from_block, to_block, exc)
            raise

        self._scanned = to_block
        events.sort(key=lambda e: (e.block_number, e.log_index))

        if events:
            log.info("Polled %d unwrap logs (blocks %d-%d)", len(events), from_block, to_block)

        return events

    def commit(self) -> int | None:
        """Move the cursor past the last polled range and return it."""
        if self._scanned is not None:
            self._cursor = self._scanned
            self._scanned = None
        return self._cursor

    async def get_cursor(self) -> int | None:
        return self._cursor
