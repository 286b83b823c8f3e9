"""StateStore protocol - durable dedup ledger and relay state."""

from __future__ import annotations

from typing import Protocol

from nft_relay.models.events import BridgeEvent, Direction
from nft_relay.models.records import ActivityRecord, FeeQuote, RequestRecord


class StateStore(Protocol):
    """Persists relay state for crash recovery and duplicate suppression."""

    # ── Lifecycle ──────────────────────────────────────────

    async def initialize(self) -> None:
        """Create tables if they don't exist."""
        ...

    async def close(self) -> None:
        ...

    # ── Cursor ─────────────────────────────────────────────

    async def get_cursor(self, name: str) -> int | None:
        ...

    async def set_cursor(self, name: str, block: int) -> None:
        ...

    # ── Requests (dedup ledger) ────────────────────────────

    async def claim_request(self, event: BridgeEvent, status: str) -> bool:
        """Record a new request. False if this event was already claimed."""
        ...

    async def get_request(
        self, direction: Direction, tx_hash: str, log_index: int
    ) -> RequestRecord | None:
        ...

    async def update_request(
        self,
        direction: Direction,
        tx_hash: str,
        log_index: int,
        status: str,
        error: str | None = None,
        token_uri: str | None = None,
        confirmations: int | None = None,
        result_tx_hash: str | None = None,
    ) -> None:
        ...

    async def get_requests(
        self, direction: Direction | None = None, statuses: list[str] | None = None
    ) -> list[RequestRecord]:
        ...

    # ── Fee quotes ─────────────────────────────────────────

    async def save_fee_quote(self, quote: FeeQuote, tx_hash: str | None) -> None:
        ...

    async def get_latest_fee_quote(self) -> FeeQuote | None:
        ...

    # ── Activity log ───────────────────────────────────────

    async def log_activity(
        self,
        event_type: str,
        message: str,
        tx_hash: str | None = None,
        token_id: int | None = None,
    ) -> None:
        ...

    async def get_recent_activity(self, limit: int = 50) -> list[ActivityRecord]:
        ...
