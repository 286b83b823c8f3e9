"""LogPoller protocol - polls the destination chain for unwrap logs."""

from __future__ import annotations

from typing import Protocol

from nft_relay.models.events import BurnLogEvent


class LogPoller(Protocol):
    """Polls for new unwrap logs from the destination bridge contract."""

    async def poll(self) -> list[BurnLogEvent]:
        """Fetch new logs since last cursor, without advancing it."""
        ...

    def commit(self) -> int | None:
        """Advance the cursor past the last polled range; returns the cursor."""
        ...

    async def get_cursor(self) -> int | None:
        """Get the last fully handled block for resumption."""
        ...

    def set_cursor(self, block: int) -> None:
        ...
