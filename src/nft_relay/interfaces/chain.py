"""Chain client protocols - what the relays need from each ledger."""

from __future__ import annotations

from typing import Protocol

from nft_relay.models.events import BurnLogEvent
from nft_relay.models.records import TxResult


class OriginChain(Protocol):
    """Origin chain: deposits sit in custody here and are released back."""

    @property
    def address(self) -> str:
        """Address of the signing account."""
        ...

    async def token_uri(self, collection: str, token_id: int) -> str:
        """Read-only tokenURI(tokenId) call. Raises on failure."""
        ...

    async def gas_price(self) -> int:
        """Current gas price in wei. Raises on failure."""
        ...

    async def release(
        self, collection: str, custody: str, recipient: str, token_id: int
    ) -> TxResult:
        """Transfer a custodied token to its recipient and await the receipt."""
        ...


class DestinationChain(Protocol):
    """Destination chain: wrapped tokens are minted and burned here."""

    @property
    def address(self) -> str:
        ...

    async def wrap(self, collection: str, token_id: int, token_uri: str) -> TxResult:
        """Submit wrapNFT() on the bridge contract and await the receipt."""
        ...

    async def publish_fee(self, fee_wei: int) -> TxResult:
        """Submit the unwrap fee parameter update and await the receipt."""
        ...

    async def block_number(self) -> int:
        ...

    async def confirmations(self, tx_hash: str) -> int:
        """Blocks on top of (and including) the tx's inclusion block, 0 if unmined."""
        ...

    async def transaction_sender(self, tx_hash: str) -> str | None:
        ...

    async def get_burn_logs(self, from_block: int, to_block: int) -> list[BurnLogEvent]:
        ...
