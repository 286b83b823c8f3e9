"""Mock implementations of the chain clients and poller."""

from __future__ import annotations

import asyncio

from nft_relay.models.events import BurnLogEvent
from nft_relay.models.records import TxResult

ORIGIN_SIGNER = "0x1111111111111111111111111111111111111111"
DESTINATION_SIGNER = "0x2222222222222222222222222222222222222222"


def _fake_hash(prefix: str, n: int) -> str:
    return "0x" + f"{prefix}{n:x}".rjust(64, "0")


class MockOriginChain:
    """Implements OriginChain protocol."""

    def __init__(
        self,
        token_uris: dict[int, str] | None = None,
        gas_price_wei: int = 20_000_000_000,
        release_succeeds: bool = True,
        address: str = ORIGIN_SIGNER,
    ) -> None:
        self.token_uris = token_uris if token_uris is not None else {}
        self.gas_price_wei = gas_price_wei
        self.release_succeeds = release_succeeds
        self.token_uri_error: Exception | None = None
        self.gas_price_error: Exception | None = None
        self._address = address
        self.token_uri_calls: list[tuple[str, int]] = []
        self.release_calls: list[tuple[str, str, str, int]] = []

    @property
    def address(self) -> str:
        return self._address

    async def token_uri(self, collection: str, token_id: int) -> str:
        self.token_uri_calls.append((collection, token_id))
        if self.token_uri_error is not None:
            raise self.token_uri_error
        return self.token_uris.get(token_id, f"ipfs://meta/{token_id}.json")

    async def gas_price(self) -> int:
        if self.gas_price_error is not None:
            raise self.gas_price_error
        return self.gas_price_wei

    async def release(
        self, collection: str, custody: str, recipient: str, token_id: int
    ) -> TxResult:
        self.release_calls.append((collection, custody, recipient, token_id))
        if not self.release_succeeds:
            return TxResult(
                success=False,
                tx_hash=_fake_hash("dead", len(self.release_calls)),
                error="reverted",
            )
        return TxResult(
            success=True,
            tx_hash=_fake_hash("a11", len(self.release_calls)),
            block_number=500,
        )


class MockDestinationChain:
    """Implements DestinationChain protocol.

    Confirmation depth per tx hash can be scripted as a fixed number or as
    a list consumed one value per call (the last value repeats).
    """

    def __init__(
        self,
        wrap_succeeds: bool = True,
        publish_succeeds: bool = True,
        head: int = 1_000,
        address: str = DESTINATION_SIGNER,
    ) -> None:
        self.wrap_succeeds = wrap_succeeds
        self.publish_succeeds = publish_succeeds
        self.head = head
        self._address = address
        self.confirmation_script: dict[str, list[int]] = {}
        self.default_confirmations = 0
        self.senders: dict[str, str] = {}
        self.logs: list[BurnLogEvent] = []
        self.wrap_calls: list[tuple[str, int, str]] = []
        self.publish_calls: list[int] = []
        self.confirmation_calls: list[str] = []
        self.log_queries: list[tuple[int, int]] = []

    @property
    def address(self) -> str:
        return self._address

    def set_confirmations(self, tx_hash: str, *depths: int) -> None:
        """Test helper: script the confirmation depth reported for a tx."""
        self.confirmation_script[tx_hash.lower()] = list(depths)

    async def wrap(self, collection: str, token_id: int, token_uri: str) -> TxResult:
        self.wrap_calls.append((collection, token_id, token_uri))
        if not self.wrap_succeeds:
            return TxResult(success=False, error="broadcast_failed: insufficient funds")
        return TxResult(
            success=True,
            tx_hash=_fake_hash("b0b", len(self.wrap_calls)),
            block_number=self.head,
        )

    async def publish_fee(self, fee_wei: int) -> TxResult:
        self.publish_calls.append(fee_wei)
        if not self.publish_succeeds:
            return TxResult(success=False, error="reverted")
        return TxResult(
            success=True,
            tx_hash=_fake_hash("fee", len(self.publish_calls)),
            block_number=self.head,
        )

    async def block_number(self) -> int:
        return self.head

    async def confirmations(self, tx_hash: str) -> int:
        self.confirmation_calls.append(tx_hash)
        # Yield so concurrent waits interleave like real RPC calls
        await asyncio.sleep(0)
        script = self.confirmation_script.get(tx_hash.lower())
        if not script:
            return self.default_confirmations
        if len(script) > 1:
            return script.pop(0)
        return script[0]

    async def transaction_sender(self, tx_hash: str) -> str | None:
        return self.senders.get(tx_hash.lower())

    async def get_burn_logs(self, from_block: int, to_block: int) -> list[BurnLogEvent]:
        self.log_queries.append((from_block, to_block))
        return [e for e in self.logs if from_block <= e.block_number <= to_block]


class MockPoller:
    """Implements LogPoller protocol. Returns pre-loaded log lists."""

    def __init__(self) -> None:
        self.logs: list[BurnLogEvent] = []
        self._cursor: int | None = None
        self._scanned: int | None = None

    async def poll(self) -> list[BurnLogEvent]:
        result = list(self.logs)
        self.logs.clear()
        if result:
            self._scanned = max(e.block_number for e in result)
        return result

    def commit(self) -> int | None:
        if self._scanned is not None:
            self._cursor = self._scanned
            self._scanned = None
        return self._cursor

    async def get_cursor(self) -> int | None:
        return self._cursor

    def set_cursor(self, block: int) -> None:
        self._cursor = block

    def enqueue(self, *logs: BurnLogEvent) -> None:
        """Test helper: stage logs for next poll."""
        self.logs.extend(logs)
