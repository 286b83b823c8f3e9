"""Destination chain client - wraps, fee updates and unwrap log queries."""

from __future__ import annotations

import logging
from typing import Any

from web3 import AsyncWeb3, Web3

from nft_relay.evm.abis import WRAPPER_ABI
from nft_relay.evm.client import EvmChain
from nft_relay.models.config import DEFAULT_UNWRAP_EVENT
from nft_relay.models.events import BurnLogEvent
from nft_relay.models.records import TxResult

log = logging.getLogger(__name__)


def event_topic(signature: str) -> str:
    """topic0 for an event signature such as ``Foo(address,uint256)``."""
    return Web3.to_hex(Web3.keccak(text=signature))


def _to_bytes(value: Any) -> bytes:
    if isinstance(value, (bytes, bytearray)):
        return bytes(value)
    return bytes.fromhex(str(value).removeprefix("0x"))


class DestinationChainClient(EvmChain):
    """Implements the DestinationChain protocol over web3."""

    def __init__(
        self,
        web3: AsyncWeb3,
        account,
        name: str,
        rpc_timeout: float = 30.0,
        receipt_timeout: float = 180.0,
        bridge_address: str = "",
        unwrap_event_signature: str = DEFAULT_UNWRAP_EVENT,
    ) -> None:
        super().__init__(web3, account, name, rpc_timeout, receipt_timeout)
        self._bridge_address = Web3.to_checksum_address(bridge_address)
        self._bridge = web3.eth.contract(address=self._bridge_address, abi=WRAPPER_ABI)
        self._unwrap_topic = event_topic(unwrap_event_signature)

    @property
    def bridge_address(self) -> str:
        return self._bridge_address

    async def wrap(self, collection: str, token_id: int, token_uri: str) -> TxResult:
        func = self._bridge.functions.wrapNFT(
            Web3.to_checksum_address(collection), token_id, token_uri,
        )
        return await self.transact(func, f"wrapNFT({token_id})")

    async def publish_fee(self, fee_wei: int) -> TxResult:
        func = self._bridge.functions.setUnwrapFee(fee_wei)
        return await self.transact(func, f"setUnwrapFee({fee_wei})")

    async def get_burn_logs(self, from_block: int, to_block: int) -> list[BurnLogEvent]:
        logs = await self._read(self._web3.eth.get_logs({
            "address": self._bridge_address,
            "topics": [self._unwrap_topic],
            "fromBlock": from_block,
            "toBlock": to_block,
        }))
        return [
            BurnLogEvent(
                tx_hash=Web3.to_hex(entry["transactionHash"]),
                log_index=entry["logIndex"],
                block_number=entry["blockNumber"],
                address=entry["address"],
                data=_to_bytes(entry["data"]),
            )
            for entry in logs
        ]
