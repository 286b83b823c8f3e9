"""Origin chain client - token metadata reads, gas price, custody releases."""

from __future__ import annotations

import logging

from web3 import Web3

from nft_relay.evm.abis import ERC721_ABI
from nft_relay.evm.client import EvmChain
from nft_relay.models.records import TxResult

log = logging.getLogger(__name__)


class OriginChainClient(EvmChain):
    """Implements the OriginChain protocol over web3."""

    def _collection(self, address: str):
        return self._web3.eth.contract(
            address=Web3.to_checksum_address(address), abi=ERC721_ABI,
        )

    async def token_uri(self, collection: str, token_id: int) -> str:
        return await self._read(
            self._collection(collection).functions.tokenURI(token_id).call()
        )

    async def release(
        self, collection: str, custody: str, recipient: str, token_id: int
    ) -> TxResult:
        log.info(
            "Releasing token %d of %s from %s to %s",
            token_id, collection, custody, recipient,
        )
        func = self._collection(collection).functions.safeTransferFrom(
            Web3.to_checksum_address(custody),
            Web3.to_checksum_address(recipient),
            token_id,
        )
        return await self.transact(func, f"release({token_id})")
