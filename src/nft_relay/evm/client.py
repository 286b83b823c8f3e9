"""Shared EVM chain client: bounded reads and serialized signed submissions."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, TypeVar

from eth_account import Account
from eth_account.signers.local import LocalAccount
from web3 import AsyncWeb3, Web3
from web3.contract.async_contract import AsyncContractFunction
from web3.exceptions import TransactionNotFound

from nft_relay.models.records import TxResult

log = logging.getLogger(__name__)

T = TypeVar("T")


class EvmChain:
    """One ledger plus the single account that signs on it.

    Every read is bounded by ``rpc_timeout``. Submissions from the account
    go through one lock around nonce -> sign -> broadcast, so concurrent
    relays never race on the account nonce. Receipt waits happen outside
    the lock.
    """

    def __init__(
        self,
        web3: AsyncWeb3,
        account: LocalAccount,
        name: str,
        rpc_timeout: float = 30.0,
        receipt_timeout: float = 180.0,
    ) -> None:
        self._web3 = web3
        self._account = account
        self._name = name
        self._rpc_timeout = rpc_timeout
        self._receipt_timeout = receipt_timeout
        self._submit_lock = asyncio.Lock()
        self._chain_id: int | None = None

    @classmethod
    def from_rpc(
        cls,
        rpc_url: str,
        private_key: str,
        name: str,
        rpc_timeout: float = 30.0,
        receipt_timeout: float = 180.0,
        **kwargs: Any,
    ):
        web3 = AsyncWeb3(
            AsyncWeb3.AsyncHTTPProvider(rpc_url, request_kwargs={"timeout": rpc_timeout})
        )
        account: LocalAccount = Account.from_key(private_key)
        return cls(
            web3, account, name,
            rpc_timeout=rpc_timeout, receipt_timeout=receipt_timeout, **kwargs,
        )

    @property
    def address(self) -> str:
        return self._account.address

    @property
    def web3(self) -> AsyncWeb3:
        return self._web3

    async def close(self) -> None:
        try:
            await self._web3.provider.disconnect()
        except Exception as exc:
            log.debug("%s provider disconnect failed: %s", self._name, exc)

    # ── Reads ──────────────────────────────────────────────

    async def _read(self, awaitable: Awaitable[T]) -> T:
        return await asyncio.wait_for(awaitable, timeout=self._rpc_timeout)

    async def block_number(self) -> int:
        return await self._read(self._web3.eth.block_number)

    async def gas_price(self) -> int:
        return int(await self._read(self._web3.eth.gas_price))

    async def confirmations(self, tx_hash: str) -> int:
        """Confirmation depth of a mined transaction, 0 if not (or no longer) mined.

        The receipt is re-read every call so a transaction dropped by a
        reorg falls back to 0.
        """
        try:
            receipt = await self._read(self._web3.eth.get_transaction_receipt(tx_hash))
        except TransactionNotFound:
            return 0
        head = await self.block_number()
        return max(0, head - receipt["blockNumber"] + 1)

    async def transaction_sender(self, tx_hash: str) -> str | None:
        try:
            tx = await self._read(self._web3.eth.get_transaction(tx_hash))
        except TransactionNotFound:
            return None
        return tx["from"]

    # ── Submissions ────────────────────────────────────────

    async def transact(self, func: AsyncContractFunction, label: str) -> TxResult:
        """Sign, broadcast and await the receipt of a contract call."""
        try:
            async with self._submit_lock:
                tx_hash = await self._sign_and_broadcast(func)
        except Exception as exc:
            log.error("%s %s broadcast failed: %s", self._name, label, exc)
            return TxResult(success=False, error=f"broadcast_failed: {exc}")

        log.info("%s %s broadcast (tx=%s)", self._name, label, tx_hash)
        return await self._await_receipt(tx_hash, label)

    async def _sign_and_broadcast(self, func: AsyncContractFunction) -> str:
        if self._chain_id is None:
            self._chain_id = await self._read(self._web3.eth.chain_id)
        nonce = await self._read(
            self._web3.eth.get_transaction_count(self._account.address, "pending")
        )
        tx = await self._read(func.build_transaction({
            "from": self._account.address,
            "nonce": nonce,
            "chainId": self._chain_id,
        }))
        signed = self._account.sign_transaction(tx)
        raw_hash = await self._read(self._web3.eth.send_raw_transaction(signed.raw_transaction))
        return Web3.to_hex(raw_hash)

    async def _await_receipt(self, tx_hash: str, label: str) -> TxResult:
        try:
            receipt = await self._web3.eth.wait_for_transaction_receipt(
                tx_hash, timeout=self._receipt_timeout,
            )
        except Exception as exc:
            log.error("%s %s not confirmed (tx=%s): %s", self._name, label, tx_hash, exc)
            return TxResult(success=False, tx_hash=tx_hash, error=f"receipt_failed: {exc}")

        if receipt["status"] == 0:
            log.error(
                "%s %s reverted in block %d (tx=%s)",
                self._name, label, receipt["blockNumber"], tx_hash,
            )
            return TxResult(
                success=False,
                tx_hash=tx_hash,
                block_number=receipt["blockNumber"],
                error="reverted",
            )

        log.info(
            "%s %s confirmed in block %d (gas used: %s)",
            self._name, label, receipt["blockNumber"], receipt.get("gasUsed"),
        )
        return TxResult(success=True, tx_hash=tx_hash, block_number=receipt["blockNumber"])
