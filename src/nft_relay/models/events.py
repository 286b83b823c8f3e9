"""Bridge event models: provider notifications and destination-chain logs."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any


class Direction(str, Enum):
    """Which way custody is moving."""

    DEPOSIT_TO_WRAP = "deposit_to_wrap"  # origin deposit -> destination mint
    BURN_TO_UNWRAP = "burn_to_unwrap"  # destination burn -> origin release


@dataclass(frozen=True)
class BridgeEvent:
    """A chain event the relay acts on.

    Identity for deduplication is ``(origin_tx_hash, log_index)`` within a
    direction.
    """

    direction: Direction
    origin_tx_hash: str
    log_index: int
    contract_address: str
    from_address: str
    to_address: str
    token_id: int
    block_number: int | None = None

    @property
    def key(self) -> tuple[str, str, int]:
        return (self.direction.value, self.origin_tx_hash, self.log_index)


def _parse_int(value: Any) -> int | None:
    """Parse provider integers, which arrive as ints, decimals or 0x-hex strings."""
    if value is None or value == "":
        return None
    if isinstance(value, int):
        return value
    s = str(value).strip().lower()
    try:
        return int(s, 16) if s.startswith("0x") else int(s)
    except ValueError:
        return None


@dataclass(frozen=True)
class DepositNotification:
    """One activity item from an address-activity webhook payload."""

    category: str
    from_address: str
    to_address: str
    contract_address: str
    token_id: int | None
    tx_hash: str | None
    log_index: int
    block_number: int | None

    @classmethod
    def from_activity(cls, item: dict) -> "DepositNotification":
        raw_contract = item.get("rawContract") or {}
        log = item.get("log") or {}
        return cls(
            category=str(item.get("category", "")),
            from_address=str(item.get("fromAddress", "")),
            to_address=str(item.get("toAddress", "")),
            contract_address=str(raw_contract.get("address", "")),
            token_id=_parse_int(item.get("erc721TokenId")),
            tx_hash=item.get("hash") or log.get("transactionHash"),
            log_index=_parse_int(log.get("logIndex")) or 0,
            block_number=_parse_int(item.get("blockNum")),
        )

    def to_bridge_event(self) -> BridgeEvent:
        if self.token_id is None or not self.tx_hash:
            raise ValueError("notification has no token id or transaction hash")
        return BridgeEvent(
            direction=Direction.DEPOSIT_TO_WRAP,
            origin_tx_hash=self.tx_hash.lower(),
            log_index=self.log_index,
            contract_address=self.contract_address,
            from_address=self.from_address,
            to_address=self.to_address,
            token_id=self.token_id,
            block_number=self.block_number,
        )


@dataclass(frozen=True)
class BurnLogEvent:
    """Raw unwrap log fetched from the destination bridge contract."""

    tx_hash: str
    log_index: int
    block_number: int
    address: str
    data: bytes
