"""BridgeContext - the chain clients and addresses shared by both relays."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from web3 import Web3

from nft_relay.evm.abis import UNWRAP_EVENT_TYPES, event_arg_types
from nft_relay.evm.destination import DestinationChainClient
from nft_relay.evm.origin import OriginChainClient
from nft_relay.interfaces.chain import DestinationChain, OriginChain
from nft_relay.models.config import RelayConfig

log = logging.getLogger(__name__)


class ConfigError(ValueError):
    """Raised when the configuration cannot produce a working context."""


@dataclass
class BridgeContext:
    """Built once at startup and passed to WrapRelay and UnwrapRelay.

    ``custody_address`` holds deposited tokens on the origin chain and is
    the ``from`` of every release. ``collection_address`` is the origin
    collection released on unwrap.
    """

    origin: OriginChain
    destination: DestinationChain
    custody_address: str
    collection_address: str

    @classmethod
    def from_config(cls, cfg: RelayConfig) -> "BridgeContext":
        missing = [
            name for name, value in (
                ("origin.rpc_url", cfg.origin.rpc_url),
                ("origin.private_key", cfg.origin.private_key),
                ("origin.collection_address", cfg.origin.collection_address),
                ("destination.rpc_url", cfg.destination.rpc_url),
                ("destination.private_key", cfg.destination.private_key),
                ("destination.bridge_address", cfg.destination.bridge_address),
            ) if not value
        ]
        if missing:
            raise ConfigError(f"missing configuration: {', '.join(missing)}")

        signature = cfg.destination.unwrap_event_signature
        try:
            arg_types = event_arg_types(signature)
        except ValueError as exc:
            raise ConfigError(str(exc)) from exc
        if arg_types != UNWRAP_EVENT_TYPES:
            raise ConfigError(
                f"unwrap_event_signature {signature!r} must take"
                f" ({','.join(UNWRAP_EVENT_TYPES)})"
            )

        origin = OriginChainClient.from_rpc(
            cfg.origin.rpc_url,
            cfg.origin.private_key,
            name="origin",
            rpc_timeout=cfg.timeouts.rpc,
            receipt_timeout=cfg.timeouts.receipt,
        )
        destination = DestinationChainClient.from_rpc(
            cfg.destination.rpc_url,
            cfg.destination.private_key,
            name="destination",
            rpc_timeout=cfg.timeouts.rpc,
            receipt_timeout=cfg.timeouts.receipt,
            bridge_address=cfg.destination.bridge_address,
            unwrap_event_signature=cfg.destination.unwrap_event_signature,
        )
        custody = cfg.origin.custody_address or origin.address
        return cls(
            origin=origin,
            destination=destination,
            custody_address=Web3.to_checksum_address(custody),
            collection_address=Web3.to_checksum_address(cfg.origin.collection_address),
        )

    def is_custody(self, address: str) -> bool:
        return bool(address) and address.lower() == self.custody_address.lower()

    async def close(self) -> None:
        for chain in (self.origin, self.destination):
            close = getattr(chain, "close", None)
            if close is not None:
                await close()
