"""EVM chain integration components."""

from nft_relay.evm.client import EvmChain
from nft_relay.evm.destination import DestinationChainClient, event_topic
from nft_relay.evm.origin import OriginChainClient
from nft_relay.evm.poller import BurnLogPoller

__all__ = [
    "EvmChain", "DestinationChainClient", "OriginChainClient",
    "BurnLogPoller", "event_topic",
]
