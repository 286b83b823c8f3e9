"""Protocol interfaces for all nft_relay components."""

from nft_relay.interfaces.chain import DestinationChain, OriginChain
from nft_relay.interfaces.poller import LogPoller
from nft_relay.interfaces.store import StateStore

__all__ = [
    "DestinationChain", "OriginChain",
    "LogPoller",
    "StateStore",
]
