"""Relay decision logic for both bridge directions."""

from nft_relay.relay.fees import FeeOracle
from nft_relay.relay.unwrap import UnwrapRelay, decode_unwrap_log
from nft_relay.relay.wrap import WrapRelay

__all__ = ["FeeOracle", "UnwrapRelay", "WrapRelay", "decode_unwrap_log"]
