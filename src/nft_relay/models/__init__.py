"""Data models for the nft_relay daemon."""

from nft_relay.models.events import BridgeEvent, BurnLogEvent, DepositNotification, Direction
from nft_relay.models.records import (
    ActivityRecord,
    FeeQuote,
    RequestRecord,
    TxResult,
    UnwrapError,
    UnwrapOutcome,
    UnwrapStatus,
    WrapError,
    WrapOutcome,
    WrapStatus,
)
from nft_relay.models.config import (
    DestinationConfig,
    FeeConfig,
    FinalityConfig,
    NotifyConfig,
    OriginConfig,
    RelayConfig,
    ServerConfig,
    TimeoutConfig,
)

__all__ = [
    "BridgeEvent", "BurnLogEvent", "DepositNotification", "Direction",
    "ActivityRecord", "FeeQuote", "RequestRecord", "TxResult",
    "UnwrapError", "UnwrapOutcome", "UnwrapStatus",
    "WrapError", "WrapOutcome", "WrapStatus",
    "DestinationConfig", "FeeConfig", "FinalityConfig", "NotifyConfig",
    "OriginConfig", "RelayConfig", "ServerConfig", "TimeoutConfig",
]
