"""Configuration models for the relay daemon."""

from __future__ import annotations

from dataclasses import dataclass, field

# Origin-chain release cost estimates (gas units)
TRANSFER_GAS_UNITS = 100_000  # ERC-721 safeTransferFrom
BASE_TRANSFER_GAS_UNITS = 21_000  # plain native-currency transfer
MARGIN_GAS_UNITS = 20_000

CONFIRMATION_THRESHOLD = 25

DEFAULT_UNWRAP_EVENT = "UnwrapRequested(address,address,uint256)"


@dataclass
class ServerConfig:
    """Inbound notification endpoint."""

    host: str = "127.0.0.1"
    port: int = 8080
    route_path: str = "/nft-l1-to-l2"
    public_url: str = ""  # tunnel domain the provider posts to


@dataclass
class NotifyConfig:
    """Notification provider subscription."""

    network: str = "ETH_MAINNET"
    signing_key: str = field(default="", repr=False)
    auth_token: str = field(default="", repr=False)


@dataclass
class OriginConfig:
    """Origin chain: where deposits land in custody and releases happen."""

    rpc_url: str = ""
    private_key: str = field(default="", repr=False)
    custody_address: str = ""  # defaults to the signing account address
    collection_address: str = ""  # collection released on unwrap


@dataclass
class DestinationConfig:
    """Destination chain: where wrapped tokens are minted and burned."""

    rpc_url: str = ""
    private_key: str = field(default="", repr=False)
    bridge_address: str = ""
    unwrap_event_signature: str = DEFAULT_UNWRAP_EVENT
    start_block: int | None = None  # first block to scan when no cursor is saved


@dataclass
class FinalityConfig:
    confirmations: int = CONFIRMATION_THRESHOLD
    poll_interval: float = 12.0  # seconds between confirmation checks
    timeout: float | None = None  # give up waiting after this many seconds


@dataclass
class FeeConfig:
    transfer_gas_units: int = TRANSFER_GAS_UNITS
    base_transfer_gas_units: int = BASE_TRANSFER_GAS_UNITS
    margin_gas_units: int = MARGIN_GAS_UNITS


@dataclass
class TimeoutConfig:
    rpc: float = 30.0  # any single RPC read or broadcast
    receipt: float = 180.0  # waiting for a submitted transaction to be mined


@dataclass
class RelayConfig:
    """Complete relay configuration."""

    # Daemon
    poll_interval: int = 5  # seconds between burn log polls
    error_backoff: int = 30  # seconds
    log_level: str = "info"

    server: ServerConfig = field(default_factory=ServerConfig)
    notify: NotifyConfig = field(default_factory=NotifyConfig)
    origin: OriginConfig = field(default_factory=OriginConfig)
    destination: DestinationConfig = field(default_factory=DestinationConfig)
    finality: FinalityConfig = field(default_factory=FinalityConfig)
    fees: FeeConfig = field(default_factory=FeeConfig)
    timeouts: TimeoutConfig = field(default_factory=TimeoutConfig)

    # Storage
    db_path: str = "~/.nft_relay/state.db"

    @property
    def webhook_url(self) -> str:
        return self.server.public_url.rstrip("/") + self.server.route_path
