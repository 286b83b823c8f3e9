"""Shared fixtures for nft_relay tests."""

from __future__ import annotations

import pytest
from pytest_metadata.plugin import metadata_key

from nft_relay.context import BridgeContext
from nft_relay.daemon import RelayDaemon
from nft_relay.models.config import (
    DestinationConfig,
    FinalityConfig,
    NotifyConfig,
    OriginConfig,
    RelayConfig,
    ServerConfig,
)
from nft_relay.relay.fees import FeeOracle
from nft_relay.relay.unwrap import UnwrapRelay
from nft_relay.relay.wrap import WrapRelay
from nft_relay.storage.sqlite import SQLiteStateStore

from tests.factories import BRIDGE, COLLECTION, CUSTODY, SIGNING_KEY
from tests.mocks import MockDestinationChain, MockOriginChain, MockPoller

# Well-known development key (Hardhat account #0), never funded on a real network
TEST_PRIVATE_KEY = "0xac0974bec39a17e36ba4a6b4d238ff944bacb478cbed5efcae784d7bf4f2ff80"
TEST_ADDRESS = "0xf39Fd6e51aad88F6F4ce6aB8827279cffFb92266"


# ── Report metadata ──────────────────────────────────────────────


def pytest_configure(config):
    """Add bridge info to the report Environment table."""
    meta = config.stash.setdefault(metadata_key, {})
    meta["Custody"] = CUSTODY
    meta["Origin Collection"] = COLLECTION
    meta["Destination Bridge"] = BRIDGE


def make_test_config(**overrides) -> RelayConfig:
    """Build a RelayConfig suitable for testing."""
    defaults = dict(
        poll_interval=1,
        error_backoff=1,
        server=ServerConfig(host="127.0.0.1", port=0),
        notify=NotifyConfig(signing_key=SIGNING_KEY),
        origin=OriginConfig(
            rpc_url="http://127.0.0.1:8545",
            private_key=TEST_PRIVATE_KEY,
            custody_address=CUSTODY,
            collection_address=COLLECTION,
        ),
        destination=DestinationConfig(
            rpc_url="http://127.0.0.1:9545",
            private_key=TEST_PRIVATE_KEY,
            bridge_address=BRIDGE,
        ),
        finality=FinalityConfig(confirmations=25, poll_interval=0, timeout=1.0),
        db_path=":memory:",
    )
    defaults.update(overrides)
    return RelayConfig(**defaults)


@pytest.fixture
def test_config():
    """Default RelayConfig for tests."""
    return make_test_config()


@pytest.fixture
async def store():
    """Initialized in-memory SQLiteStateStore."""
    s = SQLiteStateStore(":memory:")
    await s.initialize()
    yield s
    await s.close()


@pytest.fixture
def mock_origin():
    return MockOriginChain()


@pytest.fixture
def mock_destination():
    return MockDestinationChain()


@pytest.fixture
def mock_poller():
    return MockPoller()


@pytest.fixture
def ctx(mock_origin, mock_destination):
    """BridgeContext over mocked chains."""
    return BridgeContext(
        origin=mock_origin,
        destination=mock_destination,
        custody_address=CUSTODY,
        collection_address=COLLECTION,
    )


@pytest.fixture
def fee_oracle():
    return FeeOracle()


@pytest.fixture
def wrap_relay(ctx, store):
    return WrapRelay(ctx, store, rpc_timeout=1.0)


@pytest.fixture
def unwrap_relay(ctx, store, fee_oracle):
    """UnwrapRelay that polls without sleeping and gives up after one second."""
    return UnwrapRelay(
        ctx, store, fee_oracle,
        confirmations=25, poll_interval=0, finality_timeout=1.0, rpc_timeout=1.0,
    )


@pytest.fixture
async def daemon(test_config, ctx, store, mock_poller, wrap_relay, unwrap_relay):
    """Fully wired RelayDaemon with mocked components."""
    d = RelayDaemon(test_config, ctx=ctx)
    d.store = store
    d.poller = mock_poller
    d.wrap_relay = wrap_relay
    d.unwrap_relay = unwrap_relay
    return d
