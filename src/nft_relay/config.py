"""Configuration loading: TOML file + environment variables."""

from __future__ import annotations

import os
from pathlib import Path

try:
    import tomllib  # Python 3.11+
except ModuleNotFoundError:
    import tomli as tomllib  # type: ignore[no-redef]

from nft_relay.models.config import RelayConfig


def load_config(
    config_path: str | Path | None = None,
    env_prefix: str = "NFT_RELAY_",
) -> RelayConfig:
    """Load relay configuration from a TOML file and env vars.

    Priority (highest wins):
        1. Environment variables (NFT_RELAY_PRIVATE_KEY, etc.)
        2. TOML config file
        3. Defaults from RelayConfig
    """
    raw: dict = {}
    if config_path is not None:
        p = Path(config_path).expanduser()
        if p.exists():
            with open(p, "rb") as f:
                raw = tomllib.load(f)

    cfg = RelayConfig()

    # ── Daemon section ─────────────────────────────────────
    daemon = raw.get("daemon", {})
    if v := daemon.get("poll_interval"):
        cfg.poll_interval = int(v)
    if v := daemon.get("error_backoff"):
        cfg.error_backoff = int(v)
    if v := daemon.get("log_level"):
        cfg.log_level = str(v)

    # ── Server section ─────────────────────────────────────
    server = raw.get("server", {})
    if v := server.get("host"):
        cfg.server.host = str(v)
    if v := server.get("port"):
        cfg.server.port = int(v)
    if v := server.get("route_path"):
        cfg.server.route_path = str(v)
    if v := server.get("public_url"):
        cfg.server.public_url = str(v)

    # ── Notify section ─────────────────────────────────────
    notify = raw.get("notify", {})
    if v := notify.get("network"):
        cfg.notify.network = str(v)
    if v := notify.get("signing_key"):
        cfg.notify.signing_key = str(v)
    if v := notify.get("auth_token"):
        cfg.notify.auth_token = str(v)

    # ── Origin chain ───────────────────────────────────────
    origin = raw.get("origin", {})
    if v := origin.get("rpc_url"):
        cfg.origin.rpc_url = str(v)
    if v := origin.get("private_key"):
        cfg.origin.private_key = str(v)
    if v := origin.get("custody_address"):
        cfg.origin.custody_address = str(v)
    if v := origin.get("collection_address"):
        cfg.origin.collection_address = str(v)

    # ── Destination chain ──────────────────────────────────
    dest = raw.get("destination", {})
    if v := dest.get("rpc_url"):
        cfg.destination.rpc_url = str(v)
    if v := dest.get("private_key"):
        cfg.destination.private_key = str(v)
    if v := dest.get("bridge_address"):
        cfg.destination.bridge_address = str(v)
    if v := dest.get("unwrap_event_signature"):
        cfg.destination.unwrap_event_signature = str(v)
    if (v := dest.get("start_block")) is not None:
        cfg.destination.start_block = int(v)

    # ── Finality section ───────────────────────────────────
    finality = raw.get("finality", {})
    if v := finality.get("confirmations"):
        cfg.finality.confirmations = int(v)
    if v := finality.get("poll_interval"):
        cfg.finality.poll_interval = float(v)
    if v := finality.get("timeout"):
        cfg.finality.timeout = float(v)

    # ── Fees section ───────────────────────────────────────
    fees = raw.get("fees", {})
    if (v := fees.get("transfer_gas_units")) is not None:
        cfg.fees.transfer_gas_units = int(v)
    if (v := fees.get("base_transfer_gas_units")) is not None:
        cfg.fees.base_transfer_gas_units = int(v)
    if (v := fees.get("margin_gas_units")) is not None:
        cfg.fees.margin_gas_units = int(v)

    # ── Timeouts section ───────────────────────────────────
    timeouts = raw.get("timeouts", {})
    if v := timeouts.get("rpc"):
        cfg.timeouts.rpc = float(v)
    if v := timeouts.get("receipt"):
        cfg.timeouts.receipt = float(v)

    # ── Storage section ────────────────────────────────────
    storage = raw.get("storage", {})
    if v := storage.get("db_path"):
        cfg.db_path = str(v)

    # ── Environment variable overrides (highest priority) ──
    # A single key signs on both chains unless per-chain keys are given
    if key := os.environ.get(f"{env_prefix}PRIVATE_KEY"):
        cfg.origin.private_key = key
        cfg.destination.private_key = key
    if key := os.environ.get(f"{env_prefix}ORIGIN_PRIVATE_KEY"):
        cfg.origin.private_key = key
    if key := os.environ.get(f"{env_prefix}DESTINATION_PRIVATE_KEY"):
        cfg.destination.private_key = key
    if rpc := os.environ.get(f"{env_prefix}ORIGIN_RPC_URL"):
        cfg.origin.rpc_url = rpc
    if rpc := os.environ.get(f"{env_prefix}DESTINATION_RPC_URL"):
        cfg.destination.rpc_url = rpc
    if signing_key := os.environ.get(f"{env_prefix}SIGNING_KEY"):
        cfg.notify.signing_key = signing_key
    if token := os.environ.get(f"{env_prefix}NOTIFY_AUTH"):
        cfg.notify.auth_token = token
    if host := os.environ.get(f"{env_prefix}HOST"):
        cfg.server.host = host
    if port := os.environ.get(f"{env_prefix}PORT"):
        cfg.server.port = int(port)

    # Expand ~ in paths
    if cfg.db_path != ":memory:":
        cfg.db_path = str(Path(cfg.db_path).expanduser())

    return cfg


def describe_config(cfg: RelayConfig) -> list[tuple[str, str]]:
    """Human-readable config summary with every credential masked."""

    def secret(value: str) -> str:
        return "***configured***" if value else "(not set)"

    return [
        ("Listen", f"{cfg.server.host}:{cfg.server.port}{cfg.server.route_path}"),
        ("Public URL", cfg.server.public_url or "(not set)"),
        ("Origin RPC", cfg.origin.rpc_url or "(not set)"),
        ("Origin key", secret(cfg.origin.private_key)),
        ("Custody", cfg.origin.custody_address or "(signing account)"),
        ("Collection", cfg.origin.collection_address or "(not set)"),
        ("Dest RPC", cfg.destination.rpc_url or "(not set)"),
        ("Dest key", secret(cfg.destination.private_key)),
        ("Bridge", cfg.destination.bridge_address or "(not set)"),
        ("Unwrap event", cfg.destination.unwrap_event_signature),
        ("Finality", f"{cfg.finality.confirmations} confirmations"),
        ("Signing key", secret(cfg.notify.signing_key)),
        ("Notify auth", secret(cfg.notify.auth_token)),
        ("DB path", cfg.db_path),
    ]
