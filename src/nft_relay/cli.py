"""CLI entry point for the nft_relay daemon."""

from __future__ import annotations

import asyncio
import logging
import sys

import click

from nft_relay.config import describe_config, load_config
from nft_relay.context import ConfigError
from nft_relay.daemon import run_daemon
from nft_relay.models.events import Direction
from nft_relay.notify.alchemy import NotifyError
from nft_relay.relay.fees import FeeOracle
from nft_relay.storage.sqlite import SQLiteStateStore

WEI_PER_GWEI = 10**9
WEI_PER_ETH = 10**18


def _eth(wei: int) -> str:
    return f"{wei / WEI_PER_ETH:.9f} ETH"


def _require_chains(cfg):
    """Exit with error if either chain is missing an RPC URL or signing key."""
    missing = []
    if not cfg.origin.rpc_url or not cfg.origin.private_key:
        missing.append("origin")
    if not cfg.destination.rpc_url or not cfg.destination.private_key:
        missing.append("destination")
    if missing:
        click.echo(f"Error: No RPC URL or private key for {', '.join(missing)} chain.", err=True)
        click.echo("Set NFT_RELAY_PRIVATE_KEY / NFT_RELAY_*_RPC_URL or the config file.", err=True)
        sys.exit(1)


def _apply_log_level(cfg, verbose: bool) -> None:
    """Use the configured log level unless -v asked for DEBUG."""
    if verbose:
        return
    level = logging.getLevelName(cfg.log_level.upper())
    if isinstance(level, int):
        logging.getLogger().setLevel(level)
    else:
        click.echo(f"Warning: unknown log_level {cfg.log_level!r}, using INFO", err=True)


@click.group()
@click.option("-c", "--config", "config_path", default=None, help="Path to config TOML file")
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging")
@click.pass_context
def cli(ctx: click.Context, config_path: str | None, verbose: bool) -> None:
    """nft_relay - NFT bridge relay between an origin and a destination chain."""
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path
    ctx.obj["verbose"] = verbose

    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


# ── Daemon ─────────────────────────────────────────────


@cli.command()
@click.pass_context
def run(ctx: click.Context) -> None:
    """Start the relay daemon."""
    cfg = load_config(ctx.obj["config_path"])
    _apply_log_level(cfg, ctx.obj["verbose"])
    _require_chains(cfg)

    click.echo(f"Starting nft_relay daemon on {cfg.server.host}:{cfg.server.port}")
    try:
        asyncio.run(run_daemon(cfg))
    except (ConfigError, NotifyError) as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(1)


# ── Info ───────────────────────────────────────────────


@cli.command()
@click.pass_context
def status(ctx: click.Context) -> None:
    """Show relay configuration (credentials masked)."""
    cfg = load_config(ctx.obj["config_path"])
    for label, value in describe_config(cfg):
        click.echo(f"{label + ':':14s}{value}")


@cli.command("quote-fee")
@click.option("--gas-price", type=int, required=True, help="Origin gas price in wei")
@click.pass_context
def quote_fee(ctx: click.Context, gas_price: int) -> None:
    """Compute the unwrap fee for a given origin gas price, offline."""
    cfg = load_config(ctx.obj["config_path"])
    try:
        oracle = FeeOracle(
            cfg.fees.transfer_gas_units,
            cfg.fees.base_transfer_gas_units,
            cfg.fees.margin_gas_units,
        )
        quote = oracle.quote(gas_price)
    except ValueError as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(1)

    click.echo(f"Gas price:  {quote.gas_price_wei} wei ({quote.gas_price_wei / WEI_PER_GWEI:g} gwei)")
    click.echo(f"Gas units:  {quote.fixed_gas_units}")
    click.echo(f"Fee:        {quote.computed_fee_wei} wei ({_eth(quote.computed_fee_wei)})")


@cli.command()
@click.option(
    "--direction",
    type=click.Choice([d.value for d in Direction]),
    default=None,
    help="Only show one direction",
)
@click.option("--status", "filter_status", default=None, help="Filter by status (e.g. failed)")
@click.pass_context
def requests(ctx: click.Context, direction: str | None, filter_status: str | None) -> None:
    """List wrap and unwrap requests from the dedup ledger."""
    cfg = load_config(ctx.obj["config_path"])

    async def _requests():
        store = SQLiteStateStore(cfg.db_path)
        await store.initialize()
        try:
            records = await store.get_requests(
                Direction(direction) if direction else None,
                [filter_status] if filter_status else None,
            )
            if not records:
                click.echo("No requests.")
                return

            for r in records:
                line = (
                    f"  [{r.status:17s}] {r.direction} token={r.token_id} "
                    f"tx={r.tx_hash[:18]}...:{r.log_index}"
                )
                if r.result_tx_hash:
                    line += f" result={r.result_tx_hash[:18]}..."
                if r.error:
                    line += f" error={r.error}"
                click.echo(line)
        finally:
            await store.close()

    asyncio.run(_requests())


@cli.command()
@click.option("-n", "--limit", type=int, default=20, help="Number of recent entries to show")
@click.pass_context
def activity(ctx: click.Context, limit: int) -> None:
    """Show the recent activity log and the last published fee."""
    cfg = load_config(ctx.obj["config_path"])

    async def _activity():
        store = SQLiteStateStore(cfg.db_path)
        await store.initialize()
        try:
            fee = await store.get_latest_fee_quote()
            if fee is not None:
                click.echo(
                    f"Current fee: {fee.computed_fee_wei} wei ({_eth(fee.computed_fee_wei)}) "
                    f"at {fee.computed_at}"
                )
                click.echo("")

            entries = await store.get_recent_activity(limit)
            if not entries:
                click.echo("No activity recorded.")
                return

            for a in entries:
                token = f" token={a.token_id}" if a.token_id is not None else ""
                click.echo(f"  {a.created_at} {a.event_type:20s}{token} {a.message}")
        finally:
            await store.close()

    asyncio.run(_activity())


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
