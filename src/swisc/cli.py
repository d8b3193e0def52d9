"""
SWISC CLI

Command-line tools for the SWISC token and crowd-sale contracts.

Configuration is read from the environment and ~/.swisc/.env; endpoint
URLs, addresses, and keys never live in source.

Commands:
  report    - Read crowd-sale and token state
  transfer  - Sign and broadcast an ether transfer
  balance   - Show ether balances
  whoami    - Show the sender address for PRIVATE_KEY
  info      - Show resolved configuration
"""

from __future__ import annotations

import sys
from typing import Optional

import click

from .config import SWISC_ENV, Settings
from .errors import SwiscError
from .log import configure_logging
from .wallet.keys import get_address, load_private_key


# ============ Constants ============

VERSION = "1.0.0"


# ============ Banner ============


def _print_banner() -> None:
    click.echo(
        click.style("  ◆ ", fg="cyan")
        + click.style("S W I S C", fg="bright_white", bold=True)
        + click.style(f"  v{VERSION}", dim=True)
    )
    click.echo()


# ============ Main CLI Group ============


@click.group(invoke_without_command=True)
@click.version_option(version=VERSION, prog_name="swisc")
@click.option("--rpc-url", default=None, help="JSON-RPC endpoint (env: SWISC_RPC_URL)")
@click.option("--timeout", type=click.FloatRange(min=0, min_open=True), default=None,
              help="Per-call RPC timeout in seconds (env: SWISC_RPC_TIMEOUT)")
@click.option("--log-level", default=None, help="Log level (env: SWISC_LOG_LEVEL)")
@click.pass_context
def cli(
    ctx: click.Context,
    rpc_url: Optional[str],
    timeout: Optional[float],
    log_level: Optional[str],
) -> None:
    """SWISC token and crowd-sale tools."""
    try:
        settings = Settings.from_env().with_overrides(
            rpc_url=rpc_url, rpc_timeout=timeout, log_level=log_level
        )
    except SwiscError as exc:
        click.secho(f"ERROR: {exc}", fg="red", err=True)
        sys.exit(exc.exit_code)

    configure_logging(settings.log_level)
    ctx.ensure_object(dict)
    ctx.obj["settings"] = settings

    if ctx.invoked_subcommand is None:
        _print_banner()
        click.echo(ctx.get_help())


# ============ Top-level Commands ============

from .commands.balance import balance
from .commands.report import report
from .commands.transfer import transfer

cli.add_command(report)
cli.add_command(transfer)
cli.add_command(balance)


# ============ Identity ============


@cli.command()
def whoami() -> None:
    """Show the sender address for PRIVATE_KEY."""
    try:
        address = get_address(load_private_key())
    except SwiscError as exc:
        click.echo(f"No usable key: {exc}")
        sys.exit(exc.exit_code)
    click.echo(f"Address: {address}")


# ============ Info ============


@cli.command()
@click.pass_context
def info(ctx: click.Context) -> None:
    """Show resolved configuration (never the key)."""
    settings: Settings = ctx.obj["settings"]
    _print_banner()

    def row(label: str, value: str, color: str = "bright_white") -> None:
        click.echo(click.style(f"  {label:<14}", dim=True) + click.style(value, fg=color))

    row("Env file:", str(SWISC_ENV))
    row("RPC URL:", settings.rpc_url or "not set", "bright_white" if settings.rpc_url else "yellow")
    if not settings.eip155:
        chain = "none (pre-EIP-155 signing)"
    elif settings.chain_id is None:
        chain = "from node (eth_chainId)"
    else:
        chain = str(settings.chain_id)
    row("Chain id:", chain)
    row("RPC timeout:", f"{settings.rpc_timeout:g}s")
    row("Resources:", str(settings.resources_dir))
    row("Addresses:", str(settings.addresses_path))

    try:
        row("Sender:", get_address(load_private_key()))
    except SwiscError:
        row("Sender:", "PRIVATE_KEY not set", "yellow")

    click.echo()


# ============ Entry Points ============


def main() -> None:
    """SWISC CLI entry point."""
    cli()


if __name__ == "__main__":
    main()
