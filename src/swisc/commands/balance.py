from __future__ import annotations

import click

from ..chain.rpc import get_balance
from ..config import Settings
from ..utils import format_units, normalize_address
from . import get_settings, run_or_exit


async def _print_balances(settings: Settings, addresses: tuple[str, ...]) -> None:
    rpc_url = settings.require_rpc_url()
    for address in addresses:
        checksummed = normalize_address(address)
        wei = await get_balance(checksummed, rpc_url, settings.rpc_timeout)
        click.echo(f"{checksummed}: {format_units(wei)} ETH")


@click.command()
@click.argument("addresses", nargs=-1, required=True)
@click.pass_context
def balance(ctx: click.Context, addresses: tuple[str, ...]) -> None:
    """Show the ether balance of one or more addresses."""
    run_or_exit(_print_balances(get_settings(ctx), addresses))
