"""
Report - Read SWISC crowd-sale and token state.

Every read is awaited in turn, in the order it is printed:

- Crowd sale: CHF rate, closed/finalized flags, current price tier, cap,
  wei raised, opening/closing time, minimum contribution, tokens minted,
  cap reached, crowd-sale wallet balance
- Token: name, symbol, total supply, minting finished, decimals, watched
  balances scaled by the token's decimals
"""

from __future__ import annotations

from typing import Any, Callable, Optional

import click
from loguru import logger

from ..chain.abi import ContractAddresses, crowd_sale_abi, load_addresses, read_contract, token_abi
from ..chain.rpc import get_balance
from ..config import Settings
from ..utils import format_timestamp, format_units
from . import get_settings, run_or_exit


def _line(label: str, value: Any) -> None:
    click.echo(click.style(f"- {label}: ", dim=True) + str(value))


async def crowd_sale_report(settings: Settings, addresses: ContractAddresses) -> None:
    rpc_url = settings.require_rpc_url()
    timeout = settings.rpc_timeout
    abi = crowd_sale_abi(settings.resources_dir)
    contract = addresses.crowd_sale

    async def call(name: str, args: Optional[list] = None) -> Any:
        return await read_contract(contract, name, abi, rpc_url, args, timeout)

    click.echo()
    click.secho("SWISC Crowd Sale Contract", fg="cyan", bold=True)
    click.secho("=========================", fg="cyan")

    _line("chfTokenRate", await call("chfTokenRate"))
    _line("hasClosed", await call("hasClosed"))
    _line("isFinalized", await call("isFinalized"))
    price_index = await call("currentPriceIndex")
    _line("SwiscPerEtherRate", await call("tokenPriceIndex", [price_index]))
    _line("cap", await call("cap"))
    _line("weiRaised", await call("weiRaised"))
    _line("openingTime", format_timestamp(await call("openingTime")))
    _line("closingTime", format_timestamp(await call("closingTime")))
    _line("min_contribution_chf", await call("min_contribution_chf"))
    _line("tokensMinted", await call("tokensMinted"))
    _line("capReached", await call("capReached"))

    if addresses.broker_wallet:
        balance = await get_balance(addresses.broker_wallet, rpc_url, timeout)
        _line("Contract wallet (future crypto broker) balance in ETH", format_units(balance))
    else:
        logger.debug("No CryptoBrokerWalletAddress configured, skipping wallet balance")


async def token_report(settings: Settings, addresses: ContractAddresses) -> None:
    rpc_url = settings.require_rpc_url()
    timeout = settings.rpc_timeout
    abi = token_abi(settings.resources_dir)
    contract = addresses.token

    async def call(name: str, args: Optional[list] = None) -> Any:
        return await read_contract(contract, name, abi, rpc_url, args, timeout)

    click.echo()
    click.secho("SWISC Token Contract", fg="cyan", bold=True)
    click.secho("====================", fg="cyan")

    _line("Name", await call("name"))
    _line("Symbol", await call("symbol"))
    _line("Total supply", await call("totalSupply"))
    _line("Minting finished", await call("mintingFinished"))
    decimals = await call("decimals")
    _line("Decimals", decimals)

    for label, holder in addresses.watched:
        balance = await call("balanceOf", [holder])
        _line(f"{label} account balance in SWISC ({holder})", format_units(balance, decimals))


async def full_report(settings: Settings, sections: tuple[Callable, ...]) -> None:
    addresses = load_addresses(settings.addresses_path)
    for section in sections:
        await section(settings, addresses)


@click.command()
@click.option("--crowd-sale/--no-crowd-sale", default=True, help="Include the crowd-sale section")
@click.option("--token/--no-token", "include_token", default=True, help="Include the token section")
@click.pass_context
def report(ctx: click.Context, crowd_sale: bool, include_token: bool) -> None:
    """
    Read SWISC crowd-sale and token state.

    Contract addresses come from the addresses file (SWISC_ADDRESSES_FILE,
    default resources/rinkeby.json) and ABIs from SWISC_RESOURCES.
    """
    settings = get_settings(ctx)

    sections: list[Callable] = []
    if crowd_sale:
        sections.append(crowd_sale_report)
    if include_token:
        sections.append(token_report)

    run_or_exit(full_report(settings, tuple(sections)))
    click.echo()
