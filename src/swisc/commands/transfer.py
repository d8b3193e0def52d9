"""
Transfer - Sign and broadcast one ether transfer from the configured key.

Fetches the sender's nonce, builds a legacy transaction, signs it locally,
and submits the raw bytes.  Balances of both accounts are printed afterwards
for display only.  A rejected broadcast is reported once; nothing is
resubmitted.
"""

from __future__ import annotations

import sys
from decimal import Decimal
from typing import Optional

import click

from ..chain.rpc import get_balance
from ..chain.tx import TransferResult, send_transfer
from ..config import Settings, parse_chain_id
from ..errors import SwiscError
from ..utils import ether_to_wei, format_units, gwei_to_wei, normalize_address
from ..wallet.keys import load_private_key
from . import get_settings, run_or_exit

DEFAULT_VALUE_ETHER = "0.01"
DEFAULT_GAS_LIMIT = 21_000
DEFAULT_GAS_PRICE_GWEI = "10"


async def _transfer(
    settings: Settings,
    private_key: str,
    to: str,
    value_wei: int,
    gas_limit: int,
    gas_price_wei: int,
    dry_run: bool,
) -> TransferResult:
    rpc_url = settings.require_rpc_url()
    return await send_transfer(
        rpc_url=rpc_url,
        private_key=private_key,
        to=to,
        value=value_wei,
        gas_limit=gas_limit,
        gas_price=gas_price_wei,
        chain_id=settings.chain_id,
        eip155=settings.eip155,
        expected_sender=settings.sender_address,
        timeout=settings.rpc_timeout,
        dry_run=dry_run,
    )


async def _show_balances(settings: Settings, accounts: list[tuple[str, str]]) -> None:
    for label, address in accounts:
        wei = await get_balance(address, settings.require_rpc_url(), settings.rpc_timeout)
        click.echo(f"  {label}: {format_units(wei)} ETH")


@click.command()
@click.option("--to", "recipient", envvar="RECIPIENT_ADDRESS", required=True,
              help="Recipient address (env: RECIPIENT_ADDRESS)")
@click.option("--value", "value_ether", default=DEFAULT_VALUE_ETHER, show_default=True,
              help="Amount in ether")
@click.option("--gas-limit", default=DEFAULT_GAS_LIMIT, type=int, show_default=True,
              help="Gas limit")
@click.option("--gas-price", "gas_price_gwei", default=DEFAULT_GAS_PRICE_GWEI, show_default=True,
              help="Gas price in gwei")
@click.option("--chain-id", default=None,
              help="EIP-155 chain id, or 'none' for unprotected signing (env: SWISC_CHAIN_ID)")
@click.option("--dry-run", is_flag=True, help="Sign and print the raw transaction without sending")
@click.option("--show-balances/--no-show-balances", default=True,
              help="Print sender and recipient balances afterwards")
@click.pass_context
def transfer(
    ctx: click.Context,
    recipient: str,
    value_ether: str,
    gas_limit: int,
    gas_price_gwei: str,
    chain_id: Optional[str],
    dry_run: bool,
    show_balances: bool,
) -> None:
    """
    Send ether from the PRIVATE_KEY account.

    The sender pays gasLimit x gasPrice at most.  Sufficient balance is not
    checked beforehand; the node rejects underfunded transfers.
    """
    settings = get_settings(ctx)

    try:
        if chain_id is not None:
            parsed, eip155 = parse_chain_id(chain_id)
            settings = settings.with_overrides(chain_id=parsed, eip155=eip155)
        to = normalize_address(recipient)
        value_wei = ether_to_wei(Decimal(value_ether))
        gas_price_wei = gwei_to_wei(Decimal(gas_price_gwei))
        private_key = load_private_key()
    except SwiscError as exc:
        click.secho(f"ERROR: {exc}", fg="red", err=True)
        sys.exit(exc.exit_code)
    except ArithmeticError:
        click.secho("ERROR: --value and --gas-price must be decimal numbers", fg="red", err=True)
        sys.exit(2)

    click.echo("=== SWISC Transfer ===")
    click.echo(f"  To:        {to}")
    click.echo(f"  Value:     {value_ether} ETH ({value_wei} wei)")
    click.echo(f"  Gas limit: {gas_limit}")
    click.echo(f"  Gas price: {gas_price_gwei} gwei ({gas_price_wei} wei)")
    click.echo("")

    result = run_or_exit(
        _transfer(settings, private_key, to, value_wei, gas_limit, gas_price_wei, dry_run)
    )

    click.echo(f"  From:      {result.sender}")
    click.echo(f"  Nonce:     {result.nonce}")

    if not result.broadcast:
        click.secho("DRY RUN: transaction signed, not sent", fg="yellow")
        click.echo(f"  raw:    {result.raw}")
        click.echo(f"  txHash: {result.tx_hash}")
        return

    click.secho("SUCCESS: Transaction accepted by node", fg="green")
    click.echo(f"  txHash: {result.tx_hash}")

    if show_balances:
        click.echo("")
        run_or_exit(
            _show_balances(settings, [("Account 1", result.sender), ("Account 2", to)])
        )
