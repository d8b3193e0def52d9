"""
Commands - click subcommands of the ``swisc`` CLI.

- report:   read-only SWISC crowd-sale and token report
- transfer: sign and broadcast one ether transfer
- balance:  ether balance of arbitrary addresses
"""

from __future__ import annotations

import asyncio
import sys
from typing import Any, Awaitable

import click

from ..config import Settings
from ..errors import SwiscError


def get_settings(ctx: click.Context) -> Settings:
    """Settings stored by the root group, or read fresh from the environment."""
    obj = ctx.find_object(dict)
    if obj is not None and isinstance(obj.get("settings"), Settings):
        return obj["settings"]
    return Settings.from_env()


def run_or_exit(awaitable: Awaitable[Any]) -> Any:
    """Drive a coroutine to completion; report a SwiscError once and exit."""
    try:
        return asyncio.run(awaitable)
    except SwiscError as exc:
        click.secho(f"ERROR: {exc}", fg="red", err=True)
        sys.exit(exc.exit_code)
