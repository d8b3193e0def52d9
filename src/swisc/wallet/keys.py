"""
secp256k1 key handling for the transfer sender.

The key is read from ``PRIVATE_KEY`` (after ``~/.swisc/.env`` has been loaded)
and only turned into raw bytes inside ``scoped_private_key``, which zeroes its
buffer on every exit path.  Nothing in this module logs key material.

Dependencies: eth-account (address derivation), eth-keys (raw ECDSA).
"""

from __future__ import annotations

import os
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

from eth_account import Account
from eth_keys import keys
from eth_keys.exceptions import ValidationError

from ..config import load_env
from ..errors import SigningError
from ..utils import normalize_address

SECP256K1_N = 0xFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFEBAAEDCE6AF48A03BBFD25E8CD0364141


def load_private_key(env_path: Optional[Path] = None) -> str:
    """
    Load the sender's private key from the environment or dotenv file.

    Args:
        env_path: Path to .env file (default: ~/.swisc/.env)

    Returns:
        0x-prefixed hex private key

    Raises:
        SigningError: If PRIVATE_KEY is not set
    """
    env_path = load_env(env_path)

    private_key = os.environ.get("PRIVATE_KEY")
    if not private_key:
        raise SigningError(f"PRIVATE_KEY not found. Set it in the environment or in {env_path}")

    if not private_key.startswith("0x"):
        private_key = "0x" + private_key

    return private_key


def _key_bytes(private_key: str | bytes | bytearray) -> bytearray:
    """Decode and range-check a key into a fresh mutable buffer."""
    if isinstance(private_key, (bytes, bytearray)):
        raw = bytearray(private_key)
    elif isinstance(private_key, str):
        text = private_key[2:] if private_key[:2].lower() == "0x" else private_key
        try:
            raw = bytearray.fromhex(text)
        except ValueError:
            raise SigningError("Private key is not valid hex") from None
    else:
        raise SigningError(f"Unsupported private key type: {type(private_key).__name__}")

    if len(raw) != 32:
        length = len(raw)
        _zero(raw)
        raise SigningError(f"Private key must be 32 bytes, got {length}")

    scalar = int.from_bytes(raw, "big")
    if not 0 < scalar < SECP256K1_N:
        _zero(raw)
        raise SigningError("Private key is outside the secp256k1 curve order")

    return raw


def _zero(buf: bytearray) -> None:
    for i in range(len(buf)):
        buf[i] = 0


@contextmanager
def scoped_private_key(private_key: str | bytes | bytearray) -> Iterator[keys.PrivateKey]:
    """
    Yield an eth-keys PrivateKey for the duration of the block.

    The backing buffer is zeroed when the block exits, normally or not.

    Raises:
        SigningError: If the key is not a 32-byte scalar in [1, n-1]
    """
    raw = _key_bytes(private_key)
    try:
        try:
            key = keys.PrivateKey(bytes(raw))
        except ValidationError as exc:
            raise SigningError(f"Invalid private key: {exc}") from None
        yield key
    finally:
        _zero(raw)


def get_address(private_key: Optional[str] = None) -> str:
    """
    Get the checksummed address for a private key.

    Args:
        private_key: 0x-prefixed hex private key.
                     If None, loads from the environment.
    """
    if private_key is None:
        private_key = load_private_key()
    raw = _key_bytes(private_key)
    try:
        return Account.from_key(bytes(raw)).address
    finally:
        _zero(raw)


def check_sender(private_key: str, expected: Optional[str]) -> str:
    """
    Return the key's address, verifying it against ``expected`` if given.

    Raises:
        SigningError: If the key does not belong to ``expected``
    """
    address = get_address(private_key)
    if expected is not None and normalize_address(expected) != address:
        raise SigningError(
            f"Private key belongs to {address}, not to the configured sender {expected}"
        )
    return address
