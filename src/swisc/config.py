"""
Settings for the SWISC toolkit.

Everything comes from the process environment, after ``~/.swisc/.env``
(or ``SWISC_ENV_FILE``) has been loaded with python-dotenv.  Endpoint URLs,
contract addresses, and keys are never taken from source text.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from .errors import ConfigError

SWISC_DIR = Path.home() / ".swisc"
SWISC_ENV = SWISC_DIR / ".env"

DEFAULT_RPC_TIMEOUT = 30.0
DEFAULT_RESOURCES_DIR = Path("resources")
DEFAULT_ADDRESSES_FILE = "rinkeby.json"
DEFAULT_LOG_LEVEL = "WARNING"

# Values of SWISC_CHAIN_ID that switch signing to pre-EIP-155.
_LEGACY_CHAIN_IDS = {"none", "legacy", "0"}


def load_env(env_path: Optional[Path] = None) -> Path:
    """Load the dotenv file into ``os.environ`` without clobbering set values."""
    env_path = env_path or Path(os.environ.get("SWISC_ENV_FILE", str(SWISC_ENV)))
    if env_path.exists():
        load_dotenv(env_path, override=False)
    return env_path


def parse_chain_id(raw: Optional[str]) -> tuple[Optional[int], bool]:
    """
    Interpret a chain id setting.

    Returns:
        ``(chain_id, eip155)``.  ``(None, True)`` means "ask the node",
        ``(None, False)`` means unprotected (pre-EIP-155) signing.
    """
    if raw is None or raw.strip() == "":
        return None, True
    value = raw.strip().lower()
    if value in _LEGACY_CHAIN_IDS:
        return None, False
    try:
        chain_id = int(value, 0)
    except ValueError:
        raise ConfigError(f"Invalid chain id: {raw!r}") from None
    if chain_id < 0:
        raise ConfigError(f"Invalid chain id: {raw!r}")
    return chain_id, True


@dataclass(frozen=True)
class Settings:
    """
    Resolved configuration.

    Attributes:
        rpc_url: JSON-RPC endpoint (required for any network command)
        chain_id: Explicit chain id, or None to query ``eth_chainId``
        eip155: False signs without replay protection
        rpc_timeout: Per-call timeout in seconds
        resources_dir: Directory holding ABI JSON files
        addresses_file: JSON file with contract and wallet addresses
        sender_address: Optional expected sender, checked against the key
        log_level: loguru level name
    """

    rpc_url: Optional[str] = None
    chain_id: Optional[int] = None
    eip155: bool = True
    rpc_timeout: float = DEFAULT_RPC_TIMEOUT
    resources_dir: Path = DEFAULT_RESOURCES_DIR
    addresses_file: Optional[Path] = None
    sender_address: Optional[str] = None
    log_level: str = DEFAULT_LOG_LEVEL

    @classmethod
    def from_env(cls, env_path: Optional[Path] = None) -> "Settings":
        load_env(env_path)

        chain_id, eip155 = parse_chain_id(os.environ.get("SWISC_CHAIN_ID"))

        raw_timeout = os.environ.get("SWISC_RPC_TIMEOUT")
        try:
            rpc_timeout = float(raw_timeout) if raw_timeout else DEFAULT_RPC_TIMEOUT
        except ValueError:
            raise ConfigError(f"Invalid SWISC_RPC_TIMEOUT: {raw_timeout!r}") from None
        if rpc_timeout <= 0:
            raise ConfigError("SWISC_RPC_TIMEOUT must be positive")

        resources_dir = Path(os.environ.get("SWISC_RESOURCES", str(DEFAULT_RESOURCES_DIR)))
        addresses = os.environ.get("SWISC_ADDRESSES_FILE")

        return cls(
            rpc_url=os.environ.get("SWISC_RPC_URL") or None,
            chain_id=chain_id,
            eip155=eip155,
            rpc_timeout=rpc_timeout,
            resources_dir=resources_dir,
            addresses_file=Path(addresses) if addresses else None,
            sender_address=os.environ.get("SENDER_ADDRESS") or None,
            log_level=os.environ.get("SWISC_LOG_LEVEL", DEFAULT_LOG_LEVEL),
        )

    def with_overrides(self, **changes) -> "Settings":
        """Apply CLI overrides; ``None`` values leave the setting unchanged."""
        return replace(self, **{k: v for k, v in changes.items() if v is not None})

    def require_rpc_url(self) -> str:
        if not self.rpc_url:
            raise ConfigError(
                f"SWISC_RPC_URL not set. Pass --rpc-url or set it in {SWISC_ENV}."
            )
        return self.rpc_url

    @property
    def addresses_path(self) -> Path:
        return self.addresses_file or self.resources_dir / DEFAULT_ADDRESSES_FILE
