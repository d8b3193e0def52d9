"""
ABI Loader - Loads contract ABIs and addresses from the resources directory.

ABI files are either a bare JSON list or a build artifact with an ``abi`` key.
Addresses come from a JSON file (``rinkeby.json`` by default); individual
entries may be overridden from the environment.
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Any, Optional

from eth_abi import decode, encode
from eth_abi.exceptions import DecodingError, EncodingError as AbiEncodingError
from eth_utils import function_signature_to_4byte_selector

from ..config import DEFAULT_RPC_TIMEOUT
from ..errors import ConfigError, EncodingError, NetworkError
from ..utils import normalize_address
from .rpc import eth_call

TOKEN_ABI_FILE = "SWISCTokenABI.json"
CROWD_SALE_ABI_FILE = "SWISCCrowdSaleABI.json"

# addresses-file key -> environment override
ADDRESS_KEYS = {
    "SWISCTokenContractAddress": "SWISC_TOKEN_ADDRESS",
    "SWISCCrowdSaleContractAddress": "SWISC_CROWD_SALE_ADDRESS",
    "CryptoBrokerWalletAddress": "SWISC_BROKER_WALLET_ADDRESS",
    "bitboxAddress": "SWISC_BITBOX_ADDRESS",
    "metamaskAddress": "SWISC_METAMASK_ADDRESS",
    "trezorAddress": "SWISC_TREZOR_ADDRESS",
}


@lru_cache(maxsize=16)
def _load_abi_cached(abi_path: Path) -> tuple[dict[str, Any], ...]:
    if not abi_path.exists():
        raise ConfigError(f"ABI not found: {abi_path}")

    with abi_path.open("r", encoding="utf-8") as f:
        try:
            artifact = json.load(f)
        except json.JSONDecodeError as exc:
            raise ConfigError(f"ABI file {abi_path} is not valid JSON: {exc}") from exc

    abi = artifact.get("abi") if isinstance(artifact, dict) else artifact
    if not isinstance(abi, list):
        raise ConfigError(f"ABI file {abi_path} holds no ABI list")
    return tuple(abi)


def load_abi(abi_path: Path) -> list[dict[str, Any]]:
    """
    Load an ABI from a JSON file.

    Raises:
        ConfigError: If the file is missing or holds no ABI list
    """
    return list(_load_abi_cached(Path(abi_path).resolve()))


def token_abi(resources_dir: Path) -> list[dict[str, Any]]:
    """Load the SWISC token ABI."""
    return load_abi(Path(resources_dir) / TOKEN_ABI_FILE)


def crowd_sale_abi(resources_dir: Path) -> list[dict[str, Any]]:
    """Load the SWISC crowd-sale ABI."""
    return load_abi(Path(resources_dir) / CROWD_SALE_ABI_FILE)


@dataclass(frozen=True)
class ContractAddresses:
    token: str
    crowd_sale: str
    broker_wallet: Optional[str] = None
    watched: tuple[tuple[str, str], ...] = ()


def load_addresses(path: Path) -> ContractAddresses:
    """
    Read contract and wallet addresses.

    The file is optional when every required address is supplied through the
    environment (``SWISC_TOKEN_ADDRESS``, ``SWISC_CROWD_SALE_ADDRESS``).

    Raises:
        ConfigError: If a required address is missing or malformed
    """
    entries: dict[str, Any] = {}
    if path.exists():
        with path.open("r", encoding="utf-8") as f:
            try:
                entries = json.load(f)
            except json.JSONDecodeError as exc:
                raise ConfigError(f"Address file {path} is not valid JSON: {exc}") from exc
        if not isinstance(entries, dict):
            raise ConfigError(f"Address file {path} must hold a JSON object")

    resolved: dict[str, Optional[str]] = {}
    for key, env_name in ADDRESS_KEYS.items():
        value = os.environ.get(env_name) or entries.get(key)
        if value:
            try:
                value = normalize_address(value)
            except EncodingError as exc:
                raise ConfigError(f"{key}: {exc}") from None
        resolved[key] = value or None

    for key in ("SWISCTokenContractAddress", "SWISCCrowdSaleContractAddress"):
        if not resolved[key]:
            raise ConfigError(
                f"{key} not configured. Add it to {path} or set {ADDRESS_KEYS[key]}."
            )

    watched = tuple(
        (label, resolved[key])
        for label, key in (
            ("Bitbox", "bitboxAddress"),
            ("Metamask", "metamaskAddress"),
            ("TREZOR", "trezorAddress"),
        )
        if resolved[key]
    )

    return ContractAddresses(
        token=resolved["SWISCTokenContractAddress"],
        crowd_sale=resolved["SWISCCrowdSaleContractAddress"],
        broker_wallet=resolved["CryptoBrokerWalletAddress"],
        watched=watched,
    )


def _find_function(abi: list, function_name: str) -> dict:
    for entry in abi:
        if entry.get("type", "function") == "function" and entry.get("name") == function_name:
            return entry
    raise EncodingError(f"Function {function_name} not found in ABI")


def _canonical_type(param: dict) -> str:
    """Expand ``tuple`` components into their canonical ``(a,b)`` form."""
    abi_type = param["type"]
    if abi_type.startswith("tuple"):
        inner = ",".join(_canonical_type(c) for c in param.get("components", []))
        return f"({inner}){abi_type[len('tuple'):]}"
    return abi_type


def encode_function_call(abi: list, function_name: str, args: list) -> str:
    """
    ABI-encode a function call.

    Returns:
        0x-prefixed hex encoded calldata
    """
    func = _find_function(abi, function_name)
    input_types = [_canonical_type(inp) for inp in func.get("inputs", [])]
    if len(input_types) != len(args):
        raise EncodingError(
            f"{function_name} takes {len(input_types)} argument(s), got {len(args)}"
        )

    selector = function_signature_to_4byte_selector(f"{function_name}({','.join(input_types)})")

    try:
        encoded_args = encode(input_types, args) if args else b""
    except (AbiEncodingError, TypeError, ValueError) as exc:
        raise EncodingError(f"Cannot encode arguments for {function_name}: {exc}") from exc

    return "0x" + selector.hex() + encoded_args.hex()


def decode_function_result(abi: list, function_name: str, data: str) -> Any:
    """
    ABI-decode a function call result.

    Returns:
        Decoded result: a single value, a tuple for several outputs, or None
    """
    func = _find_function(abi, function_name)
    output_types = [_canonical_type(out) for out in func.get("outputs", [])]
    if not output_types:
        return None

    try:
        raw = bytes.fromhex(data[2:] if data.startswith("0x") else data)
        decoded = decode(output_types, raw)
    except (DecodingError, ValueError) as exc:
        raise NetworkError(f"{function_name}: cannot decode return data: {exc}") from exc

    if len(decoded) == 1:
        return decoded[0]
    return decoded


async def read_contract(
    contract_address: str,
    function_name: str,
    abi: list,
    rpc_url: str,
    args: Optional[list] = None,
    timeout: float = DEFAULT_RPC_TIMEOUT,
) -> Any:
    """
    Read from a smart contract (eth_call).

    Args:
        contract_address: 0x-prefixed contract address
        function_name: Function to call
        abi: Contract ABI
        rpc_url: RPC endpoint URL
        args: Function arguments (default: [])

    Returns:
        Decoded return value(s), or None for a function without outputs

    Raises:
        NetworkError: The call returned no data for a function that has outputs
    """
    calldata = encode_function_call(abi, function_name, list(args or []))
    result = await eth_call({"to": contract_address, "data": calldata}, rpc_url, timeout)

    if result == "0x":
        if _find_function(abi, function_name).get("outputs"):
            raise NetworkError(
                f"{function_name}: no return data; is a contract deployed at {contract_address}?"
            )
        return None

    return decode_function_result(abi, function_name, result)
