"""
Async JSON-RPC client.

Lightweight alternative to web3.py: one ``httpx.AsyncClient`` request per call,
each bounded by an explicit timeout.  Every function is a coroutine; callers
await them one after another.
"""

from __future__ import annotations

import asyncio
import itertools
from typing import Any, Optional

import httpx
from loguru import logger

from ..config import DEFAULT_RPC_TIMEOUT
from ..errors import BroadcastRejected, NetworkError, Timeout

_request_ids = itertools.count(1)


class RpcError(NetworkError):
    """The node answered with a JSON-RPC error object."""

    def __init__(self, message: str, code: Optional[int] = None, data: Any = None) -> None:
        super().__init__(f"RPC error {code}: {message}" if code is not None else f"RPC error: {message}")
        self.message = message
        self.code = code
        self.data = data


async def _rpc_call(
    method: str,
    params: list,
    rpc_url: str,
    timeout: float = DEFAULT_RPC_TIMEOUT,
) -> Any:
    """
    Make a JSON-RPC call.

    Args:
        method: RPC method name (e.g., "eth_call")
        params: RPC parameters
        rpc_url: RPC endpoint URL
        timeout: Seconds before the call fails with Timeout

    Returns:
        Result field from the RPC response

    Raises:
        Timeout: No response within ``timeout``
        RpcError: The node returned a JSON-RPC error object
        NetworkError: Transport failure, HTTP error, or malformed body
    """
    payload = {
        "jsonrpc": "2.0",
        "method": method,
        "params": params,
        "id": next(_request_ids),
    }
    logger.debug(f"RPC {method} -> {rpc_url}")

    try:
        async with httpx.AsyncClient(timeout=timeout) as client:
            # httpx bounds each phase separately; wait_for bounds the whole call.
            response = await asyncio.wait_for(client.post(rpc_url, json=payload), timeout)
    except (httpx.TimeoutException, asyncio.TimeoutError) as exc:
        raise Timeout(f"{method} timed out after {timeout}s") from exc
    except httpx.HTTPError as exc:
        raise NetworkError(f"{method}: {exc.__class__.__name__}: {exc}") from exc

    try:
        data = response.json()
    except ValueError:
        data = None

    # Some providers pair a JSON-RPC error object with a non-2xx status.
    if isinstance(data, dict) and data.get("error") is not None:
        error = data["error"]
        if isinstance(error, dict):
            raise RpcError(str(error.get("message", error)), error.get("code"), error.get("data"))
        raise RpcError(str(error))

    if response.is_error:
        raise NetworkError(f"{method}: HTTP {response.status_code} from node")
    if data is None:
        raise NetworkError(f"{method}: response is not JSON")
    if not isinstance(data, dict):
        raise NetworkError(f"{method}: malformed JSON-RPC response")

    if "result" not in data:
        raise NetworkError(f"{method}: response has neither result nor error")

    return data["result"]


def _parse_quantity(method: str, value: Any) -> int:
    if not isinstance(value, str) or not value.startswith("0x"):
        raise NetworkError(f"{method}: expected hex quantity, got {value!r}")
    try:
        return int(value, 16)
    except ValueError:
        raise NetworkError(f"{method}: expected hex quantity, got {value!r}") from None


async def get_chain_id(rpc_url: str, timeout: float = DEFAULT_RPC_TIMEOUT) -> int:
    result = await _rpc_call("eth_chainId", [], rpc_url, timeout)
    return _parse_quantity("eth_chainId", result)


async def get_balance(address: str, rpc_url: str, timeout: float = DEFAULT_RPC_TIMEOUT) -> int:
    """
    Get ETH balance for an address.

    Returns:
        Balance in wei
    """
    result = await _rpc_call("eth_getBalance", [address, "latest"], rpc_url, timeout)
    return _parse_quantity("eth_getBalance", result)


async def get_nonce(
    address: str,
    rpc_url: str,
    timeout: float = DEFAULT_RPC_TIMEOUT,
    block: str = "pending",
) -> int:
    """
    Get the transaction count for an address.

    ``pending`` includes transactions still in the node's pool, so the result
    is the next unused nonce.
    """
    result = await _rpc_call("eth_getTransactionCount", [address, block], rpc_url, timeout)
    return _parse_quantity("eth_getTransactionCount", result)


async def eth_call(
    call: dict,
    rpc_url: str,
    timeout: float = DEFAULT_RPC_TIMEOUT,
    block: str = "latest",
) -> str:
    result = await _rpc_call("eth_call", [call, block], rpc_url, timeout)
    if not isinstance(result, str) or not result.startswith("0x"):
        raise NetworkError(f"eth_call: expected hex data, got {result!r}")
    return result


async def send_raw_transaction(
    raw_tx: str,
    rpc_url: str,
    timeout: float = DEFAULT_RPC_TIMEOUT,
) -> str:
    """
    Send a signed raw transaction.

    Args:
        raw_tx: 0x-prefixed hex encoded signed transaction

    Returns:
        Transaction hash (0x-prefixed hex)

    Raises:
        BroadcastRejected: The node refused the transaction, for any reason
    """
    try:
        result = await _rpc_call("eth_sendRawTransaction", [raw_tx], rpc_url, timeout)
    except RpcError as exc:
        logger.warning(f"Node rejected transaction: {exc.message}")
        raise BroadcastRejected(exc.message, exc.code, exc.data) from exc

    if not isinstance(result, str) or not result.startswith("0x"):
        raise NetworkError(f"eth_sendRawTransaction: expected tx hash, got {result!r}")
    return result
