"""
Shared fixtures: an in-memory JSON-RPC node served through httpx.MockTransport.

The fake node validates submitted transactions the way a real node would
for the cases under test: signature recovery, exact nonce, and balance
covering ``value + gas * gasPrice``.
"""

from __future__ import annotations

import json
from typing import Any, Callable, Optional

import httpx
import pytest
from loguru import logger

from swisc.chain import rpc
from swisc.chain.tx import SignedTransaction, deserialize, recover_sender, transaction_hash

# Well-known throwaway key from the EIP-155 examples. Never funded anywhere.
TEST_KEY = "0x" + "46" * 32
TEST_ADDRESS = "0x9d8A62f656a8d1615C1294fd71e9CFb3E4855A4F"

_ENV_VARS = [
    "SWISC_RPC_URL",
    "SWISC_CHAIN_ID",
    "SWISC_RPC_TIMEOUT",
    "SWISC_RESOURCES",
    "SWISC_ADDRESSES_FILE",
    "SWISC_LOG_LEVEL",
    "PRIVATE_KEY",
    "SENDER_ADDRESS",
    "RECIPIENT_ADDRESS",
    "SWISC_TOKEN_ADDRESS",
    "SWISC_CROWD_SALE_ADDRESS",
    "SWISC_BROKER_WALLET_ADDRESS",
    "SWISC_BITBOX_ADDRESS",
    "SWISC_METAMASK_ADDRESS",
    "SWISC_TREZOR_ADDRESS",
]


class NodeRejection(Exception):
    pass


class FakeNode:
    """Just enough of an Ethereum node for the toolkit's RPC surface."""

    url = "http://fake-node.test/rpc"

    def __init__(self, chain_id: int = 4) -> None:
        self.chain_id = chain_id
        self.nonces: dict[str, int] = {}
        self.balances: dict[str, int] = {}
        # contract address (lower) -> 0x-selector -> return data
        self.contracts: dict[str, dict[str, bytes]] = {}
        self.requests: list[dict[str, Any]] = []
        self.sent: list[SignedTransaction] = []
        # How far behind the true count eth_getTransactionCount reports.
        self.stale_nonce_by = 0
        # Raised from the transport instead of answering.
        self.fail_with: Optional[Exception] = None
        # Replaces the whole HTTP response when set.
        self.respond_with: Optional[Callable[[dict], httpx.Response]] = None

    @property
    def methods(self) -> list[str]:
        return [r["method"] for r in self.requests]

    def fund(self, address: str, wei: int) -> None:
        self.balances[address.lower()] = wei

    def set_nonce(self, address: str, nonce: int) -> None:
        self.nonces[address.lower()] = nonce

    def handler(self, request: httpx.Request) -> httpx.Response:
        payload = json.loads(request.content)
        self.requests.append(payload)

        if self.fail_with is not None:
            raise self.fail_with
        if self.respond_with is not None:
            return self.respond_with(payload)

        method = payload["method"]
        try:
            result = getattr(self, "_" + method)(*payload["params"])
        except NodeRejection as exc:
            return httpx.Response(
                200,
                json={
                    "jsonrpc": "2.0",
                    "id": payload["id"],
                    "error": {"code": -32000, "message": str(exc)},
                },
            )
        return httpx.Response(200, json={"jsonrpc": "2.0", "id": payload["id"], "result": result})

    # ---- RPC methods ----

    def _eth_chainId(self) -> str:
        return hex(self.chain_id)

    def _eth_getTransactionCount(self, address: str, block: str) -> str:
        return hex(max(self.nonces.get(address.lower(), 0) - self.stale_nonce_by, 0))

    def _eth_getBalance(self, address: str, block: str) -> str:
        return hex(self.balances.get(address.lower(), 0))

    def _eth_call(self, call: dict, block: str) -> str:
        returns = self.contracts.get(call["to"].lower(), {})
        selector = call["data"][:10]
        if selector not in returns:
            raise NodeRejection("execution reverted")
        return "0x" + returns[selector].hex()

    def _eth_sendRawTransaction(self, raw: str) -> str:
        signed = deserialize(raw)
        if signed.chain_id not in (None, self.chain_id):
            raise NodeRejection("invalid chain id")
        sender = recover_sender(signed).lower()

        expected = self.nonces.get(sender, 0)
        if signed.nonce < expected:
            raise NodeRejection(f"nonce too low: next nonce {expected}, tx nonce {signed.nonce}")
        if signed.nonce > expected:
            raise NodeRejection(f"nonce too high: next nonce {expected}, tx nonce {signed.nonce}")

        cost = signed.value + signed.gas * signed.gas_price
        if self.balances.get(sender, 0) < cost:
            raise NodeRejection("insufficient funds for gas * price + value")

        self.nonces[sender] = expected + 1
        self.balances[sender] -= cost
        recipient = "0x" + signed.to.hex()
        self.balances[recipient] = self.balances.get(recipient, 0) + signed.value
        self.sent.append(signed)
        return transaction_hash(signed)


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch: pytest.MonkeyPatch, tmp_path) -> None:
    """Keep the developer's environment and ~/.swisc/.env out of tests."""
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("SWISC_ENV_FILE", str(tmp_path / "no-such.env"))


@pytest.fixture(autouse=True)
def reset_logging():
    """Drop sinks bound to CliRunner streams once a test finishes."""
    yield
    logger.remove()


@pytest.fixture()
def node(monkeypatch: pytest.MonkeyPatch) -> FakeNode:
    """Route every httpx.AsyncClient created by the RPC layer to a FakeNode."""
    fake = FakeNode()
    real_client = httpx.AsyncClient

    def client_factory(*args: Any, **kwargs: Any) -> httpx.AsyncClient:
        kwargs["transport"] = httpx.MockTransport(fake.handler)
        return real_client(*args, **kwargs)

    monkeypatch.setattr(rpc.httpx, "AsyncClient", client_factory)
    return fake
