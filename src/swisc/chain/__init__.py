"""
Chain - On-chain interaction layer for the SWISC toolkit.

Async JSON-RPC client, ABI loading and call encoding, and the legacy
transaction builder/signer/broadcaster.

Uses httpx + eth-abi + rlp + eth-keys instead of the heavyweight web3.py.
"""
